"""
🧩 CONFIG RESOLVER
==================
Loads a tenant's scoring config, creating it with defaults on first use.

A missing config row is never an error: the first request for a
(tenant, user) pair inserts one built from HealthDefaults and returns it.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

from loguru import logger
from pydantic import ValidationError

from config.settings import HealthDefaults, settings
from scoring.exceptions import ConfigValidationError
from scoring.models import ScoringConfig
from scoring.parameters import parameter_key

if TYPE_CHECKING:
    from database.repository import DealHealthRepository


class ConfigResolver:
    """
    Usage:
        resolver = ConfigResolver(repo)
        config = resolver.get_config(user_id, tenant_id)

        if resolver.is_ai_enabled(user_id, tenant_id):
            ...
    """

    def __init__(
        self,
        repository: "DealHealthRepository",
        defaults: Optional[HealthDefaults] = None
    ):
        self.repo = repository
        self.defaults = defaults or settings.defaults

    def get_config(self, user_id: str, tenant_id: str) -> ScoringConfig:
        config = self.repo.find_config(user_id, tenant_id)
        if config is not None:
            return config

        logger.info(f"No scoring config for user {user_id} / tenant {tenant_id}; creating defaults")
        return self.repo.insert_config(
            ScoringConfig.from_defaults(user_id, tenant_id, self.defaults)
        )

    def is_ai_enabled(self, user_id: str, tenant_id: str) -> bool:
        """
        Read-only check used by the text detectors.

        Does not create a missing config: no row means the defaults apply.
        """
        config = self.repo.find_config(user_id, tenant_id)
        if config is None:
            return self.defaults.ai_enabled
        return config.ai_enabled

    def save_config(self, user_id: str, tenant_id: str, **fields: Any) -> ScoringConfig:
        """
        Validate and store a tenant config.

        Fields not given keep their current value (or the default for a
        tenant without a config yet).

        Raises:
            ConfigValidationError: bad field values, category weights not
                summing to 100, or watch threshold above healthy threshold
        """
        current = self.get_config(user_id, tenant_id)
        merged: Dict[str, Any] = current.to_row()
        for key, value in fields.items():
            # Parameter maps merge key by key; everything else replaces
            if key in ("param_weights", "params_enabled") and isinstance(value, dict):
                merged[key] = {**merged.get(key, {}), **self._parameter_keys(key, value)}
            else:
                merged[key] = value
        merged["user_id"] = user_id
        merged["tenant_id"] = tenant_id

        try:
            config = ScoringConfig.model_validate(merged)
        except ValidationError as e:
            raise ConfigValidationError(str(e)) from e

        total = config.category_weight_total()
        if total != 100:
            raise ConfigValidationError(f"Category weights must sum to 100 (got {total})")
        if config.threshold_watch > config.threshold_healthy:
            raise ConfigValidationError(
                f"Watch threshold ({config.threshold_watch}) cannot exceed "
                f"healthy threshold ({config.threshold_healthy})"
            )

        saved = self.repo.save_config(config)
        logger.info(f"Saved scoring config for user {user_id} / tenant {tenant_id}")
        return saved

    @staticmethod
    def _parameter_keys(column: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Re-key a parameter map by catalogue key ("close_confirmed" -> "1a_close_confirmed")."""
        keyed: Dict[str, Any] = {}
        for name, value in values.items():
            key = parameter_key(name)
            if key is None:
                raise ConfigValidationError(f"{column}: unknown parameter {name!r}")
            keyed[key] = value
        return keyed
