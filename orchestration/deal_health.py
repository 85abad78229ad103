"""
🩺 DEAL HEALTH SERVICE
======================
Entry points the rest of the application calls.

WHEN TO RE-SCORE:
- After new analysis text arrives (process_analysis does all three steps)
- After a user toggles a manual signal (update_manual_signals)
- After a meeting, email or value change lands, or the tenant config changes

Detection and scoring run strictly in sequence here: the detectors'
writes complete before the scoring pass reads the deal back.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

from loguru import logger

from scoring.config_resolver import ConfigResolver
from scoring.engine import BatchScoreResult, ScoringEngine
from scoring.exceptions import ConfigValidationError
from scoring.models import HealthResult
from scoring.parameters import MANUAL_SIGNAL_FIELDS
from signals.competitors import CompetitorDetector, CompetitorRegistry
from signals.detector import SignalDetector

if TYPE_CHECKING:
    from database.repository import DealHealthRepository


class DealHealthService:
    """
    Usage:
        service = DealHealthService(SupabaseDealHealthRepository())

        # Transcript analyzed -> detect signals, competitors, then re-score
        summary = service.process_analysis(deal_id, text, "transcript", user_id, tenant_id)

        # User ticked "legal engaged"
        result = service.update_manual_signals(deal_id, user_id, tenant_id, legal_engaged_user=True)
    """

    def __init__(
        self,
        repository: "DealHealthRepository",
        engine: Optional[ScoringEngine] = None
    ):
        self.repo = repository
        self.configs = ConfigResolver(repository)
        self.engine = engine or ScoringEngine(repository, self.configs)
        self.signals = SignalDetector(repository, self.configs)
        self.competitor_detector = CompetitorDetector(repository, self.configs)
        self.competitors = CompetitorRegistry(repository)

    def score_deal(self, deal_id: str, user_id: str, tenant_id: str) -> HealthResult:
        return self.engine.score_deal(deal_id, user_id, tenant_id)

    def score_all(
        self,
        user_id: str,
        tenant_id: str,
        owner_id: Optional[str] = None
    ) -> BatchScoreResult:
        return self.engine.score_all(user_id, tenant_id, owner_id)

    def process_analysis(
        self,
        deal_id: str,
        analysis: Any,
        source_label: str,
        user_id: str,
        tenant_id: str
    ) -> Dict[str, Any]:
        """
        Post-analysis hook: apply AI signals, detect competitors, re-score.

        Returns:
            Dict with the applied signals, matched competitors, the new
            score and tier, and the HealthResult itself under "result"
        """
        applied = self.signals.apply_ai_signals(deal_id, analysis, source_label, user_id, tenant_id)
        matches = self.competitor_detector.detect_competitors(deal_id, user_id, tenant_id, analysis)
        result = self.engine.score_deal(deal_id, user_id, tenant_id)

        signals_fired = [k for k, v in applied.items() if v is True]
        logger.info(
            f"Processed {source_label} analysis for deal {deal_id}: "
            f"{len(signals_fired)} signal(s), {len(matches)} competitor(s), "
            f"score {result.score} ({result.tier.value})"
        )
        return {
            "signals_applied": len(signals_fired),
            "signals": applied,
            "competitors_detected": len(matches),
            "competitors": [m.model_dump() for m in matches],
            "health_score": result.score,
            "health_tier": result.tier.value,
            "result": result,
        }

    def update_manual_signals(
        self,
        deal_id: str,
        user_id: str,
        tenant_id: str,
        **flags: Any
    ) -> HealthResult:
        """
        Store user-asserted signals and re-score.

        Only the fields in MANUAL_SIGNAL_FIELDS are accepted; None clears
        an answer back to "not answered".

        Raises:
            ConfigValidationError: unknown field names or nothing to update
        """
        unknown = sorted(set(flags) - set(MANUAL_SIGNAL_FIELDS))
        if unknown:
            raise ConfigValidationError(f"Not manual signal fields: {', '.join(unknown)}")
        if not flags:
            raise ConfigValidationError("No valid fields")

        self.repo.update_deal(deal_id, tenant_id, flags)
        logger.info(f"Manual signals updated on deal {deal_id}: {sorted(flags)}")
        return self.engine.score_deal(deal_id, user_id, tenant_id)
