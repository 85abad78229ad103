"""
🧱 DEAL HEALTH DATA MODEL
=========================
Typed records for everything the engine reads and writes.

Rows come back from Supabase as plain dicts; every model validates and
coerces them on the way in. Columns stored as JSON text by older writers
(keyword lists, weight maps, competitor matches) are decoded here so the
rest of the engine only ever sees real lists and maps.
"""

import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from loguru import logger
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from config.settings import HealthDefaults
from scoring.parameters import CATEGORIES_BY_ID, PARAMETERS_BY_KEY, parameter_key


def decode_json(value: Any) -> Any:
    """Accept either a decoded structure or its JSON-encoded text."""
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ===========================================
# PER-PARAMETER MAPS
# ===========================================

class _ParamTable(BaseModel):
    """
    Fixed record with one field per catalogue parameter.

    Accepts the stored form keyed by parameter key ("1a_close_confirmed")
    or by field name ("close_confirmed"); both spellings are folded onto
    the parameter key, later entries winning. Unknown keys are dropped
    with a warning instead of being carried along.
    """
    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        data = decode_json(data)
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        normalized, unknown = {}, []
        for name, value in data.items():
            key = parameter_key(name)
            if key is None:
                unknown.append(name)
            else:
                normalized[key] = value
        if unknown:
            logger.warning(f"{cls.__name__}: dropping unknown parameter keys {unknown}")
        return normalized

    def get(self, key: str) -> Any:
        return getattr(self, PARAMETERS_BY_KEY[key].field_name)


def _weight(key: str):
    return Field(PARAMETERS_BY_KEY[key].default_weight, alias=key)


def _toggle(key: str):
    return Field(True, alias=key)


class ParamWeights(_ParamTable):
    """Per-parameter weights; defaults come from the catalogue."""
    close_confirmed: int = _weight("1a_close_confirmed")
    close_slipped: int = _weight("1b_close_slipped")
    buyer_event: int = _weight("1c_buyer_event")
    economic_buyer: int = _weight("2a_economic_buyer")
    exec_meeting: int = _weight("2b_exec_meeting")
    multi_threaded: int = _weight("2c_multi_threaded")
    legal_engaged: int = _weight("3a_legal_engaged")
    security_review: int = _weight("3b_security_review")
    value_vs_segment: int = _weight("4a_value_vs_segment")
    deal_expanded: int = _weight("4b_deal_expanded")
    scope_approved: int = _weight("4c_scope_approved")
    competitive: int = _weight("5a_competitive")
    price_sensitivity: int = _weight("5b_price_sensitivity")
    discount_pending: int = _weight("5c_discount_pending")
    no_meeting_14d: int = _weight("6a_no_meeting_14d")
    slow_response: int = _weight("6b_slow_response")


class ParamToggles(_ParamTable):
    """Enabled flags; a parameter missing from the stored map is enabled."""
    close_confirmed: bool = _toggle("1a_close_confirmed")
    close_slipped: bool = _toggle("1b_close_slipped")
    buyer_event: bool = _toggle("1c_buyer_event")
    economic_buyer: bool = _toggle("2a_economic_buyer")
    exec_meeting: bool = _toggle("2b_exec_meeting")
    multi_threaded: bool = _toggle("2c_multi_threaded")
    legal_engaged: bool = _toggle("3a_legal_engaged")
    security_review: bool = _toggle("3b_security_review")
    value_vs_segment: bool = _toggle("4a_value_vs_segment")
    deal_expanded: bool = _toggle("4b_deal_expanded")
    scope_approved: bool = _toggle("4c_scope_approved")
    competitive: bool = _toggle("5a_competitive")
    price_sensitivity: bool = _toggle("5b_price_sensitivity")
    discount_pending: bool = _toggle("5c_discount_pending")
    no_meeting_14d: bool = _toggle("6a_no_meeting_14d")
    slow_response: bool = _toggle("6b_slow_response")


# ===========================================
# SCORING CONFIG
# ===========================================

class ScoringConfig(_Row):
    """One row per (tenant, user): weights, toggles, thresholds, keywords."""
    id: Optional[str] = None
    user_id: str
    tenant_id: str

    ai_enabled: bool = True
    params_enabled: ParamToggles = Field(default_factory=ParamToggles)
    param_weights: ParamWeights = Field(default_factory=ParamWeights)

    weight_close_date: int = 20
    weight_buyer_engagement: int = 25
    weight_process: int = 15
    weight_deal_size: int = 10
    weight_competitive: int = 15
    weight_momentum: int = 15

    threshold_healthy: int = 80
    threshold_watch: int = 50

    exec_titles: List[str] = Field(default_factory=list)
    legal_titles: List[str] = Field(default_factory=list)
    procurement_titles: List[str] = Field(default_factory=list)
    security_titles: List[str] = Field(default_factory=list)

    segment_avg_smb: float = 10000
    segment_avg_midmarket: float = 35000
    segment_avg_enterprise: float = 100000
    segment_size_multiplier: float = 2.0

    no_meeting_days: int = 14
    response_time_multiplier: float = 1.5
    multi_thread_min_contacts: int = 2

    @field_validator(
        "exec_titles", "legal_titles", "procurement_titles", "security_titles",
        mode="before",
    )
    @classmethod
    def _decode_titles(cls, value: Any) -> Any:
        value = decode_json(value)
        return [] if value is None else value

    @field_validator("ai_enabled", mode="before")
    @classmethod
    def _ai_default_on(cls, value: Any) -> Any:
        # Only an explicit false turns AI off
        return True if value is None else value

    @classmethod
    def from_defaults(
        cls,
        user_id: str,
        tenant_id: str,
        defaults: Optional[HealthDefaults] = None
    ) -> "ScoringConfig":
        defaults = defaults or HealthDefaults()
        return cls(user_id=user_id, tenant_id=tenant_id, **defaults.model_dump())

    def is_enabled(self, key: str) -> bool:
        return bool(self.params_enabled.get(key))

    def weight(self, key: str) -> int:
        return self.param_weights.get(key)

    def category_weight(self, category_id: int) -> int:
        return getattr(self, CATEGORIES_BY_ID[category_id].weight_field)

    def category_weight_total(self) -> int:
        return sum(self.category_weight(cid) for cid in CATEGORIES_BY_ID)

    def to_row(self) -> Dict[str, Any]:
        """Row form for storage: parameter maps keyed by parameter key."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ===========================================
# INPUT RECORDS
# ===========================================

class Contact(_Row):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    role_type: Optional[str] = None

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        if self.title:
            return f"{name} ({self.title})" if name else self.title
        return name or self.id

    def title_matches(self, keywords: List[str]) -> bool:
        title = (self.title or "").lower()
        return bool(title) and any(k.lower() in title for k in keywords if k)


class Meeting(_Row):
    id: str
    start_time: UtcDatetime
    status: Optional[str] = None

    def held(self, now: datetime) -> bool:
        return self.status == "completed" or self.start_time < now


class Email(_Row):
    id: str
    direction: str
    sent_at: UtcDatetime


class ValueChange(_Row):
    id: Optional[str] = None
    old_value: Optional[float] = None
    new_value: Optional[float] = None
    changed_at: UtcDatetime

    @property
    def is_increase(self) -> bool:
        if self.new_value is None:
            return False
        return self.new_value > (self.old_value or 0)


class Competitor(_Row):
    id: str
    tenant_id: Optional[str] = None
    name: str
    aliases: List[str] = Field(default_factory=list)
    website: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("aliases", mode="before")
    @classmethod
    def _decode_aliases(cls, value: Any) -> Any:
        value = decode_json(value)
        return [] if value is None else value

    @property
    def names(self) -> List[str]:
        return [n for n in [self.name, *self.aliases] if n and n.strip()]


class CompetitorMatch(BaseModel):
    id: str
    name: str
    matched: str
    snippet: Optional[str] = None


class Deal(_Row):
    """
    The scored entity. Most facts come in up to three parallel fields:
    a user assertion, an AI assertion and supporting source/evidence text.
    None on a user field means "not answered", False means "denied".
    """
    id: str
    tenant_id: Optional[str] = None
    owner_id: Optional[str] = None
    name: Optional[str] = None
    stage: Optional[str] = None
    value: Optional[float] = None

    close_date: Optional[date] = None
    close_date_push_count: int = 0
    close_date_user_confirmed: Optional[bool] = None
    close_date_ai_confirmed: bool = False
    close_date_ai_source: Optional[str] = None
    close_date_ai_confidence: Optional[float] = None
    close_date_ai_evidence: Optional[str] = None

    buyer_event_user_confirmed: Optional[bool] = None
    buyer_event_description: Optional[str] = None
    buyer_event_ai_confirmed: bool = False
    buyer_event_ai_source: Optional[str] = None
    buyer_event_ai_evidence: Optional[str] = None

    economic_buyer_contact_id: Optional[str] = None

    legal_engaged_user: Optional[bool] = None
    legal_engaged_ai: bool = False
    legal_engaged_source: Optional[str] = None
    legal_engaged_evidence: Optional[str] = None

    security_review_user: Optional[bool] = None
    security_review_ai: bool = False
    security_review_source: Optional[str] = None
    security_review_evidence: Optional[str] = None

    scope_approved_user: Optional[bool] = None
    scope_approved_ai: bool = False
    scope_approved_source: Optional[str] = None
    scope_approved_evidence: Optional[str] = None

    competitive_deal_user: Optional[bool] = None
    competitive_deal_ai: bool = False
    competitive_competitors: List[CompetitorMatch] = Field(default_factory=list)
    competitive_evidence: Optional[str] = None

    price_sensitivity_user: Optional[bool] = None
    price_sensitivity_ai: bool = False
    price_sensitivity_source: Optional[str] = None
    price_sensitivity_evidence: Optional[str] = None

    discount_pending_user: Optional[bool] = None
    discount_pending_ai: bool = False
    discount_pending_source: Optional[str] = None
    discount_pending_evidence: Optional[str] = None

    health_score: Optional[int] = None
    health_tier: Optional[str] = None
    health_score_breakdown: Optional[Dict[str, Any]] = None

    @field_validator(
        "close_date_ai_confirmed", "buyer_event_ai_confirmed", "legal_engaged_ai",
        "security_review_ai", "scope_approved_ai", "competitive_deal_ai",
        "price_sensitivity_ai", "discount_pending_ai",
        mode="before",
    )
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("close_date_push_count", mode="before")
    @classmethod
    def _null_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("competitive_competitors", mode="before")
    @classmethod
    def _decode_matches(cls, value: Any) -> Any:
        value = decode_json(value)
        return [] if value is None else value

    @field_validator("health_score_breakdown", mode="before")
    @classmethod
    def _decode_breakdown(cls, value: Any) -> Any:
        return decode_json(value)


# ===========================================
# BREAKDOWN (engine output)
# ===========================================

class ParamState(str, Enum):
    CONFIRMED = "confirmed"
    ABSENT = "absent"
    UNKNOWN = "unknown"


class HealthTier(str, Enum):
    HEALTHY = "healthy"
    WATCH = "watch"
    RISK = "risk"


class ParameterResult(BaseModel):
    """Resolved state of one parameter and what it contributed."""
    key: str
    code: str
    category: int
    label: str
    state: ParamState
    weight: int
    impact: int = 0
    auto: bool = False
    user: Optional[bool] = None
    ai: Optional[bool] = None
    ai_suppressed: bool = False
    source: Optional[str] = None
    evidence: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def confirmed(self) -> bool:
        return self.state is ParamState.CONFIRMED


class CategoryResult(BaseModel):
    id: int
    label: str
    score: int
    weight: int
    max_positive: int
    positive_earned: int
    negative_penalty: int
    params: List[str] = Field(default_factory=list)
    disabled: List[str] = Field(default_factory=list)


class HealthBreakdown(BaseModel):
    categories: Dict[str, CategoryResult] = Field(default_factory=dict)
    params: Dict[str, ParameterResult] = Field(default_factory=dict)
    signals: Dict[str, Any] = Field(default_factory=dict)


class HealthResult(BaseModel):
    deal_id: str
    score: int
    tier: HealthTier
    breakdown: HealthBreakdown
