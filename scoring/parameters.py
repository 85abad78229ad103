"""
📋 PARAMETER CATALOGUE
======================
The 16 atomic scoring facts and the 6 categories they roll up into.

Weights carry their polarity: positive = bonus when confirmed,
negative = penalty when confirmed. Tenants override the weights and
toggle parameters on/off in their scoring config; the catalogue only
supplies labels, grouping and defaults.

BASIS:
- manual: user checkbox, optionally backed by an AI-confirmed signal
- auto:   computed from activity data (contacts, meetings, emails, history)
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class CategorySpec:
    id: int
    label: str
    weight_field: str


@dataclass(frozen=True)
class ParameterSpec:
    key: str
    code: str
    category: int
    label: str
    default_weight: int
    basis: str

    @property
    def field_name(self) -> str:
        """Attribute name used on the ParamWeights/ParamToggles models."""
        return self.key.split("_", 1)[1]


CATEGORIES: List[CategorySpec] = [
    CategorySpec(1, "Close Date Credibility", "weight_close_date"),
    CategorySpec(2, "Buyer Engagement & Power", "weight_buyer_engagement"),
    CategorySpec(3, "Process Completion", "weight_process"),
    CategorySpec(4, "Deal Size Realism", "weight_deal_size"),
    CategorySpec(5, "Competitive & Pricing Risk", "weight_competitive"),
    CategorySpec(6, "Momentum & Activity", "weight_momentum"),
]

PARAMETERS: List[ParameterSpec] = [
    # Category 1
    ParameterSpec("1a_close_confirmed", "1a", 1, "Buyer-confirmed close date", 15, "manual"),
    ParameterSpec("1b_close_slipped", "1b", 1, "Close date slipped", -20, "auto"),
    ParameterSpec("1c_buyer_event", "1c", 1, "Close date tied to buyer event", 10, "manual"),
    # Category 2
    ParameterSpec("2a_economic_buyer", "2a", 2, "Economic buyer identified", 20, "manual"),
    ParameterSpec("2b_exec_meeting", "2b", 2, "Exec meeting held", 15, "auto"),
    ParameterSpec("2c_multi_threaded", "2c", 2, "Multi-threaded", 10, "auto"),
    # Category 3
    ParameterSpec("3a_legal_engaged", "3a", 3, "Legal / procurement engaged", 25, "manual"),
    ParameterSpec("3b_security_review", "3b", 3, "Security / IT review started", 20, "manual"),
    # Category 4
    ParameterSpec("4a_value_vs_segment", "4a", 4, "Deal value vs segment average", -15, "auto"),
    ParameterSpec("4b_deal_expanded", "4b", 4, "Deal expanded recently", 15, "auto"),
    ParameterSpec("4c_scope_approved", "4c", 4, "Buyer explicitly approved scope", 20, "manual"),
    # Category 5 (pure risk)
    ParameterSpec("5a_competitive", "5a", 5, "Competitive deal", -20, "manual"),
    ParameterSpec("5b_price_sensitivity", "5b", 5, "Price sensitivity flagged", -15, "manual"),
    ParameterSpec("5c_discount_pending", "5c", 5, "Discount approval pending", -10, "manual"),
    # Category 6 (pure risk)
    ParameterSpec("6a_no_meeting_14d", "6a", 6, "No buyer meeting recently", -25, "auto"),
    ParameterSpec("6b_slow_response", "6b", 6, "Avg response time > historical norm", -15, "auto"),
]

PARAMETERS_BY_KEY: Dict[str, ParameterSpec] = {p.key: p for p in PARAMETERS}
CATEGORIES_BY_ID: Dict[int, CategorySpec] = {c.id: c for c in CATEGORIES}
PARAMETER_KEYS_BY_FIELD: Dict[str, str] = {p.field_name: p.key for p in PARAMETERS}


def parameter_key(name: str) -> Optional[str]:
    """Catalogue key for a parameter key or a field name; None if unknown."""
    if name in PARAMETERS_BY_KEY:
        return name
    return PARAMETER_KEYS_BY_FIELD.get(name)


# Contact roles that count as a meaningful stakeholder for multi-threading
STAKEHOLDER_ROLES = ("decision_maker", "champion", "influencer", "economic_buyer", "executive")
ECONOMIC_BUYER_ROLES = ("economic_buyer", "decision_maker")

# Deals in these stages are not re-scored in batch runs
CLOSED_STAGES = ("closed_won", "closed_lost")

# Fields a user may set by hand through update_manual_signals
MANUAL_SIGNAL_FIELDS = (
    "close_date_user_confirmed",
    "buyer_event_user_confirmed",
    "buyer_event_description",
    "economic_buyer_contact_id",
    "legal_engaged_user",
    "security_review_user",
    "scope_approved_user",
    "competitive_deal_user",
    "price_sensitivity_user",
    "discount_pending_user",
)