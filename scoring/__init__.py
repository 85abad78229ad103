"""
🎯 DEAL HEALTH SCORING
======================
Multi-category, weighted, tri-state scoring of sales deals.

Components:
- ConfigResolver: loads (or lazily creates) a tenant's scoring config
- ScoringEngine:  loads a deal's evidence and scores its 6 categories

Usage:
    from database.repository import SupabaseDealHealthRepository
    from scoring import ScoringEngine, explain_score

    engine = ScoringEngine(SupabaseDealHealthRepository())
    result = engine.score_deal(deal_id, user_id, tenant_id)
    print(explain_score(result))
"""

from .categories import score_category
from .config_resolver import ConfigResolver
from .engine import ScoringEngine, classify_tier, explain_score, weighted_total
from .exceptions import ConfigValidationError, DealHealthError, DealNotFoundError
from .models import HealthResult, HealthTier, ParamState

__all__ = [
    "ConfigResolver",
    "ScoringEngine",
    "score_category",
    "weighted_total",
    "classify_tier",
    "explain_score",
    "HealthResult",
    "HealthTier",
    "ParamState",
    "DealHealthError",
    "DealNotFoundError",
    "ConfigValidationError",
]
