"""
🎯 DEAL HEALTH SCORING ENGINE
=============================
Combines the 6 category scores into a single deal health score.

HOW IT WORKS:
1. Loads the deal, tenant config, contacts, meetings, emails and value
   history concurrently (any failed read fails the whole call)
2. Scores each category from its parameters
3. Applies the tenant's category weights
4. Produces final score (0-100) with tier classification and persists it

SCORE INTERPRETATION (default thresholds, configurable per tenant):
- 80-100: 💚 HEALTHY - On track
- 50-79:  👀 WATCH   - Needs attention
- 0-49:   🚨 RISK    - Intervene now
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Dict, List, NamedTuple, Optional

from loguru import logger

from config.settings import settings
from scoring.categories import (
    ScoringContext,
    round_half_up,
    score_buyer_engagement,
    score_close_date_credibility,
    score_competitive_risk,
    score_deal_size_realism,
    score_momentum,
    score_process_completion,
)
from scoring.config_resolver import ConfigResolver
from scoring.exceptions import DealNotFoundError
from scoring.models import (
    HealthBreakdown,
    HealthResult,
    HealthTier,
    ParamState,
    ScoringConfig,
)

if TYPE_CHECKING:
    from database.repository import DealHealthRepository


class BatchScoreResult(NamedTuple):
    results: List[HealthResult]
    errors: List[Dict[str, str]]


def weighted_total(category_scores: Dict[int, int], config: ScoringConfig) -> int:
    """round(sum(score_i * weight_i / 100)), clamped to 0-100."""
    total = sum(score * config.category_weight(cid) for cid, score in category_scores.items())
    return max(0, min(100, round_half_up(total / 100)))


def classify_tier(score: int, config: ScoringConfig) -> HealthTier:
    """Classify score into tier."""
    if score >= config.threshold_healthy:
        return HealthTier.HEALTHY
    elif score >= config.threshold_watch:
        return HealthTier.WATCH
    else:
        return HealthTier.RISK


class ScoringEngine:
    """
    Calculates deal health scores.

    The formula:

    score = round(
        close_date       * W1 +
        buyer_engagement * W2 +
        process          * W3 +
        deal_size        * W4 +
        competitive      * W5 +
        momentum         * W6
    ) / 100

    Where W1-W6 are the tenant's category weights (expected to sum to 100)

    Usage:
        engine = ScoringEngine(SupabaseDealHealthRepository())

        # Score a single deal
        result = engine.score_deal(deal_id, user_id, tenant_id)

        # Score every open deal of a tenant
        batch = engine.score_all(user_id, tenant_id)
    """

    def __init__(
        self,
        repository: "DealHealthRepository",
        config_resolver: Optional[ConfigResolver] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_workers: Optional[int] = None
    ):
        self.repo = repository
        self.configs = config_resolver or ConfigResolver(repository)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.max_workers = max_workers or settings.engine.loader_workers

        logger.debug(f"ScoringEngine initialized ({self.max_workers} loader threads)")

    def _load(self, deal_id: str, user_id: str, tenant_id: str) -> dict:
        """
        Issue the six reads concurrently and wait for all of them.

        The config read does not create a missing row; score_deal does
        that once the deal is known to exist.
        """
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                "deal": pool.submit(self.repo.get_deal, deal_id, tenant_id),
                "config": pool.submit(self.repo.find_config, user_id, tenant_id),
                "contacts": pool.submit(self.repo.list_contacts, deal_id, tenant_id),
                "meetings": pool.submit(self.repo.list_meetings, deal_id, tenant_id),
                "emails": pool.submit(self.repo.list_emails, deal_id, tenant_id),
                "history": pool.submit(self.repo.list_value_history, deal_id, tenant_id),
            }
            return {name: future.result() for name, future in futures.items()}

    def score_deal(self, deal_id: str, user_id: str, tenant_id: str) -> HealthResult:
        """
        Calculate, persist and return the health score for one deal.

        Args:
            deal_id: Deal UUID
            user_id: User whose scoring config applies
            tenant_id: Tenant (organisation) the deal belongs to

        Returns:
            HealthResult with score, tier and full breakdown

        Raises:
            DealNotFoundError: deal does not exist for this tenant
        """
        data = self._load(deal_id, user_id, tenant_id)

        deal = data["deal"]
        if deal is None:
            raise DealNotFoundError(deal_id)

        config: ScoringConfig = data["config"] or self.configs.get_config(user_id, tenant_id)
        if config.category_weight_total() != 100:
            logger.warning(
                f"⚠️ Category weights for tenant {tenant_id} sum to "
                f"{config.category_weight_total()}, not 100"
            )

        now = self.clock()
        ctx = ScoringContext.build(config, now)
        contacts, meetings = data["contacts"], data["meetings"]

        outcomes = [
            score_close_date_credibility(deal, ctx),
            score_buyer_engagement(deal, contacts, meetings, ctx),
            score_process_completion(deal, contacts, meetings, ctx),
            score_deal_size_realism(deal, data["history"], ctx),
            score_competitive_risk(deal, ctx),
            score_momentum(meetings, data["emails"], ctx),
        ]

        breakdown = HealthBreakdown()
        for outcome in outcomes:
            breakdown.categories[str(outcome.category.id)] = outcome.category
            for param in outcome.params:
                breakdown.params[param.code] = param
            logger.debug(f"  Category {outcome.category.id} ({outcome.category.label}): "
                         f"{outcome.category.score}")

        params = breakdown.params.values()
        breakdown.signals = {
            "ai_enabled": ctx.ai_on,
            "ai_confirmed": [p.code for p in params if p.ai],
            "ai_suppressed": [p.code for p in params if p.ai_suppressed],
            "unknown": [p.code for p in params if p.state is ParamState.UNKNOWN],
        }

        score = weighted_total({o.category.id: o.category.score for o in outcomes}, config)
        tier = classify_tier(score, config)

        self.repo.update_deal(deal_id, tenant_id, {
            "health_score": score,
            "health_tier": tier.value,
            "health_score_breakdown": breakdown.model_dump(mode="json"),
            "health_score_updated_at": now,
        })

        logger.info(f"Scored deal {deal_id}: {score}/100 ({tier.value})")
        return HealthResult(deal_id=deal_id, score=score, tier=tier, breakdown=breakdown)

    def score_all(
        self,
        user_id: str,
        tenant_id: str,
        owner_id: Optional[str] = None
    ) -> BatchScoreResult:
        """
        Score every open deal of a tenant.

        A failing deal is recorded in `errors` and the batch carries on.

        Returns:
            BatchScoreResult with results sorted by score (highest first)
        """
        logger.info(f"Scoring all open deals for tenant {tenant_id}...")

        results: List[HealthResult] = []
        errors: List[Dict[str, str]] = []
        for deal_id in self.repo.list_open_deal_ids(tenant_id, owner_id):
            try:
                results.append(self.score_deal(deal_id, user_id, tenant_id))
            except Exception as e:
                logger.error(f"Error scoring deal {deal_id}: {e}")
                errors.append({"deal_id": deal_id, "error": str(e)})

        results.sort(key=lambda r: r.score, reverse=True)

        logger.info(f"Scored {len(results)} deals ({len(errors)} failed)")
        return BatchScoreResult(results, errors)


def explain_score(result: HealthResult) -> str:
    """
    Generate a human-readable explanation of a score.

    Args:
        result: Score result from score_deal()

    Returns:
        Formatted explanation string
    """
    tier_emoji = {
        HealthTier.HEALTHY: "💚",
        HealthTier.WATCH: "👀",
        HealthTier.RISK: "🚨",
    }
    breakdown = result.breakdown

    lines = [
        f"{tier_emoji[result.tier]} DEAL HEALTH: {result.score}/100 ({result.tier.value.upper()})",
        f"Deal: {result.deal_id}",
        "",
        "📈 Categories:",
    ]

    for cid in sorted(breakdown.categories, key=int):
        category = breakdown.categories[cid]
        lines.append(f"  {cid}. {category.label}: {category.score} (weight {category.weight}%)")

        for code in category.params:
            param = breakdown.params[code]
            if param.state is ParamState.CONFIRMED:
                marker = "+" if param.impact > 0 else "-"
                lines.append(f"     {marker} {param.label} ({param.impact:+d})")
                if param.evidence:
                    lines.append(f"       \"{param.evidence}\"")
            elif param.state is ParamState.UNKNOWN:
                lines.append(f"     ? {param.label}")

    suppressed = breakdown.signals.get("ai_suppressed") or []
    if suppressed:
        lines.append("")
        lines.append(f"🤖 AI signals ignored (AI disabled): {', '.join(suppressed)}")

    return "\n".join(lines)
