"""
📊 CATEGORY SCORERS
===================
Six pure functions, one per health category. Each resolves its
parameters to a tri-state (confirmed / absent / unknown), then rolls
them up with score_category().

HOW A CATEGORY IS SCORED:
- max_positive     = sum of positive weights of the enabled parameters
- positive_earned  = sum of positive weights of confirmed parameters
- negative_penalty = sum of |negative weights| of confirmed parameters
- score            = round(earned / max_positive * 100) - penalty, clamped 0-100
- pure-risk category (max_positive == 0): score = max(0, 100 - penalty)

Unknown and absent parameters contribute nothing either way: a deal with
no evidence earns none of the available points, and is not penalised for
what has not been observed yet.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from statistics import mean
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

from config.settings import EngineSettings, settings
from scoring.models import (
    CategoryResult,
    Contact,
    Deal,
    Email,
    Meeting,
    ParameterResult,
    ParamState,
    ScoringConfig,
    ValueChange,
)
from scoring.parameters import (
    CATEGORIES_BY_ID,
    ECONOMIC_BUYER_ROLES,
    PARAMETERS_BY_KEY,
    STAKEHOLDER_ROLES,
)

# Segment breakpoints on deal value
SMB_CEILING = 10000
ENTERPRISE_FLOOR = 50000

LEGAL_ROLES = ("legal", "procurement")
SECURITY_ROLES = ("security", "it")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (72.5 -> 73)."""
    return int(math.floor(value + 0.5))


@dataclass
class ScoringContext:
    """Per-call view of a tenant config, shared by all category scorers."""
    config: ScoringConfig
    now: datetime
    is_enabled: Callable[[str], bool]
    ai_on: bool
    engine: EngineSettings = field(default_factory=lambda: settings.engine)

    @classmethod
    def build(cls, config: ScoringConfig, now: Optional[datetime] = None) -> "ScoringContext":
        toggles = config.params_enabled
        return cls(
            config=config,
            now=now or datetime.now(timezone.utc),
            is_enabled=lambda key: bool(toggles.get(key)),
            ai_on=config.ai_enabled,
        )


class CategoryTally(NamedTuple):
    score: int
    max_positive: int
    positive_earned: int
    negative_penalty: int


class CategoryOutcome(NamedTuple):
    category: CategoryResult
    params: List[ParameterResult]


class SlowResponse(NamedTuple):
    is_slow: Optional[bool]
    avg_hours: Optional[int]
    norm_hours: Optional[int]
    pairs: int


# ===========================================
# AGGREGATION
# ===========================================

def score_category(params: Iterable[ParameterResult]) -> CategoryTally:
    """Combine the enabled parameters of one category into a 0-100 score."""
    params = list(params)
    max_positive = sum(p.weight for p in params if p.weight > 0)
    earned = sum(p.weight for p in params if p.confirmed and p.weight > 0)
    penalty = sum(-p.weight for p in params if p.confirmed and p.weight < 0)

    if max_positive == 0:
        score = max(0, 100 - penalty)
    else:
        score = round_half_up(earned / max_positive * 100) - penalty
        score = max(0, min(100, score))

    return CategoryTally(score, max_positive, earned, penalty)


def slipped_weight(base_weight: int, push_count: int, cap: int = 3) -> int:
    """Close-date penalty grows with each push, up to `cap` pushes."""
    return base_weight * min(max(push_count, 1), cap)


def _param(
    key: str,
    ctx: ScoringContext,
    state: ParamState,
    weight: Optional[int] = None,
    label: Optional[str] = None,
    **fields
) -> ParameterResult:
    spec = PARAMETERS_BY_KEY[key]
    if weight is None:
        weight = ctx.config.weight(key)
    return ParameterResult(
        key=key,
        code=spec.code,
        category=spec.category,
        label=label or spec.label,
        state=state,
        weight=weight,
        impact=weight if state is ParamState.CONFIRMED else 0,
        auto=spec.basis == "auto",
        **fields
    )


def _manual(
    key: str,
    ctx: ScoringContext,
    user: Optional[bool],
    ai: bool,
    source: Optional[str] = None,
    evidence: Optional[str] = None,
    **details
) -> ParameterResult:
    """User checkbox OR (AI signal while AI is on); an explicit user 'no' is absent."""
    ai_used = bool(ai) and ctx.ai_on
    if user is True or ai_used:
        state = ParamState.CONFIRMED
    elif user is False:
        state = ParamState.ABSENT
    else:
        state = ParamState.UNKNOWN

    return _param(
        key, ctx, state,
        user=user,
        ai=ai_used,
        ai_suppressed=bool(ai) and not ctx.ai_on,
        source=source if ai_used else ("user" if user is not None else None),
        evidence=evidence if ai_used else None,
        details={k: v for k, v in details.items() if v is not None},
    )


def _finish(
    category_id: int,
    ctx: ScoringContext,
    builders: Dict[str, Callable[[], ParameterResult]]
) -> CategoryOutcome:
    """Evaluate enabled parameters in catalogue order and tally the category."""
    params: List[ParameterResult] = []
    disabled: List[str] = []
    for key, build in builders.items():
        if ctx.is_enabled(key):
            params.append(build())
        else:
            disabled.append(key)

    tally = score_category(params)
    category = CategoryResult(
        id=category_id,
        label=CATEGORIES_BY_ID[category_id].label,
        score=tally.score,
        weight=ctx.config.category_weight(category_id),
        max_positive=tally.max_positive,
        positive_earned=tally.positive_earned,
        negative_penalty=tally.negative_penalty,
        params=[p.code for p in params],
        disabled=disabled,
    )
    return CategoryOutcome(category, params)


# ===========================================
# CATEGORY 1: CLOSE DATE CREDIBILITY
# ===========================================

def _close_slipped(deal: Deal, ctx: ScoringContext) -> ParameterResult:
    count = deal.close_date_push_count
    if count > 0:
        state = ParamState.CONFIRMED
    elif deal.close_date is None:
        state = ParamState.UNKNOWN
    else:
        state = ParamState.ABSENT

    weight = slipped_weight(
        ctx.config.weight("1b_close_slipped"), count, ctx.engine.push_count_cap
    )
    return _param(
        "1b_close_slipped", ctx, state,
        weight=weight,
        source="deal history",
        evidence=f"Close date pushed {count} time(s)" if count else None,
        details={"push_count": count},
    )


def score_close_date_credibility(deal: Deal, ctx: ScoringContext) -> CategoryOutcome:
    return _finish(1, ctx, {
        "1a_close_confirmed": lambda: _manual(
            "1a_close_confirmed", ctx,
            deal.close_date_user_confirmed, deal.close_date_ai_confirmed,
            source=deal.close_date_ai_source,
            evidence=deal.close_date_ai_evidence,
            confidence=deal.close_date_ai_confidence,
        ),
        "1b_close_slipped": lambda: _close_slipped(deal, ctx),
        "1c_buyer_event": lambda: _manual(
            "1c_buyer_event", ctx,
            deal.buyer_event_user_confirmed, deal.buyer_event_ai_confirmed,
            source=deal.buyer_event_ai_source,
            evidence=deal.buyer_event_ai_evidence,
            description=deal.buyer_event_description,
        ),
    })


# ===========================================
# CATEGORY 2: BUYER ENGAGEMENT & POWER
# ===========================================

def _economic_buyer(deal: Deal, contacts: List[Contact], ctx: ScoringContext) -> ParameterResult:
    tagged: Optional[Contact] = None
    if deal.economic_buyer_contact_id is not None:
        tagged = next((c for c in contacts if c.id == deal.economic_buyer_contact_id), None)
    by_role = [c for c in contacts if c.role_type in ECONOMIC_BUYER_ROLES]

    if deal.economic_buyer_contact_id is not None or by_role:
        state = ParamState.CONFIRMED
    elif contacts:
        state = ParamState.ABSENT
    else:
        state = ParamState.UNKNOWN

    contact = tagged or (by_role[0] if by_role else None)
    return _param(
        "2a_economic_buyer", ctx, state,
        source="tagged contact" if deal.economic_buyer_contact_id is not None else "contact role",
        evidence=contact.display_name if contact else None,
        details={"contact_id": contact.id} if contact else {},
    )


def _exec_meeting(
    contacts: List[Contact], meetings: List[Meeting], ctx: ScoringContext
) -> ParameterResult:
    execs = [
        c for c in contacts
        if c.role_type == "executive" or c.title_matches(ctx.config.exec_titles)
    ]
    held = [m for m in meetings if m.held(ctx.now)]

    if execs and held:
        state = ParamState.CONFIRMED
    elif contacts and held:
        state = ParamState.ABSENT
    else:
        state = ParamState.UNKNOWN

    return _param(
        "2b_exec_meeting", ctx, state,
        source="contacts + calendar",
        details={
            "exec_contacts": [c.display_name for c in execs],
            "meetings_held": len(held),
        },
    )


def _multi_threaded(contacts: List[Contact], ctx: ScoringContext) -> ParameterResult:
    minimum = ctx.config.multi_thread_min_contacts or 2
    stakeholders = [c for c in contacts if c.role_type in STAKEHOLDER_ROLES]

    if len(stakeholders) >= minimum:
        state = ParamState.CONFIRMED
    elif contacts:
        state = ParamState.ABSENT
    else:
        state = ParamState.UNKNOWN

    return _param(
        "2c_multi_threaded", ctx, state,
        label=f"Multi-threaded (≥{minimum} stakeholders)",
        source="contact roles",
        details={"count": len(stakeholders), "minimum": minimum},
    )


def score_buyer_engagement(
    deal: Deal,
    contacts: List[Contact],
    meetings: List[Meeting],
    ctx: ScoringContext
) -> CategoryOutcome:
    return _finish(2, ctx, {
        "2a_economic_buyer": lambda: _economic_buyer(deal, contacts, ctx),
        "2b_exec_meeting": lambda: _exec_meeting(contacts, meetings, ctx),
        "2c_multi_threaded": lambda: _multi_threaded(contacts, ctx),
    })


# ===========================================
# CATEGORY 3: PROCESS COMPLETION
# ===========================================

def _process_step(
    key: str,
    ctx: ScoringContext,
    user: Optional[bool],
    ai: bool,
    source: Optional[str],
    evidence: Optional[str],
    contacts: List[Contact],
    meetings: List[Meeting],
    roles: tuple,
    titles: List[str]
) -> ParameterResult:
    """Manual/AI flag, or a matching contact on a deal that has had meetings."""
    matched = [c for c in contacts if c.role_type in roles or c.title_matches(titles)]
    from_contacts = bool(matched) and any(m.held(ctx.now) for m in meetings)

    result = _manual(key, ctx, user, ai, source=source, evidence=evidence)
    if from_contacts and result.state is not ParamState.CONFIRMED:
        result = _param(
            key, ctx, ParamState.CONFIRMED,
            user=user,
            ai=result.ai,
            ai_suppressed=result.ai_suppressed,
            source="contacts + calendar",
        )

    result.details["contacts"] = [c.display_name for c in matched]
    return result


def score_process_completion(
    deal: Deal,
    contacts: List[Contact],
    meetings: List[Meeting],
    ctx: ScoringContext
) -> CategoryOutcome:
    cfg = ctx.config
    return _finish(3, ctx, {
        "3a_legal_engaged": lambda: _process_step(
            "3a_legal_engaged", ctx,
            deal.legal_engaged_user, deal.legal_engaged_ai,
            deal.legal_engaged_source, deal.legal_engaged_evidence,
            contacts, meetings, LEGAL_ROLES,
            cfg.legal_titles + cfg.procurement_titles,
        ),
        "3b_security_review": lambda: _process_step(
            "3b_security_review", ctx,
            deal.security_review_user, deal.security_review_ai,
            deal.security_review_source, deal.security_review_evidence,
            contacts, meetings, SECURITY_ROLES,
            cfg.security_titles,
        ),
    })


# ===========================================
# CATEGORY 4: DEAL SIZE REALISM
# ===========================================

def segment_for(value: float, config: ScoringConfig):
    """Return (segment name, segment average) for a deal value."""
    if value < SMB_CEILING:
        return "smb", config.segment_avg_smb
    if value > ENTERPRISE_FLOOR:
        return "enterprise", config.segment_avg_enterprise
    return "midmarket", config.segment_avg_midmarket


def _value_vs_segment(deal: Deal, ctx: ScoringContext) -> ParameterResult:
    multiplier = ctx.config.segment_size_multiplier or 2.0
    label = f"Deal value >{multiplier:g}× segment avg"
    value = deal.value or 0

    if value <= 0:
        return _param("4a_value_vs_segment", ctx, ParamState.UNKNOWN, label=label)

    segment, average = segment_for(value, ctx.config)
    oversized = value > average * multiplier
    ratio = round(value / average, 1) if average > 0 else None

    return _param(
        "4a_value_vs_segment", ctx,
        ParamState.CONFIRMED if oversized else ParamState.ABSENT,
        label=label,
        source="segment averages",
        evidence=(
            f"Deal value {value:,.0f} is {ratio}× the {segment} average ({average:,.0f})"
            if ratio is not None else None
        ),
        details={
            "deal_value": value,
            "segment": segment,
            "segment_avg": average,
            "ratio": ratio,
        },
    )


def _deal_expanded(history: List[ValueChange], ctx: ScoringContext) -> ParameterResult:
    days = ctx.engine.expansion_window_days
    label = f"Deal expanded in last {days} days"
    if not history:
        return _param("4b_deal_expanded", ctx, ParamState.UNKNOWN, label=label)

    cutoff = ctx.now - timedelta(days=days)
    expansions = [h for h in history if h.changed_at > cutoff and h.is_increase]

    return _param(
        "4b_deal_expanded", ctx,
        ParamState.CONFIRMED if expansions else ParamState.ABSENT,
        label=label,
        source="value history",
        evidence=(
            f"Value raised from {expansions[0].old_value or 0:,.0f} to {expansions[0].new_value:,.0f}"
            if expansions else None
        ),
        details={"history": [h.model_dump(mode="json") for h in history[:3]]},
    )


def score_deal_size_realism(
    deal: Deal,
    value_history: List[ValueChange],
    ctx: ScoringContext
) -> CategoryOutcome:
    return _finish(4, ctx, {
        "4a_value_vs_segment": lambda: _value_vs_segment(deal, ctx),
        "4b_deal_expanded": lambda: _deal_expanded(value_history, ctx),
        "4c_scope_approved": lambda: _manual(
            "4c_scope_approved", ctx,
            deal.scope_approved_user, deal.scope_approved_ai,
            source=deal.scope_approved_source,
            evidence=deal.scope_approved_evidence,
        ),
    })


# ===========================================
# CATEGORY 5: COMPETITIVE & PRICING RISK
# ===========================================

def score_competitive_risk(deal: Deal, ctx: ScoringContext) -> CategoryOutcome:
    competitors = [m.name for m in deal.competitive_competitors] if ctx.ai_on else []
    return _finish(5, ctx, {
        "5a_competitive": lambda: _manual(
            "5a_competitive", ctx,
            deal.competitive_deal_user, deal.competitive_deal_ai,
            source="competitor registry",
            evidence=deal.competitive_evidence,
            competitors=competitors or None,
        ),
        "5b_price_sensitivity": lambda: _manual(
            "5b_price_sensitivity", ctx,
            deal.price_sensitivity_user, deal.price_sensitivity_ai,
            source=deal.price_sensitivity_source,
            evidence=deal.price_sensitivity_evidence,
        ),
        "5c_discount_pending": lambda: _manual(
            "5c_discount_pending", ctx,
            deal.discount_pending_user, deal.discount_pending_ai,
            source=deal.discount_pending_source,
            evidence=deal.discount_pending_evidence,
        ),
    })


# ===========================================
# CATEGORY 6: MOMENTUM & ACTIVITY
# ===========================================

def calculate_slow_response(
    emails: List[Email],
    multiplier: float,
    max_gap_hours: float = 720
) -> SlowResponse:
    """
    Compare recent reply latency against this deal's own history.

    Each sent email is paired with the first received email after it.
    Gaps of `max_gap_hours` or more are ignored. The norm is the mean of
    the earliest half of the pairs; the deal is slow when the overall mean
    exceeds norm * multiplier. Fewer than two pairs gives no verdict.
    """
    sent = sorted((e for e in emails if e.direction == "sent"), key=lambda e: e.sent_at)
    received = sorted((e for e in emails if e.direction == "received"), key=lambda e: e.sent_at)

    gaps = []
    for s in sent:
        reply = next((r for r in received if r.sent_at > s.sent_at), None)
        if reply is None:
            continue
        hours = (reply.sent_at - s.sent_at).total_seconds() / 3600
        if hours < max_gap_hours:
            gaps.append(hours)

    if len(gaps) < 2:
        return SlowResponse(None, None, None, len(gaps))

    avg = mean(gaps)
    norm = mean(gaps[:len(gaps) // 2])
    return SlowResponse(avg > norm * multiplier, round_half_up(avg), round_half_up(norm), len(gaps))


def _no_recent_meeting(meetings: List[Meeting], ctx: ScoringContext) -> ParameterResult:
    days = ctx.config.no_meeting_days or 14
    label = f"No buyer meeting in last {days} days"
    if not meetings:
        return _param("6a_no_meeting_14d", ctx, ParamState.UNKNOWN, label=label)

    cutoff = ctx.now - timedelta(days=days)
    recent = any(m.start_time > cutoff for m in meetings)
    past = [m.start_time for m in meetings if m.start_time <= ctx.now]
    days_since = (ctx.now - max(past)).days if past else None

    return _param(
        "6a_no_meeting_14d", ctx,
        ParamState.ABSENT if recent else ParamState.CONFIRMED,
        label=label,
        source="calendar",
        evidence=(
            f"Last buyer meeting {days_since} days ago"
            if not recent and days_since is not None else None
        ),
        details={"days_since_last_meeting": days_since},
    )


def _slow_response(emails: List[Email], ctx: ScoringContext) -> ParameterResult:
    result = calculate_slow_response(
        emails,
        ctx.config.response_time_multiplier or 1.5,
        ctx.engine.max_reply_gap_hours,
    )
    if result.is_slow is None:
        state = ParamState.UNKNOWN
    else:
        state = ParamState.CONFIRMED if result.is_slow else ParamState.ABSENT

    return _param(
        "6b_slow_response", ctx, state,
        source="email threads",
        evidence=(
            f"Average reply {result.avg_hours}h vs norm {result.norm_hours}h"
            if result.is_slow else None
        ),
        details={
            "avg_hours": result.avg_hours,
            "norm_hours": result.norm_hours,
            "pairs": result.pairs,
        },
    )


def score_momentum(
    meetings: List[Meeting],
    emails: List[Email],
    ctx: ScoringContext
) -> CategoryOutcome:
    return _finish(6, ctx, {
        "6a_no_meeting_14d": lambda: _no_recent_meeting(meetings, ctx),
        "6b_slow_response": lambda: _slow_response(emails, ctx),
    })
