"""Tests for the six category scorers and the per-category aggregation.

score = clamp(round(earned / max_positive * 100) - penalty, 0, 100)
pure-risk category: score = max(0, 100 - penalty)
"""

from datetime import date, timedelta

import pytest
from conftest import (
    NOW,
    make_config,
    make_contact,
    make_email,
    make_meeting,
    make_value_change,
)

from scoring.categories import (
    ScoringContext,
    calculate_slow_response,
    round_half_up,
    score_buyer_engagement,
    score_category,
    score_close_date_credibility,
    score_competitive_risk,
    score_deal_size_realism,
    score_momentum,
    score_process_completion,
    segment_for,
    slipped_weight,
)
from scoring.models import Deal, ParameterResult, ParamState, ParamToggles

# ─── Helpers ──────────────────────────────────────────────────────────────────


def _p(weight: int, state: ParamState, code: str = "x") -> ParameterResult:
    return ParameterResult(
        key=f"{code}_param", code=code, category=1, label=code, state=state, weight=weight,
        impact=weight if state is ParamState.CONFIRMED else 0,
    )


def _ctx(**config_overrides) -> ScoringContext:
    return ScoringContext.build(make_config(**config_overrides), NOW)


def _deal(**fields) -> Deal:
    return Deal(id="deal-1", **fields)


def _params(outcome):
    return {p.code: p for p in outcome.params}


# ─── score_category ──────────────────────────────────────────────────────────


class TestScoreCategory:
    """Aggregation of tri-state parameters into one category score."""

    def test_earned_over_max_minus_penalty(self):
        """25 of 45 positive points (56) minus a confirmed -20 → 36."""
        tally = score_category([
            _p(15, ParamState.CONFIRMED),
            _p(10, ParamState.CONFIRMED),
            _p(20, ParamState.ABSENT),
            _p(-20, ParamState.CONFIRMED),
        ])
        assert tally.max_positive == 45
        assert tally.positive_earned == 25
        assert tally.negative_penalty == 20
        assert tally.score == 36

    def test_no_evidence_scores_zero(self):
        """Unknown positives earn nothing: unproven deals start low."""
        tally = score_category([_p(15, ParamState.UNKNOWN), _p(10, ParamState.UNKNOWN)])
        assert tally.score == 0
        assert tally.max_positive == 25

    def test_pure_risk_category(self):
        """No positive parameters → 100 minus penalties."""
        tally = score_category([
            _p(-20, ParamState.CONFIRMED),
            _p(-15, ParamState.CONFIRMED),
            _p(-10, ParamState.UNKNOWN),
        ])
        assert tally.max_positive == 0
        assert tally.score == 65

    def test_pure_risk_floor_at_zero(self):
        tally = score_category([_p(-60, ParamState.CONFIRMED), _p(-50, ParamState.CONFIRMED)])
        assert tally.score == 0

    def test_clamped_at_zero(self):
        tally = score_category([_p(10, ParamState.ABSENT), _p(-60, ParamState.CONFIRMED)])
        assert tally.score == 0

    def test_unknown_and_absent_negatives_cost_nothing(self):
        tally = score_category([
            _p(10, ParamState.CONFIRMED),
            _p(-20, ParamState.UNKNOWN),
            _p(-15, ParamState.ABSENT),
        ])
        assert tally.score == 100
        assert tally.negative_penalty == 0

    def test_half_rounds_up(self):
        """1 of 8 points is 12.5 → 13."""
        tally = score_category([_p(1, ParamState.CONFIRMED), _p(7, ParamState.ABSENT)])
        assert tally.score == 13

    def test_empty_category(self):
        assert score_category([]).score == 100


class TestHelpers:
    def test_round_half_up(self):
        assert round_half_up(72.5) == 73
        assert round_half_up(72.4) == 72
        assert round_half_up(0.5) == 1

    def test_slipped_weight_capped(self):
        assert slipped_weight(-20, 1) == -20
        assert slipped_weight(-20, 3) == -60
        assert slipped_weight(-20, 5) == -60

    @pytest.mark.parametrize("value,segment", [
        (5000, "smb"),
        (10000, "midmarket"),
        (50000, "midmarket"),
        (50001, "enterprise"),
    ])
    def test_segment_for(self, value, segment):
        assert segment_for(value, make_config())[0] == segment


# ─── Category 1: close date credibility ─────────────────────────────────────


class TestCloseDateCredibility:

    def test_push_count_capped_at_three(self):
        """Five pushes cost the same as three."""
        ctx = _ctx()
        three = score_close_date_credibility(
            _deal(close_date=date(2026, 4, 1), close_date_push_count=3,
                  close_date_user_confirmed=True), ctx)
        five = score_close_date_credibility(
            _deal(close_date=date(2026, 4, 1), close_date_push_count=5,
                  close_date_user_confirmed=True), ctx)

        assert _params(three)["1b"].impact == -60
        assert _params(five)["1b"].impact == -60
        assert three.category.score == five.category.score

    def test_no_close_date_is_unknown(self):
        outcome = score_close_date_credibility(_deal(), _ctx())
        assert _params(outcome)["1b"].state is ParamState.UNKNOWN

    def test_never_pushed_is_absent(self):
        outcome = score_close_date_credibility(_deal(close_date=date(2026, 4, 1)), _ctx())
        assert _params(outcome)["1b"].state is ParamState.ABSENT

    def test_user_confirmation(self):
        outcome = score_close_date_credibility(
            _deal(close_date_user_confirmed=True, buyer_event_user_confirmed=True), _ctx())
        params = _params(outcome)
        assert params["1a"].state is ParamState.CONFIRMED
        assert params["1a"].source == "user"
        assert params["1c"].state is ParamState.CONFIRMED
        assert outcome.category.score == 100

    def test_user_denial_is_absent(self):
        outcome = score_close_date_credibility(_deal(close_date_user_confirmed=False), _ctx())
        assert _params(outcome)["1a"].state is ParamState.ABSENT

    def test_ai_signal_counts_when_enabled(self):
        deal = _deal(
            close_date_ai_confirmed=True,
            close_date_ai_source="transcript",
            close_date_ai_evidence="We confirmed the close for March.",
            close_date_ai_confidence=0.8,
        )
        param = _params(score_close_date_credibility(deal, _ctx()))["1a"]
        assert param.state is ParamState.CONFIRMED
        assert param.ai is True
        assert param.source == "transcript"
        assert param.evidence == "We confirmed the close for March."
        assert param.details["confidence"] == 0.8

    def test_ai_signal_ignored_when_disabled(self):
        deal = _deal(close_date_ai_confirmed=True, close_date_ai_evidence="x")
        param = _params(score_close_date_credibility(deal, _ctx(ai_enabled=False)))["1a"]
        assert param.state is ParamState.UNKNOWN
        assert param.impact == 0
        assert param.ai_suppressed is True
        assert param.evidence is None

    def test_disabled_parameter_excluded(self):
        """A disabled slip penalty neither costs points nor appears in params."""
        deal = _deal(close_date=date(2026, 4, 1), close_date_push_count=2,
                     close_date_user_confirmed=True)
        enabled = score_close_date_credibility(deal, _ctx())
        disabled = score_close_date_credibility(
            deal, _ctx(params_enabled=ParamToggles(**{"1b_close_slipped": False})))

        assert enabled.category.score == 20  # 60 - 40
        assert disabled.category.score == 60  # 15 of 25
        assert "1b" not in _params(disabled)
        assert disabled.category.disabled == ["1b_close_slipped"]

    def test_disabled_positive_leaves_max(self):
        deal = _deal(close_date_user_confirmed=True)
        outcome = score_close_date_credibility(
            deal, _ctx(params_enabled=ParamToggles(**{"1c_buyer_event": False})))
        assert outcome.category.max_positive == 15
        assert outcome.category.score == 100


# ─── Category 2: buyer engagement ────────────────────────────────────────────


class TestBuyerEngagement:

    def test_no_contacts_is_unknown(self):
        outcome = score_buyer_engagement(_deal(), [], [], _ctx())
        params = _params(outcome)
        assert all(p.state is ParamState.UNKNOWN for p in params.values())
        assert all(p.impact == 0 for p in params.values())
        assert outcome.category.score == 0

    def test_contacts_without_buyer_are_absent(self):
        contacts = [make_contact("c1", role_type="champion")]
        params = _params(score_buyer_engagement(_deal(), contacts, [], _ctx()))
        assert params["2a"].state is ParamState.ABSENT
        assert params["2c"].state is ParamState.ABSENT

    def test_economic_buyer_by_role(self):
        contacts = [make_contact("c1", role_type="economic_buyer", first_name="Dana",
                                 last_name="Cho", title="CFO")]
        param = _params(score_buyer_engagement(_deal(), contacts, [], _ctx()))["2a"]
        assert param.state is ParamState.CONFIRMED
        assert param.evidence == "Dana Cho (CFO)"

    def test_economic_buyer_tagged_on_deal(self):
        contacts = [make_contact("c1", role_type="influencer")]
        param = _params(score_buyer_engagement(
            _deal(economic_buyer_contact_id="c1"), contacts, [], _ctx()))["2a"]
        assert param.state is ParamState.CONFIRMED
        assert param.source == "tagged contact"

    def test_exec_meeting_by_title(self):
        contacts = [make_contact("c1", title="VP of Operations")]
        meetings = [make_meeting("m1", days_ago=3)]
        param = _params(score_buyer_engagement(_deal(), contacts, meetings, _ctx()))["2b"]
        assert param.state is ParamState.CONFIRMED

    def test_exec_meeting_needs_held_meeting(self):
        contacts = [make_contact("c1", title="CEO")]
        meetings = [make_meeting("m1", days_ago=-2)]  # scheduled, not yet held
        param = _params(score_buyer_engagement(_deal(), contacts, meetings, _ctx()))["2b"]
        assert param.state is ParamState.UNKNOWN

    def test_meetings_without_exec_are_absent(self):
        contacts = [make_contact("c1", title="Analyst")]
        meetings = [make_meeting("m1", days_ago=3)]
        param = _params(score_buyer_engagement(_deal(), contacts, meetings, _ctx()))["2b"]
        assert param.state is ParamState.ABSENT

    def test_multi_threaded_minimum(self):
        contacts = [
            make_contact("c1", role_type="champion"),
            make_contact("c2", role_type="decision_maker"),
            make_contact("c3", role_type="legal"),
        ]
        ctx = _ctx()
        assert _params(score_buyer_engagement(_deal(), contacts, [], ctx))["2c"].confirmed
        strict = _ctx(multi_thread_min_contacts=3)
        assert not _params(score_buyer_engagement(_deal(), contacts, [], strict))["2c"].confirmed


# ─── Category 3: process completion ─────────────────────────────────────────


class TestProcessCompletion:

    def test_legal_contact_with_meeting(self):
        contacts = [make_contact("c1", title="General Counsel")]
        meetings = [make_meeting("m1", days_ago=5)]
        param = _params(score_process_completion(_deal(), contacts, meetings, _ctx()))["3a"]
        assert param.state is ParamState.CONFIRMED
        assert param.source == "contacts + calendar"

    def test_legal_contact_without_meeting(self):
        contacts = [make_contact("c1", role_type="procurement")]
        param = _params(score_process_completion(_deal(), contacts, [], _ctx()))["3a"]
        assert param.state is ParamState.UNKNOWN

    def test_security_by_ai_signal(self):
        deal = _deal(security_review_ai=True, security_review_source="email",
                     security_review_evidence="They sent over the SOC 2 questionnaire.")
        outcome = score_process_completion(deal, [], [], _ctx())
        param = _params(outcome)["3b"]
        assert param.state is ParamState.CONFIRMED
        assert param.source == "email"
        assert outcome.category.score == 44  # 20 of 45

    def test_user_or_ai_confirms(self):
        deal = _deal(legal_engaged_user=False, legal_engaged_ai=True)
        assert _params(score_process_completion(deal, [], [], _ctx()))["3a"].confirmed


# ─── Category 4: deal size realism ──────────────────────────────────────────


class TestDealSizeRealism:

    def test_oversized_enterprise_deal(self):
        param = _params(score_deal_size_realism(_deal(value=250000), [], _ctx()))["4a"]
        assert param.state is ParamState.CONFIRMED
        assert param.impact == -15
        assert param.details["segment"] == "enterprise"
        assert param.details["ratio"] == 2.5

    def test_value_in_range(self):
        param = _params(score_deal_size_realism(_deal(value=30000), [], _ctx()))["4a"]
        assert param.state is ParamState.ABSENT

    def test_no_value_is_unknown(self):
        param = _params(score_deal_size_realism(_deal(), [], _ctx()))["4a"]
        assert param.state is ParamState.UNKNOWN

    def test_recent_expansion(self):
        history = [make_value_change(days_ago=5, old=20000, new=30000)]
        param = _params(score_deal_size_realism(_deal(value=30000), history, _ctx()))["4b"]
        assert param.state is ParamState.CONFIRMED

    def test_old_expansion_is_absent(self):
        history = [make_value_change(days_ago=60, old=20000, new=30000)]
        param = _params(score_deal_size_realism(_deal(value=30000), history, _ctx()))["4b"]
        assert param.state is ParamState.ABSENT

    def test_recent_decrease_is_absent(self):
        history = [make_value_change(days_ago=2, old=30000, new=20000)]
        param = _params(score_deal_size_realism(_deal(value=20000), history, _ctx()))["4b"]
        assert param.state is ParamState.ABSENT

    def test_no_history_is_unknown(self):
        param = _params(score_deal_size_realism(_deal(value=30000), [], _ctx()))["4b"]
        assert param.state is ParamState.UNKNOWN


# ─── Category 5: competitive & pricing risk ─────────────────────────────────


class TestCompetitiveRisk:

    def test_clean_deal_scores_full(self):
        assert score_competitive_risk(_deal(), _ctx()).category.score == 100

    def test_penalties(self):
        deal = _deal(competitive_deal_user=True, discount_pending_ai=True)
        outcome = score_competitive_risk(deal, _ctx())
        assert outcome.category.score == 70  # 100 - 20 - 10

    def test_competitor_names_in_details(self):
        deal = _deal(
            competitive_deal_ai=True,
            competitive_competitors=[
                {"id": "k1", "name": "Acme Rival", "matched": "AR Corp", "snippet": None},
            ],
        )
        param = _params(score_competitive_risk(deal, _ctx()))["5a"]
        assert param.details["competitors"] == ["Acme Rival"]


# ─── Category 6: momentum ───────────────────────────────────────────────────


class TestMomentum:

    def test_no_meetings_is_unknown(self):
        param = _params(score_momentum([], [], _ctx()))["6a"]
        assert param.state is ParamState.UNKNOWN

    def test_stale_meetings(self):
        meetings = [make_meeting("m1", days_ago=20), make_meeting("m2", days_ago=40)]
        param = _params(score_momentum(meetings, [], _ctx()))["6a"]
        assert param.state is ParamState.CONFIRMED
        assert param.details["days_since_last_meeting"] == 20
        assert param.evidence == "Last buyer meeting 20 days ago"

    def test_recent_meeting(self):
        meetings = [make_meeting("m1", days_ago=3)]
        param = _params(score_momentum(meetings, [], _ctx()))["6a"]
        assert param.state is ParamState.ABSENT

    def test_configurable_window(self):
        meetings = [make_meeting("m1", days_ago=10)]
        param = _params(score_momentum(meetings, [], _ctx(no_meeting_days=7)))["6a"]
        assert param.state is ParamState.CONFIRMED


def _thread(reply_hours):
    """One sent/received pair per day, replies after the given hours."""
    emails = []
    for i, hours in enumerate(reply_hours):
        sent = NOW - timedelta(days=30 - i)
        emails.append(make_email(f"s{i}", "sent", sent))
        emails.append(make_email(f"r{i}", "received", sent + timedelta(hours=hours)))
    return emails


class TestSlowResponse:

    def test_slowing_replies(self):
        result = calculate_slow_response(_thread([2, 2, 10, 10]), 1.5)
        assert result.is_slow is True
        assert result.avg_hours == 6
        assert result.norm_hours == 2
        assert result.pairs == 4

    def test_steady_replies(self):
        result = calculate_slow_response(_thread([2, 2, 2, 2]), 1.5)
        assert result.is_slow is False

    def test_too_few_pairs(self):
        result = calculate_slow_response(_thread([5]), 1.5)
        assert result.is_slow is None
        assert result.pairs == 1

    def test_unanswered_sends_ignored(self):
        emails = [make_email("s0", "sent", NOW - timedelta(days=2))]
        assert calculate_slow_response(emails, 1.5).pairs == 0

    def test_month_long_gaps_ignored(self):
        sent = NOW - timedelta(days=60)
        emails = [
            make_email("s0", "sent", sent),
            make_email("r0", "received", sent + timedelta(hours=800)),
        ]
        assert calculate_slow_response(emails, 1.5).pairs == 0

    def test_parameter_state(self):
        param = _params(score_momentum([], _thread([2, 2, 10, 10]), _ctx()))["6b"]
        assert param.state is ParamState.CONFIRMED
        assert param.evidence == "Average reply 6h vs norm 2h"
        unknown = _params(score_momentum([], [], _ctx()))["6b"]
        assert unknown.state is ParamState.UNKNOWN
