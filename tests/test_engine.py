"""Tests for the scoring engine: weighted total, tiers, persistence."""

from datetime import date

import pytest
from conftest import (
    DEAL,
    NOW,
    TENANT,
    USER,
    InMemoryRepository,
    make_config,
    make_contact,
    make_meeting,
    make_value_change,
)

from scoring.engine import ScoringEngine, classify_tier, explain_score, weighted_total
from scoring.exceptions import DealNotFoundError
from scoring.models import HealthTier, ParamState, ParamToggles


def _strong_deal(repo):
    """A deal with evidence for every positive parameter and no risks."""
    repo.add_deal(
        value=30000,
        close_date=date(2026, 3, 31),
        close_date_user_confirmed=True,
        buyer_event_user_confirmed=True,
        economic_buyer_contact_id="c1",
        legal_engaged_user=True,
        security_review_user=True,
        scope_approved_user=True,
        competitive_deal_user=False,
        price_sensitivity_user=False,
        discount_pending_user=False,
    )
    repo.contacts[DEAL] = [
        make_contact("c1", role_type="economic_buyer", title="CFO"),
        make_contact("c2", role_type="champion", title="Head of Ops"),
    ]
    repo.meetings[DEAL] = [make_meeting("m1", days_ago=3)]
    repo.history[DEAL] = [make_value_change(days_ago=5, old=25000, new=30000)]


class TestWeightedTotal:

    def test_reference_example(self):
        """80/60/40/100/100/70 at 20/25/15/10/15/15 → round(72.5) = 73."""
        scores = {1: 80, 2: 60, 3: 40, 4: 100, 5: 100, 6: 70}
        assert weighted_total(scores, make_config()) == 73

    def test_clamped(self):
        config = make_config(weight_close_date=200)
        assert weighted_total({1: 100, 2: 0, 3: 0, 4: 0, 5: 0, 6: 0}, config) == 100

    @pytest.mark.parametrize("score,tier", [
        (100, HealthTier.HEALTHY),
        (80, HealthTier.HEALTHY),
        (79, HealthTier.WATCH),
        (73, HealthTier.WATCH),
        (50, HealthTier.WATCH),
        (49, HealthTier.RISK),
        (0, HealthTier.RISK),
    ])
    def test_classify_tier(self, score, tier):
        assert classify_tier(score, make_config()) is tier

    def test_tenant_thresholds(self):
        config = make_config(threshold_healthy=70, threshold_watch=40)
        assert classify_tier(73, config) is HealthTier.HEALTHY
        assert classify_tier(45, config) is HealthTier.WATCH


class TestScoreDeal:

    def test_empty_deal(self, repo, engine):
        """No evidence: positive categories 0, pure-risk categories 100."""
        repo.add_deal()
        result = engine.score_deal(DEAL, USER, TENANT)

        cats = result.breakdown.categories
        assert [cats[str(i)].score for i in range(1, 7)] == [0, 0, 0, 0, 100, 100]
        assert result.score == 30  # 15 + 15 from the two risk categories
        assert result.tier is HealthTier.RISK

    def test_unknown_params_have_no_impact(self, repo, engine):
        repo.add_deal()
        result = engine.score_deal(DEAL, USER, TENANT)

        unknown = [p for p in result.breakdown.params.values() if p.state is ParamState.UNKNOWN]
        assert unknown
        assert all(p.impact == 0 for p in unknown)
        assert sorted(result.breakdown.signals["unknown"]) == sorted(p.code for p in unknown)

    def test_strong_deal_is_healthy(self, repo, engine):
        _strong_deal(repo)
        result = engine.score_deal(DEAL, USER, TENANT)

        assert result.score == 100
        assert result.tier is HealthTier.HEALTHY

    def test_persists_score_tier_and_breakdown(self, repo, engine):
        repo.add_deal()
        result = engine.score_deal(DEAL, USER, TENANT)

        writes = repo.deal_writes()
        assert len(writes) == 1
        _, deal_id, fields = writes[0]
        assert deal_id == DEAL
        assert set(fields) == {
            "health_score", "health_tier", "health_score_breakdown", "health_score_updated_at",
        }
        assert fields["health_score"] == result.score
        assert fields["health_tier"] == "risk"
        assert fields["health_score_updated_at"] == NOW
        assert set(fields["health_score_breakdown"]) == {"categories", "params", "signals"}
        assert fields["health_score_breakdown"]["categories"]["5"]["score"] == 100

    def test_config_created_lazily(self, repo, engine):
        repo.add_deal()
        engine.score_deal(DEAL, USER, TENANT)

        inserts = [w for w in repo.writes if w[0] == "insert_config"]
        assert len(inserts) == 1
        assert repo.find_config(USER, TENANT) is not None

        engine.score_deal(DEAL, USER, TENANT)
        assert len([w for w in repo.writes if w[0] == "insert_config"]) == 1

    def test_idempotent(self, repo, engine):
        _strong_deal(repo)
        repo.meetings[DEAL].append(make_meeting("m2", days_ago=30))

        first = engine.score_deal(DEAL, USER, TENANT)
        second = engine.score_deal(DEAL, USER, TENANT)

        assert first.model_dump() == second.model_dump()
        writes = repo.deal_writes()
        assert writes[0][2] == writes[1][2]

    def test_deal_not_found(self, repo, engine):
        with pytest.raises(DealNotFoundError) as exc:
            engine.score_deal("missing", USER, TENANT)

        assert exc.value.deal_id == "missing"
        assert repo.writes == []
        assert repo.find_config(USER, TENANT) is None

    def test_other_tenant_deal_not_found(self, repo, engine):
        repo.add_deal(tenant_id="tenant-2")
        with pytest.raises(DealNotFoundError):
            engine.score_deal(DEAL, USER, TENANT)
        assert repo.writes == []

    def test_read_failure_aborts(self, clock):
        class FailingRepository(InMemoryRepository):
            def list_emails(self, deal_id, tenant_id):
                raise ConnectionError("emails unavailable")

        repo = FailingRepository()
        repo.add_deal()
        with pytest.raises(ConnectionError):
            ScoringEngine(repo, clock=clock).score_deal(DEAL, USER, TENANT)
        assert repo.deal_writes() == []

    def test_disabled_parameter_has_no_impact(self, repo, engine):
        repo.set_config(make_config(params_enabled=ParamToggles(**{"1b_close_slipped": False})))
        repo.add_deal(close_date=date(2026, 4, 1), close_date_push_count=4)
        result = engine.score_deal(DEAL, USER, TENANT)

        assert "1b" not in result.breakdown.params
        assert result.breakdown.categories["1"].disabled == ["1b_close_slipped"]

    def test_uneven_weights_still_score(self, repo, engine):
        repo.set_config(make_config(weight_momentum=35))
        repo.add_deal()
        result = engine.score_deal(DEAL, USER, TENANT)
        assert result.score == 50  # 15 + 35

    def test_suppressed_ai_signals_listed(self, repo, engine):
        repo.set_config(make_config(ai_enabled=False))
        repo.add_deal(legal_engaged_ai=True, discount_pending_ai=True)
        result = engine.score_deal(DEAL, USER, TENANT)

        assert result.breakdown.signals["ai_enabled"] is False
        assert sorted(result.breakdown.signals["ai_suppressed"]) == ["3a", "5c"]
        assert result.breakdown.categories["5"].score == 100


class TestScoreAll:

    def test_scores_open_deals_sorted(self, repo, engine):
        _strong_deal(repo)
        repo.add_deal("deal-2")
        repo.add_deal("deal-3", stage="closed_won")

        batch = engine.score_all(USER, TENANT)

        assert [r.deal_id for r in batch.results] == [DEAL, "deal-2"]
        assert batch.errors == []

    def test_failures_recorded(self, clock):
        class FlakyRepository(InMemoryRepository):
            def list_meetings(self, deal_id, tenant_id):
                if deal_id == "deal-2":
                    raise ConnectionError("timeout")
                return super().list_meetings(deal_id, tenant_id)

        repo = FlakyRepository()
        repo.add_deal()
        repo.add_deal("deal-2")

        batch = ScoringEngine(repo, clock=clock).score_all(USER, TENANT)

        assert [r.deal_id for r in batch.results] == [DEAL]
        assert batch.errors == [{"deal_id": "deal-2", "error": "timeout"}]

    def test_owner_filter(self, repo, engine):
        repo.add_deal(owner_id="rep-1")
        repo.add_deal("deal-2", owner_id="rep-2")

        batch = engine.score_all(USER, TENANT, owner_id="rep-2")
        assert [r.deal_id for r in batch.results] == ["deal-2"]


class TestExplainScore:

    def test_explanation(self, repo, engine):
        _strong_deal(repo)
        text = explain_score(engine.score_deal(DEAL, USER, TENANT))

        assert "DEAL HEALTH: 100/100 (HEALTHY)" in text
        assert "3. Process Completion: 100 (weight 15%)" in text
        assert "+ Legal / procurement engaged (+25)" in text
        assert "? Avg response time > historical norm" in text

    def test_suppressed_signals_mentioned(self, repo, engine):
        repo.set_config(make_config(ai_enabled=False))
        repo.add_deal(price_sensitivity_ai=True)
        text = explain_score(engine.score_deal(DEAL, USER, TENANT))

        assert "AI signals ignored (AI disabled): 5b" in text
