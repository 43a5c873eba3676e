"""Tests for AnalystRegistry: creation, leaderboard, profile and summary."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from analyst_tracker.credibility.registry import build_performance_summary
from analyst_tracker.errors import InvalidArgumentError, NotFoundError
from analyst_tracker.models.recommendation import Evaluation
from analyst_tracker.taxonomy.rating_taxonomy import (
    AnalystOrderField,
    AnalystTier,
    EvaluationOutcome,
    RecommendationAction,
)

BUY = RecommendationAction.BUY
HOLD = RecommendationAction.HOLD
SELL = RecommendationAction.SELL

_T0 = datetime(2025, 1, 2, 15, 0, 0, tzinfo=timezone.utc)


def _evaluation(rec_id: int, alpha: float, outcome: EvaluationOutcome) -> Evaluation:
    return Evaluation(
        recommendation_id=rec_id,
        horizon_days=30,
        t1=_T0 + timedelta(days=30),
        p1=100.0,
        bench_return=0.0,
        abs_return=alpha,
        alpha=alpha,
        outcome=outcome,
        score_delta=0.0,
        created_at=_T0 + timedelta(days=30),
    )


class TestCreateAnalyst:
    def test_defaults(self, engine):
        aid = engine.create_analyst("Dana Whitfield", "Northbridge Capital", ["Technology"])
        a = engine.get_analyst(aid)
        assert a.score == 50.0
        assert a.lifetime_calls == 0
        assert a.tier == AnalystTier.NEW
        assert a.specializations == ["Technology"]
        assert a.created_at == a.updated_at

    def test_initial_score(self, engine):
        aid = engine.create_analyst("A", "F", initial_score=72.5)
        assert engine.get_analyst(aid).score == 72.5
        # Zero evaluated calls keeps the tier NEW whatever the score.
        assert engine.get_analyst(aid).tier == AnalystTier.NEW

    @pytest.mark.parametrize("score", [-1.0, 100.5])
    def test_initial_score_out_of_range(self, engine, score):
        with pytest.raises(InvalidArgumentError, match="initial_score"):
            engine.create_analyst("A", "F", initial_score=score)

    @pytest.mark.parametrize("name, firm", [("", "F"), ("A", "  ")])
    def test_blank_fields_rejected(self, engine, name, firm):
        with pytest.raises(InvalidArgumentError):
            engine.create_analyst(name, firm)

    def test_unknown_analyst(self, engine):
        with pytest.raises(NotFoundError) as exc_info:
            engine.get_analyst(404)
        assert exc_info.value.entity == "analyst"
        assert exc_info.value.entity_id == 404


class TestListTopAnalysts:
    def test_sorted_by_score(self, engine):
        low = engine.create_analyst("Low", "F", initial_score=30.0)
        high = engine.create_analyst("High", "F", initial_score=90.0)
        mid = engine.create_analyst("Mid", "F", initial_score=60.0)
        top = engine.list_top_analysts(limit=2)
        assert [a.analyst_id for a in top] == [high, mid]
        assert low not in [a.analyst_id for a in top]

    def test_order_by_string(self, engine):
        engine.create_analyst("A", "F")
        assert len(engine.list_top_analysts(order_by="lifetime_calls")) == 1
        assert len(engine.list_top_analysts(order_by=AnalystOrderField.SCORE)) == 1

    @pytest.mark.parametrize("limit", [0, -3])
    def test_invalid_limit(self, engine, limit):
        with pytest.raises(InvalidArgumentError, match="limit"):
            engine.list_top_analysts(limit=limit)

    def test_invalid_order_by(self, engine):
        with pytest.raises(InvalidArgumentError, match="order_by"):
            engine.list_top_analysts(order_by="firm")


class TestAnalystProfile:
    def test_profile_with_evaluated_and_open_calls(self, engine, oracle):
        oracle.set_price("AAPL", 100.0, when=_T0)
        oracle.set_price("AAPL", 110.0, when=_T0 + timedelta(days=30))
        oracle.set_price("MSFT", 400.0)
        aid = engine.create_analyst("Dana", "Northbridge")
        engine.record_recommendation(aid, "AAPL", "BUY", now=_T0)
        engine.record_recommendation(aid, "MSFT", "HOLD", horizon_days=90, now=_T0 + timedelta(days=1))
        engine.run_evaluator(_T0 + timedelta(days=30))

        profile = engine.get_analyst_profile(aid)

        assert profile.analyst.analyst_id == aid
        assert [r.ticker for r in profile.recent_recommendations] == ["MSFT", "AAPL"]
        assert len(profile.evaluations) == 1
        perf = profile.performance
        assert perf.evaluated_count == 1
        assert perf.open_count == 1
        assert perf.win_rate == 1.0
        assert perf.calls_by_action == {"BUY": 1}
        assert perf.outcomes_by_action == {"BUY": {"CORRECT": 1}}

    def test_recent_limit(self, engine, oracle):
        oracle.set_price("AAPL", 100.0)
        aid = engine.create_analyst("Dana", "Northbridge")
        for d in range(5):
            engine.record_recommendation(aid, "AAPL", "BUY", now=_T0 + timedelta(days=d))
        profile = engine.get_analyst_profile(aid, recent_limit=2)
        assert [r.t0 for r in profile.recent_recommendations] == [
            _T0 + timedelta(days=4),
            _T0 + timedelta(days=3),
        ]

    def test_unknown_analyst(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_analyst_profile(404)

    def test_invalid_limit(self, engine):
        aid = engine.create_analyst("Dana", "Northbridge")
        with pytest.raises(InvalidArgumentError):
            engine.get_analyst_profile(aid, recent_limit=0)


class TestPerformanceSummary:
    def test_empty(self):
        perf = build_performance_summary([], [])
        assert perf.evaluated_count == 0
        assert perf.win_rate == 0.0
        assert perf.avg_alpha == 0.0

    def test_mixed_outcomes(self, sample_recommendation):
        recs = [
            sample_recommendation.model_copy(update={"recommendation_id": i, "action": action})
            for i, action in [(1, BUY), (2, BUY), (3, SELL), (4, HOLD)]
        ]
        evals = [
            _evaluation(1, 0.05, EvaluationOutcome.CORRECT),
            _evaluation(2, -0.03, EvaluationOutcome.INCORRECT),
            _evaluation(3, -0.04, EvaluationOutcome.CORRECT),
        ]
        perf = build_performance_summary(recs, evals)
        assert perf.evaluated_count == 3
        assert perf.open_count == 1
        assert perf.win_rate == pytest.approx(2 / 3)
        assert perf.avg_alpha == pytest.approx(-0.02 / 3)
        assert perf.calls_by_action == {"BUY": 2, "SELL": 1}
        assert perf.outcomes_by_action == {
            "BUY": {"CORRECT": 1, "INCORRECT": 1},
            "SELL": {"CORRECT": 1},
        }
