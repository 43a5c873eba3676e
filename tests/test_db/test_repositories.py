"""Tests for repository round-trip operations using in-memory SQLite."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from analyst_tracker.db.repositories.analyst_repo import AnalystRepository
from analyst_tracker.db.repositories.recommendation_repo import (
    EvaluationRepository,
    RecommendationRepository,
)
from analyst_tracker.db.repositories.run_repo import RunMetadataRepository
from analyst_tracker.models.analyst import Analyst
from analyst_tracker.models.recommendation import Evaluation, Recommendation
from analyst_tracker.taxonomy.rating_taxonomy import (
    AnalystOrderField,
    AnalystTier,
    EvaluationOutcome,
    RecommendationAction,
    RecommendationStatus,
)

_T0 = datetime(2025, 1, 2, 15, 0, 0, tzinfo=timezone.utc)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _insert_analyst(
    conn: sqlite3.Connection,
    name: str = "Dana Whitfield",
    firm: str = "Northbridge Capital",
    score: float = 50.0,
    calls: int = 0,
) -> int:
    return AnalystRepository(conn).insert(
        Analyst(
            display_name=name, firm=firm, score=score, lifetime_calls=calls,
            created_at=_T0, updated_at=_T0,
        )
    )


def _insert_rec(
    conn: sqlite3.Connection,
    analyst_id: int,
    ticker: str = "AAPL",
    action: RecommendationAction = RecommendationAction.BUY,
    created_at: datetime = _T0,
) -> int:
    return RecommendationRepository(conn).insert(
        Recommendation(
            analyst_id=analyst_id,
            ticker=ticker,
            action=action,
            t0=created_at,
            p0=100.0,
            benchmark="SPY",
            created_at=created_at,
        )
    )


def _evaluation(rec_id: int, alpha: float = 0.05, days: int = 30) -> Evaluation:
    return Evaluation(
        recommendation_id=rec_id,
        horizon_days=30,
        t1=_T0 + timedelta(days=days),
        p1=106.0,
        bench_return=0.01,
        abs_return=0.01 + alpha,
        alpha=alpha,
        outcome=EvaluationOutcome.CORRECT if alpha >= 0.02 else EvaluationOutcome.NEUTRAL,
        score_delta=1.5,
        created_at=_T0 + timedelta(days=days),
    )


class TestAnalystRepository:
    def test_insert_and_fetch_by_id(self, in_memory_db, sample_analyst):
        repo = AnalystRepository(in_memory_db)
        analyst_id = repo.insert(sample_analyst)
        fetched = repo.get_by_id(analyst_id)
        assert fetched is not None
        assert fetched.analyst_id == analyst_id
        assert fetched.display_name == "Dana Whitfield"
        assert fetched.specializations == ["Technology"]
        assert fetched.created_at == _T0
        assert fetched.tier == AnalystTier.NEW

    def test_missing_returns_none(self, in_memory_db):
        assert AnalystRepository(in_memory_db).get_by_id(42) is None

    def test_get_many_omits_missing(self, in_memory_db):
        a = _insert_analyst(in_memory_db, name="A")
        b = _insert_analyst(in_memory_db, name="B")
        found = AnalystRepository(in_memory_db).get_many([a, b, b, 999])
        assert set(found) == {a, b}
        assert AnalystRepository(in_memory_db).get_many([]) == {}

    def test_find_by_name_and_firm(self, in_memory_db):
        a = _insert_analyst(in_memory_db, name="A", firm="F1")
        _insert_analyst(in_memory_db, name="A", firm="F2")
        repo = AnalystRepository(in_memory_db)
        found = repo.find_by_name_and_firm(" A ", "F1")
        assert found is not None and found.analyst_id == a
        assert repo.find_by_name_and_firm("A", "F3") is None

    def test_list_top_by_score_with_tiebreaks(self, in_memory_db):
        low = _insert_analyst(in_memory_db, name="Low", score=40.0)
        tie_few = _insert_analyst(in_memory_db, name="TieFew", score=70.0, calls=2)
        tie_many = _insert_analyst(in_memory_db, name="TieMany", score=70.0, calls=9)
        high = _insert_analyst(in_memory_db, name="High", score=85.0, calls=1)
        top = AnalystRepository(in_memory_db).list_top(AnalystOrderField.SCORE, limit=10)
        assert [a.analyst_id for a in top] == [high, tie_many, tie_few, low]

    def test_list_top_by_calls_respects_limit(self, in_memory_db):
        _insert_analyst(in_memory_db, name="A", calls=1)
        b = _insert_analyst(in_memory_db, name="B", calls=7)
        c = _insert_analyst(in_memory_db, name="C", calls=3)
        top = AnalystRepository(in_memory_db).list_top(AnalystOrderField.LIFETIME_CALLS, limit=2)
        assert [a.analyst_id for a in top] == [b, c]

    def test_update_rating_applies_when_unchanged(self, in_memory_db):
        analyst_id = _insert_analyst(in_memory_db)
        repo = AnalystRepository(in_memory_db)
        later = _T0 + timedelta(days=30)
        ok = repo.update_rating(
            analyst_id, score=52.16, lifetime_calls=1, tier=AnalystTier.NEW,
            updated_at=later, expected_score=50.0, expected_calls=0,
        )
        assert ok
        fetched = repo.get_by_id(analyst_id)
        assert fetched.score == pytest.approx(52.16)
        assert fetched.lifetime_calls == 1
        assert fetched.updated_at == later
        assert fetched.created_at == _T0

    def test_update_rating_rejects_stale_read(self, in_memory_db):
        analyst_id = _insert_analyst(in_memory_db, score=55.0, calls=3)
        repo = AnalystRepository(in_memory_db)
        ok = repo.update_rating(
            analyst_id, score=60.0, lifetime_calls=4, tier=AnalystTier.NEW,
            updated_at=_T0, expected_score=50.0, expected_calls=3,
        )
        assert not ok
        assert repo.get_by_id(analyst_id).score == 55.0

    def test_count(self, in_memory_db):
        _insert_analyst(in_memory_db, name="A")
        _insert_analyst(in_memory_db, name="B")
        assert AnalystRepository(in_memory_db).count() == 2


class TestRecommendationRepository:
    def test_insert_and_fetch_by_id(self, in_memory_db):
        analyst_id = _insert_analyst(in_memory_db)
        rec_id = _insert_rec(in_memory_db, analyst_id)
        rec = RecommendationRepository(in_memory_db).get_by_id(rec_id)
        assert rec is not None
        assert rec.recommendation_id == rec_id
        assert rec.action == RecommendationAction.BUY
        assert rec.status == RecommendationStatus.OPEN
        assert rec.t0 == _T0
        assert rec.target_price is None

    def test_query_filters(self, in_memory_db):
        a = _insert_analyst(in_memory_db, name="A")
        b = _insert_analyst(in_memory_db, name="B")
        r1 = _insert_rec(in_memory_db, a, "AAPL", created_at=_T0)
        r2 = _insert_rec(in_memory_db, b, "AAPL", created_at=_T0 + timedelta(days=5))
        r3 = _insert_rec(in_memory_db, a, "MSFT", created_at=_T0 + timedelta(days=10))
        repo = RecommendationRepository(in_memory_db)
        repo.close(r1)

        assert [r.recommendation_id for r in repo.query()] == [r1, r2, r3]
        assert [r.recommendation_id for r in repo.query(ticker="aapl")] == [r1, r2]
        assert [r.recommendation_id for r in repo.query(analyst_id=a)] == [r1, r3]
        assert [
            r.recommendation_id for r in repo.query(status=RecommendationStatus.OPEN)
        ] == [r2, r3]
        assert [
            r.recommendation_id
            for r in repo.query(created_since=_T0 + timedelta(days=5))
        ] == [r2, r3]

    def test_query_newest_first_with_limit(self, in_memory_db):
        a = _insert_analyst(in_memory_db)
        ids = [_insert_rec(in_memory_db, a, created_at=_T0 + timedelta(days=d)) for d in range(4)]
        recs = RecommendationRepository(in_memory_db).query(newest_first=True, limit=2)
        assert [r.recommendation_id for r in recs] == [ids[3], ids[2]]

    def test_close_is_one_way(self, in_memory_db):
        a = _insert_analyst(in_memory_db)
        rec_id = _insert_rec(in_memory_db, a)
        repo = RecommendationRepository(in_memory_db)
        assert repo.close(rec_id) is True
        assert repo.close(rec_id) is False
        assert repo.get_by_id(rec_id).status == RecommendationStatus.CLOSED
        assert repo.close(999) is False

    def test_count_by_status(self, in_memory_db):
        a = _insert_analyst(in_memory_db)
        rec_id = _insert_rec(in_memory_db, a)
        _insert_rec(in_memory_db, a)
        repo = RecommendationRepository(in_memory_db)
        repo.close(rec_id)
        assert repo.count_by_status() == {
            RecommendationStatus.OPEN: 1,
            RecommendationStatus.CLOSED: 1,
        }


class TestEvaluationRepository:
    def test_insert_and_fetch(self, in_memory_db):
        a = _insert_analyst(in_memory_db)
        rec_id = _insert_rec(in_memory_db, a)
        repo = EvaluationRepository(in_memory_db)
        eval_id = repo.insert(_evaluation(rec_id))
        fetched = repo.get_by_recommendation(rec_id)
        assert fetched is not None
        assert fetched.evaluation_id == eval_id
        assert fetched.alpha == pytest.approx(0.05)
        assert fetched.outcome == EvaluationOutcome.CORRECT

    def test_one_evaluation_per_recommendation(self, in_memory_db):
        a = _insert_analyst(in_memory_db)
        rec_id = _insert_rec(in_memory_db, a)
        repo = EvaluationRepository(in_memory_db)
        repo.insert(_evaluation(rec_id))
        with pytest.raises(sqlite3.IntegrityError):
            repo.insert(_evaluation(rec_id))

    def test_get_for_recommendations_newest_first(self, in_memory_db):
        a = _insert_analyst(in_memory_db)
        r1 = _insert_rec(in_memory_db, a)
        r2 = _insert_rec(in_memory_db, a)
        repo = EvaluationRepository(in_memory_db)
        repo.insert(_evaluation(r1, days=30))
        repo.insert(_evaluation(r2, days=40))
        evals = repo.get_for_recommendations([r1, r2])
        assert [e.recommendation_id for e in evals] == [r2, r1]
        assert repo.get_for_recommendations([]) == []

    def test_lifetime_call_mismatches_use_history_view(self, in_memory_db):
        consistent = _insert_analyst(in_memory_db, name="A", calls=2)
        drifted = _insert_analyst(in_memory_db, name="B", calls=3)
        _insert_analyst(in_memory_db, name="C")
        repo = EvaluationRepository(in_memory_db)
        repo.insert(_evaluation(_insert_rec(in_memory_db, consistent), alpha=0.05))
        repo.insert(_evaluation(_insert_rec(in_memory_db, consistent), alpha=0.0))
        repo.insert(_evaluation(_insert_rec(in_memory_db, drifted), alpha=0.05))

        assert repo.count() == 3
        assert repo.lifetime_call_mismatches() == [(drifted, "B", 3, 1)]


class TestRunMetadataRepository:
    def test_insert_update_and_fetch(self, in_memory_db, sample_run_metadata):
        repo = RunMetadataRepository(in_memory_db)
        sample_run_metadata.as_of = _T0
        run_id = repo.insert_run(sample_run_metadata)
        sample_run_metadata.run_id = run_id

        sample_run_metadata.status = "partial"
        sample_run_metadata.rows_processed = 4
        sample_run_metadata.error_count = 1
        sample_run_metadata.error_message = "Failed to evaluate recommendation 7: boom"
        sample_run_metadata.finished_at = _T0 + timedelta(minutes=1)
        repo.update_run(sample_run_metadata)

        [fetched] = repo.get_recent_runs()
        assert fetched.run_slug == "test-run-uuid-0001"
        assert fetched.run_id == run_id
        assert fetched.status == "partial"
        assert fetched.rows_processed == 4
        assert fetched.error_count == 1
        assert fetched.as_of == _T0
        assert fetched.config_snapshot["debug"] is True

    def test_update_without_id_raises(self, in_memory_db, sample_run_metadata):
        with pytest.raises(ValueError, match="run_id"):
            RunMetadataRepository(in_memory_db).update_run(sample_run_metadata)

    def test_recent_runs_filtered_by_stage(self, in_memory_db, sample_run_metadata):
        repo = RunMetadataRepository(in_memory_db)
        repo.insert_run(sample_run_metadata)
        seed_run = sample_run_metadata.model_copy(
            update={"run_slug": "seed-1", "pipeline_stage": "seed_analysts"}
        )
        repo.insert_run(seed_run)
        assert len(repo.get_recent_runs()) == 2
        assert [r.run_slug for r in repo.get_recent_runs("seed_analysts")] == ["seed-1"]
        assert len(repo.get_recent_runs(limit=1)) == 1
