"""
Repositories for analyst recommendations and their evaluations.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Optional

from analyst_tracker.db.repositories.base import (
    BaseRepository,
    from_db_time,
    placeholders,
    to_db_time,
)
from analyst_tracker.models.recommendation import Evaluation, Recommendation
from analyst_tracker.taxonomy.rating_taxonomy import (
    EvaluationOutcome,
    RecommendationAction,
    RecommendationStatus,
)

logger = logging.getLogger(__name__)


class RecommendationRepository(BaseRepository):
    """Read/write access to ``analyst_recommendations``."""

    def insert(self, rec: Recommendation) -> int:
        """Insert a recommendation and return its ``recommendation_id``."""
        self.execute(
            """
            INSERT INTO analyst_recommendations (
                analyst_id, ticker, action, confidence, horizon_days,
                target_price, note, sector, t0, p0, benchmark,
                status, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                rec.analyst_id,
                rec.ticker,
                rec.action.value,
                rec.confidence,
                rec.horizon_days,
                rec.target_price,
                rec.note,
                rec.sector,
                to_db_time(rec.t0),
                rec.p0,
                rec.benchmark,
                rec.status.value,
                to_db_time(rec.created_at),
            ),
        )
        return self.last_insert_rowid()

    def get_by_id(self, recommendation_id: int) -> Optional[Recommendation]:
        """Fetch a recommendation by primary key, or ``None``."""
        row = self.fetchone(
            "SELECT * FROM analyst_recommendations WHERE recommendation_id = ?;",
            (recommendation_id,),
        )
        return _row_to_recommendation(row) if row else None

    def query(
        self,
        *,
        status: Optional[RecommendationStatus] = None,
        ticker: Optional[str] = None,
        analyst_id: Optional[int] = None,
        created_since: Optional[datetime] = None,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[Recommendation]:
        """Return recommendations matching every supplied filter.

        Args:
            status: Keep only this lifecycle state.
            ticker: Keep only this symbol (case-insensitive).
            analyst_id: Keep only this analyst's calls.
            created_since: Keep calls with ``created_at >= created_since``.
            newest_first: Order by ``created_at`` descending instead of
                ascending (ties break on id in the same direction).
            limit: Maximum rows to return.
        """
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if ticker is not None:
            clauses.append("ticker = ?")
            params.append(ticker.strip().upper())
        if analyst_id is not None:
            clauses.append("analyst_id = ?")
            params.append(analyst_id)
        if created_since is not None:
            clauses.append("created_at >= ?")
            params.append(to_db_time(created_since))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        direction = "DESC" if newest_first else "ASC"
        sql = (
            f"SELECT * FROM analyst_recommendations {where} "
            f"ORDER BY created_at {direction}, recommendation_id {direction}"
        )
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        rows = self.fetchall(sql + ";", tuple(params))
        return [_row_to_recommendation(r) for r in rows]

    def close(self, recommendation_id: int) -> bool:
        """Transition an OPEN recommendation to CLOSED.

        Returns:
            ``True`` if this call closed it; ``False`` if it was already
            CLOSED (or does not exist).
        """
        touched = self.execute_rowcount(
            """
            UPDATE analyst_recommendations
            SET status = 'CLOSED'
            WHERE recommendation_id = ? AND status = 'OPEN';
            """,
            (recommendation_id,),
        )
        return touched == 1

    def count_by_status(self) -> dict[RecommendationStatus, int]:
        """Return ``{OPEN: n, CLOSED: m}`` (zero-filled)."""
        counts = {status: 0 for status in RecommendationStatus}
        rows = self.fetchall(
            "SELECT status, COUNT(*) AS n FROM analyst_recommendations GROUP BY status;"
        )
        for row in rows:
            counts[RecommendationStatus(row["status"])] = int(row["n"])
        return counts


class EvaluationRepository(BaseRepository):
    """Read/write access to ``analyst_evaluations`` (insert-only)."""

    def insert(self, evaluation: Evaluation) -> int:
        """Insert an evaluation and return its ``evaluation_id``.

        Raises:
            sqlite3.IntegrityError: If the recommendation already has one.
        """
        self.execute(
            """
            INSERT INTO analyst_evaluations (
                recommendation_id, horizon_days, t1, p1, bench_return,
                abs_return, alpha, outcome, score_delta, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                evaluation.recommendation_id,
                evaluation.horizon_days,
                to_db_time(evaluation.t1),
                evaluation.p1,
                evaluation.bench_return,
                evaluation.abs_return,
                evaluation.alpha,
                evaluation.outcome.value,
                evaluation.score_delta,
                to_db_time(evaluation.created_at),
            ),
        )
        return self.last_insert_rowid()

    def get_by_recommendation(self, recommendation_id: int) -> Optional[Evaluation]:
        """Return the evaluation of one recommendation, or ``None``."""
        row = self.fetchone(
            "SELECT * FROM analyst_evaluations WHERE recommendation_id = ?;",
            (recommendation_id,),
        )
        return _row_to_evaluation(row) if row else None

    def get_for_recommendations(self, recommendation_ids: list[int]) -> list[Evaluation]:
        """Return evaluations for any of ``recommendation_ids``."""
        if not recommendation_ids:
            return []
        rows = self.fetchall(
            f"""
            SELECT * FROM analyst_evaluations
            WHERE recommendation_id IN ({placeholders(recommendation_ids)})
            ORDER BY t1 DESC, evaluation_id DESC;
            """,
            tuple(recommendation_ids),
        )
        return [_row_to_evaluation(r) for r in rows]

    def lifetime_call_mismatches(self) -> list[tuple[int, str, int, int]]:
        """Return analysts whose ``lifetime_calls`` differs from their evaluation count.

        Each evaluation increments ``lifetime_calls`` in the same transaction,
        so any row here means the two were written outside the engine.

        Returns:
            ``(analyst_id, display_name, lifetime_calls, evaluated)`` tuples,
            ordered by ``analyst_id``.
        """
        rows = self.fetchall(
            """
            SELECT a.analyst_id, a.display_name, a.lifetime_calls,
                   COUNT(h.evaluation_id) AS evaluated
            FROM analysts a
            LEFT JOIN analyst_evaluation_history h ON h.analyst_id = a.analyst_id
            GROUP BY a.analyst_id
            HAVING a.lifetime_calls != COUNT(h.evaluation_id)
            ORDER BY a.analyst_id;
            """
        )
        return [
            (r["analyst_id"], r["display_name"], r["lifetime_calls"], r["evaluated"])
            for r in rows
        ]

    def count(self) -> int:
        """Return the total number of evaluations."""
        row = self.fetchone("SELECT COUNT(*) AS n FROM analyst_evaluations;")
        assert row is not None
        return int(row["n"])


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_recommendation(row: sqlite3.Row) -> Recommendation:
    return Recommendation(
        recommendation_id=row["recommendation_id"],
        analyst_id=row["analyst_id"],
        ticker=row["ticker"],
        action=RecommendationAction(row["action"]),
        confidence=row["confidence"],
        horizon_days=row["horizon_days"],
        target_price=row["target_price"],
        note=row["note"],
        sector=row["sector"],
        t0=from_db_time(row["t0"]),
        p0=row["p0"],
        benchmark=row["benchmark"],
        status=RecommendationStatus(row["status"]),
        created_at=from_db_time(row["created_at"]),
    )


def _row_to_evaluation(row: sqlite3.Row) -> Evaluation:
    return Evaluation(
        evaluation_id=row["evaluation_id"],
        recommendation_id=row["recommendation_id"],
        horizon_days=row["horizon_days"],
        t1=from_db_time(row["t1"]),
        p1=row["p1"],
        bench_return=row["bench_return"],
        abs_return=row["abs_return"],
        alpha=row["alpha"],
        outcome=EvaluationOutcome(row["outcome"]),
        score_delta=row["score_delta"],
        created_at=from_db_time(row["created_at"]),
    )
