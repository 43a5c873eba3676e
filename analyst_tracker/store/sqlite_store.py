"""
SQLite implementation of ``CredibilityStore``.

Every public call opens its own connection through ``get_connection()``, so
a single ``SqliteStore`` can be shared by the evaluator's worker threads:
each thread reads and writes on a private connection and SQLite's file
locking (WAL + ``BEGIN IMMEDIATE``) serializes the writers.

``":memory:"`` databases cannot be shared between connections, so in that
mode one connection is kept open and guarded by a lock.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Optional, TypeVar

from analyst_tracker.config import DatabaseConfig
from analyst_tracker.db.connection import get_connection, transaction
from analyst_tracker.db.migrations import run_migrations
from analyst_tracker.db.repositories.analyst_repo import AnalystRepository
from analyst_tracker.db.repositories.recommendation_repo import (
    EvaluationRepository,
    RecommendationRepository,
)
from analyst_tracker.db.schema import apply_schema
from analyst_tracker.errors import ConflictError
from analyst_tracker.models.analyst import Analyst
from analyst_tracker.models.recommendation import Evaluation, Recommendation
from analyst_tracker.store.base import CredibilityStore, StoreTransaction
from analyst_tracker.taxonomy.rating_taxonomy import (
    AnalystOrderField,
    AnalystTier,
    RecommendationStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _SqliteTransaction(StoreTransaction):
    """Repository calls bound to one connection inside ``BEGIN IMMEDIATE``."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._analysts = AnalystRepository(conn)
        self._recs = RecommendationRepository(conn)
        self._evals = EvaluationRepository(conn)

    def get_recommendation(self, recommendation_id: int) -> Optional[Recommendation]:
        return self._recs.get_by_id(recommendation_id)

    def get_analyst(self, analyst_id: int) -> Optional[Analyst]:
        return self._analysts.get_by_id(analyst_id)

    def insert_evaluation(self, evaluation: Evaluation) -> int:
        try:
            return self._evals.insert(evaluation)
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                f"Recommendation {evaluation.recommendation_id} already has an evaluation."
            ) from exc

    def close_recommendation(self, recommendation_id: int) -> bool:
        return self._recs.close(recommendation_id)

    def update_analyst_rating(
        self,
        analyst_id: int,
        *,
        score: float,
        lifetime_calls: int,
        tier: AnalystTier,
        updated_at: datetime,
        expected_score: float,
        expected_calls: int,
    ) -> bool:
        return self._analysts.update_rating(
            analyst_id,
            score=score,
            lifetime_calls=lifetime_calls,
            tier=tier,
            updated_at=updated_at,
            expected_score=expected_score,
            expected_calls=expected_calls,
        )


class SqliteStore(CredibilityStore):
    """``CredibilityStore`` over a SQLite database file.

    Args:
        db_path: Database file path, or ``":memory:"``.
        wal_mode: Enable WAL journaling (file databases only).
        busy_timeout_ms: How long a writer waits for the lock before the
            transaction fails with ``ConflictError``.
    """

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = db_path
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._lock = threading.RLock()
        self._memory_conn: Optional[sqlite3.Connection] = None
        if db_path == ":memory:":
            self._memory_conn = sqlite3.connect(":memory:", check_same_thread=False)
            self._memory_conn.row_factory = sqlite3.Row
            self._memory_conn.execute("PRAGMA foreign_keys = ON;")

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "SqliteStore":
        return cls(
            db_path=config.db_path,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
        )

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        if self._memory_conn is None:
            with get_connection(self.db_path, self.wal_mode, self.busy_timeout_ms) as conn:
                yield conn
            return

        with self._lock:
            conn = self._memory_conn
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def close(self) -> None:
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None

    def ensure_schema(self) -> None:
        with self._connect() as conn:
            apply_schema(conn)
            run_migrations(conn)

    # ── Analysts ───────────────────────────────────────────────────────────────

    def insert_analyst(self, analyst: Analyst) -> int:
        with self._connect() as conn:
            return AnalystRepository(conn).insert(analyst)

    def get_analyst(self, analyst_id: int) -> Optional[Analyst]:
        with self._connect() as conn:
            return AnalystRepository(conn).get_by_id(analyst_id)

    def get_analysts(self, analyst_ids: list[int]) -> dict[int, Analyst]:
        with self._connect() as conn:
            return AnalystRepository(conn).get_many(analyst_ids)

    def find_analyst(self, display_name: str, firm: str) -> Optional[Analyst]:
        with self._connect() as conn:
            return AnalystRepository(conn).find_by_name_and_firm(display_name, firm)

    def list_analysts(self, order_by: AnalystOrderField, limit: int) -> list[Analyst]:
        with self._connect() as conn:
            return AnalystRepository(conn).list_top(order_by, limit)

    # ── Recommendations ────────────────────────────────────────────────────────

    def insert_recommendation(self, recommendation: Recommendation) -> int:
        with self._connect() as conn:
            return RecommendationRepository(conn).insert(recommendation)

    def get_recommendation(self, recommendation_id: int) -> Optional[Recommendation]:
        with self._connect() as conn:
            return RecommendationRepository(conn).get_by_id(recommendation_id)

    def query_recommendations(
        self,
        *,
        status: Optional[RecommendationStatus] = None,
        ticker: Optional[str] = None,
        analyst_id: Optional[int] = None,
        created_since: Optional[datetime] = None,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[Recommendation]:
        with self._connect() as conn:
            return RecommendationRepository(conn).query(
                status=status,
                ticker=ticker,
                analyst_id=analyst_id,
                created_since=created_since,
                newest_first=newest_first,
                limit=limit,
            )

    # ── Evaluations ────────────────────────────────────────────────────────────

    def get_evaluation(self, recommendation_id: int) -> Optional[Evaluation]:
        with self._connect() as conn:
            return EvaluationRepository(conn).get_by_recommendation(recommendation_id)

    def get_evaluations(self, recommendation_ids: list[int]) -> list[Evaluation]:
        with self._connect() as conn:
            return EvaluationRepository(conn).get_for_recommendations(recommendation_ids)

    # ── Transactions ───────────────────────────────────────────────────────────

    def run_transaction(self, fn: Callable[[StoreTransaction], T]) -> T:
        with self._connect() as conn:
            with transaction(conn):
                return fn(_SqliteTransaction(conn))
