"""
Persistent store port for the credibility engine.

``CredibilityStore`` is everything the engine needs from durable storage:
single-record inserts and lookups, filtered recommendation queries, a
leaderboard query, and ``run_transaction(fn)`` which executes ``fn`` against a
``StoreTransaction`` atomically (all writes commit together or none do).

Conditional writes on ``StoreTransaction`` return ``bool`` rather than
raising: the caller decides that a lost race is a ``ConflictError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Optional, TypeVar

from analyst_tracker.models.analyst import Analyst
from analyst_tracker.models.recommendation import Evaluation, Recommendation
from analyst_tracker.taxonomy.rating_taxonomy import (
    AnalystOrderField,
    AnalystTier,
    RecommendationStatus,
)

T = TypeVar("T")


class StoreTransaction(ABC):
    """Reads and writes scoped to one atomic store transaction."""

    @abstractmethod
    def get_recommendation(self, recommendation_id: int) -> Optional[Recommendation]:
        ...

    @abstractmethod
    def get_analyst(self, analyst_id: int) -> Optional[Analyst]:
        ...

    @abstractmethod
    def insert_evaluation(self, evaluation: Evaluation) -> int:
        """Insert an evaluation; a second one for the same recommendation
        raises ``ConflictError``."""
        ...

    @abstractmethod
    def close_recommendation(self, recommendation_id: int) -> bool:
        """OPEN → CLOSED. ``False`` if it was not OPEN."""
        ...

    @abstractmethod
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
        """Write the new rating if the row still holds the expected values."""
        ...


class CredibilityStore(ABC):
    """Durable storage for analysts, recommendations and evaluations."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables, indexes and views if missing (idempotent)."""
        ...

    # ── Analysts ───────────────────────────────────────────────────────────────

    @abstractmethod
    def insert_analyst(self, analyst: Analyst) -> int:
        ...

    @abstractmethod
    def get_analyst(self, analyst_id: int) -> Optional[Analyst]:
        ...

    @abstractmethod
    def get_analysts(self, analyst_ids: list[int]) -> dict[int, Analyst]:
        ...

    @abstractmethod
    def find_analyst(self, display_name: str, firm: str) -> Optional[Analyst]:
        ...

    @abstractmethod
    def list_analysts(self, order_by: AnalystOrderField, limit: int) -> list[Analyst]:
        ...

    # ── Recommendations ────────────────────────────────────────────────────────

    @abstractmethod
    def insert_recommendation(self, recommendation: Recommendation) -> int:
        ...

    @abstractmethod
    def get_recommendation(self, recommendation_id: int) -> Optional[Recommendation]:
        ...

    @abstractmethod
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
        ...

    # ── Evaluations ────────────────────────────────────────────────────────────

    @abstractmethod
    def get_evaluation(self, recommendation_id: int) -> Optional[Evaluation]:
        ...

    @abstractmethod
    def get_evaluations(self, recommendation_ids: list[int]) -> list[Evaluation]:
        ...

    # ── Transactions ───────────────────────────────────────────────────────────

    @abstractmethod
    def run_transaction(self, fn: Callable[[StoreTransaction], T]) -> T:
        """Run ``fn`` atomically and return its result.

        Any exception raised by ``fn`` rolls back every write it made and
        propagates unchanged.

        Raises:
            ConflictError: If the store could not isolate the transaction.
        """
        ...
