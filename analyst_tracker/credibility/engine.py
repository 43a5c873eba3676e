"""
``CredibilityEngine`` — the single entry point callers (CLI, pipeline stages,
an HTTP layer) use.

It wires an ``AppConfig``, a ``CredibilityStore`` and a ``PriceOracle`` into
the registry, ledger, evaluator and consensus components and re-exposes
their operations.

Usage::

    from analyst_tracker.config import load_config
    from analyst_tracker.credibility.engine import CredibilityEngine

    with CredibilityEngine.from_config(load_config()) as engine:
        analyst_id = engine.create_analyst("Dana Whitfield", "Northbridge Capital")
        engine.record_recommendation(analyst_id, "AAPL", "BUY", sector="Technology")
        result = engine.run_evaluator()
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from analyst_tracker.config import AppConfig
from analyst_tracker.credibility.consensus import ConsensusAggregator
from analyst_tracker.credibility.evaluator import Evaluator, EvaluatorResult
from analyst_tracker.credibility.ledger import RecommendationLedger
from analyst_tracker.credibility.registry import AnalystRegistry
from analyst_tracker.models.analyst import Analyst
from analyst_tracker.models.consensus import AnalystProfile, WeightedConsensus
from analyst_tracker.models.recommendation import Evaluation, Recommendation
from analyst_tracker.oracle.base import PriceOracle
from analyst_tracker.store.base import CredibilityStore
from analyst_tracker.taxonomy.rating_taxonomy import AnalystOrderField, RecommendationAction

logger = logging.getLogger(__name__)


class CredibilityEngine:
    """Facade over the credibility components.

    Args:
        config: Application configuration.
        store: Persistent store; its schema is ensured on construction.
        oracle: Price oracle used for entry and evaluation prices.
    """

    def __init__(
        self,
        config: AppConfig,
        store: CredibilityStore,
        oracle: PriceOracle,
    ) -> None:
        self.config = config
        self.store = store
        self.oracle = oracle
        self.store.ensure_schema()

        self.registry = AnalystRegistry(store, config)
        self.ledger = RecommendationLedger(store, oracle, config)
        self.evaluator = Evaluator(store, oracle, config)
        self.consensus = ConsensusAggregator(store, config)

    @classmethod
    def from_config(cls, config: AppConfig) -> "CredibilityEngine":
        """Build an engine over the configured SQLite file and price provider."""
        from analyst_tracker.oracle.factory import build_price_oracle
        from analyst_tracker.store.sqlite_store import SqliteStore

        return cls(
            config=config,
            store=SqliteStore.from_config(config.database),
            oracle=build_price_oracle(config.price_oracle),
        )

    def close(self) -> None:
        self.oracle.close()

    def __enter__(self) -> "CredibilityEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Analysts ───────────────────────────────────────────────────────────────

    def create_analyst(
        self,
        display_name: str,
        firm: str,
        specializations: Optional[list[str]] = None,
        initial_score: Optional[float] = None,
    ) -> int:
        return self.registry.create_analyst(
            display_name, firm, specializations=specializations, initial_score=initial_score
        )

    def get_analyst(self, analyst_id: int) -> Analyst:
        return self.registry.get_analyst(analyst_id)

    def list_top_analysts(
        self,
        limit: int = 10,
        order_by: AnalystOrderField | str = AnalystOrderField.SCORE,
    ) -> list[Analyst]:
        return self.registry.list_top_analysts(limit=limit, order_by=order_by)

    def get_analyst_profile(self, analyst_id: int, recent_limit: int = 20) -> AnalystProfile:
        return self.registry.get_analyst_profile(analyst_id, recent_limit=recent_limit)

    # ── Recommendations ────────────────────────────────────────────────────────

    def record_recommendation(
        self,
        analyst_id: int,
        ticker: str,
        action: RecommendationAction | str,
        confidence: Optional[float] = None,
        horizon_days: Optional[int] = None,
        target_price: Optional[float] = None,
        note: Optional[str] = None,
        sector: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        return self.ledger.record_recommendation(
            analyst_id,
            ticker,
            action,
            confidence=confidence,
            horizon_days=horizon_days,
            target_price=target_price,
            note=note,
            sector=sector,
            now=now,
        )

    def get_recommendation(self, recommendation_id: int) -> Optional[Recommendation]:
        return self.store.get_recommendation(recommendation_id)

    # ── Evaluation ─────────────────────────────────────────────────────────────

    def run_evaluator(self, now: Optional[datetime] = None) -> EvaluatorResult:
        return self.evaluator.run(now)

    def evaluate_one(self, recommendation: Recommendation, t1: datetime) -> Evaluation:
        return self.evaluator.evaluate_one(recommendation, t1)

    # ── Consensus ──────────────────────────────────────────────────────────────

    def get_weighted_consensus(
        self,
        ticker: str,
        max_age_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> WeightedConsensus:
        return self.consensus.get_weighted_consensus(ticker, max_age_days=max_age_days, now=now)
