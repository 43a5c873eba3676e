"""
Recommendation ledger: opens new analyst calls.

A call is pinned at creation to its entry price ``p0`` (one oracle lookup at
``t0``) and to the benchmark its sector maps to.  Neither changes afterwards,
and recording a call never touches the analyst's rating.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from analyst_tracker.config import AppConfig, BenchmarkConfig
from analyst_tracker.errors import (
    InvalidArgumentError,
    NotFoundError,
    PriceUnavailableError,
)
from analyst_tracker.models.recommendation import Recommendation
from analyst_tracker.oracle.base import PriceOracle
from analyst_tracker.store.base import CredibilityStore
from analyst_tracker.taxonomy.rating_taxonomy import (
    RecommendationAction,
    RecommendationStatus,
)
from analyst_tracker.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def resolve_benchmark(sector: Optional[str], config: BenchmarkConfig) -> str:
    """Return the benchmark symbol for ``sector`` (case-insensitive), else the default."""
    if sector:
        wanted = sector.strip().lower()
        for name, symbol in config.sectors.items():
            if name.lower() == wanted:
                return symbol.upper()
    return config.default_symbol.upper()


class RecommendationLedger:
    """Records analyst calls."""

    def __init__(
        self,
        store: CredibilityStore,
        oracle: PriceOracle,
        config: AppConfig,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.config = config

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
        """Open a new call and return its id.

        ``confidence`` is clamped into [0, 1]; a missing or non-positive
        ``horizon_days`` falls back to the configured default.

        Raises:
            InvalidArgumentError: Unknown action, empty ticker, or a
                non-positive target price.
            NotFoundError: ``analyst_id`` does not exist.
            PriceUnavailableError: The entry price could not be fetched.
                Nothing is written in that case.
        """
        try:
            parsed_action = RecommendationAction.parse(action)
        except ValueError as exc:
            raise InvalidArgumentError(str(exc)) from None

        symbol = (ticker or "").strip().upper()
        if not symbol:
            raise InvalidArgumentError("ticker must not be empty.")
        if target_price is not None and target_price <= 0:
            raise InvalidArgumentError(f"target_price must be positive, got {target_price}.")

        defaults = self.config.recommendations
        conf = defaults.confidence if confidence is None else min(1.0, max(0.0, float(confidence)))
        horizon = horizon_days if horizon_days is not None and horizon_days > 0 else defaults.horizon_days

        if self.store.get_analyst(analyst_id) is None:
            raise NotFoundError("analyst", analyst_id)

        benchmark = resolve_benchmark(sector, self.config.benchmarks)
        t0 = ensure_utc(now) if now is not None else utcnow()
        p0 = self._entry_price(symbol, t0)

        try:
            rec = Recommendation(
                analyst_id=analyst_id,
                ticker=symbol,
                action=parsed_action,
                confidence=conf,
                horizon_days=horizon,
                target_price=target_price,
                note=note,
                sector=sector.strip() if sector and sector.strip() else None,
                t0=t0,
                p0=p0,
                benchmark=benchmark,
                status=RecommendationStatus.OPEN,
                created_at=t0,
            )
        except ValidationError as exc:
            raise InvalidArgumentError(f"Invalid recommendation: {exc}") from exc

        rec_id = self.store.insert_recommendation(rec)
        logger.info(
            "Recorded recommendation %d: analyst=%d %s %s conf=%.2f horizon=%dd "
            "p0=%.2f bench=%s",
            rec_id, analyst_id, parsed_action.value, symbol, conf, horizon, p0, benchmark,
        )
        return rec_id

    def _entry_price(self, symbol: str, t0: datetime) -> float:
        try:
            return self.oracle.price_at(symbol, t0)
        except PriceUnavailableError:
            raise
        except Exception as exc:
            raise PriceUnavailableError(symbol, t0, str(exc)) from exc
