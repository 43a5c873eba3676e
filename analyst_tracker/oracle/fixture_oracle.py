"""
Static price oracle for offline runs and tests.

Each symbol maps either to a single price (valid at every instant) or to a
dated series, in which case the price at ``when`` is the last point at or
before ``when``.
"""

from __future__ import annotations

import bisect
import logging
import threading
from datetime import datetime
from typing import Optional

from analyst_tracker.errors import PriceUnavailableError
from analyst_tracker.oracle.base import PriceOracle, validate_price
from analyst_tracker.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)


class StaticPriceOracle(PriceOracle):
    """In-memory oracle fed from config (``[price_oracle.fixture_prices]``) or tests.

    Usage::

        oracle = StaticPriceOracle({"SPY": 500.0})
        oracle.set_price("AAPL", 180.0, when=datetime(2025, 1, 2, tzinfo=timezone.utc))
        oracle.set_price("AAPL", 190.0, when=datetime(2025, 2, 3, tzinfo=timezone.utc))
    """

    def __init__(self, prices: Optional[dict[str, float]] = None) -> None:
        self._flat: dict[str, float] = {
            symbol.upper(): float(price) for symbol, price in (prices or {}).items()
        }
        self._series: dict[str, list[tuple[datetime, float]]] = {}
        self._lock = threading.Lock()

    def set_price(self, symbol: str, price: float, when: Optional[datetime] = None) -> None:
        """Set a flat price, or add a dated point when ``when`` is given."""
        symbol = symbol.upper()
        with self._lock:
            if when is None:
                self._flat[symbol] = float(price)
                return
            series = self._series.setdefault(symbol, [])
            bisect.insort(series, (ensure_utc(when), float(price)))

    def price_at(self, symbol: str, when: datetime) -> float:
        symbol = symbol.strip().upper()
        when = ensure_utc(when)
        with self._lock:
            series = self._series.get(symbol)
            if series:
                idx = bisect.bisect_right(series, (when, float("inf")))
                if idx > 0:
                    return validate_price(symbol, when, series[idx - 1][1])
            if symbol in self._flat:
                return validate_price(symbol, when, self._flat[symbol])
        raise PriceUnavailableError(symbol, when, "no fixture price")
