"""
Price oracle port and the timeout-enforcing wrapper.

The engine never talks to a market-data vendor directly.  Every price lookup
goes through ``PriceOracle.price_at(symbol, when)``, which returns a positive
float or raises ``PriceUnavailableError``.

``TimeoutPriceOracle`` bounds every call: each lookup runs on its own daemon
thread and the caller waits at most ``timeout_seconds`` from the moment that
lookup starts.  An abandoned lookup keeps its thread until the underlying
client's own timeout fires and its result is discarded.  Lookups never share a
worker, so one hung symbol cannot delay another.
"""

from __future__ import annotations

import logging
import math
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from analyst_tracker.errors import PriceUnavailableError

logger = logging.getLogger(__name__)


class PriceOracle(ABC):
    """Resolves the price of a symbol at an instant."""

    @abstractmethod
    def price_at(self, symbol: str, when: datetime) -> float:
        """Return the price of ``symbol`` at (or just before) ``when``.

        Raises:
            PriceUnavailableError: If no positive, finite price can be found.
        """
        ...

    def close(self) -> None:
        """Release any resources held by the oracle."""


def validate_price(symbol: str, when: datetime, price: object) -> float:
    """Coerce a vendor price to ``float``, rejecting non-positive values.

    Raises:
        PriceUnavailableError: If ``price`` is missing, non-numeric, NaN,
            infinite, or ``<= 0``.
    """
    try:
        value = float(price)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise PriceUnavailableError(symbol, when, f"non-numeric price {price!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise PriceUnavailableError(symbol, when, f"invalid price {value}")
    return value


class TimeoutPriceOracle(PriceOracle):
    """Wraps another oracle and enforces a per-call deadline.

    Args:
        inner: The oracle doing the actual lookup.
        timeout_seconds: Maximum seconds to wait for one ``price_at`` call.
    """

    def __init__(self, inner: PriceOracle, timeout_seconds: float) -> None:
        self.inner = inner
        self.timeout_seconds = timeout_seconds

    def price_at(self, symbol: str, when: datetime) -> float:
        outcome: dict[str, Any] = {}

        def lookup() -> None:
            try:
                outcome["price"] = self.inner.price_at(symbol, when)
            except Exception as exc:
                outcome["error"] = exc

        worker = threading.Thread(
            target=lookup, name=f"price-oracle-{symbol}", daemon=True
        )
        worker.start()
        worker.join(self.timeout_seconds)

        if worker.is_alive():
            logger.warning(
                "Price lookup for %s timed out after %.1fs", symbol, self.timeout_seconds
            )
            raise PriceUnavailableError(
                symbol, when, f"timed out after {self.timeout_seconds:g}s"
            )
        if "error" in outcome:
            raise outcome["error"]
        return validate_price(symbol, when, outcome["price"])

    def close(self) -> None:
        self.inner.close()
