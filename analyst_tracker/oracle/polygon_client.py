"""
Polygon.io price client.

API:   https://api.polygon.io
Docs:  https://polygon.io/docs/stocks

Credential setup (.env, gitignored):
  ANALYST_TRACKER_POLYGON_API_KEY=your_api_key

Endpoints used:
  Daily aggregates (historical close):
    GET /v2/aggs/ticker/{ticker}/range/1/day/{from}/{to}
    ?adjusted=true&sort=asc&apiKey=...
    → {"results": [{"t": 1709251200000, "c": 182.4, ...}, ...]}
  Ticker snapshot (latest trade, used for "today" before the daily bar exists):
    GET /v2/snapshot/locale/us/markets/stocks/tickers/{ticker}?apiKey=...
    → {"ticker": {"lastTrade": {"p": 183.1}, "day": {"c": 183.0}, ...}}

A lookup for a weekend or holiday resolves to the close of the most recent
trading day within ``lookback_days`` before ``when``.  No synthetic fallback
price is ever returned: every failure is a ``PriceUnavailableError``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, ClassVar, Optional

from analyst_tracker.errors import PriceUnavailableError
from analyst_tracker.oracle.base import PriceOracle, validate_price
from analyst_tracker.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class PolygonPriceOracle(PriceOracle):
    """Daily-close price oracle backed by the Polygon.io REST API.

    Usage::

        oracle = PolygonPriceOracle(api_key=os.environ["ANALYST_TRACKER_POLYGON_API_KEY"])
        price = oracle.price_at("AAPL", datetime(2025, 3, 3, tzinfo=timezone.utc))
    """

    AGGS_PATH: ClassVar[str] = "/v2/aggs/ticker/{ticker}/range/1/day/{start}/{end}"
    SNAPSHOT_PATH: ClassVar[str] = "/v2/snapshot/locale/us/markets/stocks/tickers/{ticker}"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.polygon.io",
        timeout_seconds: float = 15.0,
        lookback_days: int = 5,
    ) -> None:
        """Initialise the Polygon client.

        Args:
            api_key: Polygon API key; required for every request.
            base_url: API root, overridable for tests or a proxy.
            timeout_seconds: httpx timeout applied to each request.
            lookback_days: How many calendar days before ``when`` to search
                for the most recent daily bar.
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.lookback_days = lookback_days

    def price_at(self, symbol: str, when: datetime) -> float:
        symbol = symbol.strip().upper()
        when = ensure_utc(when)
        if not self.api_key:
            raise PriceUnavailableError(
                symbol, when, "ANALYST_TRACKER_POLYGON_API_KEY is not set"
            )

        close = self._fetch_daily_close(symbol, when)
        if close is not None:
            return validate_price(symbol, when, close)

        # The daily bar for the current session is only published after close.
        if when.date() >= utcnow().date():
            last = self._fetch_snapshot_price(symbol, when)
            if last is not None:
                return validate_price(symbol, when, last)

        raise PriceUnavailableError(symbol, when, "no daily bars in lookback window")

    # ── HTTP calls ─────────────────────────────────────────────────────────────

    def _fetch_daily_close(self, symbol: str, when: datetime) -> Optional[float]:
        """Return the close of the last daily bar on or before ``when``."""
        start = (when - timedelta(days=self.lookback_days)).date().isoformat()
        end = when.date().isoformat()
        path = self.AGGS_PATH.format(ticker=symbol, start=start, end=end)
        data = self._get_json(symbol, when, path, {"adjusted": "true", "sort": "asc"})

        results = data.get("results") or []
        if not results:
            logger.debug("Polygon: no bars for %s in %s..%s", symbol, start, end)
            return None
        return results[-1].get("c")

    def _fetch_snapshot_price(self, symbol: str, when: datetime) -> Optional[float]:
        """Return the latest trade (or running day close) from the snapshot."""
        path = self.SNAPSHOT_PATH.format(ticker=symbol)
        data = self._get_json(symbol, when, path, {})

        ticker = data.get("ticker") or {}
        last_trade = (ticker.get("lastTrade") or {}).get("p")
        if last_trade:
            return last_trade
        return (ticker.get("day") or {}).get("c")

    def _get_json(
        self,
        symbol: str,
        when: datetime,
        path: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """GET ``path`` and decode JSON, mapping transport errors to the domain.

        Raises:
            PriceUnavailableError: On timeout, connection error, non-2xx status,
                or an undecodable body.
        """
        import httpx

        try:
            resp = httpx.get(
                f"{self.base_url}{path}",
                params={**params, "apiKey": self.api_key},
                timeout=self.timeout_seconds,
            )
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise PriceUnavailableError(
                symbol, when, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise PriceUnavailableError(
                symbol, when, f"{type(exc).__name__}: {exc}"
            ) from exc
        except ValueError as exc:
            raise PriceUnavailableError(symbol, when, "invalid JSON response") from exc
