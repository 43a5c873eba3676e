"""
Builds the configured price oracle.
"""

from __future__ import annotations

import logging

from analyst_tracker.config import PriceOracleConfig
from analyst_tracker.oracle.base import PriceOracle, TimeoutPriceOracle
from analyst_tracker.oracle.fixture_oracle import StaticPriceOracle
from analyst_tracker.oracle.polygon_client import PolygonPriceOracle

logger = logging.getLogger(__name__)


def build_price_oracle(config: PriceOracleConfig) -> PriceOracle:
    """Return the provider named in ``config``, wrapped in a per-call timeout.

    Args:
        config: Price oracle settings.

    Raises:
        ValueError: If ``config.provider`` is unknown.
    """
    inner: PriceOracle
    if config.provider == "polygon":
        if not config.api_key:
            logger.warning(
                "Polygon provider selected but no API key configured; "
                "every price lookup will fail."
            )
        inner = PolygonPriceOracle(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        )
    elif config.provider == "fixture":
        inner = StaticPriceOracle(config.fixture_prices)
    else:
        raise ValueError(f"Unknown price provider '{config.provider}'.")

    logger.debug("Price oracle: %s (timeout=%.1fs)", config.provider, config.timeout_seconds)
    return TimeoutPriceOracle(inner, config.timeout_seconds)
