"""Tests for the static oracle, the timeout wrapper and the oracle factory."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from analyst_tracker.config import PriceOracleConfig
from analyst_tracker.errors import PriceUnavailableError
from analyst_tracker.oracle.base import PriceOracle, TimeoutPriceOracle, validate_price
from analyst_tracker.oracle.factory import build_price_oracle
from analyst_tracker.oracle.fixture_oracle import StaticPriceOracle
from analyst_tracker.oracle.polygon_client import PolygonPriceOracle

_T0 = datetime(2025, 1, 2, 15, 0, 0, tzinfo=timezone.utc)


class _BlockingOracle(PriceOracle):
    """Blocks every lookup until released."""

    def __init__(self) -> None:
        self.release = threading.Event()

    def price_at(self, symbol: str, when: datetime) -> float:
        self.release.wait(timeout=5)
        return 1.0


class _HangingOracle(PriceOracle):
    """Hangs on one symbol until released; prices every other symbol at 100."""

    def __init__(self, hung_symbol: str) -> None:
        self.hung_symbol = hung_symbol
        self.release = threading.Event()

    def price_at(self, symbol: str, when: datetime) -> float:
        if symbol == self.hung_symbol:
            self.release.wait(timeout=5)
        return 100.0


class _ConstantOracle(PriceOracle):
    def __init__(self, value: object) -> None:
        self.value = value
        self.closed = False

    def price_at(self, symbol: str, when: datetime) -> float:
        return self.value  # type: ignore[return-value]

    def close(self) -> None:
        self.closed = True


class TestValidatePrice:
    def test_accepts_numeric_strings(self):
        assert validate_price("AAPL", _T0, "101.5") == 101.5

    @pytest.mark.parametrize("bad", [None, "abc", 0, -1.0, float("nan"), float("inf")])
    def test_rejects_unusable(self, bad):
        with pytest.raises(PriceUnavailableError):
            validate_price("AAPL", _T0, bad)


class TestStaticPriceOracle:
    def test_flat_price_any_instant(self):
        oracle = StaticPriceOracle({"spy": 500.0})
        assert oracle.price_at("SPY", _T0) == 500.0
        assert oracle.price_at(" spy ", _T0 + timedelta(days=400)) == 500.0

    def test_series_uses_last_point_at_or_before(self):
        oracle = StaticPriceOracle()
        oracle.set_price("AAPL", 100.0, when=_T0)
        oracle.set_price("AAPL", 110.0, when=_T0 + timedelta(days=30))
        assert oracle.price_at("AAPL", _T0) == 100.0
        assert oracle.price_at("AAPL", _T0 + timedelta(days=29)) == 100.0
        assert oracle.price_at("AAPL", _T0 + timedelta(days=30)) == 110.0
        assert oracle.price_at("AAPL", _T0 + timedelta(days=90)) == 110.0

    def test_before_series_falls_back_to_flat(self):
        oracle = StaticPriceOracle({"AAPL": 95.0})
        oracle.set_price("AAPL", 100.0, when=_T0)
        assert oracle.price_at("AAPL", _T0 - timedelta(days=1)) == 95.0

    def test_unknown_symbol_raises(self):
        with pytest.raises(PriceUnavailableError, match="no fixture price"):
            StaticPriceOracle().price_at("ZZZ", _T0)

    def test_before_series_without_flat_raises(self):
        oracle = StaticPriceOracle()
        oracle.set_price("AAPL", 100.0, when=_T0)
        with pytest.raises(PriceUnavailableError):
            oracle.price_at("AAPL", _T0 - timedelta(seconds=1))


class TestTimeoutPriceOracle:
    def test_passes_through_result(self):
        inner = _ConstantOracle(42.0)
        oracle = TimeoutPriceOracle(inner, timeout_seconds=1.0)
        try:
            assert oracle.price_at("AAPL", _T0) == 42.0
        finally:
            oracle.close()
        assert inner.closed

    def test_slow_lookup_times_out(self):
        inner = _BlockingOracle()
        oracle = TimeoutPriceOracle(inner, timeout_seconds=0.05)
        try:
            with pytest.raises(PriceUnavailableError, match="timed out"):
                oracle.price_at("AAPL", _T0)
        finally:
            inner.release.set()
            oracle.close()

    def test_hung_lookup_does_not_delay_other_symbols(self):
        inner = _HangingOracle("HANG")
        oracle = TimeoutPriceOracle(inner, timeout_seconds=0.2)
        try:
            for _ in range(3):
                with pytest.raises(PriceUnavailableError, match="HANG.*timed out"):
                    oracle.price_at("HANG", _T0)
            assert oracle.price_at("AAPL", _T0) == 100.0
        finally:
            inner.release.set()
            oracle.close()

    def test_invalid_inner_price_rejected(self):
        oracle = TimeoutPriceOracle(_ConstantOracle(0.0), timeout_seconds=1.0)
        try:
            with pytest.raises(PriceUnavailableError, match="invalid price"):
                oracle.price_at("AAPL", _T0)
        finally:
            oracle.close()

    def test_inner_error_propagates(self):
        oracle = TimeoutPriceOracle(StaticPriceOracle(), timeout_seconds=1.0)
        try:
            with pytest.raises(PriceUnavailableError, match="no fixture price"):
                oracle.price_at("ZZZ", _T0)
        finally:
            oracle.close()


class TestFactory:
    def test_fixture_provider(self):
        oracle = build_price_oracle(
            PriceOracleConfig(provider="fixture", fixture_prices={"SPY": 500.0})
        )
        try:
            assert isinstance(oracle, TimeoutPriceOracle)
            assert isinstance(oracle.inner, StaticPriceOracle)
            assert oracle.price_at("SPY", _T0) == 500.0
        finally:
            oracle.close()

    def test_polygon_provider(self):
        oracle = build_price_oracle(
            PriceOracleConfig(provider="polygon", api_key="k", timeout_seconds=3.0)
        )
        try:
            assert isinstance(oracle.inner, PolygonPriceOracle)
            assert oracle.inner.api_key == "k"
            assert oracle.timeout_seconds == 3.0
        finally:
            oracle.close()
