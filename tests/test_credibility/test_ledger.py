"""Tests for RecommendationLedger.record_recommendation and benchmark lookup."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from analyst_tracker.config import BenchmarkConfig
from analyst_tracker.credibility.ledger import resolve_benchmark
from analyst_tracker.errors import InvalidArgumentError, NotFoundError, PriceUnavailableError
from analyst_tracker.taxonomy.rating_taxonomy import RecommendationAction, RecommendationStatus

_T0 = datetime(2025, 1, 2, 15, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def analyst_id(engine) -> int:
    return engine.create_analyst("Dana Whitfield", "Northbridge Capital")


@pytest.fixture(autouse=True)
def _aapl_price(oracle):
    oracle.set_price("AAPL", 180.0)


class TestResolveBenchmark:
    def test_known_sector(self):
        assert resolve_benchmark("Technology", BenchmarkConfig()) == "XLK"

    def test_case_insensitive(self):
        assert resolve_benchmark("  health care ", BenchmarkConfig()) == "XLV"

    @pytest.mark.parametrize("sector", [None, "", "Crypto"])
    def test_unknown_falls_back_to_default(self, sector):
        assert resolve_benchmark(sector, BenchmarkConfig()) == "SPY"

    def test_custom_table(self):
        cfg = BenchmarkConfig(default_symbol="qqq", sectors={"Semis": "soxx"})
        assert resolve_benchmark("semis", cfg) == "SOXX"
        assert resolve_benchmark("Energy", cfg) == "QQQ"


class TestRecordRecommendation:
    def test_defaults_applied(self, engine, analyst_id):
        rec_id = engine.record_recommendation(analyst_id, "aapl", "buy", now=_T0)
        rec = engine.get_recommendation(rec_id)
        assert rec.ticker == "AAPL"
        assert rec.action == RecommendationAction.BUY
        assert rec.confidence == 0.7
        assert rec.horizon_days == 30
        assert rec.benchmark == "SPY"
        assert rec.p0 == 180.0
        assert rec.t0 == _T0
        assert rec.created_at == _T0
        assert rec.status == RecommendationStatus.OPEN

    def test_sector_selects_benchmark(self, engine, analyst_id):
        rec_id = engine.record_recommendation(
            analyst_id, "AAPL", "SELL", sector="Technology", note="Rich multiple", now=_T0
        )
        rec = engine.get_recommendation(rec_id)
        assert rec.benchmark == "XLK"
        assert rec.sector == "Technology"
        assert rec.note == "Rich multiple"

    @pytest.mark.parametrize("given, stored", [(1.5, 1.0), (-0.2, 0.0), (0.85, 0.85)])
    def test_confidence_clamped(self, engine, analyst_id, given, stored):
        rec_id = engine.record_recommendation(analyst_id, "AAPL", "HOLD", confidence=given)
        assert engine.get_recommendation(rec_id).confidence == stored

    @pytest.mark.parametrize("given, stored", [(0, 30), (-5, 30), (90, 90)])
    def test_horizon_fallback(self, engine, analyst_id, given, stored):
        rec_id = engine.record_recommendation(analyst_id, "AAPL", "BUY", horizon_days=given)
        assert engine.get_recommendation(rec_id).horizon_days == stored

    def test_target_price_stored(self, engine, analyst_id):
        rec_id = engine.record_recommendation(analyst_id, "AAPL", "BUY", target_price=210.0)
        assert engine.get_recommendation(rec_id).target_price == 210.0

    def test_recording_leaves_analyst_untouched(self, engine, analyst_id):
        before = engine.get_analyst(analyst_id)
        engine.record_recommendation(analyst_id, "AAPL", "BUY")
        after = engine.get_analyst(analyst_id)
        assert after == before

    def test_ids_are_distinct(self, engine, analyst_id):
        ids = {engine.record_recommendation(analyst_id, "AAPL", "BUY") for _ in range(3)}
        assert len(ids) == 3


class TestRecordRecommendationErrors:
    def test_invalid_action(self, engine, analyst_id):
        with pytest.raises(InvalidArgumentError, match="action"):
            engine.record_recommendation(analyst_id, "AAPL", "STRONG_BUY")

    @pytest.mark.parametrize("ticker", ["", "   "])
    def test_empty_ticker(self, engine, analyst_id, ticker):
        with pytest.raises(InvalidArgumentError, match="ticker"):
            engine.record_recommendation(analyst_id, ticker, "BUY")

    def test_non_positive_target(self, engine, analyst_id):
        with pytest.raises(InvalidArgumentError, match="target_price"):
            engine.record_recommendation(analyst_id, "AAPL", "BUY", target_price=0.0)

    def test_unknown_analyst(self, engine):
        with pytest.raises(NotFoundError, match="Analyst 999"):
            engine.record_recommendation(999, "AAPL", "BUY")

    def test_price_unavailable_writes_nothing(self, engine, store, analyst_id):
        with pytest.raises(PriceUnavailableError, match="ZZZZ"):
            engine.record_recommendation(analyst_id, "ZZZZ", "BUY")
        assert store.query_recommendations() == []

    def test_benchmark_price_not_needed_at_entry(self, engine, analyst_id):
        # Only p0 is fetched at entry; benchmark prices are read at evaluation.
        rec_id = engine.record_recommendation(analyst_id, "AAPL", "BUY", sector="Energy")
        assert engine.get_recommendation(rec_id).benchmark == "XLE"
