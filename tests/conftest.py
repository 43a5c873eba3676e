"""
Shared pytest fixtures for the analyst credibility tracker test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema and migrations applied. Created anew for each test that requests it.
  - ``store`` / ``oracle`` / ``app_config`` / ``engine``: a file-backed
    ``SqliteStore`` under ``tmp_path``, a ``StaticPriceOracle`` and an engine
    wired over both.
  - Sample domain object factories for use in multiple test modules.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest

from analyst_tracker.config import AppConfig, DatabaseConfig, LoggingConfig, PriceOracleConfig
from analyst_tracker.credibility.engine import CredibilityEngine
from analyst_tracker.db.migrations import run_migrations
from analyst_tracker.db.schema import apply_schema
from analyst_tracker.models.analyst import Analyst
from analyst_tracker.models.meta import RunMetadata
from analyst_tracker.models.recommendation import Evaluation, Recommendation
from analyst_tracker.oracle.fixture_oracle import StaticPriceOracle
from analyst_tracker.store.sqlite_store import SqliteStore
from analyst_tracker.taxonomy.rating_taxonomy import (
    EvaluationOutcome,
    RecommendationAction,
)

# A Thursday; every engine test records its calls at this instant.
T0 = datetime(2025, 1, 2, 15, 0, 0, tzinfo=timezone.utc)


def days_after(days: int, hours: int = 0) -> datetime:
    """Return ``T0`` shifted forward by whole days (and optional hours)."""
    return T0 + timedelta(days=days, hours=hours)


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Schema and migrations are applied.
    Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    run_migrations(conn)
    yield conn
    conn.close()


# ── Engine fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "db" / "test.db")


@pytest.fixture
def app_config(db_path: str, tmp_path) -> AppConfig:
    """Default config pointed at a temp DB and the fixture price provider."""
    return AppConfig(
        database=DatabaseConfig(db_path=db_path),
        price_oracle=PriceOracleConfig(provider="fixture"),
        logging=LoggingConfig(level="WARNING", log_file=str(tmp_path / "logs" / "test.log")),
    )


@pytest.fixture
def store(db_path: str) -> SqliteStore:
    """File-backed store with schema applied."""
    s = SqliteStore(db_path)
    s.ensure_schema()
    return s


@pytest.fixture
def oracle() -> StaticPriceOracle:
    """Fixture oracle with flat benchmark prices; tickers are set per test."""
    return StaticPriceOracle({"SPY": 500.0, "XLK": 200.0})


@pytest.fixture
def engine(
    app_config: AppConfig, store: SqliteStore, oracle: StaticPriceOracle
) -> Generator[CredibilityEngine, None, None]:
    eng = CredibilityEngine(config=app_config, store=store, oracle=oracle)
    yield eng
    eng.close()


# ── Sample domain object factories ────────────────────────────────────────────

@pytest.fixture
def sample_analyst() -> Analyst:
    """A valid, not-yet-persisted ``Analyst``."""
    return Analyst(
        display_name="Dana Whitfield",
        firm="Northbridge Capital",
        specializations=["Technology"],
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture
def sample_recommendation() -> Recommendation:
    """A valid OPEN BUY on AAPL for analyst 1 (not yet persisted)."""
    return Recommendation(
        analyst_id=1,
        ticker="AAPL",
        action=RecommendationAction.BUY,
        confidence=0.7,
        horizon_days=30,
        sector="Technology",
        t0=T0,
        p0=100.0,
        benchmark="XLK",
        created_at=T0,
    )


@pytest.fixture
def sample_evaluation() -> Evaluation:
    """A CORRECT evaluation of recommendation 1 (+10% vs +1%)."""
    return Evaluation(
        recommendation_id=1,
        horizon_days=30,
        t1=days_after(30),
        p1=110.0,
        bench_return=0.01,
        abs_return=0.10,
        alpha=0.09,
        outcome=EvaluationOutcome.CORRECT,
        score_delta=2.16,
        created_at=days_after(30),
    )


@pytest.fixture
def sample_run_metadata() -> RunMetadata:
    """A valid mutable ``RunMetadata`` for testing."""
    return RunMetadata(
        run_slug="test-run-uuid-0001",
        pipeline_stage="evaluate",
        status="started",
        config_snapshot={"database": {"db_path": ":memory:"}, "debug": True},
        started_at=T0,
    )
