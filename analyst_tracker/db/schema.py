"""
SQLite schema DDL — all CREATE TABLE and CREATE INDEX statements.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**:
safe to call on an already-initialized database (e.g. after restart or in tests).

Table creation order respects foreign key dependencies:
  1. analysts                  (no FKs)
  2. analyst_recommendations   (→ analysts)
  3. analyst_evaluations       (→ analyst_recommendations, UNIQUE per rec)
  4. run_metadata              (no FKs)

Timestamps are ISO-8601 UTC strings, so lexical order equals time order.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_ANALYSTS = """
CREATE TABLE IF NOT EXISTS analysts (
    analyst_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    display_name    TEXT    NOT NULL,
    firm            TEXT    NOT NULL,
    specializations TEXT    NOT NULL DEFAULT '[]',
    score           REAL    NOT NULL DEFAULT 50.0
                            CHECK (score >= 0.0 AND score <= 100.0),
    lifetime_calls  INTEGER NOT NULL DEFAULT 0 CHECK (lifetime_calls >= 0),
    tier            TEXT    NOT NULL DEFAULT 'NEW'
                            CHECK (tier IN ('NEW', 'RISING', 'TOP_TIER')),
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL
);
"""

_DDL_ANALYSTS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_analysts_score
    ON analysts(score DESC);
CREATE INDEX IF NOT EXISTS idx_analysts_calls
    ON analysts(lifetime_calls DESC);
CREATE INDEX IF NOT EXISTS idx_analysts_name_firm
    ON analysts(display_name, firm);
"""

_DDL_RECOMMENDATIONS = """
CREATE TABLE IF NOT EXISTS analyst_recommendations (
    recommendation_id INTEGER PRIMARY KEY AUTOINCREMENT,
    analyst_id        INTEGER NOT NULL REFERENCES analysts(analyst_id),
    ticker            TEXT    NOT NULL,
    action            TEXT    NOT NULL CHECK (action IN ('BUY', 'HOLD', 'SELL')),
    confidence        REAL    NOT NULL CHECK (confidence >= 0.0 AND confidence <= 1.0),
    horizon_days      INTEGER NOT NULL CHECK (horizon_days >= 1),
    target_price      REAL,
    note              TEXT,
    sector            TEXT,
    t0                TEXT    NOT NULL,
    p0                REAL    NOT NULL CHECK (p0 > 0),
    benchmark         TEXT    NOT NULL,
    status            TEXT    NOT NULL DEFAULT 'OPEN'
                              CHECK (status IN ('OPEN', 'CLOSED')),
    created_at        TEXT    NOT NULL
);
"""

_DDL_RECOMMENDATIONS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_recs_open
    ON analyst_recommendations(status, t0)
    WHERE status = 'OPEN';
CREATE INDEX IF NOT EXISTS idx_recs_ticker_status
    ON analyst_recommendations(ticker, status, created_at);
CREATE INDEX IF NOT EXISTS idx_recs_analyst_created
    ON analyst_recommendations(analyst_id, created_at DESC);
"""

_DDL_EVALUATIONS = """
CREATE TABLE IF NOT EXISTS analyst_evaluations (
    evaluation_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    recommendation_id INTEGER NOT NULL UNIQUE
                              REFERENCES analyst_recommendations(recommendation_id),
    horizon_days      INTEGER NOT NULL,
    t1                TEXT    NOT NULL,
    p1                REAL    NOT NULL,
    bench_return      REAL    NOT NULL,
    abs_return        REAL    NOT NULL,
    alpha             REAL    NOT NULL,
    outcome           TEXT    NOT NULL
                              CHECK (outcome IN ('CORRECT', 'NEUTRAL', 'INCORRECT')),
    score_delta       REAL    NOT NULL,
    created_at        TEXT    NOT NULL
);
"""

_DDL_RUN_METADATA = """
CREATE TABLE IF NOT EXISTS run_metadata (
    run_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    run_slug        TEXT    NOT NULL UNIQUE,
    pipeline_stage  TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'started',
    as_of           TEXT,
    config_snapshot TEXT    NOT NULL,
    rows_processed  INTEGER NOT NULL DEFAULT 0,
    error_count     INTEGER NOT NULL DEFAULT 0,
    error_message   TEXT,
    started_at      TEXT    NOT NULL,
    finished_at     TEXT
);
"""

_DDL_RUN_METADATA_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_runs_stage_started
    ON run_metadata(pipeline_stage, started_at DESC);
"""

_ALL_DDL = [
    _DDL_ANALYSTS,
    _DDL_ANALYSTS_INDEXES,
    _DDL_RECOMMENDATIONS,
    _DDL_RECOMMENDATIONS_INDEXES,
    _DDL_EVALUATIONS,
    _DDL_RUN_METADATA,
    _DDL_RUN_METADATA_INDEXES,
]

ALL_TABLE_NAMES = [
    "analysts",
    "analyst_recommendations",
    "analyst_evaluations",
    "run_metadata",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent — safe to call on an already-initialized database.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Return index names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
