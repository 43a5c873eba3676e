"""Tests for SQLite schema — idempotency, tables/indexes, constraints, migrations."""

from __future__ import annotations

import sqlite3

import pytest

from analyst_tracker.db.connection import get_connection, transaction
from analyst_tracker.db.migrations import MIGRATIONS, run_migrations
from analyst_tracker.db.schema import (
    ALL_TABLE_NAMES,
    apply_schema,
    get_existing_indexes,
    get_existing_tables,
)


def _insert_analyst(conn: sqlite3.Connection, score: float = 50.0) -> int:
    conn.execute(
        """
        INSERT INTO analysts (display_name, firm, score, created_at, updated_at)
        VALUES ('Dana', 'Northbridge', ?, '2025-01-02T15:00:00+00:00',
                '2025-01-02T15:00:00+00:00');
        """,
        (score,),
    )
    return conn.execute("SELECT last_insert_rowid();").fetchone()[0]


class TestApplySchema:
    def test_all_tables_created(self, in_memory_db):
        tables = get_existing_tables(in_memory_db)
        for expected_table in ALL_TABLE_NAMES:
            assert expected_table in tables, (
                f"Expected table '{expected_table}' not found. Found: {tables}"
            )

    def test_idempotent_double_apply(self, in_memory_db):
        """apply_schema() called twice must not raise errors."""
        apply_schema(in_memory_db)
        assert set(ALL_TABLE_NAMES) <= set(get_existing_tables(in_memory_db))

    def test_key_indexes_created(self, in_memory_db):
        indexes = get_existing_indexes(in_memory_db)
        for idx in ["idx_analysts_score", "idx_recs_open", "idx_recs_ticker_status"]:
            assert idx in indexes, f"Expected index '{idx}' not found. Found: {indexes}"


class TestConstraints:
    def test_fk_enforcement_is_on(self, in_memory_db):
        row = in_memory_db.execute("PRAGMA foreign_keys;").fetchone()
        assert row[0] == 1

    def test_score_check_constraint(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            _insert_analyst(in_memory_db, score=101.0)

    def test_recommendation_requires_existing_analyst(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                """
                INSERT INTO analyst_recommendations (
                    analyst_id, ticker, action, confidence, horizon_days,
                    t0, p0, benchmark, created_at
                ) VALUES (999, 'AAPL', 'BUY', 0.7, 30, 't', 100.0, 'SPY', 't');
                """
            )

    def test_invalid_action_rejected(self, in_memory_db):
        analyst_id = _insert_analyst(in_memory_db)
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                """
                INSERT INTO analyst_recommendations (
                    analyst_id, ticker, action, confidence, horizon_days,
                    t0, p0, benchmark, created_at
                ) VALUES (?, 'AAPL', 'STRONG_BUY', 0.7, 30, 't', 100.0, 'SPY', 't');
                """,
                (analyst_id,),
            )


class TestMigrations:
    def test_history_view_created(self, in_memory_db):
        row = in_memory_db.execute(
            "SELECT name FROM sqlite_master WHERE type='view' AND name='analyst_evaluation_history';"
        ).fetchone()
        assert row is not None

    def test_all_migrations_recorded(self, in_memory_db):
        rows = in_memory_db.execute("SELECT version_id FROM schema_versions;").fetchall()
        assert {r[0] for r in rows} == set(MIGRATIONS)

    def test_second_run_applies_nothing(self, in_memory_db):
        assert run_migrations(in_memory_db) == 0


class TestConnection:
    def test_creates_parent_dirs_and_commits(self, tmp_path):
        path = str(tmp_path / "nested" / "dir" / "x.db")
        with get_connection(path) as conn:
            apply_schema(conn)
            _insert_analyst(conn)
        with get_connection(path) as conn:
            assert conn.execute("SELECT COUNT(*) FROM analysts;").fetchone()[0] == 1

    def test_rolls_back_on_exception(self, tmp_path):
        path = str(tmp_path / "x.db")
        with get_connection(path) as conn:
            apply_schema(conn)
        with pytest.raises(RuntimeError):
            with get_connection(path) as conn:
                _insert_analyst(conn)
                raise RuntimeError("boom")
        with get_connection(path) as conn:
            assert conn.execute("SELECT COUNT(*) FROM analysts;").fetchone()[0] == 0

    def test_transaction_rolls_back_block(self, in_memory_db):
        with pytest.raises(ValueError):
            with transaction(in_memory_db):
                _insert_analyst(in_memory_db)
                raise ValueError("abort")
        assert in_memory_db.execute("SELECT COUNT(*) FROM analysts;").fetchone()[0] == 0

    def test_transaction_commits_block(self, in_memory_db):
        with transaction(in_memory_db):
            _insert_analyst(in_memory_db)
        assert not in_memory_db.in_transaction
        assert in_memory_db.execute("SELECT COUNT(*) FROM analysts;").fetchone()[0] == 1
