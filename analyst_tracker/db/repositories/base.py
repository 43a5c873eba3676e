"""
Base repository providing shared SQLite execution helpers.

All repositories inherit from ``BaseRepository`` and receive a
``sqlite3.Connection`` at construction time.  The connection is opened and
managed by the caller (``get_connection()``), and transaction boundaries are
the caller's too (``transaction()``): repositories never commit.

Design:
  - No ORM — all SQL is explicit and lives in repository methods.
  - Repositories speak pydantic models, not raw dicts.
  - Timestamps are written as ISO-8601 UTC strings via ``to_db_time()``.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Optional

from analyst_tracker.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)


def to_db_time(value: datetime) -> str:
    """Serialize an instant as a sortable ISO-8601 UTC string."""
    return ensure_utc(value).isoformat()


def from_db_time(value: str) -> datetime:
    """Parse an ISO-8601 string written by ``to_db_time()``."""
    return ensure_utc(datetime.fromisoformat(value))


def placeholders(values: Sequence[Any]) -> str:
    """Return ``"?, ?, ?"`` for an ``IN (...)`` clause over ``values``."""
    return ", ".join("?" for _ in values)


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> sqlite3.Cursor:
        """Execute a single SQL statement with ``?`` or ``:name`` placeholders."""
        logger.debug("SQL: %s | params: %s", sql.strip(), params)
        return self.conn.execute(sql, params)

    def execute_rowcount(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> int:
        """Execute an UPDATE/DELETE and return the number of rows it touched.

        Conditional updates (``... WHERE status = 'OPEN'``) use the count to
        detect that a concurrent writer got there first.
        """
        return self.execute(sql, params).rowcount

    def fetchone(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> Optional[sqlite3.Row]:
        """Execute a query and return the first row, or ``None``."""
        return self.execute(sql, params).fetchone()

    def fetchall(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> list[sqlite3.Row]:
        """Execute a query and return all rows."""
        return self.execute(sql, params).fetchall()

    def last_insert_rowid(self) -> int:
        """Return the rowid of the last successful INSERT on this connection."""
        row = self.fetchone("SELECT last_insert_rowid() AS rowid;")
        assert row is not None
        return int(row["rowid"])
