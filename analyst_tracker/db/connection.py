"""
SQLite connection and transaction management.

``get_connection()`` is a context manager that:
  - Enables foreign key enforcement (OFF by default in SQLite).
  - Enables WAL journal mode so leaderboard reads do not block the evaluator.
  - Sets a busy timeout to handle lock contention gracefully.
  - Uses ``sqlite3.Row`` factory so rows behave like dicts.
  - Commits on clean exit, rolls back on exception.

``transaction()`` wraps a read-modify-write block in ``BEGIN IMMEDIATE`` so
the write lock is taken *before* the block reads anything: two evaluator
threads updating the same analyst can never interleave their reads and
writes.  Lock contention that outlives the busy timeout surfaces as
``ConflictError``.

Usage::

    from analyst_tracker.db.connection import get_connection, transaction

    with get_connection("data/db/analyst_tracker.db") as conn:
        with transaction(conn):
            conn.execute("UPDATE analysts SET ...")
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from analyst_tracker.errors import ConflictError

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The database file (and any parent directories) are created if they do
    not already exist.

    Args:
        db_path: Path to the SQLite database file. Use ``":memory:"`` for
            in-memory databases.
        wal_mode: If ``True``, enable WAL journal mode for better concurrency.
        busy_timeout_ms: Milliseconds to wait when the database is locked
            before raising ``OperationalError``.

    Yields:
        An open, configured ``sqlite3.Connection``.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    # check_same_thread=False: the evaluator hands each worker thread its own
    # connection, but the connection may be closed from the submitting thread.
    conn = sqlite3.connect(
        db_path, timeout=busy_timeout_ms / 1000, check_same_thread=False
    )
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")

        if wal_mode and db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Run the enclosed block as one ``BEGIN IMMEDIATE`` transaction.

    Commits on clean exit and rolls back on any exception, so no partial
    state is ever visible to other connections.

    Raises:
        ConflictError: If the write lock cannot be acquired within the busy
            timeout, or the commit itself hits a lock.
    """
    if conn.in_transaction:
        # Legacy-mode sqlite3 opens implicit transactions on DML; flush them
        # so BEGIN IMMEDIATE is not nested.
        conn.commit()

    try:
        conn.execute("BEGIN IMMEDIATE;")
    except sqlite3.OperationalError as exc:
        if _is_lock_error(exc):
            raise ConflictError(f"Could not acquire write lock: {exc}") from exc
        raise

    try:
        yield conn
        conn.commit()
    except sqlite3.OperationalError as exc:
        conn.rollback()
        if _is_lock_error(exc):
            raise ConflictError(f"Transaction aborted by lock contention: {exc}") from exc
        raise
    except BaseException:
        conn.rollback()
        raise


def _is_lock_error(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message
