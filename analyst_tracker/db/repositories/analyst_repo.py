"""
Repository for analyst profiles — insert, fetch, leaderboard and rating update.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Optional

from analyst_tracker.db.repositories.base import (
    BaseRepository,
    from_db_time,
    placeholders,
    to_db_time,
)
from analyst_tracker.models.analyst import Analyst
from analyst_tracker.taxonomy.rating_taxonomy import AnalystOrderField, AnalystTier

logger = logging.getLogger(__name__)

# Whitelisted ORDER BY clauses; column names can't be bound as parameters.
_ORDER_CLAUSES: dict[AnalystOrderField, str] = {
    AnalystOrderField.SCORE: "score DESC, lifetime_calls DESC, analyst_id ASC",
    AnalystOrderField.LIFETIME_CALLS: "lifetime_calls DESC, score DESC, analyst_id ASC",
}


class AnalystRepository(BaseRepository):
    """Read/write access to the ``analysts`` table."""

    def insert(self, analyst: Analyst) -> int:
        """Insert a new analyst and return its auto-assigned ``analyst_id``."""
        self.execute(
            """
            INSERT INTO analysts (
                display_name, firm, specializations, score,
                lifetime_calls, tier, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                analyst.display_name,
                analyst.firm,
                json.dumps(analyst.specializations),
                analyst.score,
                analyst.lifetime_calls,
                analyst.tier.value,
                to_db_time(analyst.created_at),
                to_db_time(analyst.updated_at),
            ),
        )
        return self.last_insert_rowid()

    def get_by_id(self, analyst_id: int) -> Optional[Analyst]:
        """Fetch an analyst by primary key, or ``None``."""
        row = self.fetchone(
            "SELECT * FROM analysts WHERE analyst_id = ?;", (analyst_id,)
        )
        return _row_to_analyst(row) if row else None

    def get_many(self, analyst_ids: list[int]) -> dict[int, Analyst]:
        """Fetch several analysts at once, keyed by id (missing ids omitted)."""
        if not analyst_ids:
            return {}
        unique = sorted(set(analyst_ids))
        rows = self.fetchall(
            f"SELECT * FROM analysts WHERE analyst_id IN ({placeholders(unique)});",
            tuple(unique),
        )
        return {row["analyst_id"]: _row_to_analyst(row) for row in rows}

    def find_by_name_and_firm(self, display_name: str, firm: str) -> Optional[Analyst]:
        """Return the analyst with this exact (display_name, firm), if any."""
        row = self.fetchone(
            """
            SELECT * FROM analysts
            WHERE display_name = ? AND firm = ?
            ORDER BY analyst_id LIMIT 1;
            """,
            (display_name.strip(), firm.strip()),
        )
        return _row_to_analyst(row) if row else None

    def list_top(self, order_by: AnalystOrderField, limit: int) -> list[Analyst]:
        """Return up to ``limit`` analysts ordered descending by ``order_by``.

        Ties break on the other metric, then on ``analyst_id`` so the order is
        deterministic.
        """
        rows = self.fetchall(
            f"SELECT * FROM analysts ORDER BY {_ORDER_CLAUSES[order_by]} LIMIT ?;",
            (limit,),
        )
        return [_row_to_analyst(r) for r in rows]

    def update_rating(
        self,
        analyst_id: int,
        *,
        score: float,
        lifetime_calls: int,
        tier: AnalystTier,
        updated_at: datetime,
        expected_score: float,
        expected_calls: int,
    ) -> bool:
        """Apply a rating update only if the row still holds the values read.

        Returns:
            ``True`` if the row was updated, ``False`` if another writer
            changed ``score`` or ``lifetime_calls`` in between (or the
            analyst no longer exists).
        """
        touched = self.execute_rowcount(
            """
            UPDATE analysts SET
                score          = ?,
                lifetime_calls = ?,
                tier           = ?,
                updated_at     = ?
            WHERE analyst_id = ?
              AND score = ?
              AND lifetime_calls = ?;
            """,
            (
                score,
                lifetime_calls,
                tier.value,
                to_db_time(updated_at),
                analyst_id,
                expected_score,
                expected_calls,
            ),
        )
        return touched == 1

    def count(self) -> int:
        """Return the total number of analysts."""
        row = self.fetchone("SELECT COUNT(*) AS n FROM analysts;")
        assert row is not None
        return int(row["n"])


def _row_to_analyst(row: sqlite3.Row) -> Analyst:
    """Convert a ``sqlite3.Row`` from ``analysts`` to an ``Analyst``."""
    return Analyst(
        analyst_id=row["analyst_id"],
        display_name=row["display_name"],
        firm=row["firm"],
        specializations=json.loads(row["specializations"] or "[]"),
        score=row["score"],
        lifetime_calls=row["lifetime_calls"],
        tier=AnalystTier(row["tier"]),
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )
