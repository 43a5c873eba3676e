"""
Repository for ``run_metadata`` — the audit trail of batch stage executions.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from analyst_tracker.db.repositories.base import BaseRepository, from_db_time, to_db_time
from analyst_tracker.models.meta import RunMetadata

logger = logging.getLogger(__name__)


class RunMetadataRepository(BaseRepository):
    """Read/write access to ``run_metadata``."""

    def insert_run(self, run: RunMetadata) -> int:
        """Insert a new run metadata record and return its ``run_id``.

        Args:
            run: The ``RunMetadata`` to persist.

        Returns:
            The newly assigned ``run_id``.
        """
        self.execute(
            """
            INSERT INTO run_metadata (
                run_slug, pipeline_stage, status, as_of, config_snapshot,
                rows_processed, error_count, error_message,
                started_at, finished_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                run.run_slug,
                run.pipeline_stage,
                run.status,
                to_db_time(run.as_of) if run.as_of else None,
                json.dumps(run.config_snapshot, default=str),
                run.rows_processed,
                run.error_count,
                run.error_message,
                to_db_time(run.started_at),
                to_db_time(run.finished_at) if run.finished_at else None,
            ),
        )
        return self.last_insert_rowid()

    def update_run(self, run: RunMetadata) -> None:
        """Update the mutable fields of an existing run record.

        Raises:
            ValueError: If ``run.run_id`` is ``None``.
        """
        if run.run_id is None:
            raise ValueError("Cannot update RunMetadata without a run_id.")
        self.execute(
            """
            UPDATE run_metadata SET
                status         = ?,
                rows_processed = ?,
                error_count    = ?,
                error_message  = ?,
                finished_at    = ?
            WHERE run_id = ?;
            """,
            (
                run.status,
                run.rows_processed,
                run.error_count,
                run.error_message,
                to_db_time(run.finished_at) if run.finished_at else None,
                run.run_id,
            ),
        )

    def get_recent_runs(
        self, pipeline_stage: Optional[str] = None, limit: int = 20
    ) -> list[RunMetadata]:
        """Fetch recent run records, most recent first, optionally by stage."""
        if pipeline_stage:
            rows = self.fetchall(
                """
                SELECT * FROM run_metadata
                WHERE pipeline_stage = ?
                ORDER BY started_at DESC LIMIT ?;
                """,
                (pipeline_stage, limit),
            )
        else:
            rows = self.fetchall(
                "SELECT * FROM run_metadata ORDER BY started_at DESC LIMIT ?;",
                (limit,),
            )
        return [_row_to_run(r) for r in rows]


def _row_to_run(row: sqlite3.Row) -> RunMetadata:
    return RunMetadata(
        run_id=row["run_id"],
        run_slug=row["run_slug"],
        pipeline_stage=row["pipeline_stage"],
        status=row["status"],
        as_of=from_db_time(row["as_of"]) if row["as_of"] else None,
        config_snapshot=json.loads(row["config_snapshot"]),
        rows_processed=row["rows_processed"],
        error_count=row["error_count"],
        error_message=row["error_message"],
        started_at=from_db_time(row["started_at"]),
        finished_at=from_db_time(row["finished_at"]) if row["finished_at"] else None,
    )
