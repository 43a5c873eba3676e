"""
Abstract base class for batch pipeline stages.

Every stage follows the same contract:
  1. Receive ``AppConfig`` (and optionally a ready ``CredibilityEngine``) at
     construction.
  2. ``run(**kwargs)`` is the sole public API.
  3. ``run()`` creates a ``RunMetadata`` record, calls ``_execute()``,
     and persists the run record with its final status.
  4. ``_execute()`` is the stage-specific implementation.

A stage that finishes but records per-item failures in ``run.error_count``
ends with ``status='partial'`` instead of ``'success'``.

Usage::

    class MyStage(PipelineStage):
        stage_name = "evaluate"

        def _execute(self, run: RunMetadata, **kwargs) -> int:
            return 42

    stage = MyStage(config=app_config)
    run = stage.run()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from analyst_tracker.config import AppConfig
from analyst_tracker.models.meta import RunMetadata
from analyst_tracker.utils.logging import item_context
from analyst_tracker.utils.time_utils import utcnow

if TYPE_CHECKING:
    from analyst_tracker.credibility.engine import CredibilityEngine

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """Abstract base for all pipeline stages.

    Attributes:
        stage_name: String identifier matching a valid ``RunMetadata.pipeline_stage``.
        config: The application configuration for this run.
        db_path: Path to the SQLite database (defaults to ``config.database.db_path``).
    """

    stage_name: str

    def __init__(
        self,
        config: AppConfig,
        db_path: Optional[str] = None,
        engine: Optional["CredibilityEngine"] = None,
    ) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path
        self._engine = engine
        self._owns_engine = engine is None

    @property
    def engine(self) -> "CredibilityEngine":
        """The engine this stage drives; built from config on first use."""
        if self._engine is None:
            from analyst_tracker.credibility.engine import CredibilityEngine
            from analyst_tracker.oracle.factory import build_price_oracle
            from analyst_tracker.store.sqlite_store import SqliteStore

            self._engine = CredibilityEngine(
                config=self.config,
                store=SqliteStore(
                    self.db_path,
                    wal_mode=self.config.database.wal_mode,
                    busy_timeout_ms=self.config.database.busy_timeout_ms,
                ),
                oracle=build_price_oracle(self.config.price_oracle),
            )
        return self._engine

    def close(self) -> None:
        """Close the engine if this stage built it."""
        if self._owns_engine and self._engine is not None:
            self._engine.close()
            self._engine = None

    def run(self, **kwargs) -> RunMetadata:
        """Execute this pipeline stage.

        Returns:
            ``RunMetadata`` with final ``status``, ``rows_processed``,
            ``error_count`` and ``finished_at`` set.

        Raises:
            Exception: Re-raises any exception from ``_execute()`` after
                recording ``status='failed'`` in the run record.
        """
        run = RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            config_snapshot=self.config.model_dump(mode="json"),
            started_at=utcnow(),
        )
        context = item_context(run_slug=run.run_slug)
        logger.info("Stage [%s] starting", self.stage_name, extra=context)

        try:
            rows = self._execute(run=run, **kwargs)
            run.status = "partial" if run.error_count else "success"
            run.rows_processed = rows
            run.finished_at = utcnow()
            logger.info(
                "Stage [%s] completed | status=%s rows=%d errors=%d",
                self.stage_name, run.status, rows, run.error_count,
                extra=context,
            )

        except Exception as exc:
            run.status = "failed"
            run.error_message = str(exc)
            run.finished_at = utcnow()
            logger.error(
                "Stage [%s] FAILED: %s", self.stage_name, exc, extra=context,
            )
            self._persist_run(run)
            raise

        self._persist_run(run)
        return run

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs) -> int:
        """Stage-specific implementation.

        Args:
            run: The in-progress ``RunMetadata`` record (mutable).
            **kwargs: Stage-specific parameters.

        Returns:
            Integer count of records processed.
        """
        ...

    def _persist_run(self, run: RunMetadata) -> None:
        """Insert or update the run record.

        Logs rather than raises: run persistence failure must not mask the
        original pipeline error.
        """
        try:
            from analyst_tracker.db.connection import get_connection
            from analyst_tracker.db.repositories.run_repo import RunMetadataRepository
            from analyst_tracker.db.schema import apply_schema

            with get_connection(
                self.db_path,
                wal_mode=self.config.database.wal_mode,
                busy_timeout_ms=self.config.database.busy_timeout_ms,
            ) as conn:
                apply_schema(conn)
                repo = RunMetadataRepository(conn)
                if run.run_id is None:
                    run.run_id = repo.insert_run(run)
                else:
                    repo.update_run(run)
        except Exception as exc:
            logger.error(
                "Failed to persist RunMetadata: %s", exc,
                extra=item_context(run_slug=run.run_slug),
            )
