"""
Run metadata — the audit log for batch stages.

``RunMetadata`` records one execution of a pipeline stage (evaluator batch,
analyst seeding): its status, how many records it processed, any error, and a
``config_snapshot`` of the full ``AppConfig`` so a run's scoring parameters
can always be recovered.

It is the only pydantic model in the package that is NOT frozen — its
``status``, ``rows_processed``, ``error_message`` and ``finished_at`` fields
are updated as the stage executes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

VALID_PIPELINE_STAGES = frozenset({"evaluate", "seed_analysts"})
VALID_RUN_STATUSES = frozenset({"started", "success", "partial", "failed"})


class RunMetadata(BaseModel):
    """Pipeline execution audit record.

    Attributes:
        run_id: Auto-assigned DB PK; ``None`` before insertion.
        run_slug: UUID4 string uniquely identifying this run.
        pipeline_stage: Which stage produced this run record.
        status: Current execution status. ``partial`` means the stage finished
            but some items failed (e.g. unpriceable recommendations).
        as_of: Logical instant the stage ran for (evaluator ``now``).
        config_snapshot: Full ``AppConfig.model_dump()`` at run start time.
        rows_processed: Count of records successfully processed.
        error_count: Count of per-item failures collected during the run.
        error_message: Error description or summary of item failures.
        started_at: UTC datetime when the run began.
        finished_at: UTC datetime when the run completed or failed.
    """

    model_config = ConfigDict(frozen=False)

    run_id: Optional[int] = None
    run_slug: str
    pipeline_stage: str
    status: str = "started"
    as_of: Optional[datetime] = None
    config_snapshot: dict[str, Any]
    rows_processed: int = 0
    error_count: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator("pipeline_stage")
    @classmethod
    def validate_pipeline_stage(cls, v: str) -> str:
        if v not in VALID_PIPELINE_STAGES:
            raise ValueError(
                f"Unknown pipeline_stage '{v}'. Must be one of {sorted(VALID_PIPELINE_STAGES)}."
            )
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in VALID_RUN_STATUSES:
            raise ValueError(
                f"Unknown status '{v}'. Must be one of {sorted(VALID_RUN_STATUSES)}."
            )
        return v
