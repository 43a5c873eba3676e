"""
EvaluateStage — run the evaluator as an audited batch job.

Intended to be triggered once a day by an external scheduler (cron, a
systemd timer, a hosted job runner)::

    analyst-tracker run-evaluator

Execution sequence
------------------
1. Evaluate every matured OPEN recommendation as of ``as_of`` (default now).
2. ``rows_processed`` = recommendations evaluated and closed.
3. ``error_count`` = items that failed; the run ends ``partial`` when > 0 and
   ``error_message`` carries the first few failure strings.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from analyst_tracker.credibility.evaluator import EvaluatorResult
from analyst_tracker.models.meta import RunMetadata
from analyst_tracker.pipeline.base import PipelineStage
from analyst_tracker.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

_MAX_ERRORS_IN_MESSAGE = 5


class EvaluateStage(PipelineStage):
    """Evaluate matured recommendations and update analyst ratings.

    Attributes:
        last_result: The ``EvaluatorResult`` of the most recent run, for
            callers that need the individual error strings.
    """

    stage_name = "evaluate"
    last_result: Optional[EvaluatorResult] = None

    def _execute(
        self,
        run: RunMetadata,
        as_of: Optional[datetime] = None,
        **kwargs,
    ) -> int:
        now = ensure_utc(as_of) if as_of is not None else utcnow()
        run.as_of = now

        result = self.engine.run_evaluator(now)
        self.last_result = result

        run.error_count = result.failed_count
        if result.errors:
            shown = result.errors[:_MAX_ERRORS_IN_MESSAGE]
            more = result.failed_count - len(shown)
            run.error_message = "; ".join(shown) + (f" (+{more} more)" if more else "")
        return result.evaluated_count
