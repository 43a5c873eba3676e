"""
SeedAnalystsStage — load the analyst seed file into the analysts table.

Execution sequence
------------------
1. Locate the seed file (``--file`` or ``config.data.analysts_seed_file``).
2. Validate every entry; any violation fails the stage before writing.
3. Create analysts not already present (same display_name and firm).
4. ``rows_processed`` = analysts created (or that would be, for a dry run).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from analyst_tracker.credibility.seed_loader import SeedResult, load_seed_file, seed_analysts
from analyst_tracker.models.meta import RunMetadata
from analyst_tracker.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class SeedAnalystsStage(PipelineStage):
    """Seed analyst profiles from JSON."""

    stage_name = "seed_analysts"
    last_result: Optional[SeedResult] = None

    def _execute(
        self,
        run: RunMetadata,
        seed_path: Optional[Path] = None,
        dry_run: bool = False,
        **kwargs,
    ) -> int:
        path = Path(seed_path or self.config.data.analysts_seed_file)
        records = load_seed_file(path)
        logger.info("Loaded %d seed analyst(s) from %s", len(records), path)

        result = seed_analysts(self.engine.registry, records, dry_run=dry_run)
        self.last_result = result
        return len(result.created)
