"""
Analyst seed loader: JSON → analysts table.

Seed file format (``config/analysts/seed_analysts.json``)::

    [
      {"display_name": "David Kostin", "firm": "Goldman Sachs",
       "specializations": ["Financials"], "initial_score": 55.0},
      ...
    ]

``specializations`` and ``initial_score`` are optional.

Validation rules
----------------
- The file must contain a JSON array of objects.
- ``display_name`` and ``firm`` are required and non-empty.
- ``specializations`` must be a list of strings when present.
- ``initial_score`` must be numeric and inside the configured score bounds.
- A (display_name, firm) pair may appear only once in the file.

All entries are validated before anything is written; every violation is
reported in one ``InvalidArgumentError``.  Analysts already present (same
display_name and firm) are skipped, so seeding is idempotent.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from analyst_tracker.config import ScoringConfig
from analyst_tracker.credibility.registry import AnalystRegistry
from analyst_tracker.errors import InvalidArgumentError

logger = logging.getLogger(__name__)


@dataclass
class SeedResult:
    """What a seeding pass did (or would do, for a dry run)."""

    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    analyst_ids: list[int] = field(default_factory=list)
    dry_run: bool = False


def load_seed_file(path: Path) -> list[dict[str, Any]]:
    """Read and parse a seed file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        InvalidArgumentError: If it is not a JSON array.
    """
    if not path.exists():
        raise FileNotFoundError(
            f"Analyst seed file not found: {path}. "
            "Run from the project root or pass --file."
        )
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidArgumentError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise InvalidArgumentError(f"{path} must contain a JSON array of analysts.")
    return data


def validate_seed_records(records: list[Any], scoring: ScoringConfig) -> list[str]:
    """Return a list of human-readable violations (empty when valid)."""
    errors: list[str] = []
    seen: set[tuple[str, str]] = set()

    for i, rec in enumerate(records):
        if not isinstance(rec, dict):
            errors.append(f"Entry {i}: expected an object, got {type(rec).__name__}.")
            continue

        name = rec.get("display_name")
        firm = rec.get("firm")
        if not isinstance(name, str) or not name.strip():
            errors.append(f"Entry {i}: missing 'display_name'.")
        if not isinstance(firm, str) or not firm.strip():
            errors.append(f"Entry {i}: missing 'firm'.")

        specs = rec.get("specializations", [])
        if not isinstance(specs, list) or not all(isinstance(s, str) for s in specs):
            errors.append(f"Entry {i}: 'specializations' must be a list of strings.")

        score = rec.get("initial_score")
        if score is not None:
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                errors.append(f"Entry {i}: 'initial_score' must be a number.")
            elif not scoring.min_score <= score <= scoring.max_score:
                errors.append(
                    f"Entry {i}: initial_score {score} outside "
                    f"[{scoring.min_score:g}, {scoring.max_score:g}]."
                )

        if isinstance(name, str) and isinstance(firm, str):
            key = (name.strip(), firm.strip())
            if key in seen:
                errors.append(f"Entry {i}: duplicate analyst {key[0]} ({key[1]}).")
            seen.add(key)

    return errors


def seed_analysts(
    registry: AnalystRegistry,
    records: list[Any],
    dry_run: bool = False,
) -> SeedResult:
    """Validate ``records`` and create every analyst not already present.

    Raises:
        InvalidArgumentError: If any record fails validation; nothing is
            written in that case.
    """
    errors = validate_seed_records(records, registry.config.scoring)
    if errors:
        raise InvalidArgumentError(
            f"{len(errors)} invalid seed entr{'y' if len(errors) == 1 else 'ies'}:\n  "
            + "\n  ".join(errors)
        )

    result = SeedResult(dry_run=dry_run)
    for rec in records:
        name = rec["display_name"].strip()
        firm = rec["firm"].strip()
        label = f"{name} ({firm})"

        if registry.find_analyst(name, firm) is not None:
            result.skipped.append(label)
            logger.debug("Seed: %s already exists; skipping.", label)
            continue

        result.created.append(label)
        if dry_run:
            continue
        result.analyst_ids.append(
            registry.create_analyst(
                name,
                firm,
                specializations=rec.get("specializations") or [],
                initial_score=rec.get("initial_score"),
            )
        )

    logger.info(
        "Seed analysts%s: %d created, %d skipped",
        " (dry run)" if dry_run else "", len(result.created), len(result.skipped),
    )
    return result
