"""
Logging setup for the analyst credibility tracker.

``configure_logging(config)`` is called once by each CLI command; library
modules only ever do ``logger = logging.getLogger(__name__)``.

Per-item context
----------------
The evaluator and the pipeline stages attach the item they are working on
through ``extra=item_context(...)``.  Both formatters surface those fields,
so a failed evaluation in a batch of hundreds can be traced to its call::

    2025-02-01T06:00:00Z [WARNING] analyst_tracker.credibility.evaluator: Recommendation 12 left OPEN: ... [recommendation_id=12 analyst_id=3 ticker=AAPL]

    {"ts": "2025-02-01T06:00:00Z", "level": "WARNING", "logger": "...",
     "msg": "...", "recommendation_id": 12, "analyst_id": 3, "ticker": "AAPL"}

Console output goes to stderr; stdout is reserved for the CLI's tables.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from analyst_tracker.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Record attributes copied into output when a caller sets them via ``extra=``.
CONTEXT_FIELDS: tuple[str, ...] = ("run_slug", "recommendation_id", "analyst_id", "ticker")


def item_context(
    recommendation_id: Optional[int] = None,
    analyst_id: Optional[int] = None,
    ticker: Optional[str] = None,
    run_slug: Optional[str] = None,
) -> dict[str, Any]:
    """Build an ``extra=`` mapping, leaving out fields that are ``None``."""
    fields = {
        "run_slug": run_slug,
        "recommendation_id": recommendation_id,
        "analyst_id": analyst_id,
        "ticker": ticker,
    }
    return {k: v for k, v in fields.items() if v is not None}


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class _UtcFormatter(logging.Formatter):
    converter = time.gmtime


class _ContextFormatter(_UtcFormatter):
    """Plain-text lines with a trailing ``[key=value ...]`` context block."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if not context:
            return line
        block = " ".join(f"{k}={v}" for k, v in context.items())
        return f"{line} [{block}]"


class _JsonFormatter(_UtcFormatter):
    """One JSON object per line: ts, level, logger, msg, then any context."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_record_context(record))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonFormatter()
    return _ContextFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def configure_logging(config: "LoggingConfig") -> None:
    """Install stderr (and, if ``config.log_file`` is set, file) handlers on the root logger.

    Replaces any handlers from a previous call, so repeated CLI invocations in
    one process (tests) do not duplicate output.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = build_formatter(config.json_format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
