"""
Error taxonomy for the credibility engine.

Every error raised on purpose by ``analyst_tracker`` derives from
``AnalystTrackerError`` so callers (CLI, an HTTP layer) can catch the family
in one place.  Each subclass also inherits the closest builtin so generic
handlers (``except ValueError``) keep working.

  InvalidArgumentError   malformed input; nothing persisted.
  NotFoundError          referenced analyst / recommendation does not exist.
  PriceUnavailableError  the price oracle could not resolve symbol + instant.
  ConflictError          a transactional write lost a race; retry next run.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional


class AnalystTrackerError(Exception):
    """Base class for all credibility-engine errors."""


class InvalidArgumentError(AnalystTrackerError, ValueError):
    """Raised when an input value is malformed or out of range."""


class NotFoundError(AnalystTrackerError, LookupError):
    """Raised when a referenced record does not exist.

    Attributes:
        entity:    Record kind, e.g. ``"analyst"``.
        entity_id: The identifier that was looked up.
    """

    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found.")


class PriceUnavailableError(AnalystTrackerError, RuntimeError):
    """Raised when no usable price exists for a symbol at an instant.

    Attributes:
        symbol: Ticker or benchmark symbol that was requested.
        when:   Instant the price was requested for.
        reason: Short description of the underlying failure.
    """

    def __init__(
        self,
        symbol: str,
        when: Optional[datetime] = None,
        reason: str = "",
    ) -> None:
        self.symbol = symbol
        self.when = when
        self.reason = reason
        at = f" at {when.date().isoformat()}" if when is not None else ""
        suffix = f": {reason}" if reason else ""
        super().__init__(f"No price available for {symbol}{at}{suffix}")


class ConflictError(AnalystTrackerError, RuntimeError):
    """Raised when an atomic read-modify-write loses a concurrent race."""
