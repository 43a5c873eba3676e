"""
Rating taxonomy for analyst calls and their evaluation.

Four closed vocabularies describe the credibility engine's state:
  - ``RecommendationAction``  — the *call*: what did the analyst say?
  - ``RecommendationStatus``  — the *lifecycle*: is the call still open?
  - ``EvaluationOutcome``     — the *verdict*: was the call right?
  - ``AnalystTier``           — the *label*: how credible is the analyst?

``AnalystOrderField`` enumerates the columns a leaderboard may sort by.

Usage example::

    from analyst_tracker.taxonomy.rating_taxonomy import RecommendationAction

    action = RecommendationAction.parse("buy")   # RecommendationAction.BUY

This module has NO imports from any other ``analyst_tracker`` package.
"""

from enum import StrEnum


class RecommendationAction(StrEnum):
    """Direction of an analyst call on a single ticker."""

    BUY = "BUY"
    """Analyst expects the ticker to outperform its benchmark."""

    HOLD = "HOLD"
    """Analyst expects the ticker to track its benchmark closely."""

    SELL = "SELL"
    """Analyst expects the ticker to underperform its benchmark."""

    @classmethod
    def parse(cls, value: "str | RecommendationAction") -> "RecommendationAction":
        """Parse a case-insensitive action string.

        Raises:
            ValueError: If ``value`` is not one of BUY, HOLD, SELL.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(
                f"action must be one of {[a.value for a in cls]}, got '{value}'."
            ) from None


class RecommendationStatus(StrEnum):
    """Lifecycle state. OPEN → CLOSED is one-way; CLOSED is terminal."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class EvaluationOutcome(StrEnum):
    """Verdict on a matured recommendation."""

    CORRECT = "CORRECT"
    NEUTRAL = "NEUTRAL"
    INCORRECT = "INCORRECT"


class AnalystTier(StrEnum):
    """Derived credibility label. Never stored independently of score/calls."""

    NEW = "NEW"
    """Fewer than the minimum evaluated calls, or a score below RISING."""

    RISING = "RISING"
    """Experienced analyst with a score in the RISING band."""

    TOP_TIER = "TOP_TIER"
    """Experienced analyst with a score at or above the TOP_TIER cut-off."""


class AnalystOrderField(StrEnum):
    """Sortable leaderboard columns (always descending)."""

    SCORE = "score"
    LIFETIME_CALLS = "lifetime_calls"
