"""
Analyst profile model.

An ``Analyst`` is the only shared mutable record in the engine: its ``score``,
``lifetime_calls``, ``tier`` and ``updated_at`` change each time one of the
analyst's recommendations is evaluated.  The pydantic model itself is frozen;
updates produce a new instance via ``model_copy(update=...)`` and are written
back inside a store transaction.

``tier`` is persisted for cheap leaderboard reads but is always recomputed
from ``score`` and ``lifetime_calls`` (see ``credibility.scoring.calculate_tier``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from analyst_tracker.taxonomy.rating_taxonomy import AnalystTier


class Analyst(BaseModel):
    """A sell-side (or independent) analyst whose calls are tracked.

    Attributes:
        analyst_id: Auto-assigned DB PK; ``None`` before insertion.
        display_name: Human-readable analyst name.
        firm: Employer / publishing firm.
        specializations: Optional list of sectors the analyst covers.
        score: Credibility rating in [0, 100]; new analysts start at 50.
        lifetime_calls: Number of evaluated recommendations.
        tier: Derived credibility label.
        created_at: UTC instant the profile was created (immutable).
        updated_at: UTC instant of the last mutation.
    """

    model_config = ConfigDict(frozen=True)

    analyst_id: Optional[int] = None
    display_name: str
    firm: str
    specializations: list[str] = []
    score: float = 50.0
    lifetime_calls: int = 0
    tier: AnalystTier = AnalystTier.NEW
    created_at: datetime
    updated_at: datetime

    @field_validator("display_name", "firm")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty.")
        return v.strip()

    @field_validator("score")
    @classmethod
    def validate_score_range(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"score must be in [0, 100], got {v}.")
        return v

    @field_validator("lifetime_calls")
    @classmethod
    def validate_calls(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"lifetime_calls must be >= 0, got {v}.")
        return v

    @field_validator("specializations")
    @classmethod
    def strip_specializations(cls, v: list[str]) -> list[str]:
        return [s.strip() for s in v if s and s.strip()]
