"""
Recommendation and evaluation models.

``Recommendation`` is a timestamped BUY/HOLD/SELL call pinned to an entry
price (``p0``) and a comparison benchmark at creation.  Its only mutable
attribute is ``status`` (OPEN → CLOSED, one-way), changed by the evaluator in
the same transaction that writes the matching ``Evaluation``.

``Evaluation`` is the immutable audit record of one matured call: realized
returns, alpha, the outcome verdict, and the score delta applied to the
analyst.  Exactly one exists per CLOSED recommendation.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from analyst_tracker.taxonomy.rating_taxonomy import (
    EvaluationOutcome,
    RecommendationAction,
    RecommendationStatus,
)


class Recommendation(BaseModel):
    """An analyst call on a single ticker.

    Attributes:
        recommendation_id: Auto-assigned DB PK; ``None`` before insertion.
        analyst_id: Weak reference to ``analysts.analyst_id``.
        ticker: Upper-cased instrument symbol.
        action: ``BUY``, ``HOLD`` or ``SELL``.
        confidence: Analyst conviction in [0, 1].
        horizon_days: Days after ``t0`` at which the call becomes evaluable.
        target_price: Optional stated price target.
        note: Optional free-text rationale.
        sector: Sector used to pick the benchmark, if supplied.
        t0: UTC instant the call was recorded.
        p0: Ticker price at ``t0`` (fetched once).
        benchmark: Comparison index symbol chosen at creation.
        status: ``OPEN`` until evaluated, then ``CLOSED``.
        created_at: UTC insertion instant.
    """

    model_config = ConfigDict(frozen=True)

    recommendation_id: Optional[int] = None
    analyst_id: int
    ticker: str
    action: RecommendationAction
    confidence: float = 0.7
    horizon_days: int = 30
    target_price: Optional[float] = None
    note: Optional[str] = None
    sector: Optional[str] = None
    t0: datetime
    p0: float
    benchmark: str
    status: RecommendationStatus = RecommendationStatus.OPEN
    created_at: datetime

    @field_validator("ticker", "benchmark")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("symbol must not be empty.")
        return v.strip().upper()

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {v}.")
        return v

    @field_validator("horizon_days")
    @classmethod
    def validate_horizon(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"horizon_days must be >= 1, got {v}.")
        return v

    @field_validator("p0")
    @classmethod
    def validate_entry_price(cls, v: float) -> float:
        if not v > 0:
            raise ValueError(f"p0 must be positive, got {v}.")
        return v

    @field_validator("target_price")
    @classmethod
    def validate_target(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"target_price must be positive, got {v}.")
        return v

    @property
    def is_open(self) -> bool:
        return self.status == RecommendationStatus.OPEN


class Evaluation(BaseModel):
    """Immutable verdict on one matured recommendation.

    Attributes:
        evaluation_id: Auto-assigned DB PK; ``None`` before insertion.
        recommendation_id: FK to the evaluated recommendation (unique).
        horizon_days: Copied from the recommendation for audit.
        t1: Evaluation instant.
        p1: Ticker price at ``t1``.
        bench_return: Fractional benchmark return between ``t0`` and ``t1``.
        abs_return: Fractional ticker return between ``t0`` and ``t1``.
        alpha: ``abs_return - bench_return``.
        outcome: Classification of the call.
        score_delta: Signed change applied to the analyst score (pre-clamp).
        created_at: UTC insertion instant.
    """

    model_config = ConfigDict(frozen=True)

    evaluation_id: Optional[int] = None
    recommendation_id: int
    horizon_days: int
    t1: datetime
    p1: float
    bench_return: float
    abs_return: float
    alpha: float
    outcome: EvaluationOutcome
    score_delta: float
    created_at: datetime

    @model_validator(mode="after")
    def validate_alpha(self) -> "Evaluation":
        expected = self.abs_return - self.bench_return
        if not math.isclose(self.alpha, expected, rel_tol=1e-9, abs_tol=1e-12):
            raise ValueError(
                f"alpha ({self.alpha}) must equal abs_return - bench_return ({expected})."
            )
        return self
