"""
Read models returned by the consensus aggregator and the analyst registry.

None of these are persisted; they are assembled on demand from analysts,
recommendations and evaluations.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from analyst_tracker.models.analyst import Analyst
from analyst_tracker.models.recommendation import Evaluation, Recommendation
from analyst_tracker.taxonomy.rating_taxonomy import RecommendationAction


class ConsensusParticipant(BaseModel):
    """One open call's contribution to a ticker consensus."""

    model_config = ConfigDict(frozen=True)

    analyst_id: int
    action: RecommendationAction
    weight: float
    score: float


class WeightedConsensus(BaseModel):
    """Credibility-weighted BUY/HOLD/SELL opinion for a ticker.

    Attributes:
        ticker: Symbol the consensus was computed for.
        consensus: Action with the strictly greatest total weight (ties → HOLD).
        confidence: Winning weight / total weight; ``0.0`` when no calls qualify.
        action_weights: Total weight per action.
        participants: Per-call breakdown.
    """

    model_config = ConfigDict(frozen=True)

    ticker: str
    consensus: RecommendationAction = RecommendationAction.HOLD
    confidence: float = 0.0
    action_weights: dict[RecommendationAction, float] = {}
    participants: list[ConsensusParticipant] = []


class PerformanceSummary(BaseModel):
    """Track-record statistics over an analyst's recent evaluated calls.

    Attributes:
        evaluated_count: Calls in the window that have an evaluation.
        open_count: Calls in the window still awaiting evaluation.
        win_rate: Share of evaluated calls judged CORRECT.
        avg_alpha: Mean alpha over evaluated calls.
        calls_by_action: Evaluated call count per action.
        outcomes_by_action: action → outcome → count.
    """

    model_config = ConfigDict(frozen=True)

    evaluated_count: int = 0
    open_count: int = 0
    win_rate: float = 0.0
    avg_alpha: float = 0.0
    calls_by_action: dict[str, int] = {}
    outcomes_by_action: dict[str, dict[str, int]] = {}


class AnalystProfile(BaseModel):
    """Analyst record with recent calls, their evaluations, and a summary."""

    model_config = ConfigDict(frozen=True)

    analyst: Analyst
    recent_recommendations: list[Recommendation] = []
    evaluations: list[Evaluation] = []
    performance: PerformanceSummary = PerformanceSummary()
