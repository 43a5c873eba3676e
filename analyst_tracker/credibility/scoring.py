"""
Pure scoring functions: outcome classification, the Elo-style rating update,
tier derivation and consensus weights.

Nothing here touches storage or the clock; every parameter arrives through
the config models, so the whole module is trivially unit-testable.

Outcome classification (alpha = abs_return - bench_return)
-----------------------------------------------------------
    BUY   alpha >= pos          → CORRECT
          alpha <= neg          → INCORRECT
          otherwise             → NEUTRAL
    SELL  alpha <= neg          → CORRECT
          alpha >= pos          → INCORRECT
          otherwise             → NEUTRAL
    HOLD  hold_lower < alpha < hold_upper → CORRECT
          otherwise             → NEUTRAL   (a HOLD is never INCORRECT)

Rating update
-------------
    freshness = exp(-days_since / freshness_decay_days)
    K         = k_base * freshness * (0.5 + 0.5 * confidence)
    expected  = 1 / (1 + 10 ** ((rating_center - score) / rating_scale))
    delta     = K * (outcome_value - expected)
    new_score = clamp(score + delta, min_score, max_score)

With the defaults (k_base 6, decay 180 days, center 50, scale 20) a score-50
analyst making a 0.7-confidence call that is CORRECT after 30 days moves to
about 52.16.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from analyst_tracker.config import (
    ConsensusConfig,
    OutcomeThresholds,
    ScoringConfig,
    TierConfig,
)
from analyst_tracker.taxonomy.rating_taxonomy import (
    AnalystTier,
    EvaluationOutcome,
    RecommendationAction,
)


@dataclass(frozen=True)
class Returns:
    """Realized returns of a call over its horizon (fractions, not percent)."""

    abs_return: float
    bench_return: float

    @property
    def alpha(self) -> float:
        return self.abs_return - self.bench_return


@dataclass(frozen=True)
class ScoreUpdate:
    """Every intermediate of one rating update, kept for logging and audit.

    Attributes:
        days_since:     Whole days between the call and its evaluation.
        freshness:      Time-decay multiplier in (0, 1].
        k:              Effective K-factor.
        expected:       Expected outcome value given the prior score.
        outcome_value:  Realized outcome value (1.0 / 0.5 / 0.0 by default).
        delta:          Signed score change before clamping.
        old_score:      Score before the update.
        new_score:      Clamped score after the update.
    """

    days_since:    int
    freshness:     float
    k:             float
    expected:      float
    outcome_value: float
    delta:         float
    old_score:     float
    new_score:     float


def compute_returns(p0: float, p1: float, bench0: float, bench1: float) -> Returns:
    """Return the ticker and benchmark fractional returns between two prices.

    Raises:
        ValueError: If either starting price is not positive.
    """
    if p0 <= 0 or bench0 <= 0:
        raise ValueError(f"starting prices must be positive (p0={p0}, bench0={bench0}).")
    return Returns(
        abs_return=(p1 - p0) / p0,
        bench_return=(bench1 - bench0) / bench0,
    )


def classify_outcome(
    action: RecommendationAction,
    alpha: float,
    thresholds: OutcomeThresholds,
) -> EvaluationOutcome:
    """Classify a matured call from its alpha."""
    if action == RecommendationAction.BUY:
        if alpha >= thresholds.pos:
            return EvaluationOutcome.CORRECT
        if alpha <= thresholds.neg:
            return EvaluationOutcome.INCORRECT
        return EvaluationOutcome.NEUTRAL

    if action == RecommendationAction.SELL:
        if alpha <= thresholds.neg:
            return EvaluationOutcome.CORRECT
        if alpha >= thresholds.pos:
            return EvaluationOutcome.INCORRECT
        return EvaluationOutcome.NEUTRAL

    if thresholds.hold_lower < alpha < thresholds.hold_upper:
        return EvaluationOutcome.CORRECT
    return EvaluationOutcome.NEUTRAL


def outcome_value(outcome: EvaluationOutcome, config: ScoringConfig) -> float:
    """Map an outcome to its Elo result value."""
    return config.outcome_values[outcome.value]


def freshness(days_since: int, decay_days: float) -> float:
    """Exponential time decay; a same-day evaluation has freshness 1.0."""
    return math.exp(-max(days_since, 0) / decay_days)


def k_factor(days_since: int, confidence: float, config: ScoringConfig) -> float:
    """Effective K: older and lower-confidence calls move the score less."""
    return (
        config.k_base
        * freshness(days_since, config.freshness_decay_days)
        * (0.5 + 0.5 * confidence)
    )


def expected_probability(score: float, config: ScoringConfig) -> float:
    """Logistic expectation of a correct call; strictly increasing in score."""
    return 1.0 / (1.0 + 10.0 ** ((config.rating_center - score) / config.rating_scale))


def clamp_score(score: float, config: ScoringConfig) -> float:
    return min(config.max_score, max(config.min_score, score))


def compute_score_update(
    score: float,
    outcome: EvaluationOutcome,
    confidence: float,
    days_since: int,
    config: ScoringConfig,
) -> ScoreUpdate:
    """Apply one Elo-style rating step.

    Args:
        score:      The analyst's current score.
        outcome:    Verdict on the evaluated call.
        confidence: The call's confidence in [0, 1].
        days_since: Whole days between ``t0`` and ``t1``.
        config:     Scoring parameters.

    Returns:
        ``ScoreUpdate`` with the clamped ``new_score`` and all intermediates.
    """
    fresh = freshness(days_since, config.freshness_decay_days)
    k = k_factor(days_since, confidence, config)
    expected = expected_probability(score, config)
    value = outcome_value(outcome, config)
    delta = k * (value - expected)
    return ScoreUpdate(
        days_since=days_since,
        freshness=fresh,
        k=k,
        expected=expected,
        outcome_value=value,
        delta=delta,
        old_score=score,
        new_score=clamp_score(score + delta, config),
    )


def calculate_tier(score: float, lifetime_calls: int, config: TierConfig) -> AnalystTier:
    """Derive the tier label.

    Analysts below ``min_calls_for_tier`` are NEW regardless of score.  An
    experienced analyst below the RISING cut-off is also labelled NEW.
    """
    if lifetime_calls < config.min_calls_for_tier:
        return AnalystTier.NEW
    if score >= config.top_tier:
        return AnalystTier.TOP_TIER
    if score >= config.rising:
        return AnalystTier.RISING
    return AnalystTier.NEW


def score_to_weight(score: float, config: ConsensusConfig) -> float:
    """Credibility weight of a call: ``floor + span * score / 100``."""
    return config.weight_floor + config.weight_span * (score / 100.0)
