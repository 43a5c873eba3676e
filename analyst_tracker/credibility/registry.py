"""
Analyst registry: create and read analyst profiles, leaderboards, and the
profile view with a recent-performance summary.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from analyst_tracker.config import AppConfig
from analyst_tracker.credibility.scoring import calculate_tier
from analyst_tracker.errors import InvalidArgumentError, NotFoundError
from analyst_tracker.models.analyst import Analyst
from analyst_tracker.models.consensus import AnalystProfile, PerformanceSummary
from analyst_tracker.models.recommendation import Evaluation, Recommendation
from analyst_tracker.store.base import CredibilityStore
from analyst_tracker.taxonomy.rating_taxonomy import AnalystOrderField, EvaluationOutcome
from analyst_tracker.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class AnalystRegistry:
    """Analyst profile operations over a ``CredibilityStore``."""

    def __init__(self, store: CredibilityStore, config: AppConfig) -> None:
        self.store = store
        self.config = config

    def create_analyst(
        self,
        display_name: str,
        firm: str,
        specializations: Optional[list[str]] = None,
        initial_score: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Create a profile and return its id.

        Raises:
            InvalidArgumentError: Empty name/firm, or ``initial_score``
                outside the configured score bounds.
        """
        scoring = self.config.scoring
        score = scoring.initial_score if initial_score is None else float(initial_score)
        if not scoring.min_score <= score <= scoring.max_score:
            raise InvalidArgumentError(
                f"initial_score must be in [{scoring.min_score:g}, "
                f"{scoring.max_score:g}], got {score}."
            )

        now = ensure_utc(now) if now is not None else utcnow()
        try:
            analyst = Analyst(
                display_name=display_name,
                firm=firm,
                specializations=specializations or [],
                score=score,
                lifetime_calls=0,
                tier=calculate_tier(score, 0, self.config.tiers),
                created_at=now,
                updated_at=now,
            )
        except ValidationError as exc:
            raise InvalidArgumentError(f"Invalid analyst: {exc}") from exc

        analyst_id = self.store.insert_analyst(analyst)
        logger.info(
            "Created analyst %d: %s (%s) score=%.1f",
            analyst_id, analyst.display_name, analyst.firm, score,
        )
        return analyst_id

    def get_analyst(self, analyst_id: int) -> Analyst:
        """Return the analyst or raise ``NotFoundError``."""
        analyst = self.store.get_analyst(analyst_id)
        if analyst is None:
            raise NotFoundError("analyst", analyst_id)
        return analyst

    def find_analyst(self, display_name: str, firm: str) -> Optional[Analyst]:
        return self.store.find_analyst(display_name, firm)

    def list_top_analysts(
        self,
        limit: int = 10,
        order_by: AnalystOrderField | str = AnalystOrderField.SCORE,
    ) -> list[Analyst]:
        """Return up to ``limit`` analysts sorted descending by ``order_by``.

        Raises:
            InvalidArgumentError: Non-positive ``limit`` or unknown ``order_by``.
        """
        if limit <= 0:
            raise InvalidArgumentError(f"limit must be positive, got {limit}.")
        try:
            order_field = AnalystOrderField(order_by)
        except ValueError:
            raise InvalidArgumentError(
                f"order_by must be one of {[f.value for f in AnalystOrderField]}, "
                f"got '{order_by}'."
            ) from None
        return self.store.list_analysts(order_field, limit)

    def get_analyst_profile(self, analyst_id: int, recent_limit: int = 20) -> AnalystProfile:
        """Return the analyst with their latest calls and a performance summary.

        Raises:
            NotFoundError: Unknown analyst.
            InvalidArgumentError: Non-positive ``recent_limit``.
        """
        if recent_limit <= 0:
            raise InvalidArgumentError(f"recent_limit must be positive, got {recent_limit}.")
        analyst = self.get_analyst(analyst_id)
        recent = self.store.query_recommendations(
            analyst_id=analyst_id, newest_first=True, limit=recent_limit
        )
        evaluations = self.store.get_evaluations(
            [r.recommendation_id for r in recent if r.recommendation_id is not None]
        )
        return AnalystProfile(
            analyst=analyst,
            recent_recommendations=recent,
            evaluations=evaluations,
            performance=build_performance_summary(recent, evaluations),
        )


def build_performance_summary(
    recommendations: list[Recommendation],
    evaluations: list[Evaluation],
) -> PerformanceSummary:
    """Summarize a set of calls and whichever of them have been evaluated.

    Calls without an evaluation count towards ``open_count`` only.
    """
    by_rec = {e.recommendation_id: e for e in evaluations}
    calls_by_action: Counter[str] = Counter()
    outcomes_by_action: dict[str, Counter[str]] = defaultdict(Counter)
    correct = 0
    total_alpha = 0.0
    evaluated = 0
    open_count = 0

    for rec in recommendations:
        evaluation = by_rec.get(rec.recommendation_id)  # type: ignore[arg-type]
        if evaluation is None:
            open_count += 1
            continue
        evaluated += 1
        calls_by_action[rec.action.value] += 1
        outcomes_by_action[rec.action.value][evaluation.outcome.value] += 1
        total_alpha += evaluation.alpha
        if evaluation.outcome == EvaluationOutcome.CORRECT:
            correct += 1

    return PerformanceSummary(
        evaluated_count=evaluated,
        open_count=open_count,
        win_rate=correct / evaluated if evaluated else 0.0,
        avg_alpha=total_alpha / evaluated if evaluated else 0.0,
        calls_by_action=dict(calls_by_action),
        outcomes_by_action={k: dict(v) for k, v in outcomes_by_action.items()},
    )
