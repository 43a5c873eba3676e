"""
Credibility-weighted consensus per ticker.

Each OPEN call on the ticker created within ``max_age_days`` votes for its
action with weight ``weight_floor + weight_span * score / 100``, using the
analyst's *current* score.  The action with the strictly greatest total
wins; any tie for the top (including BUY vs SELL) resolves to HOLD.
``confidence`` is the winning total over the grand total.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Optional

from analyst_tracker.config import AppConfig
from analyst_tracker.credibility.scoring import score_to_weight
from analyst_tracker.errors import InvalidArgumentError
from analyst_tracker.models.consensus import ConsensusParticipant, WeightedConsensus
from analyst_tracker.store.base import CredibilityStore
from analyst_tracker.taxonomy.rating_taxonomy import (
    RecommendationAction,
    RecommendationStatus,
)
from analyst_tracker.utils.time_utils import days_ago, ensure_utc, utcnow

logger = logging.getLogger(__name__)


class ConsensusAggregator:
    """Builds ``WeightedConsensus`` views from open recommendations."""

    def __init__(self, store: CredibilityStore, config: AppConfig) -> None:
        self.store = store
        self.config = config

    def get_weighted_consensus(
        self,
        ticker: str,
        max_age_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> WeightedConsensus:
        """Return the weighted consensus for ``ticker``.

        Raises:
            InvalidArgumentError: Empty ticker or negative ``max_age_days``.
        """
        symbol = (ticker or "").strip().upper()
        if not symbol:
            raise InvalidArgumentError("ticker must not be empty.")
        cfg = self.config.consensus
        age = cfg.default_max_age_days if max_age_days is None else max_age_days
        if age < 0:
            raise InvalidArgumentError(f"max_age_days must be >= 0, got {age}.")

        now = ensure_utc(now) if now is not None else utcnow()
        recs = self.store.query_recommendations(
            status=RecommendationStatus.OPEN,
            ticker=symbol,
            created_since=days_ago(now, age),
        )
        if not recs:
            return WeightedConsensus(ticker=symbol)

        analysts = self.store.get_analysts(sorted({r.analyst_id for r in recs}))
        totals = {action: 0.0 for action in RecommendationAction}
        participants: list[ConsensusParticipant] = []
        for rec in recs:
            analyst = analysts.get(rec.analyst_id)
            score = analyst.score if analyst is not None else cfg.missing_analyst_score
            weight = score_to_weight(score, cfg)
            totals[rec.action] += weight
            participants.append(
                ConsensusParticipant(
                    analyst_id=rec.analyst_id,
                    action=rec.action,
                    weight=weight,
                    score=score,
                )
            )

        total = sum(totals.values())
        best = max(totals.values())
        # Weights are float sums; equal totals can differ in the last bit.
        leaders = [
            action for action, w in totals.items()
            if math.isclose(w, best, rel_tol=1e-9, abs_tol=1e-12)
        ]
        consensus = leaders[0] if len(leaders) == 1 else RecommendationAction.HOLD

        result = WeightedConsensus(
            ticker=symbol,
            consensus=consensus,
            confidence=best / total if total > 0 else 0.0,
            action_weights=totals,
            participants=participants,
        )
        logger.debug(
            "Consensus %s: %s (%.3f) from %d call(s)",
            symbol, consensus.value, result.confidence, len(participants),
        )
        return result
