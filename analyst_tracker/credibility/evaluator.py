"""
Batch evaluator: scores matured OPEN recommendations and updates analysts.

Flow for one run at instant ``now``
-----------------------------------
  1. Load every OPEN recommendation.
  2. Skip those whose horizon has not elapsed: whole days since ``t0``
     (floored) must be at least ``horizon_days``.
  3. Group the eligible calls by analyst.  Groups run concurrently on a
     bounded thread pool; the calls within one group run one after another
     so an analyst's score is updated sequentially.
  4. Per call: fetch ``p1`` and both benchmark prices, classify, compute the
     rating step, then commit in ONE store transaction:
       insert Evaluation + close the recommendation + update the analyst.
  5. Any failure is collected as an error string and leaves the call OPEN;
     the next run retries it.

Lost updates are impossible: the transaction re-reads the recommendation
(must still be OPEN) and the analyst, and every write is conditional on the
values it read.  A failed condition raises ``ConflictError``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from analyst_tracker.config import AppConfig
from analyst_tracker.credibility.scoring import (
    ScoreUpdate,
    calculate_tier,
    classify_outcome,
    compute_returns,
    compute_score_update,
)
from analyst_tracker.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    PriceUnavailableError,
)
from analyst_tracker.models.recommendation import Evaluation, Recommendation
from analyst_tracker.oracle.base import PriceOracle
from analyst_tracker.store.base import CredibilityStore, StoreTransaction
from analyst_tracker.taxonomy.rating_taxonomy import RecommendationStatus
from analyst_tracker.utils.logging import item_context
from analyst_tracker.utils.time_utils import ensure_utc, utcnow, whole_days_between

logger = logging.getLogger(__name__)


@dataclass
class EvaluatorResult:
    """Outcome of one evaluator run.

    Attributes:
        evaluated_count: Recommendations evaluated and closed in this run.
        errors:          One ``"Failed to evaluate recommendation <id>: ..."``
                         string per failed item, ordered by recommendation id.
        skipped_count:   OPEN recommendations whose horizon has not elapsed.
    """

    evaluated_count: int = 0
    errors: list[str] = field(default_factory=list)
    skipped_count: int = 0

    @property
    def failed_count(self) -> int:
        return len(self.errors)


def is_mature(rec: Recommendation, now: datetime) -> bool:
    """True once ``horizon_days`` whole days have passed since ``t0``."""
    return whole_days_between(rec.t0, now) >= rec.horizon_days


class Evaluator:
    """Evaluates matured recommendations against realized prices."""

    def __init__(
        self,
        store: CredibilityStore,
        oracle: PriceOracle,
        config: AppConfig,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.config = config

    def run(self, now: Optional[datetime] = None) -> EvaluatorResult:
        """Evaluate every matured OPEN recommendation as of ``now``."""
        now = ensure_utc(now) if now is not None else utcnow()
        open_recs = self.store.query_recommendations(status=RecommendationStatus.OPEN)

        groups: dict[int, list[Recommendation]] = defaultdict(list)
        skipped = 0
        for rec in open_recs:
            if is_mature(rec, now):
                groups[rec.analyst_id].append(rec)
            else:
                skipped += 1

        eligible = sum(len(g) for g in groups.values())
        logger.info(
            "Evaluator run at %s: %d open, %d eligible across %d analyst(s), %d not yet due",
            now.isoformat(), len(open_recs), eligible, len(groups), skipped,
        )

        result = EvaluatorResult(skipped_count=skipped)
        if not groups:
            return result

        failures: list[tuple[int, str]] = []
        workers = min(self.config.evaluator.max_workers, len(groups))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="evaluator") as pool:
            futures = [
                pool.submit(self._evaluate_group, recs, now) for recs in groups.values()
            ]
            for future in as_completed(futures):
                evaluated, group_failures = future.result()
                result.evaluated_count += evaluated
                failures.extend(group_failures)

        result.errors = [msg for _, msg in sorted(failures)]
        logger.info(
            "Evaluator run finished: %d evaluated, %d failed, %d skipped",
            result.evaluated_count, result.failed_count, result.skipped_count,
        )
        return result

    def _evaluate_group(
        self, recs: list[Recommendation], now: datetime
    ) -> tuple[int, list[tuple[int, str]]]:
        """Evaluate one analyst's calls oldest first; collect failures."""
        evaluated = 0
        failures: list[tuple[int, str]] = []
        for rec in recs:
            rec_id = rec.recommendation_id or 0
            context = item_context(rec_id, rec.analyst_id, rec.ticker)
            try:
                self.evaluate_one(rec, now)
                evaluated += 1
            except PriceUnavailableError as exc:
                logger.warning(
                    "Recommendation %d left OPEN: %s", rec_id, exc, extra=context
                )
                failures.append((rec_id, f"Failed to evaluate recommendation {rec_id}: {exc}"))
            except Exception as exc:
                logger.error(
                    "Recommendation %d evaluation FAILED: %s", rec_id, exc, extra=context
                )
                failures.append((rec_id, f"Failed to evaluate recommendation {rec_id}: {exc}"))
        return evaluated, failures

    def evaluate_one(self, rec: Recommendation, t1: datetime) -> Evaluation:
        """Evaluate one recommendation at ``t1`` and commit the result.

        Prices are fetched before the transaction opens so no lock is held
        during network I/O.

        Raises:
            InvalidArgumentError: ``rec`` has never been persisted.
            PriceUnavailableError: Any of the three price lookups failed.
            NotFoundError: The recommendation or its analyst disappeared.
            ConflictError: The call was closed, or the analyst updated, by a
                concurrent writer.
        """
        if rec.recommendation_id is None:
            raise InvalidArgumentError("Cannot evaluate an unsaved recommendation.")
        rec_id = rec.recommendation_id
        t1 = ensure_utc(t1)

        p1 = self._price(rec.ticker, t1)
        bench0 = self._price(rec.benchmark, rec.t0)
        bench1 = self._price(rec.benchmark, t1)

        returns = compute_returns(rec.p0, p1, bench0, bench1)
        outcome = classify_outcome(rec.action, returns.alpha, self.config.scoring.thresholds)
        days_since = whole_days_between(rec.t0, t1)

        def apply(tx: StoreTransaction) -> tuple[Evaluation, ScoreUpdate]:
            current = tx.get_recommendation(rec_id)
            if current is None:
                raise NotFoundError("recommendation", rec_id)
            if not current.is_open:
                raise ConflictError(f"Recommendation {rec_id} is already CLOSED.")
            analyst = tx.get_analyst(current.analyst_id)
            if analyst is None:
                raise NotFoundError("analyst", current.analyst_id)

            update = compute_score_update(
                analyst.score, outcome, current.confidence, days_since, self.config.scoring
            )
            calls = analyst.lifetime_calls + 1
            stamp = utcnow()
            evaluation = Evaluation(
                recommendation_id=rec_id,
                horizon_days=current.horizon_days,
                t1=t1,
                p1=p1,
                bench_return=returns.bench_return,
                abs_return=returns.abs_return,
                alpha=returns.alpha,
                outcome=outcome,
                score_delta=update.delta,
                created_at=stamp,
            )
            evaluation_id = tx.insert_evaluation(evaluation)
            if not tx.close_recommendation(rec_id):
                raise ConflictError(f"Recommendation {rec_id} was closed concurrently.")
            if not tx.update_analyst_rating(
                analyst.analyst_id,  # type: ignore[arg-type]
                score=update.new_score,
                lifetime_calls=calls,
                tier=calculate_tier(update.new_score, calls, self.config.tiers),
                updated_at=stamp,
                expected_score=analyst.score,
                expected_calls=analyst.lifetime_calls,
            ):
                raise ConflictError(
                    f"Analyst {analyst.analyst_id} was updated concurrently."
                )
            return evaluation.model_copy(update={"evaluation_id": evaluation_id}), update

        evaluation, update = self.store.run_transaction(apply)
        logger.info(
            "Evaluated %d: %s %s -> %s (alpha=%+.4f, delta=%+.3f, score %.2f -> %.2f)",
            rec_id, rec.ticker, rec.action.value, evaluation.outcome.value,
            evaluation.alpha, update.delta, update.old_score, update.new_score,
            extra=item_context(rec_id, rec.analyst_id, rec.ticker),
        )
        return evaluation

    def _price(self, symbol: str, when: datetime) -> float:
        try:
            return self.oracle.price_at(symbol, when)
        except PriceUnavailableError:
            raise
        except Exception as exc:
            raise PriceUnavailableError(symbol, when, str(exc)) from exc
