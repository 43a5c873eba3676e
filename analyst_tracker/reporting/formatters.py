"""
ASCII terminal formatters for CLI reporting commands.

All formatters accept engine models and return plain multi-line strings
suitable for ``typer.echo()``.

No third-party dependencies (no ``rich``, no ``colorama``).
"""

from __future__ import annotations

from analyst_tracker.credibility.evaluator import EvaluatorResult
from analyst_tracker.models.analyst import Analyst
from analyst_tracker.models.consensus import AnalystProfile, WeightedConsensus
from analyst_tracker.models.meta import RunMetadata
from analyst_tracker.taxonomy.rating_taxonomy import RecommendationAction, RecommendationStatus


# ── Leaderboard ───────────────────────────────────────────────────────────────


def format_leaderboard(analysts: list[Analyst], order_by: str) -> str:
    """Format the top-analysts table::

        Rank  ID  Analyst               Firm              Score  Calls  Tier
        -------------------------------------------------------------------
           1   3  Mike Wilson           Morgan Stanley     81.4     12  TOP_TIER
    """
    lines: list[str] = ["", f"=== Top Analysts (by {order_by}) ==="]
    if not analysts:
        lines.append("")
        lines.append("  (no analysts yet; run 'seed-analysts' or 'add-analyst' first)")
        return "\n".join(lines)

    header = (
        f"  {'Rank':>4}  {'ID':>4}  {'Analyst':<24}  {'Firm':<20}  "
        f"{'Score':>6}  {'Calls':>5}  {'Tier':<8}"
    )
    lines.append("")
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for rank, a in enumerate(analysts, start=1):
        lines.append(
            f"  {rank:>4}  {a.analyst_id or 0:>4}  {a.display_name[:24]:<24}  "
            f"{a.firm[:20]:<20}  {a.score:>6.2f}  {a.lifetime_calls:>5}  "
            f"{a.tier.value:<8}"
        )
    return "\n".join(lines)


# ── Consensus ─────────────────────────────────────────────────────────────────


def format_consensus(consensus: WeightedConsensus, max_age_days: int) -> str:
    """Format a weighted consensus with its per-action totals and voters."""
    lines: list[str] = [
        "",
        f"=== Consensus: {consensus.ticker} (open calls <= {max_age_days}d old) ===",
    ]
    if not consensus.participants:
        lines.append("")
        lines.append("  (no open calls in window) -> HOLD, confidence 0.0%")
        return "\n".join(lines)

    lines.append(
        f"  Consensus:  {consensus.consensus.value}  "
        f"(confidence {consensus.confidence:.1%})"
    )
    total = sum(consensus.action_weights.values()) or 1.0
    lines.append("")
    for action in RecommendationAction:
        weight = consensus.action_weights.get(action, 0.0)
        bar = "#" * int(round(20 * weight / total))
        lines.append(f"  {action.value:<5} {weight:>7.3f}  {bar}")

    header = f"  {'Analyst':>7}  {'Action':<6}  {'Score':>6}  {'Weight':>6}"
    lines.append("")
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for p in sorted(consensus.participants, key=lambda p: (-p.weight, p.analyst_id)):
        lines.append(
            f"  {p.analyst_id:>7}  {p.action.value:<6}  {p.score:>6.2f}  {p.weight:>6.3f}"
        )
    return "\n".join(lines)


# ── Analyst profile ───────────────────────────────────────────────────────────


def format_profile(profile: AnalystProfile) -> str:
    """Format an analyst profile: header, performance summary, recent calls."""
    a = profile.analyst
    perf = profile.performance
    lines: list[str] = [
        "",
        f"=== Analyst {a.analyst_id}: {a.display_name} ({a.firm}) ===",
        f"  Score:           {a.score:.2f}",
        f"  Tier:            {a.tier.value}",
        f"  Lifetime calls:  {a.lifetime_calls}",
    ]
    if a.specializations:
        lines.append(f"  Covers:          {', '.join(a.specializations)}")

    lines.append("")
    lines.append(
        f"  Recent: {perf.evaluated_count} evaluated, {perf.open_count} open  |  "
        f"win rate {perf.win_rate:.1%}  |  avg alpha {perf.avg_alpha:+.2%}"
    )
    for action, outcomes in sorted(perf.outcomes_by_action.items()):
        breakdown = ", ".join(f"{k}={v}" for k, v in sorted(outcomes.items()))
        lines.append(f"    {action:<5} {perf.calls_by_action.get(action, 0):>3}  ({breakdown})")

    if not profile.recent_recommendations:
        lines.append("")
        lines.append("  (no recommendations recorded)")
        return "\n".join(lines)

    by_rec = {e.recommendation_id: e for e in profile.evaluations}
    header = (
        f"  {'ID':>5}  {'Date':<10}  {'Ticker':<6}  {'Action':<6}  {'Conf':>4}  "
        f"{'Hzn':>4}  {'P0':>9}  {'Status':<6}  {'Alpha':>7}  {'Outcome':<9}"
    )
    lines.append("")
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for r in profile.recent_recommendations:
        ev = by_rec.get(r.recommendation_id)  # type: ignore[arg-type]
        alpha_str = f"{ev.alpha:+.2%}" if ev else "-"
        outcome_str = ev.outcome.value if ev else "-"
        lines.append(
            f"  {r.recommendation_id or 0:>5}  {r.t0.date().isoformat():<10}  "
            f"{r.ticker:<6}  {r.action.value:<6}  {r.confidence:>4.2f}  "
            f"{r.horizon_days:>3}d  {r.p0:>9.2f}  {r.status.value:<6}  "
            f"{alpha_str:>7}  {outcome_str:<9}"
        )
    return "\n".join(lines)


# ── Evaluator ─────────────────────────────────────────────────────────────────


def format_evaluator_result(result: EvaluatorResult, as_of: str) -> str:
    """Format an evaluator run summary and its error list."""
    lines: list[str] = [
        "",
        f"=== Evaluator run (as of {as_of}) ===",
        f"  Evaluated: {result.evaluated_count}",
        f"  Not due:   {result.skipped_count}",
        f"  Failed:    {result.failed_count}",
    ]
    if result.errors:
        lines.append("")
        for err in result.errors:
            lines.append(f"  [WARN] {err}")
    return "\n".join(lines)


# ── Database status ───────────────────────────────────────────────────────────


def format_status(
    db_path: str,
    analyst_count: int,
    recommendation_counts: dict[RecommendationStatus, int],
    evaluation_count: int,
    mismatches: list[tuple[int, str, int, int]],
    runs: list[RunMetadata],
) -> str:
    """Format the ``status`` report: table counts, consistency check, recent runs."""
    lines: list[str] = [
        "",
        f"=== Database status: {db_path} ===",
        f"  Analysts:         {analyst_count}",
        f"  Recommendations:  {sum(recommendation_counts.values())} "
        f"(OPEN {recommendation_counts.get(RecommendationStatus.OPEN, 0)}, "
        f"CLOSED {recommendation_counts.get(RecommendationStatus.CLOSED, 0)})",
        f"  Evaluations:      {evaluation_count}",
    ]

    lines.append("")
    if mismatches:
        lines.append(f"  [WARN] {len(mismatches)} analyst(s) with lifetime_calls != evaluations:")
        for analyst_id, name, calls, evaluated in mismatches:
            lines.append(f"    {analyst_id:>5}  {name[:24]:<24}  calls={calls}  evaluated={evaluated}")
    else:
        lines.append("  lifetime_calls consistent with evaluations.")

    lines.append("")
    if not runs:
        lines.append("  (no pipeline runs recorded)")
        return "\n".join(lines)

    header = (
        f"  {'Started':<20}  {'Stage':<14}  {'Status':<8}  {'Rows':>5}  {'Errors':>6}"
    )
    lines.append("  Recent runs:")
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for run in runs:
        lines.append(
            f"  {run.started_at.strftime('%Y-%m-%dT%H:%M:%SZ'):<20}  "
            f"{run.pipeline_stage:<14}  {run.status:<8}  "
            f"{run.rows_processed:>5}  {run.error_count:>6}"
        )
    return "\n".join(lines)
