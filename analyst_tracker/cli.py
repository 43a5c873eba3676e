"""
Analyst credibility tracker — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, record a call, evaluator batch, etc.).
  5. Report result to stdout.

Install and run::

    pip install -e .
    analyst-tracker --help
    analyst-tracker init-db
    analyst-tracker seed-analysts
    analyst-tracker record 1 AAPL BUY --confidence 0.8 --sector Technology
    analyst-tracker run-evaluator
    analyst-tracker consensus AAPL
    analyst-tracker top-analysts --limit 10
    analyst-tracker status
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn, Optional

import typer

app = typer.Typer(
    name="analyst-tracker",
    help="Analyst credibility tracker — score analyst calls against the market.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from analyst_tracker.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from analyst_tracker.utils.logging import configure_logging
    configure_logging(config.logging)


def _engine(config):
    """Build a ``CredibilityEngine`` over the configured DB and price provider."""
    from analyst_tracker.credibility.engine import CredibilityEngine
    return CredibilityEngine.from_config(config)


def _fail(exc: Exception) -> NoReturn:
    """Print an engine error and exit 1."""
    typer.echo(f"[ERROR] {exc}", err=True)
    raise typer.Exit(code=1)


_CONFIG_OPTION = typer.Option(None, "--config", help="Path to TOML config file.")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    Also runs pending schema migrations.
    """
    from analyst_tracker.db.connection import get_connection
    from analyst_tracker.db.migrations import run_migrations
    from analyst_tracker.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        migrations_applied = run_migrations(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Migrations applied: {migrations_applied}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = _CONFIG_OPTION,
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    thresholds = config.scoring.thresholds
    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Price provider:   {config.price_oracle.provider}")
    typer.echo(f"  Oracle timeout:   {config.price_oracle.timeout_seconds:g}s")
    typer.echo(
        f"  K / decay:        {config.scoring.k_base:g} / "
        f"{config.scoring.freshness_decay_days:g} days"
    )
    typer.echo(
        f"  Alpha thresholds: BUY/SELL {thresholds.neg:+.2%} / {thresholds.pos:+.2%}, "
        f"HOLD ({thresholds.hold_lower:+.2%}, {thresholds.hold_upper:+.2%})"
    )
    typer.echo(
        f"  Tiers:            TOP_TIER >= {config.tiers.top_tier:g}, "
        f"RISING >= {config.tiers.rising:g}, min calls {config.tiers.min_calls_for_tier}"
    )
    typer.echo(f"  Benchmarks:       {len(config.benchmarks.sectors)} sectors, "
               f"default {config.benchmarks.default_symbol}")
    typer.echo(f"  Evaluator pool:   {config.evaluator.max_workers} worker(s)")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        dumped = config.model_dump(mode="json")
        if dumped["price_oracle"].get("api_key"):
            dumped["price_oracle"]["api_key"] = "***"
        typer.echo(json.dumps(dumped, indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("status")
def status(
    runs: int = typer.Option(5, "--runs", help="Number of recent pipeline runs to list."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show table counts, the lifetime_calls consistency check and recent runs."""
    from analyst_tracker.db.connection import get_connection
    from analyst_tracker.db.migrations import run_migrations
    from analyst_tracker.db.repositories.analyst_repo import AnalystRepository
    from analyst_tracker.db.repositories.recommendation_repo import (
        EvaluationRepository,
        RecommendationRepository,
    )
    from analyst_tracker.db.repositories.run_repo import RunMetadataRepository
    from analyst_tracker.db.schema import apply_schema
    from analyst_tracker.reporting.formatters import format_status

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with get_connection(
        config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        run_migrations(conn)
        evaluations = EvaluationRepository(conn)
        report = format_status(
            config.database.db_path,
            analyst_count=AnalystRepository(conn).count(),
            recommendation_counts=RecommendationRepository(conn).count_by_status(),
            evaluation_count=evaluations.count(),
            mismatches=evaluations.lifetime_call_mismatches(),
            runs=RunMetadataRepository(conn).get_recent_runs(limit=runs),
        )

    typer.echo(report)


@app.command("seed-analysts")
def seed_analysts_cmd(
    seed_file: Optional[str] = typer.Option(
        None,
        "--file",
        "-f",
        help="Path to analysts JSON. Defaults to config.data.analysts_seed_file.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate and report, but do not write to the database.",
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Create analyst profiles from a seed file (existing analysts are skipped)."""
    from analyst_tracker.errors import AnalystTrackerError
    from analyst_tracker.pipeline.seed import SeedAnalystsStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    stage = SeedAnalystsStage(config=config)
    try:
        run = stage.run(seed_path=Path(seed_file) if seed_file else None, dry_run=dry_run)
    except (AnalystTrackerError, FileNotFoundError) as exc:
        _fail(exc)
    finally:
        stage.close()

    result = stage.last_result
    prefix = "[DRY RUN] Would create" if dry_run else "Created"
    typer.echo(f"{prefix} {len(result.created)} analyst(s); skipped {len(result.skipped)} existing.")
    for label in result.created:
        typer.echo(f"  + {label}")
    for label in result.skipped:
        typer.echo(f"  = {label}")
    typer.echo(f"[OK] run_slug={run.run_slug}")


@app.command("add-analyst")
def add_analyst(
    display_name: str = typer.Argument(..., help="Analyst name."),
    firm: str = typer.Argument(..., help="Analyst's firm."),
    specializations: Optional[list[str]] = typer.Option(
        None,
        "--sector",
        "-s",
        help="Covered sector; repeat for several.",
    ),
    initial_score: Optional[float] = typer.Option(
        None,
        "--initial-score",
        help="Starting score in [0, 100] (default from config).",
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Create one analyst profile."""
    from analyst_tracker.errors import AnalystTrackerError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _engine(config) as engine:
        try:
            analyst_id = engine.create_analyst(
                display_name, firm,
                specializations=specializations or [],
                initial_score=initial_score,
            )
        except AnalystTrackerError as exc:
            _fail(exc)

    typer.echo(f"[OK] Created analyst {analyst_id}: {display_name} ({firm})")


@app.command("record")
def record(
    analyst_id: int = typer.Argument(..., help="Analyst id."),
    ticker: str = typer.Argument(..., help="Ticker symbol, e.g. AAPL."),
    action: str = typer.Argument(..., help="BUY, HOLD or SELL (case-insensitive)."),
    confidence: Optional[float] = typer.Option(
        None, "--confidence", "-c", help="Conviction in [0, 1] (clamped)."
    ),
    horizon_days: Optional[int] = typer.Option(
        None, "--horizon-days", help="Days until the call is evaluated."
    ),
    target_price: Optional[float] = typer.Option(None, "--target-price"),
    note: Optional[str] = typer.Option(None, "--note"),
    sector: Optional[str] = typer.Option(
        None, "--sector", help="Sector name; selects the benchmark ETF."
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Record a new analyst call at the current price."""
    from analyst_tracker.errors import AnalystTrackerError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _engine(config) as engine:
        try:
            rec_id = engine.record_recommendation(
                analyst_id,
                ticker,
                action,
                confidence=confidence,
                horizon_days=horizon_days,
                target_price=target_price,
                note=note,
                sector=sector,
            )
        except AnalystTrackerError as exc:
            _fail(exc)
        rec = engine.get_recommendation(rec_id)

    typer.echo(
        f"[OK] Recorded recommendation {rec_id}: {rec.action.value} {rec.ticker} "
        f"@ {rec.p0:.2f} vs {rec.benchmark}, {rec.horizon_days}d horizon, "
        f"confidence {rec.confidence:.2f}"
    )


@app.command("run-evaluator")
def run_evaluator(
    as_of: Optional[str] = typer.Option(
        None,
        "--as-of",
        help="Evaluate as of this ISO date/datetime (UTC). Default: now.",
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Evaluate every matured OPEN recommendation and update analyst scores.

    Items that fail (price unavailable, lost race) stay OPEN and are listed;
    the next run retries them.  Exit code is 0 even with item failures.
    """
    from analyst_tracker.errors import AnalystTrackerError
    from analyst_tracker.pipeline.evaluate import EvaluateStage
    from analyst_tracker.reporting.formatters import format_evaluator_result
    from analyst_tracker.utils.time_utils import parse_instant

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        now = parse_instant(as_of) if as_of else None
    except ValueError as exc:
        typer.echo(f"[ERROR] Invalid --as-of: {exc}", err=True)
        raise typer.Exit(code=1)

    stage = EvaluateStage(config=config)
    try:
        run = stage.run(as_of=now)
    except AnalystTrackerError as exc:
        _fail(exc)
    finally:
        stage.close()

    typer.echo(format_evaluator_result(stage.last_result, run.as_of.isoformat()))
    typer.echo("")
    typer.echo(f"[OK] status={run.status} run_slug={run.run_slug}")


@app.command("consensus")
def consensus(
    ticker: str = typer.Argument(..., help="Ticker symbol."),
    max_age_days: Optional[int] = typer.Option(
        None,
        "--max-age-days",
        help="Only count calls created within this many days (default from config).",
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show the credibility-weighted consensus for a ticker."""
    from analyst_tracker.errors import AnalystTrackerError
    from analyst_tracker.reporting.formatters import format_consensus

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _engine(config) as engine:
        try:
            result = engine.get_weighted_consensus(ticker, max_age_days=max_age_days)
        except AnalystTrackerError as exc:
            _fail(exc)

    age = max_age_days if max_age_days is not None else config.consensus.default_max_age_days
    typer.echo(format_consensus(result, age))


@app.command("profile")
def profile(
    analyst_id: int = typer.Argument(..., help="Analyst id."),
    limit: int = typer.Option(20, "--limit", "-n", help="Recent calls to include."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show an analyst's score, tier, recent calls and performance summary."""
    from analyst_tracker.errors import AnalystTrackerError
    from analyst_tracker.reporting.formatters import format_profile

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _engine(config) as engine:
        try:
            result = engine.get_analyst_profile(analyst_id, recent_limit=limit)
        except AnalystTrackerError as exc:
            _fail(exc)

    typer.echo(format_profile(result))


@app.command("top-analysts")
def top_analysts(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of analysts to list."),
    order_by: str = typer.Option(
        "score", "--order-by", help="Sort column: score | lifetime_calls."
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List the leaderboard, highest first."""
    from analyst_tracker.errors import AnalystTrackerError
    from analyst_tracker.reporting.formatters import format_leaderboard

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _engine(config) as engine:
        try:
            analysts = engine.list_top_analysts(limit=limit, order_by=order_by)
        except AnalystTrackerError as exc:
            _fail(exc)

    typer.echo(format_leaderboard(analysts, order_by))


if __name__ == "__main__":
    app()
