"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``ANALYST_TRACKER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Every engine component receives the relevant sub-config at construction —
scoring thresholds, the sector → benchmark table and tier cut-offs are never
module-level constants, so tests can substitute alternates freely::

    cfg = AppConfig(scoring=ScoringConfig(k_base=10.0))
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/analyst_tracker.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class DataConfig(BaseModel):
    """Filesystem paths for seed data."""

    model_config = ConfigDict(frozen=True)

    analysts_seed_file: str = "config/analysts/seed_analysts.json"


class OutcomeThresholds(BaseModel):
    """Alpha cut-offs used to classify a matured call.

    BUY is CORRECT at ``alpha >= pos`` and INCORRECT at ``alpha <= neg``;
    SELL mirrors that.  HOLD is CORRECT strictly inside
    ``(hold_lower, hold_upper)`` and NEUTRAL otherwise.
    """

    model_config = ConfigDict(frozen=True)

    pos: float = 0.02
    neg: float = -0.02
    hold_upper: float = 0.01
    hold_lower: float = -0.01

    @model_validator(mode="after")
    def validate_ordering(self) -> "OutcomeThresholds":
        if self.neg >= self.pos:
            raise ValueError(f"neg ({self.neg}) must be < pos ({self.pos}).")
        if self.hold_lower >= self.hold_upper:
            raise ValueError(
                f"hold_lower ({self.hold_lower}) must be < hold_upper ({self.hold_upper})."
            )
        return self


class ScoringConfig(BaseModel):
    """Elo-style rating parameters."""

    model_config = ConfigDict(frozen=True)

    k_base: float = 6.0
    freshness_decay_days: float = 180.0
    rating_center: float = 50.0
    rating_scale: float = 20.0
    initial_score: float = 50.0
    min_score: float = 0.0
    max_score: float = 100.0
    outcome_values: dict[str, float] = {
        "CORRECT": 1.0,
        "NEUTRAL": 0.5,
        "INCORRECT": 0.0,
    }
    thresholds: OutcomeThresholds = OutcomeThresholds()

    @field_validator("k_base", "freshness_decay_days", "rating_scale")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"value must be > 0, got {v}.")
        return v

    @field_validator("outcome_values")
    @classmethod
    def validate_outcome_values(cls, v: dict[str, float]) -> dict[str, float]:
        missing = {"CORRECT", "NEUTRAL", "INCORRECT"} - set(v)
        if missing:
            raise ValueError(f"outcome_values missing keys: {sorted(missing)}.")
        return v

    @model_validator(mode="after")
    def validate_bounds(self) -> "ScoringConfig":
        if self.min_score >= self.max_score:
            raise ValueError("min_score must be < max_score.")
        if not self.min_score <= self.initial_score <= self.max_score:
            raise ValueError(
                f"initial_score ({self.initial_score}) must lie in "
                f"[{self.min_score}, {self.max_score}]."
            )
        return self


class TierConfig(BaseModel):
    """Score and experience cut-offs for ``AnalystTier``."""

    model_config = ConfigDict(frozen=True)

    top_tier: float = 80.0
    rising: float = 65.0
    min_calls_for_tier: int = 5

    @model_validator(mode="after")
    def validate_ordering(self) -> "TierConfig":
        if self.rising > self.top_tier:
            raise ValueError(
                f"rising ({self.rising}) must be <= top_tier ({self.top_tier})."
            )
        if self.min_calls_for_tier < 0:
            raise ValueError("min_calls_for_tier must be >= 0.")
        return self


class BenchmarkConfig(BaseModel):
    """Sector → benchmark symbol table (sector ETFs) and the fallback index."""

    model_config = ConfigDict(frozen=True)

    default_symbol: str = "SPY"
    sectors: dict[str, str] = {
        "Technology": "XLK",
        "Consumer Discretionary": "XLY",
        "Financials": "XLF",
        "Health Care": "XLV",
        "Industrials": "XLI",
        "Energy": "XLE",
        "Utilities": "XLU",
        "Materials": "XLB",
        "Real Estate": "XLRE",
        "Communication Services": "XLC",
        "Consumer Staples": "XLP",
    }


class RecommendationDefaultsConfig(BaseModel):
    """Defaults applied when a call omits optional fields."""

    model_config = ConfigDict(frozen=True)

    confidence: float = 0.7
    horizon_days: int = 30

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("horizon_days")
    @classmethod
    def validate_horizon(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"horizon_days must be >= 1, got {v}.")
        return v


class ConsensusConfig(BaseModel):
    """Credibility weighting for the consensus aggregator.

    weight = weight_floor + weight_span * (score / 100)
    """

    model_config = ConfigDict(frozen=True)

    weight_floor: float = 0.2
    weight_span: float = 0.8
    default_max_age_days: int = 30
    missing_analyst_score: float = 50.0

    @field_validator("weight_floor")
    @classmethod
    def validate_floor(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"weight_floor must be > 0, got {v}.")
        return v


class EvaluatorConfig(BaseModel):
    """Batch evaluator parameters."""

    model_config = ConfigDict(frozen=True)

    max_workers: int = 4

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}.")
        return v


class PriceOracleConfig(BaseModel):
    """Price oracle selection and HTTP settings."""

    model_config = ConfigDict(frozen=True)

    provider: Literal["polygon", "fixture"] = "polygon"
    base_url: str = "https://api.polygon.io"
    api_key: Optional[str] = None
    timeout_seconds: float = 15.0
    fixture_prices: dict[str, float] = {}

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/analyst_tracker.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    It is constructed by ``load_config()`` which merges TOML + .env, or
    directly (all sections have defaults) in tests.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    data: DataConfig = DataConfig()
    scoring: ScoringConfig = ScoringConfig()
    tiers: TierConfig = TierConfig()
    benchmarks: BenchmarkConfig = BenchmarkConfig()
    recommendations: RecommendationDefaultsConfig = RecommendationDefaultsConfig()
    consensus: ConsensusConfig = ConsensusConfig()
    evaluator: EvaluatorConfig = EvaluatorConfig()
    price_oracle: PriceOracleConfig = PriceOracleConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply ANALYST_TRACKER_* env vars to the raw config dict.

    Supported overrides:
      ANALYST_TRACKER_DB_PATH          → raw["database"]["db_path"]
      ANALYST_TRACKER_LOG_LEVEL        → raw["logging"]["level"]
      ANALYST_TRACKER_DEBUG            → raw["debug"]
      ANALYST_TRACKER_POLYGON_API_KEY  → raw["price_oracle"]["api_key"]
      ANALYST_TRACKER_PRICE_PROVIDER   → raw["price_oracle"]["provider"]
    """
    if db_path := os.environ.get("ANALYST_TRACKER_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("ANALYST_TRACKER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("ANALYST_TRACKER_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    if api_key := os.environ.get("ANALYST_TRACKER_POLYGON_API_KEY"):
        raw.setdefault("price_oracle", {})["api_key"] = api_key

    if provider := os.environ.get("ANALYST_TRACKER_PRICE_PROVIDER"):
        raw.setdefault("price_oracle", {})["provider"] = provider

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})
    scoring_raw = dict(raw.get("scoring", {}))
    thresholds_raw = scoring_raw.pop("thresholds", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        data=DataConfig(**raw.get("data", {})),
        scoring=ScoringConfig(
            **scoring_raw, thresholds=OutcomeThresholds(**thresholds_raw)
        ),
        tiers=TierConfig(**raw.get("tiers", {})),
        benchmarks=BenchmarkConfig(**raw.get("benchmarks", {})),
        recommendations=RecommendationDefaultsConfig(**raw.get("recommendations", {})),
        consensus=ConsensusConfig(**raw.get("consensus", {})),
        evaluator=EvaluatorConfig(**raw.get("evaluator", {})),
        price_oracle=PriceOracleConfig(**raw.get("price_oracle", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
