"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local paths and env overrides (gitignored)
  4. Environment variables        — ``SALES_FORECASTER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Only the CLI and pipeline stages read ``AppConfig``.  The core functions in
``features``, ``backtest`` and ``diagnostics`` take every threshold as an
explicit argument, so a stage unpacks the relevant section and passes values
through — there are no module-level knobs.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from datetime import date
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DataConfig(BaseModel):
    """Filesystem locations of raw CSV exports, caches and outputs."""

    model_config = ConfigDict(frozen=True)

    raw_dir: str = "data/raw"
    orders_file: str = "olist_orders_dataset.csv"
    order_items_file: str = "olist_order_items_dataset.csv"
    products_file: str = "olist_products_dataset.csv"
    translation_file: str = "product_category_name_translation.csv"
    processed_dir: str = "data/processed"
    weekly_cache_file: str = "weekly_sales_all.json"
    outputs_dir: str = "outputs"

    @property
    def weekly_cache_path(self) -> Path:
        return Path(self.processed_dir) / self.weekly_cache_file


class AggregationConfig(BaseModel):
    """Weekly aggregation settings."""

    model_config = ConfigDict(frozen=True)

    top_n: Optional[int] = 12
    delivered_status: str = "delivered"

    @field_validator("top_n")
    @classmethod
    def validate_top_n(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError(f"top_n must be >= 1 (or omitted for all categories), got {v}.")
        return v


class FeatureConfig(BaseModel):
    """Feature builder parameters."""

    model_config = ConfigDict(frozen=True)

    min_weeks_per_category: int = 12
    max_workers: int = 1

    @field_validator("min_weeks_per_category", "max_workers")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v


class SplitConfig(BaseModel):
    """Date-cutoff split and rolling-window cross-validation parameters."""

    model_config = ConfigDict(frozen=True)

    train_end: date = date(2018, 2, 19)
    test_start: date = date(2018, 2, 26)
    fold_count: int = 3
    weeks_per_fold: int = 20
    min_test_window_weeks: int = 12
    test_window_divisor: int = 5
    min_train_weeks: int = 20

    @model_validator(mode="after")
    def validate_cutoffs(self) -> "SplitConfig":
        if self.test_start <= self.train_end:
            raise ValueError(
                f"test_start ({self.test_start}) must be after train_end ({self.train_end})."
            )
        return self

    @field_validator(
        "fold_count", "weeks_per_fold", "min_test_window_weeks",
        "test_window_divisor", "min_train_weeks",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v


class AuditConfig(BaseModel):
    """Leakage audit thresholds."""

    model_config = ConfigDict(frozen=True)

    correlation_threshold: float = 0.95
    range_tolerance: float = 0.05
    range_features: list[str] = ["lag_1", "rolling_avg_4", "category_seasonal_avg"]

    @field_validator("correlation_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"correlation_threshold must be in (0.0, 1.0], got {v}.")
        return v

    @field_validator("range_tolerance")
    @classmethod
    def validate_tolerance(cls, v: float) -> float:
        if v < 0.0:
            raise ValueError(f"range_tolerance must be >= 0.0, got {v}.")
        return v


class ModelConfig(BaseModel):
    """Hyperparameters for the LightGBM trainer adapter."""

    model_config = ConfigDict(frozen=True)

    n_estimators: int = 300
    num_leaves: int = 60
    min_child_samples: int = 8
    learning_rate: float = 0.04
    seed: int = 42
    artifact_dir: str = "outputs/models"


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/forecaster.log"
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

    Constructed by ``load_config()`` which merges TOML + .env + environment.
    """

    model_config = ConfigDict(frozen=True)

    data: DataConfig = DataConfig()
    aggregation: AggregationConfig = AggregationConfig()
    features: FeatureConfig = FeatureConfig()
    split: SplitConfig = SplitConfig()
    audit: AuditConfig = AuditConfig()
    model: ModelConfig = ModelConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

ENV_PREFIX = "SALES_FORECASTER_"
_SECTION_NAMES = ("data", "aggregation", "features", "split", "audit", "model", "logging")


def _parse_top_n(value: str) -> Optional[int]:
    return None if value.strip().lower() in ("all", "none", "") else int(value)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# env suffix -> (section or None for top level, key, parser)
_ENV_OVERRIDES: dict[str, tuple[Optional[str], str, Callable[[str], Any]]] = {
    "DATA_DIR": ("data", "raw_dir", str),
    "OUTPUTS_DIR": ("data", "outputs_dir", str),
    "LOG_LEVEL": ("logging", "level", str),
    "TOP_N": ("aggregation", "top_n", _parse_top_n),
    "DEBUG": (None, "debug", _parse_bool),
}


def _project_root() -> Path:
    """Nearest ancestor of this package that holds ``pyproject.toml``."""
    here = Path(__file__).resolve().parent
    for candidate in (here, *here.parents):
        if (candidate / "pyproject.toml").exists():
            return candidate
    return here.parent


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Build the ``AppConfig`` from TOML layers, ``.env`` and the environment.

    ``local.toml`` is looked up next to whichever base file is used, so a
    ``--config`` path carries its own local overrides.

    Raises:
        FileNotFoundError: If the base TOML file does not exist.
        pydantic.ValidationError: If the merged values are invalid.
    """
    root = _project_root()
    load_dotenv(dotenv_path=root / ".env", override=False)

    base_path = Path(config_path) if config_path else root / "config" / "default.toml"
    if not base_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {base_path}\n"
            "Create config/default.toml or pass --config."
        )

    raw = _read_toml(base_path)
    local_path = base_path.parent / "local.toml"
    if local_path.exists():
        raw = _deep_merge(raw, _read_toml(local_path))

    return _build_app_config(_apply_env_overrides(raw, os.environ))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Apply ``SALES_FORECASTER_<SUFFIX>`` variables listed in ``_ENV_OVERRIDES``.

    Unset variables leave the TOML value alone; ``TOP_N=all`` removes the cap.
    """
    merged = dict(raw)
    for suffix, (section, key, parse) in _ENV_OVERRIDES.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is None:
            continue
        if section is None:
            merged[key] = parse(value)
        else:
            merged[section] = {**merged.get(section, {}), key: parse(value)}
    return merged


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    project = raw.get("project", {})
    sections = {name: raw.get(name, {}) for name in _SECTION_NAMES}
    return AppConfig(**sections, debug=raw.get("debug", project.get("debug", False)))

