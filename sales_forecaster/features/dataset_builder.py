"""
Dataset assembly: Parquet file + JSON manifest.

Purpose
-------
``build_feature_dataset()`` is the top-level orchestrator called by
``FeatureBuildStage``.  It runs the global feature build over the cached
weekly series and writes:

    data/processed/features/features_{first_week}_{last_week}.parquet
    data/processed/features/manifests/manifest_{today}.json

Feature assembly pipeline (step-by-step)
-----------------------------------------
1.  ``gap_fill.fill_all_categories()``
        list[WeeklyRecord] → category → contiguous series
2.  ``builder.build_global_features()``
        series → FeatureBuildResult (rows, skipped categories, epoch,
        historical averages)
3.  ``quality.build_quality_report()``
4.  ``write_features_parquet()``
5.  ``write_manifest()``

Parquet schema
--------------
Derived from ``registry.FEATURE_REGISTRY`` in registry order, Snappy
compression.  The manifest carries the trend epoch and the fit-mode
historical averages so a later apply-mode build can reproduce the trend
index and rolling fallback without touching the training data.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from sales_forecaster.config import AppConfig
from sales_forecaster.features.builder import (
    BuildMode,
    FeatureBuildResult,
    FeatureRow,
    build_global_features,
)
from sales_forecaster.features.gap_fill import fill_all_categories
from sales_forecaster.features.quality import FeatureQualityReport, build_quality_report
from sales_forecaster.features.registry import FEATURE_REGISTRY, FeatureSpec
from sales_forecaster.models.meta import RunMetadata
from sales_forecaster.models.weekly import WeeklyRecord

log = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"

# ── PyArrow type map ───────────────────────────────────────────────────────────

_PA_TYPE_MAP: dict[str, pa.DataType] = {
    "int32":   pa.int32(),
    "float64": pa.float64(),
    "bool":    pa.bool_(),
    "utf8":    pa.string(),
}


def _pa_field(spec: FeatureSpec) -> pa.Field:
    pa_type = _PA_TYPE_MAP.get(spec.pa_type)
    if pa_type is None:
        raise ValueError(f"Unknown pa_type '{spec.pa_type}' for feature '{spec.name}'.")
    return pa.field(spec.name, pa_type, nullable=False)


def build_parquet_schema() -> pa.Schema:
    """Build the PyArrow schema from FEATURE_REGISTRY, in registry order."""
    return pa.schema([_pa_field(spec) for spec in FEATURE_REGISTRY])


# ── Parquet I/O ────────────────────────────────────────────────────────────────

def rows_to_parquet_table(rows: list[FeatureRow], schema: pa.Schema) -> pa.Table:
    """Convert feature rows to a PyArrow Table with the given schema."""
    arrays: dict[str, pa.Array] = {}
    for schema_field in schema:
        values = [getattr(r, schema_field.name) for r in rows]
        arrays[schema_field.name] = pa.array(values, type=schema_field.type)
    return pa.table(arrays, schema=schema)


def write_features_parquet(rows: list[FeatureRow], path: Path) -> int:
    """Write feature rows to Parquet.  Returns the number of rows written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    table = rows_to_parquet_table(rows, build_parquet_schema())
    pq.write_table(table, str(path), compression="snappy")
    log.info("Feature Parquet written: %s (%d rows)", path.name, len(rows))
    return len(rows)


def read_features_parquet(path: Path) -> list[FeatureRow]:
    """Read a Parquet file written by ``write_features_parquet()``."""
    table = pq.read_table(str(path))
    return [FeatureRow(**record) for record in table.to_pylist()]


# ── Output path helpers ────────────────────────────────────────────────────────

def make_output_paths(processed_dir: str, first_week: date, last_week: date) -> dict[str, Path]:
    """Build deterministic output file paths.

    Returns a dict with keys: ``features``, ``manifest``.
    """
    base = Path(processed_dir) / "features"
    today = date.today().isoformat()
    return {
        "features": base / f"features_{first_week}_{last_week}.parquet",
        "manifest": base / "manifests" / f"manifest_{today}.json",
    }


def _hash_file(path: Path) -> str:
    """Return the SHA-256 hex digest of a file's contents."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


# ── Manifest ───────────────────────────────────────────────────────────────────

def build_manifest(
    result: FeatureBuildResult,
    quality: FeatureQualityReport,
    features_path: Path,
    run_slug: str,
    config: AppConfig,
) -> dict[str, Any]:
    """Build the manifest dict for one feature build."""
    return {
        "schema_version": SCHEMA_VERSION,
        "built_at": datetime.now(tz=timezone.utc).isoformat(),
        "run_slug": run_slug,
        "mode": result.mode.value,
        "global_min_date": result.global_min_date.isoformat() if result.global_min_date else None,
        "files": {
            "features": {
                "path": str(features_path),
                "sha256": _hash_file(features_path) if features_path.exists() else None,
                "rows": len(result.rows),
                "compression": "snappy",
            },
        },
        "feature_columns": [spec.name for spec in FEATURE_REGISTRY],
        "historical_averages": result.historical_averages,
        "skipped_categories": [asdict(s) for s in result.skipped],
        "quality": asdict(quality),
        "config_snapshot": {
            "features": config.features.model_dump(),
            "aggregation": config.aggregation.model_dump(),
        },
    }


def write_manifest(manifest: dict[str, Any], path: Path) -> None:
    """Write the manifest dict as pretty-printed JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, default=str)
    log.info("Manifest written: %s", path.name)


# ── Main orchestrator ──────────────────────────────────────────────────────────

def build_global_from_records(records: list[WeeklyRecord], config: AppConfig) -> FeatureBuildResult:
    """Gap-fill every category and run the fit-mode global build."""
    return build_global_features(
        fill_all_categories(records),
        mode=BuildMode.FIT,
        min_weeks=config.features.min_weeks_per_category,
        max_workers=config.features.max_workers,
    )


def build_feature_dataset(
    records: list[WeeklyRecord],
    config: AppConfig,
    run: RunMetadata,
) -> tuple[FeatureBuildResult, dict[str, Path]]:
    """Build global feature rows from weekly records and persist them.

    This is the entry point called by ``FeatureBuildStage._execute()``.

    Returns:
        The build result and the paths written.  With no buildable rows,
        nothing is written and the path dict is empty.
    """
    result = build_global_from_records(records, config)
    if not result.rows:
        log.warning(
            "No feature rows built (%d categories skipped); nothing written.",
            len(result.skipped),
        )
        return result, {}

    quality = build_quality_report(result.rows, result.skipped)
    if not quality.is_clean:
        log.warning(
            "Feature quality issues: %d duplicate keys, %d leakage warnings",
            quality.duplicate_key_count, len(quality.leakage_warnings),
        )

    weeks = [r.week_start for r in records]
    paths = make_output_paths(config.data.processed_dir, min(weeks), max(weeks))
    write_features_parquet(result.rows, paths["features"])
    manifest = build_manifest(result, quality, paths["features"], run.run_slug, config)
    write_manifest(manifest, paths["manifest"])
    return result, paths
