"""
File export helpers.

All writers create missing parent directories and return the written ``Path``.

Weekly cache
------------
``write_weekly_records()`` stores the aggregation as::

    {"schema_version": "1.0", "record_count": N, "records": [...]}

Each record uses the ``WeeklyRecord`` field names; ``week_start`` is an ISO
date and ``revenue`` a decimal string, so ``read_weekly_records()`` restores
identical values (no float rounding).
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path

from sales_forecaster.models.leakage import LeakageReport
from sales_forecaster.models.weekly import WeeklyRecord
from sales_forecaster.reporting.formatters import format_leakage_report

logger = logging.getLogger(__name__)

WEEKLY_CACHE_SCHEMA = "1.0"


def export_to_csv(
    records: list[dict],
    path: Path,
    fieldnames: list[str] | None = None,
) -> Path:
    """Write ``records`` to a UTF-8 CSV file.

    Args:
        records:    List of flat row dicts.
        path:       Destination file path.
        fieldnames: Column order.  If None, uses the keys of the first record.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if not records:
        path.write_text("", encoding="utf-8")
        return path
    cols = fieldnames or list(records[0].keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(records)
    return path


def export_to_json(data: dict | list, path: Path) -> Path:
    """Write ``data`` to a pretty-printed JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    return path


# ── Weekly cache ───────────────────────────────────────────────────────────────


def write_weekly_records(records: list[WeeklyRecord], path: Path) -> Path:
    payload = {
        "schema_version": WEEKLY_CACHE_SCHEMA,
        "record_count": len(records),
        "records": [r.model_dump(mode="json") for r in records],
    }
    export_to_json(payload, path)
    logger.info("Weekly cache written: %s (%d records)", path, len(records))
    return path


def read_weekly_records(path: Path) -> list[WeeklyRecord]:
    """Load a weekly cache written by ``write_weekly_records()``.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: On an unknown schema version.
        pydantic.ValidationError: If a record is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(
            f"Weekly cache not found: {path}\nRun 'sales-forecaster prepare-data' first."
        )
    payload = json.loads(path.read_text(encoding="utf-8"))
    version = payload.get("schema_version")
    if version != WEEKLY_CACHE_SCHEMA:
        raise ValueError(f"Unsupported weekly cache schema '{version}' in {path}.")
    records = [WeeklyRecord.model_validate(r) for r in payload.get("records", [])]
    logger.info("Weekly cache loaded: %s (%d records)", path, len(records))
    return records


# ── Leakage report ─────────────────────────────────────────────────────────────


def write_leakage_report(report: LeakageReport, output_dir: Path, stem: str = "leakage_report") -> dict[str, Path]:
    """Write the report as text (``{stem}.txt``) and JSON (``{stem}.json``)."""
    text_path = output_dir / f"{stem}.txt"
    text_path.parent.mkdir(parents=True, exist_ok=True)
    text_path.write_text(format_leakage_report(report) + "\n", encoding="utf-8")
    json_path = export_to_json(report.model_dump(mode="json"), output_dir / f"{stem}.json")
    logger.info("Leakage report written: %s, %s", text_path.name, json_path.name)
    return {"text": text_path, "json": json_path}
