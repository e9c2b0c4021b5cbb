"""
FeatureBuildStage — weekly cache → global feature Parquet + manifest.

Outputs to ``config.data.processed_dir/features/`` (see
``features.dataset_builder``).  Categories with fewer than
``config.features.min_weeks_per_category`` weeks are skipped and listed in
the run summary and manifest.
"""

from __future__ import annotations

import logging

from sales_forecaster.models.meta import RunMetadata
from sales_forecaster.pipeline.base import PipelineStage

log = logging.getLogger(__name__)


class FeatureBuildStage(PipelineStage):
    """Build global feature rows from the weekly cache."""

    stage_name = "feature_build"

    def _execute(self, run: RunMetadata, **kwargs) -> int:
        from sales_forecaster.features.dataset_builder import build_feature_dataset
        from sales_forecaster.reporting.export import read_weekly_records

        records = read_weekly_records(self.config.data.weekly_cache_path)
        result, paths = build_feature_dataset(records, self.config, run)

        run.summary.update({
            "categories": len(result.categories),
            "skipped_categories": [s.category for s in result.skipped],
            "global_min_date": result.global_min_date.isoformat() if result.global_min_date else None,
            "files": {name: str(p) for name, p in paths.items()},
        })
        return len(result.rows)
