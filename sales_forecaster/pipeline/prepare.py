"""
PrepareDataStage — raw Olist CSVs → weekly per-category cache.

Writes ``config.data.weekly_cache_path`` (JSON, see ``reporting.export``).
Later stages read the cache instead of re-parsing the CSVs.
"""

from __future__ import annotations

import logging
from typing import Optional

from sales_forecaster.features.weekly_agg import aggregate_weekly_sales
from sales_forecaster.ingestion.olist_csv import load_olist_dataset
from sales_forecaster.models.meta import RunMetadata
from sales_forecaster.pipeline.base import PipelineStage
from sales_forecaster.reporting.export import write_weekly_records

log = logging.getLogger(__name__)


class PrepareDataStage(PipelineStage):
    """Load the raw CSVs, aggregate weekly and write the cache."""

    stage_name = "prepare"

    def _execute(
        self,
        run: RunMetadata,
        top_n: Optional[int] = None,
        all_categories: bool = False,
        **kwargs,
    ) -> int:
        """Aggregate and cache weekly records.

        Args:
            run:            In-progress ``RunMetadata``.
            top_n:          Category cap; defaults to ``config.aggregation.top_n``.
            all_categories: Skip the category cap entirely.

        Returns:
            Number of weekly records written.
        """
        dataset = load_olist_dataset(self.config.data)
        cap = None if all_categories else (top_n or self.config.aggregation.top_n)

        records = aggregate_weekly_sales(
            dataset.orders,
            dataset.order_items,
            dataset.products,
            top_n=cap,
            translations=dataset.translations,
            delivered_status=self.config.aggregation.delivered_status,
        )
        path = write_weekly_records(records, self.config.data.weekly_cache_path)

        weeks = sorted({r.week_start for r in records})
        run.summary.update({
            "cache_path": str(path),
            "categories": len({r.category for r in records}),
            "top_n": cap,
            "first_week": weeks[0].isoformat() if weeks else None,
            "last_week": weeks[-1].isoformat() if weeks else None,
        })
        return len(records)
