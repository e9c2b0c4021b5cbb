"""
LeakageAuditStage — run the five leakage checks over the date-cutoff split.

The audit never fails the stage: a failed verdict is logged at WARNING and
recorded in the run summary, and the text/JSON report is written either way.
"""

from __future__ import annotations

import logging

from sales_forecaster.models.meta import RunMetadata
from sales_forecaster.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class LeakageAuditStage(PipelineStage):
    """Build global features, split by date and audit the split."""

    stage_name = "leakage_audit"

    def _execute(self, run: RunMetadata, **kwargs) -> int:
        from sales_forecaster.backtest.splits import split_global_by_date
        from sales_forecaster.diagnostics.leakage import detect_leakage
        from sales_forecaster.features.dataset_builder import build_global_from_records
        from sales_forecaster.reporting.export import read_weekly_records, write_leakage_report

        records = read_weekly_records(self.config.data.weekly_cache_path)
        result = build_global_from_records(records, self.config)
        split = split_global_by_date(result, self.config.split.train_end, self.config.split.test_start)

        audit = self.config.audit
        report = detect_leakage(
            split.train,
            split.test,
            weekly_records=records,
            correlation_threshold=audit.correlation_threshold,
            range_tolerance=audit.range_tolerance,
            range_features=audit.range_features,
        )
        paths = write_leakage_report(report, self.outputs_dir)

        run.summary.update({
            "verdict": report.verdict,
            "failed_checks": report.failed_checks,
            "train_rows": report.train_samples,
            "test_rows": report.test_samples,
            "report_text": str(paths["text"]),
            "report_json": str(paths["json"]),
        })
        return report.train_samples + report.test_samples
