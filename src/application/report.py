"""Run summary aggregation and rendering."""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from domain.models import JobOutcome, JobResult, RunSummary
from domain.protocols import IMetricsCollector
from shared.logging import get_logger
from shared.metrics import MetricsCollector

logger = get_logger(__name__)


class ReportAggregator:
    """Thread-safe fold of job results into a RunSummary."""

    def __init__(self, metrics: Optional[IMetricsCollector] = None):
        self._lock = threading.Lock()
        self._results: List[JobResult] = []
        self._metrics = metrics or MetricsCollector()

    def add(self, result: JobResult) -> None:
        with self._lock:
            self._results.append(result)
        self._metrics.increment_counter(result.outcome.value)
        if result.was_processed:
            self._metrics.record_metric("job_seconds", result.duration_seconds)

    @property
    def results(self) -> List[JobResult]:
        with self._lock:
            return list(self._results)

    @property
    def completed(self) -> int:
        with self._lock:
            return len(self._results)

    def build(
        self,
        output_folder: Optional[Path] = None,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
        cancelled: bool = False
    ) -> RunSummary:
        return RunSummary(
            results=tuple(self.results),
            output_folder=output_folder,
            started_at=started_at,
            finished_at=finished_at,
            cancelled=cancelled,
            metrics=self._metrics.get_summary(),
        )


def format_summary(summary: RunSummary) -> str:
    """
    Render a summary as operator-facing text.

    Output depends only on the summary contents, never on completion order.
    """
    data = summary.to_dict()
    sep = "=" * 60
    lines = [
        sep,
        "BATCH RUN SUMMARY",
        sep,
        f"Total files:        {data['total']}",
        f"Successful:         {data['successful']}",
        f"Failed validation:  {data['failed_validation']}",
        f"Non-processed:      {data['non_processed']}",
        f"Duration:           {data['duration_seconds']:.1f}s",
        f"Avg per file:       {data['average_seconds_per_file']:.1f}s",
    ]
    job_seconds = summary.metrics.get("metrics", {}).get("job_seconds")
    if job_seconds:
        lines.append(
            f"Job time:           min {job_seconds['min']:.1f}s / avg {job_seconds['avg']:.1f}s"
            f" / max {job_seconds['max']:.1f}s"
        )
    if data["output_folder"]:
        lines.append(f"Output folder:      {data['output_folder']}")
    if summary.cancelled:
        lines.append("Run was cancelled before all files were processed.")

    if summary.failed_validation:
        lines.append("")
        lines.append("Failed validation:")
        lines.extend(f"  - {r.identity}" for r in summary.failed_validation)

    if summary.non_processed:
        lines.append("")
        lines.append("Non-processed:")
        lines.extend(f"  - {r.identity}: {r.error_message or 'unknown reason'}" for r in summary.non_processed)

    if data["load_errors"]:
        lines.append("")
        lines.append("Module load errors:")
        for identity, errors in data["load_errors"].items():
            lines.extend(f"  - {identity}: {error}" for error in errors)

    if data["commands_not_found"]:
        lines.append("")
        lines.append("Command not found:")
        for identity, messages in data["commands_not_found"].items():
            lines.extend(f"  - {identity}: {message}" for message in messages)

    if summary.shared_module_load_failed:
        lines.append("")
        lines.append("[WARN] The shared UI module failed to load in at least one job;")
        lines.append("       commands depending on it did not run.")

    lines.append(sep)
    return "\n".join(lines)


def write_summary_json(summary: RunSummary, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8", errors="replace")
    logger.info(f"[OK] Summary written to {path}")
    return path


def outcome_label(outcome: JobOutcome) -> str:
    return {
        JobOutcome.SUCCESS: "[OK] Success",
        JobOutcome.FAILED_VALIDATION: "[FAIL] Failed validation",
        JobOutcome.NON_PROCESSED: "[SKIP] Non-processed",
    }[outcome]
