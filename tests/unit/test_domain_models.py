"""Tests for domain models."""

import pytest
from datetime import datetime, timedelta
from pathlib import Path

from domain.models import (
    Job,
    JobConfiguration,
    JobOutcome,
    JobResult,
    MatchStrategy,
    RunSummary,
    WorkItem,
)


def _result(identity, outcome, **kwargs):
    return JobResult(identity=identity, path=Path(identity), outcome=outcome, **kwargs)


class TestWorkItem:
    """Test WorkItem."""

    def test_from_path(self):
        """Identity is the file name, stem drops the extension."""
        item = WorkItem.from_path(Path("/data/Drawing1.dwg"))

        assert item.identity == "Drawing1.dwg"
        assert item.stem == "Drawing1"

    def test_empty_identity_rejected(self):
        """Empty identity raises."""
        with pytest.raises(ValueError):
            WorkItem(identity="", path=Path("x"))


class TestJobConfiguration:
    """Test JobConfiguration."""

    def test_source_labels(self):
        """Source names whichever inputs contributed."""
        assert JobConfiguration("{}", from_template=True).source == "template"
        assert JobConfiguration("{}", from_overrides=True).source == "overrides"
        assert JobConfiguration("{}", True, True, MatchStrategy.EXACT).source == "template+overrides"


class TestJob:
    """Test Job state and result copy."""

    def test_outcome_from_flags(self):
        """Outcome derives from was_processed/success."""
        job = Job(item=WorkItem.from_path(Path("a.dwg")))
        assert job.outcome is JobOutcome.NON_PROCESSED

        job.was_processed = True
        assert job.outcome is JobOutcome.FAILED_VALIDATION

        job.success = True
        assert job.outcome is JobOutcome.SUCCESS

    def test_to_result_copies_fields(self):
        """to_result carries diagnostics and duration."""
        start = datetime(2025, 1, 1, 10, 0, 0)
        job = Job(
            item=WorkItem.from_path(Path("a.dwg")),
            configuration=JobConfiguration("{}", match_strategy=MatchStrategy.CASE_INSENSITIVE),
            started_at=start,
            finished_at=start + timedelta(seconds=12),
            was_processed=True,
            success=True,
            exit_code=5,
        )
        job.load_errors.append("NETLOAD error")

        result = job.to_result()

        assert result.identity == "a.dwg"
        assert result.success
        assert result.exit_code == 5
        assert result.duration_seconds == 12.0
        assert result.match_strategy is MatchStrategy.CASE_INSENSITIVE
        assert result.load_errors == ("NETLOAD error",)


class TestRunSummary:
    """Test RunSummary."""

    def test_buckets_sorted_by_identity(self):
        """Per-bucket lists are sorted regardless of completion order."""
        summary = RunSummary(results=(
            _result("c.dwg", JobOutcome.SUCCESS),
            _result("b.dwg", JobOutcome.FAILED_VALIDATION),
            _result("a.dwg", JobOutcome.SUCCESS),
            _result("d.dwg", JobOutcome.NON_PROCESSED, error_message="timeout"),
        ))

        assert [r.identity for r in summary.successful] == ["a.dwg", "c.dwg"]
        assert [r.identity for r in summary.failed_validation] == ["b.dwg"]
        assert [r.identity for r in summary.non_processed] == ["d.dwg"]
        assert not summary.all_successful

    def test_shared_module_flag(self):
        """Flag is set when any result carries it."""
        summary = RunSummary(results=(
            _result("a.dwg", JobOutcome.SUCCESS),
            _result("b.dwg", JobOutcome.SUCCESS, shared_module_load_failed=True),
        ))

        assert summary.shared_module_load_failed

    def test_to_dict(self):
        """Structured view lists reasons and counts."""
        start = datetime(2025, 1, 1, 10, 0, 0)
        summary = RunSummary(
            results=(
                _result("a.dwg", JobOutcome.SUCCESS, duration_seconds=2.0),
                _result("b.dwg", JobOutcome.FAILED_VALIDATION, duration_seconds=4.0),
                _result("c.dwg", JobOutcome.NON_PROCESSED, error_message="No configuration"),
            ),
            output_folder=Path("out"),
            started_at=start,
            finished_at=start + timedelta(seconds=10),
        )

        data = summary.to_dict()

        assert data["total"] == 3
        assert data["successful"] == 1
        assert data["failed_validation"] == 1
        assert data["non_processed"] == 1
        assert data["duration_seconds"] == 10.0
        assert data["average_seconds_per_file"] == 3.0
        assert data["failed_validation_items"] == ["b.dwg"]
        assert data["non_processed_items"] == [{"identity": "c.dwg", "reason": "No configuration"}]

    def test_empty_summary(self):
        """Empty run has zero counts."""
        summary = RunSummary()

        assert summary.total == 0
        assert summary.all_successful
        assert summary.to_dict()["average_seconds_per_file"] == 0.0
