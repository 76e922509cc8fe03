"""Domain models for drawing batch runs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, Tuple


class MatchStrategy(Enum):
    """How an item identity was matched against the override table."""

    EXACT = "exact"
    EXACT_STEM = "exact_without_extension"
    CASE_INSENSITIVE = "case_insensitive"
    SUBSTRING = "substring"


class JobOutcome(Enum):
    """Terminal classification of a job."""

    SUCCESS = "success"
    FAILED_VALIDATION = "failed_validation"
    NON_PROCESSED = "non_processed"


class JobState(Enum):
    """Lifecycle of a single job."""

    DISCOVERED = "discovered"
    CONFIG_RESOLVED = "config_resolved"
    CONFIG_UNAVAILABLE = "config_unavailable"
    DISPATCHED = "dispatched"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    CRASHED = "crashed"


class Termination(Enum):
    """How an engine process ended."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    CRASHED = "crashed"


class DiagnosticKind(Enum):
    """Kinds of structured diagnostics extracted from engine output."""

    MODULE_LOADING = "module_loading"
    LOAD_ERROR = "load_error"
    COMMAND_NOT_FOUND = "command_not_found"
    NOISE = "noise"
    STDERR = "stderr"


class ProgressKind(Enum):
    RUN_STARTED = "run_started"
    JOB_STARTED = "job_started"
    JOB_FINISHED = "job_finished"
    RUN_FINISHED = "run_finished"


@dataclass(frozen=True)
class WorkItem:
    """One input file consumed exactly once per run."""

    identity: str
    path: Path

    def __post_init__(self):
        if not self.identity:
            raise ValueError("Work item identity cannot be empty")

    @property
    def stem(self) -> str:
        """Identity without its extension."""
        return Path(self.identity).stem

    @classmethod
    def from_path(cls, path: Path) -> "WorkItem":
        return cls(identity=path.name, path=path)


@dataclass(frozen=True)
class JobConfiguration:
    """Fully resolved configuration for one job, serialized as JSON."""

    content: str
    from_template: bool = False
    from_overrides: bool = False
    match_strategy: Optional[MatchStrategy] = None
    matched_key: Optional[str] = None

    @property
    def source(self) -> str:
        parts = []
        if self.from_template:
            parts.append("template")
        if self.from_overrides:
            parts.append("overrides")
        return "+".join(parts) or "defaults"


@dataclass(frozen=True)
class ConfigurationUnavailable:
    """Marker returned when no configuration can be resolved for an item."""

    reason: str


@dataclass(frozen=True)
class LineDiagnostic:
    """Structured finding extracted from a single line of engine output."""

    kind: DiagnosticKind
    line: str
    shared_module: bool = False


@dataclass
class ProcessOutcome:
    """Raw result of supervising one engine process."""

    termination: Termination
    exit_code: Optional[int] = None
    output: str = ""
    error: Optional[str] = None
    load_errors: List[str] = field(default_factory=list)
    commands_not_found: List[str] = field(default_factory=list)
    shared_module_load_failed: bool = False
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class JobResult:
    """Immutable copy of a finished job, folded into the run summary."""

    identity: str
    path: Path
    outcome: JobOutcome
    error_message: Optional[str] = None
    exit_code: Optional[int] = None
    duration_seconds: float = 0.0
    match_strategy: Optional[MatchStrategy] = None
    load_errors: Tuple[str, ...] = ()
    commands_not_found: Tuple[str, ...] = ()
    shared_module_load_failed: bool = False

    @property
    def was_processed(self) -> bool:
        return self.outcome is not JobOutcome.NON_PROCESSED

    @property
    def success(self) -> bool:
        return self.outcome is JobOutcome.SUCCESS


@dataclass
class Job:
    """
    Per-item unit of work.

    Owned and mutated by the worker executing it only; its result is
    copied out through to_result() and the job itself is discarded.
    """

    item: WorkItem
    configuration: Optional[JobConfiguration] = None
    unavailable: Optional[ConfigurationUnavailable] = None
    state: JobState = JobState.DISCOVERED
    script_path: Optional[Path] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    output: str = ""
    exit_code: Optional[int] = None
    was_processed: bool = False
    success: bool = False
    error_message: Optional[str] = None
    load_errors: List[str] = field(default_factory=list)
    commands_not_found: List[str] = field(default_factory=list)
    shared_module_load_failed: bool = False

    @property
    def identity(self) -> str:
        return self.item.identity

    @property
    def outcome(self) -> JobOutcome:
        if not self.was_processed:
            return JobOutcome.NON_PROCESSED
        return JobOutcome.SUCCESS if self.success else JobOutcome.FAILED_VALIDATION

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_result(self) -> JobResult:
        return JobResult(
            identity=self.item.identity,
            path=self.item.path,
            outcome=self.outcome,
            error_message=self.error_message,
            exit_code=self.exit_code,
            duration_seconds=self.duration_seconds,
            match_strategy=self.configuration.match_strategy if self.configuration else None,
            load_errors=tuple(self.load_errors),
            commands_not_found=tuple(self.commands_not_found),
            shared_module_load_failed=self.shared_module_load_failed,
        )


@dataclass(frozen=True)
class RunSummary:
    """Aggregate of every job result of one run."""

    results: Tuple[JobResult, ...] = ()
    output_folder: Optional[Path] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    cancelled: bool = False
    metrics: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> List[JobResult]:
        return self._by_outcome(JobOutcome.SUCCESS)

    @property
    def failed_validation(self) -> List[JobResult]:
        return self._by_outcome(JobOutcome.FAILED_VALIDATION)

    @property
    def non_processed(self) -> List[JobResult]:
        return self._by_outcome(JobOutcome.NON_PROCESSED)

    @property
    def shared_module_load_failed(self) -> bool:
        return any(r.shared_module_load_failed for r in self.results)

    @property
    def all_successful(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def _by_outcome(self, outcome: JobOutcome) -> List[JobResult]:
        return sorted(
            (r for r in self.results if r.outcome is outcome),
            key=lambda r: r.identity,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Structured view of the summary, item lists sorted by identity."""
        processed = [r for r in self.results if r.was_processed]
        avg = (
            sum(r.duration_seconds for r in processed) / len(processed)
            if processed else 0.0
        )
        return {
            "total": self.total,
            "successful": len(self.successful),
            "failed_validation": len(self.failed_validation),
            "non_processed": len(self.non_processed),
            "cancelled": self.cancelled,
            "shared_module_load_failed": self.shared_module_load_failed,
            "output_folder": str(self.output_folder) if self.output_folder else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "average_seconds_per_file": round(avg, 3),
            "failed_validation_items": [r.identity for r in self.failed_validation],
            "non_processed_items": [
                {"identity": r.identity, "reason": r.error_message or ""}
                for r in self.non_processed
            ],
            "load_errors": {
                r.identity: list(r.load_errors)
                for r in sorted(self.results, key=lambda r: r.identity)
                if r.load_errors
            },
            "commands_not_found": {
                r.identity: list(r.commands_not_found)
                for r in sorted(self.results, key=lambda r: r.identity)
                if r.commands_not_found
            },
            "items": [
                {
                    "identity": r.identity,
                    "outcome": r.outcome.value,
                    "exit_code": r.exit_code,
                    "duration_seconds": round(r.duration_seconds, 3),
                }
                for r in sorted(self.results, key=lambda r: r.identity)
            ],
            "metrics": self.metrics,
        }


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification pushed by the orchestrator."""

    kind: ProgressKind
    total: int = 0
    completed: int = 0
    identity: Optional[str] = None
    result: Optional[JobResult] = None
