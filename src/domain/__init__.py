"""Domain layer package."""

from .models import (
    WorkItem,
    JobConfiguration,
    ConfigurationUnavailable,
    MatchStrategy,
    JobOutcome,
    JobState,
    Termination,
    DiagnosticKind,
    LineDiagnostic,
    ProcessOutcome,
    Job,
    JobResult,
    RunSummary,
    ProgressKind,
    ProgressEvent,
)
from .exceptions import (
    DomainException,
    ConfigurationError,
    OverrideTableError,
    ExtensionModuleMissingError,
    ScriptBuildError,
    EngineLaunchError,
)
from .protocols import (
    IOverrideTable,
    ILineClassifier,
    IProcess,
    IProgressListener,
    IMetricsCollector,
)

__all__ = [
    # Models
    "WorkItem",
    "JobConfiguration",
    "ConfigurationUnavailable",
    "MatchStrategy",
    "JobOutcome",
    "JobState",
    "Termination",
    "DiagnosticKind",
    "LineDiagnostic",
    "ProcessOutcome",
    "Job",
    "JobResult",
    "RunSummary",
    "ProgressKind",
    "ProgressEvent",
    # Exceptions
    "DomainException",
    "ConfigurationError",
    "OverrideTableError",
    "ExtensionModuleMissingError",
    "ScriptBuildError",
    "EngineLaunchError",
    # Protocols
    "IOverrideTable",
    "ILineClassifier",
    "IProcess",
    "IProgressListener",
    "IMetricsCollector",
]
