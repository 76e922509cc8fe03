"""Protocol definitions for dependency inversion."""

from typing import Protocol, List, Optional, Mapping, Iterable, Any, Dict
from .models import LineDiagnostic, ProgressEvent


class IOverrideTable(Protocol):
    """Per-item override lookup, keyed by item identity."""

    @property
    def headers(self) -> List[str]:
        """Known column headers, identity column first."""
        ...

    def keys(self) -> Iterable[str]:
        """All lookup keys, in table order."""
        ...

    def get(self, key: str) -> Optional[Mapping[str, str]]:
        """Return the column -> raw value mapping stored under key, if any."""
        ...


class ILineClassifier(Protocol):
    """Turns one line of engine output into an optional diagnostic."""

    def classify(self, line: str, stream: str = "stdout") -> Optional[LineDiagnostic]:
        """Classify a line read from the given stream ('stdout' or 'stderr')."""
        ...


class IProcess(Protocol):
    """Subset of asyncio.subprocess.Process used by the runner."""

    stdout: Any
    stderr: Any
    returncode: Optional[int]
    pid: int

    async def wait(self) -> int:
        ...

    def kill(self) -> None:
        ...


class IProgressListener(Protocol):
    """Receives progress events from the orchestrator."""

    def __call__(self, event: ProgressEvent) -> None:
        ...


class IMetricsCollector(Protocol):
    """Interface for collecting metrics."""

    def start_timer(self, name: str) -> None:
        """Start a named timer."""
        ...

    def stop_timer(self, name: str) -> float:
        """Stop a named timer and return elapsed time."""
        ...

    def record_metric(self, name: str, value: Any) -> None:
        """Record a metric value."""
        ...

    def increment_counter(self, name: str, amount: int = 1) -> None:
        """Increment a counter."""
        ...

    def get_summary(self) -> Dict[str, Any]:
        """Counters and per-metric statistics."""
        ...

    def reset(self) -> None:
        """Discard all timers, samples and counters."""
        ...
