"""Metrics collection for batch runs."""

import threading
import time
from typing import Dict, Any, List
from collections import defaultdict


class MetricsCollector:
    """
    Collects timers, samples and counters for a batch run.
    Implements IMetricsCollector protocol.

    Safe to share between concurrently running jobs.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._start_time = time.monotonic()
        self._timers: Dict[str, float] = {}
        self._metrics: Dict[str, List[Any]] = defaultdict(list)
        self._counters: Dict[str, int] = defaultdict(int)

    def start_timer(self, name: str) -> None:
        """Start a named timer."""
        with self._lock:
            self._timers[name] = time.monotonic()

    def stop_timer(self, name: str) -> float:
        """
        Stop a named timer and return elapsed time.

        Args:
            name: Timer name

        Returns:
            Elapsed time in seconds

        Raises:
            KeyError: If timer was not started
        """
        with self._lock:
            if name not in self._timers:
                raise KeyError(f"Timer '{name}' was not started")
            elapsed = time.monotonic() - self._timers.pop(name)
            self._metrics[f"{name}_duration"].append(elapsed)
        return elapsed

    def record_metric(self, name: str, value: Any) -> None:
        """Record a metric value."""
        with self._lock:
            self._metrics[name].append(value)

    def increment_counter(self, name: str, amount: int = 1) -> None:
        """Increment a counter."""
        with self._lock:
            self._counters[name] += amount

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def get_metric(self, name: str) -> list:
        with self._lock:
            return list(self._metrics.get(name, []))

    def get_summary(self) -> Dict[str, Any]:
        """
        Get summary of all metrics.

        Returns:
            Dictionary with elapsed time, counters and per-metric statistics
        """
        with self._lock:
            counters = dict(self._counters)
            metrics = {name: list(values) for name, values in self._metrics.items()}

        summary: Dict[str, Any] = {
            "total_elapsed": self.elapsed_time(),
            "counters": counters,
            "metrics": {}
        }

        for name, values in metrics.items():
            if not values:
                continue
            if all(isinstance(v, (int, float)) for v in values):
                summary["metrics"][name] = {
                    "count": len(values),
                    "sum": sum(values),
                    "avg": sum(values) / len(values),
                    "min": min(values),
                    "max": max(values),
                }
            else:
                summary["metrics"][name] = {
                    "count": len(values),
                    "values": values
                }

        return summary

    def elapsed_time(self) -> float:
        """Get total elapsed time since initialization or last reset."""
        return time.monotonic() - self._start_time

    def reset(self) -> None:
        """Reset all metrics and timers."""
        with self._lock:
            self._start_time = time.monotonic()
            self._timers.clear()
            self._metrics.clear()
            self._counters.clear()
