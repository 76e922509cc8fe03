"""Shared utilities package."""

from shared.logging import setup_logger, get_logger, JobLogAdapter
from shared.metrics import MetricsCollector
from shared.types import OverrideRow, PathLike

__all__ = [
    "setup_logger",
    "get_logger",
    "JobLogAdapter",
    "MetricsCollector",
    "PathLike",
    "OverrideRow",
]
