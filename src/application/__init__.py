"""Application layer package."""

from application.assembler import ConfigurationAssembler, load_template
from application.classifier import OutcomeClassifier
from application.coordinator import ConcurrencyCoordinator
from application.enumerator import WorkEnumerator
from application.orchestrator import BatchOrchestrator
from application.report import ReportAggregator, format_summary

__all__ = [
    "ConfigurationAssembler",
    "load_template",
    "OutcomeClassifier",
    "ConcurrencyCoordinator",
    "WorkEnumerator",
    "BatchOrchestrator",
    "ReportAggregator",
    "format_summary",
]
