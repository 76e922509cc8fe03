"""Artifact-based job outcome classification."""

from pathlib import Path

from domain.models import ConfigurationUnavailable, Job, JobState, ProcessOutcome, Termination, WorkItem


class OutcomeClassifier:
    """
    Decides Success / FailedValidation / NonProcessed for finished jobs.

    The engine writes <drawing name><artifact_extension> into the run output
    folder only when it finds a problem, so artifact presence means the
    drawing failed validation and absence means it passed. The exit code
    is never consulted.
    """

    def __init__(self, output_folder: Path, artifact_extension: str = ".json"):
        self.output_folder = Path(output_folder)
        self.artifact_extension = artifact_extension

    def artifact_path(self, item: WorkItem) -> Path:
        return self.output_folder / f"{item.stem}{self.artifact_extension}"

    def artifact_exists(self, item: WorkItem) -> bool:
        return self.artifact_path(item).is_file()

    def classify_unavailable(self, job: Job, unavailable: ConfigurationUnavailable) -> None:
        job.state = JobState.CONFIG_UNAVAILABLE
        self._mark_non_processed(job, unavailable.reason)

    def classify_not_started(self, job: Job, reason: str) -> None:
        """Failure before any process was spawned."""
        self._mark_non_processed(job, reason)

    def classify(self, job: Job, outcome: ProcessOutcome) -> None:
        """
        Classify a job whose engine process has ended.

        Args:
            job: Job to update
            outcome: How the engine process ended
        """
        job.exit_code = outcome.exit_code
        job.output = outcome.output
        job.load_errors = list(outcome.load_errors)
        job.commands_not_found = list(outcome.commands_not_found)
        job.shared_module_load_failed = outcome.shared_module_load_failed

        if outcome.termination is Termination.TIMED_OUT:
            job.state = JobState.TIMED_OUT
            self._mark_non_processed(job, outcome.error or "Process timed out")
            return

        if outcome.termination is Termination.CANCELLED:
            job.state = JobState.CANCELLED
            self._mark_non_processed(job, outcome.error or "Run cancelled")
            return

        if outcome.termination is Termination.CRASHED:
            self.classify_crashed(job, outcome.error or "Engine process failed")
            return

        job.state = JobState.COMPLETED
        job.was_processed = True
        if self.artifact_exists(job.item):
            job.success = False
            job.error_message = f"Validation failed: {self.artifact_path(job.item).name} written by engine"
        else:
            job.success = True
            job.error_message = None

    def classify_crashed(self, job: Job, error: str) -> None:
        """Failure after the process was spawned."""
        job.state = JobState.CRASHED
        if self.artifact_exists(job.item):
            job.was_processed = True
            job.success = False
            job.error_message = f"Validation failed: {self.artifact_path(job.item).name} written by engine ({error})"
        else:
            self._mark_non_processed(job, error)

    @staticmethod
    def _mark_non_processed(job: Job, reason: str) -> None:
        job.was_processed = False
        job.success = False
        job.error_message = reason
