"""Batch orchestrator - coordinates a whole run."""

import asyncio
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from application.assembler import ConfigurationAssembler, Resolution, load_template
from application.classifier import OutcomeClassifier
from application.coordinator import ConcurrencyCoordinator
from application.enumerator import WorkEnumerator
from application.report import ReportAggregator, outcome_label
from domain.exceptions import EngineLaunchError, ExtensionModuleMissingError, ScriptBuildError
from domain.protocols import IMetricsCollector, IProgressListener
from domain.models import (
    ConfigurationUnavailable,
    Job,
    JobResult,
    JobState,
    ProgressEvent,
    ProgressKind,
    RunSummary,
    WorkItem,
)
from infrastructure.config.loader import BatchSettings
from infrastructure.engine.output_scanner import EngineOutputClassifier
from infrastructure.engine.process_runner import EngineParameters, ProcessRunner, SpawnFunction
from infrastructure.engine.script_builder import JobScriptBuilder, ScriptMode
from infrastructure.overrides.csv_table import CsvOverrideTable
from infrastructure.overrides.field_mapping import FieldMapping
from infrastructure.storage.temp_storage import ScriptStorage
from shared.logging import JobLogAdapter, get_logger
from shared.metrics import MetricsCollector
from shared.types import PathLike

logger = get_logger(__name__)

ProgressCallback = IProgressListener

CANCELLED_BEFORE_DISPATCH = "Run cancelled before dispatch"


def run_timestamp(now: datetime) -> str:
    """Run folder / TIMESTAMP value, e.g. 20250101_093015_042."""
    return now.strftime("%Y%m%d_%H%M%S_") + f"{now.microsecond // 1000:03d}"


class BatchOrchestrator:
    """
    Main orchestrator - enumerates, resolves, dispatches and reports.

    Every work item yields exactly one JobResult, whether it ran, was
    skipped for lack of configuration, or was never dispatched because
    the run was cancelled.
    """

    def __init__(
        self,
        assembler: ConfigurationAssembler,
        script_builder: JobScriptBuilder,
        runner: ProcessRunner,
        storage: ScriptStorage,
        max_parallel: int = 4,
        artifact_extension: str = ".json",
        enumerator: Optional[WorkEnumerator] = None,
        metrics: Optional[IMetricsCollector] = None,
        progress: Optional[ProgressCallback] = None
    ):
        self._assembler = assembler
        self._builder = script_builder
        self._runner = runner
        self._storage = storage
        self._max_parallel = max_parallel
        self._artifact_extension = artifact_extension
        self._enumerator = enumerator or WorkEnumerator()
        self._metrics = metrics or MetricsCollector()
        self._progress = progress
        self._logger = get_logger(__name__)

        self._cancel_requested = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._cancel_event: Optional[asyncio.Event] = None

    @classmethod
    def from_settings(
        cls,
        settings: BatchSettings,
        template_path: Optional[PathLike] = None,
        overrides_path: Optional[PathLike] = None,
        progress: Optional[ProgressCallback] = None,
        spawn: Optional[SpawnFunction] = None
    ) -> "BatchOrchestrator":
        """
        Wire a fully configured orchestrator.

        Raises:
            ConfigurationError: If the override table or field mapping is invalid
        """
        mapping = FieldMapping.from_settings(settings.field_mapping, settings.field_kinds)
        overrides = (
            CsvOverrideTable.load(overrides_path, delimiter=settings.csv_delimiter)
            if overrides_path else None
        )
        assembler = ConfigurationAssembler(load_template(template_path), overrides, mapping)

        mode = ScriptMode(settings.mode)
        storage = ScriptStorage(settings.temp_script_dir)
        builder = JobScriptBuilder(
            settings.extension_modules,
            settings.main_command,
            mode=mode,
            settle_delay_ms=settings.settle_delay_ms,
        )
        runner = ProcessRunner(
            settings.engine_path,
            storage,
            mode=mode,
            classifier=EngineOutputClassifier(settings.main_command, settings.shared_module_name),
            timeout_seconds=settings.timeout_seconds,
            kill_grace_seconds=settings.kill_grace_seconds,
            spawn=spawn,
            verbose=settings.verbose,
            output_encoding=settings.output_encoding,
        )
        return cls(
            assembler,
            builder,
            runner,
            storage,
            max_parallel=settings.max_parallel,
            artifact_extension=settings.artifact_extension,
            enumerator=WorkEnumerator(settings.input_pattern),
            progress=progress,
        )

    @property
    def metrics(self) -> IMetricsCollector:
        return self._metrics

    def cancel(self) -> None:
        """Request cancellation. Safe to call from any thread."""
        self._cancel_requested.set()
        loop, event = self._loop, self._cancel_event
        if loop is not None and event is not None and not loop.is_closed():
            loop.call_soon_threadsafe(event.set)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    def verify_extension_modules(self) -> None:
        """
        Raises:
            ExtensionModuleMissingError: If any extension module file is missing
        """
        missing = [p for p in self._builder.extension_modules if not p.is_file()]
        if missing:
            raise ExtensionModuleMissingError(missing)

    def run_sync(self, input_dir: PathLike, output_dir: PathLike) -> RunSummary:
        return asyncio.run(self.run(input_dir, output_dir))

    async def run(self, input_dir: PathLike, output_dir: PathLike) -> RunSummary:
        """
        Process every matching file of input_dir.

        A cancel requested before the run starts applies to it. Once the run
        returns or raises the request is cleared, so the orchestrator can be
        run again.

        Args:
            input_dir: Folder holding the drawings
            output_dir: Parent folder; results go to a timestamped sub-folder

        Returns:
            Summary of the run

        Raises:
            ExtensionModuleMissingError: If an extension module is missing
        """
        try:
            return await self._run(input_dir, output_dir)
        finally:
            self._cancel_requested.clear()
            self._loop = None
            self._cancel_event = None

    async def _run(self, input_dir: PathLike, output_dir: PathLike) -> RunSummary:
        started_at = datetime.now()
        self._metrics.reset()
        items = self._enumerator.enumerate(Path(input_dir))
        if not items:
            self._logger.warning(f"[WARN] No files to process in {input_dir}")
            return RunSummary(started_at=started_at, finished_at=datetime.now())

        self.verify_extension_modules()

        timestamp = run_timestamp(started_at)
        run_folder = Path(output_dir) / timestamp
        run_folder.mkdir(parents=True, exist_ok=True)

        self._loop = asyncio.get_running_loop()
        self._cancel_event = asyncio.Event()
        if self._cancel_requested.is_set():
            self._cancel_event.set()

        report = ReportAggregator(self._metrics)
        classifier = OutcomeClassifier(run_folder, self._artifact_extension)
        total = len(items)

        self._logger.info("=" * 60)
        self._logger.info(f"Batch run: {total} files, max {self._max_parallel} parallel")
        self._logger.info(f"Output folder: {run_folder}")
        self._logger.info("=" * 60)
        self._metrics.start_timer("run")
        self._emit(ProgressEvent(ProgressKind.RUN_STARTED, total=total))

        def finish(job: Job) -> JobResult:
            job.finished_at = job.finished_at or datetime.now()
            result = job.to_result()
            report.add(result)
            self._logger.info(f"{outcome_label(result.outcome)}: {result.identity}"
                              + (f" - {result.error_message}" if result.error_message else ""))
            self._emit(ProgressEvent(
                ProgressKind.JOB_FINISHED,
                total=total,
                completed=report.completed,
                identity=result.identity,
                result=result,
            ))
            return result

        runnable: List[Job] = []
        for item in items:
            job = self._prepare(item, classifier)
            if job.state is JobState.CONFIG_RESOLVED:
                runnable.append(job)
            else:
                finish(job)

        def skipped(job: Job) -> JobResult:
            job.state = JobState.CANCELLED
            classifier.classify_not_started(job, CANCELLED_BEFORE_DISPATCH)
            return finish(job)

        async def worker(job: Job) -> JobResult:
            await self._execute(job, run_folder, timestamp, classifier)
            return finish(job)

        try:
            coordinator = ConcurrencyCoordinator(self._max_parallel, self._cancel_event)
            await coordinator.run(runnable, worker, skipped)
        finally:
            self._storage.release_all()
            elapsed = self._metrics.stop_timer("run")
            cancelled = self._cancel_event.is_set()

        self._logger.info(f"Run finished in {elapsed:.1f}s")
        summary = report.build(run_folder, started_at, datetime.now(), cancelled=cancelled)
        self._emit(ProgressEvent(ProgressKind.RUN_FINISHED, total=total, completed=summary.total))
        return summary

    def _prepare(self, item: WorkItem, classifier: OutcomeClassifier) -> Job:
        """Resolve configuration before dispatch; unresolved jobs never spawn."""
        job = Job(item=item, started_at=datetime.now())
        try:
            resolution = self._assembler.resolve(item)
        except Exception as e:
            self._logger.exception(f"{item.identity}: configuration assembly failed: {e}")
            classifier.classify_not_started(job, f"Configuration assembly failed: {e}")
            return job

        if isinstance(resolution, ConfigurationUnavailable):
            job.unavailable = resolution
            classifier.classify_unavailable(job, resolution)
        else:
            job.configuration = resolution
            job.state = JobState.CONFIG_RESOLVED
        return job

    async def _execute(self, job: Job, run_folder: Path, timestamp: str, classifier: OutcomeClassifier) -> None:
        item = job.item
        log = JobLogAdapter(self._logger, item.identity)
        output_filename = f"{item.stem}{self._artifact_extension}"

        job.state = JobState.DISPATCHED
        job.started_at = datetime.now()
        self._emit(ProgressEvent(ProgressKind.JOB_STARTED, identity=item.identity))

        try:
            job.script_path = self._builder.write(item, self._storage, run_folder, output_filename)
            parameters = EngineParameters(
                drawing_name=item.stem,
                output_folder=run_folder,
                output_filename=output_filename,
                timestamp=timestamp,
                config_content=job.configuration.content,
            )
        except ScriptBuildError as e:
            log.error(f"[ERROR] {e}")
            classifier.classify_not_started(job, str(e))
            job.finished_at = datetime.now()
            return
        except Exception as e:
            log.exception(f"[ERROR] Job preparation failed: {e}")
            self._storage.release(job.script_path)
            classifier.classify_not_started(job, f"Job preparation failed: {e}")
            job.finished_at = datetime.now()
            return

        job.state = JobState.RUNNING
        try:
            outcome = await self._runner.run(item, job.script_path, parameters, self._cancel_event, log)
        except EngineLaunchError as e:
            log.error(f"[ERROR] {e}")
            classifier.classify_not_started(job, str(e))
        except Exception as e:
            log.exception(f"[ERROR] Unexpected failure while running engine: {e}")
            classifier.classify_crashed(job, f"Unexpected error: {e}")
        else:
            classifier.classify(job, outcome)
            log.debug(f"Exit code {outcome.exit_code} after {outcome.duration_seconds:.1f}s")
        finally:
            job.finished_at = datetime.now()

    def _emit(self, event: ProgressEvent) -> None:
        if self._progress is None:
            return
        try:
            self._progress(event)
        except Exception:
            self._logger.exception("Progress listener failed")

    def dry_run(self, input_dir: PathLike) -> List[Tuple[WorkItem, Resolution]]:
        """Resolve every item's configuration without spawning anything."""
        return [(item, self._assembler.resolve(item)) for item in self._enumerator.enumerate(Path(input_dir))]

    def find_items_without_overrides(self, input_dir: PathLike) -> List[WorkItem]:
        return self._assembler.items_without_overrides(self._enumerator.enumerate(Path(input_dir)))

    @property
    def extension_modules(self) -> Sequence[Path]:
        return list(self._builder.extension_modules)
