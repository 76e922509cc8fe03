"""
Supervision of one external engine process per job.

The engine is started directly (no shell), receives its job parameters
through environment variables, and is raced against the job timeout and
the run-wide cancellation event. Whatever happens, the job script is
released before run() returns.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Union

from domain.exceptions import EngineLaunchError
from domain.models import DiagnosticKind, ProcessOutcome, Termination, WorkItem
from domain.protocols import ILineClassifier, IProcess
from infrastructure.engine.output_scanner import EngineOutputClassifier
from infrastructure.engine.script_builder import ScriptMode
from infrastructure.storage.temp_storage import ScriptStorage
from shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LINE_LIMIT = 1024 * 1024

SpawnFunction = Callable[..., Awaitable[IProcess]]

Log = Union[logging.Logger, logging.LoggerAdapter]


@dataclass(frozen=True)
class EngineParameters:
    """Job parameters delivered to the engine through its environment."""

    drawing_name: str
    output_folder: Path
    output_filename: str
    timestamp: str
    config_content: str = ""
    config_path: str = ""

    def to_environment(self) -> Dict[str, str]:
        # Empty INPUT_JSON_PATH tells the engine to read the inline content
        return {
            "DRAWING_NAME": self.drawing_name,
            "OUTPUT_FOLDER": str(self.output_folder),
            "OUTPUT_FILENAME": self.output_filename,
            "TIMESTAMP": self.timestamp,
            "INPUT_JSON_PATH": "" if self.config_content else self.config_path,
            "INPUT_JSON_CONTENT": self.config_content,
        }


class _OutputCollector:
    """Accumulates captured output and diagnostics for one job."""

    def __init__(self, classifier: ILineClassifier, log: Log, verbose: bool):
        self._classifier = classifier
        self._log = log
        self._verbose = verbose
        self.lines: List[str] = []
        self.load_errors: List[str] = []
        self.commands_not_found: List[str] = []
        self.shared_module_load_failed = False

    def feed(self, line: str, stream: str) -> None:
        self.lines.append(f"ERROR: {line}" if stream == "stderr" else line)

        diagnostic = self._classifier.classify(line, stream)
        if diagnostic is None:
            if self._verbose:
                self._log.debug(line)
            return

        if diagnostic.kind is DiagnosticKind.LOAD_ERROR:
            self.load_errors.append(diagnostic.line)
            if diagnostic.shared_module:
                self.shared_module_load_failed = True
            self._log.error(f"[ERROR] Module load error: {diagnostic.line}")
        elif diagnostic.kind is DiagnosticKind.COMMAND_NOT_FOUND:
            self.commands_not_found.append(diagnostic.line)
            self._log.error(f"[ERROR] Command not found: {diagnostic.line}")
        elif diagnostic.kind is DiagnosticKind.MODULE_LOADING:
            self._log.info(diagnostic.line)
        elif diagnostic.kind is DiagnosticKind.STDERR:
            self._log.warning(f"ERROR: {diagnostic.line}")

    def drop_line(self, stream: str, reason: str) -> None:
        self.lines.append(f"[{stream} line dropped: {reason}]")
        self._log.warning(f"[WARN] Engine {stream} line dropped: {reason}")

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class ProcessRunner:
    """
    Spawns and supervises engine processes.

    Args:
        engine_path: Engine executable
        storage: Script storage; scripts are released after each run
        mode: Batch (drawing on the command line) or interactive/headless
        classifier: Line classifier for engine output
        timeout_seconds: Per-job ceiling before the process is killed
        kill_grace_seconds: How long to wait for a killed process and its readers
        spawn: Process factory, defaults to asyncio.create_subprocess_exec
        verbose: Echo unclassified engine output at DEBUG level
        output_encoding: Encoding of the engine's console output
        line_limit: Longest output line kept; longer lines are dropped
    """

    def __init__(
        self,
        engine_path: Path,
        storage: ScriptStorage,
        mode: ScriptMode = ScriptMode.BATCH,
        classifier: Optional[ILineClassifier] = None,
        timeout_seconds: float = 360.0,
        kill_grace_seconds: float = 10.0,
        spawn: Optional[SpawnFunction] = None,
        verbose: bool = False,
        output_encoding: str = "utf-8",
        line_limit: int = DEFAULT_LINE_LIMIT
    ):
        self.engine_path = Path(engine_path)
        self.storage = storage
        self.mode = mode
        self.classifier = classifier or EngineOutputClassifier()
        self.timeout_seconds = timeout_seconds
        self.kill_grace_seconds = kill_grace_seconds
        self.verbose = verbose
        self.output_encoding = output_encoding
        self.line_limit = line_limit
        self._spawn = spawn or asyncio.create_subprocess_exec

    def build_command(self, item: WorkItem, script_path: Path) -> List[str]:
        if self.mode is ScriptMode.INTERACTIVE:
            return [str(self.engine_path), "/nologo", "/b", str(script_path)]
        return [str(self.engine_path), "/i", str(item.path), "/s", str(script_path)]

    async def run(
        self,
        item: WorkItem,
        script_path: Path,
        parameters: EngineParameters,
        cancel_event: asyncio.Event,
        log: Optional[Log] = None
    ) -> ProcessOutcome:
        """
        Run the engine for one item and wait for it to exit, time out, or be cancelled.

        The script at script_path is released on every exit path.

        Args:
            item: Work item being processed
            script_path: Job script, owned by this call from now on
            parameters: Environment-delivered job parameters
            cancel_event: Run-wide cancellation signal
            log: Logger for this job's output

        Returns:
            ProcessOutcome describing how the process ended

        Raises:
            EngineLaunchError: If the process could not be started
        """
        log = log or logger
        started = time.monotonic()
        process: Optional[IProcess] = None
        try:
            env = dict(os.environ)
            env.update(parameters.to_environment())
            command = self.build_command(item, script_path)

            try:
                process = await self._spawn(
                    *command,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=env,
                    limit=self.line_limit,
                )
            except OSError as e:
                raise EngineLaunchError(f"Failed to start engine {self.engine_path}: {e}") from e

            log.debug(f"Engine started (pid {process.pid})")
            outcome = await self._supervise(process, cancel_event, log)
            outcome.duration_seconds = time.monotonic() - started
            return outcome
        finally:
            if process is not None and process.returncode is None:
                self._kill(process, log)
            self.storage.release(script_path)

    async def _supervise(self, process: IProcess, cancel_event: asyncio.Event, log: Log) -> ProcessOutcome:
        collector = _OutputCollector(self.classifier, log, self.verbose)
        readers = [
            asyncio.ensure_future(self._pump(process.stdout, "stdout", collector)),
            asyncio.ensure_future(self._pump(process.stderr, "stderr", collector)),
        ]
        wait_task = asyncio.ensure_future(process.wait())
        cancel_task = asyncio.ensure_future(cancel_event.wait())

        error: Optional[str] = None
        try:
            done, _ = await asyncio.wait(
                {wait_task, cancel_task},
                timeout=self.timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )

            if wait_task in done:
                termination = Termination.COMPLETED
                if wait_task.exception() is not None:
                    termination = Termination.CRASHED
                    error = f"Waiting for process failed: {wait_task.exception()}"
            elif cancel_task in done:
                termination = Termination.CANCELLED
                error = "Run cancelled, process killed"
                log.warning("[WARN] Run cancelled - killing engine process")
                await self._terminate(process, wait_task, log)
            else:
                termination = Termination.TIMED_OUT
                error = f"Process timed out after {self.timeout_seconds:g} seconds"
                log.warning(f"[WARN] {error} - killing engine process")
                await self._terminate(process, wait_task, log)

            await self._drain(readers, log)
            # Exit, timeout or cancel decided the termination; a dead reader only loses output
            for reader in readers:
                if reader.done() and not reader.cancelled() and reader.exception() is not None:
                    log.warning(f"[WARN] Output reader failed: {reader.exception()}")
        finally:
            cancel_task.cancel()
            for task in readers + [wait_task]:
                if not task.done():
                    task.cancel()

        return ProcessOutcome(
            termination=termination,
            exit_code=process.returncode,
            output=collector.text,
            error=error,
            load_errors=list(collector.load_errors),
            commands_not_found=list(collector.commands_not_found),
            shared_module_load_failed=collector.shared_module_load_failed,
        )

    async def _pump(self, stream, name: str, collector: _OutputCollector) -> None:
        if stream is None:
            return
        while True:
            try:
                raw = await stream.readline()
            except (ValueError, asyncio.LimitOverrunError) as e:
                # readline discards the oversized line and stays usable
                collector.drop_line(name, str(e))
                continue
            if not raw:
                break
            line = raw.decode(self.output_encoding, errors="replace").rstrip("\r\n")
            # Some engine builds pad console output with NULs
            line = line.replace("\x00", "")
            if line or name == "stdout":
                collector.feed(line, name)

    async def _terminate(self, process: IProcess, wait_task: "asyncio.Future", log: Log) -> None:
        self._kill(process, log)
        done, _ = await asyncio.wait({wait_task}, timeout=self.kill_grace_seconds)
        if wait_task not in done:
            log.warning(f"[WARN] Process did not exit within {self.kill_grace_seconds:g}s after kill")

    async def _drain(self, readers: List["asyncio.Future"], log: Log) -> None:
        _, pending = await asyncio.wait(readers, timeout=self.kill_grace_seconds)
        if pending:
            log.warning("[WARN] Engine output streams still open, abandoning readers")
            for reader in pending:
                reader.cancel()

    @staticmethod
    def _kill(process: IProcess, log: Log) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            log.debug("Process already exited before kill")
