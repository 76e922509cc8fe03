import asyncio
import itertools
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Ensure src/ is on sys.path so the layer packages are importable
SRC = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if SRC not in sys.path:
    sys.path.insert(0, SRC)

FAKE_ENGINE = Path(__file__).parent / "fixtures" / "fake_engine.py"

_pids = itertools.count(1000)


class LiveTracker:
    """Counts live fake processes and remembers the peak."""

    def __init__(self):
        self.live = 0
        self.peak = 0
        self.started: List[str] = []
        self.killed: List[str] = []

    def start(self, identity: str) -> None:
        self.live += 1
        self.peak = max(self.peak, self.live)
        self.started.append(identity)

    def stop(self) -> None:
        self.live -= 1


class FakeStream:
    """Yields canned lines (raising any exception in their place), then blocks until the owning process exits."""

    def __init__(self, lines, exited: asyncio.Event):
        self._lines = [line if isinstance(line, (bytes, Exception)) else (line + "\n").encode() for line in lines]
        self._exited = exited

    async def readline(self) -> bytes:
        if self._lines:
            line = self._lines.pop(0)
            if isinstance(line, Exception):
                raise line
            return line
        await self._exited.wait()
        return b""


class FakeProcess:
    """Instrumented asyncio process double."""

    def __init__(
        self,
        tracker: LiveTracker,
        identity: str,
        duration: float = 0.0,
        exit_code: int = 0,
        hang: bool = False,
        stdout=(),
        stderr=(),
        on_exit=None
    ):
        self.pid = next(_pids)
        self.identity = identity
        self.returncode: Optional[int] = None
        self.killed = False
        self._tracker = tracker
        self._on_exit = on_exit
        self._exited = asyncio.Event()
        self.stdout = FakeStream(stdout, self._exited)
        self.stderr = FakeStream(stderr, self._exited)
        tracker.start(identity)
        self._task = None if hang else asyncio.ensure_future(self._run(duration, exit_code))

    async def _run(self, duration: float, exit_code: int) -> None:
        await asyncio.sleep(duration)
        if self._on_exit is not None:
            self._on_exit()
        self._exit(exit_code)

    def _exit(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self._tracker.stop()
            self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode

    def kill(self) -> None:
        if self.returncode is not None:
            raise ProcessLookupError()
        self.killed = True
        self._tracker.killed.append(self.identity)
        if self._task is not None:
            self._task.cancel()
        self._exit(-9)


class FakeEngine:
    """
    Spawn function producing FakeProcess instances.

    behaviours maps DRAWING_NAME to keyword options: duration, exit_code,
    hang, stdout, stderr, artifact (write <OUTPUT_FILENAME> on exit).
    """

    def __init__(self, behaviours: Optional[Dict[str, dict]] = None, default: Optional[dict] = None):
        self.behaviours = behaviours or {}
        self.default = default or {}
        self.tracker = LiveTracker()
        self.calls: List[dict] = []
        self.processes: List[FakeProcess] = []

    async def spawn(self, *command, env=None, **kwargs):
        env = env or {}
        identity = env.get("DRAWING_NAME", "")
        options = dict(self.default)
        options.update(self.behaviours.get(identity, {}))
        script = Path(command[-1])
        self.calls.append({
            "command": list(command),
            "env": dict(env),
            "kwargs": kwargs,
            "script_exists": script.is_file(),
        })

        on_exit = None
        if options.pop("artifact", False):
            artifact = Path(env["OUTPUT_FOLDER"]) / env["OUTPUT_FILENAME"]

            def on_exit():
                artifact.write_text('{"errors": ["failed"]}', encoding="utf-8")

        process = FakeProcess(self.tracker, identity, on_exit=on_exit, **options)
        self.processes.append(process)
        return process


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def python_spawn():
    """Spawn function running tests/fixtures/fake_engine.py as the engine."""

    async def spawn(program, *args, **kwargs):
        return await asyncio.create_subprocess_exec(sys.executable, str(FAKE_ENGINE), program, *args, **kwargs)

    return spawn


@pytest.fixture
def drawings(tmp_path):
    """Factory creating empty drawing files in tmp_path/input."""
    folder = tmp_path / "input"
    folder.mkdir()

    def make(*names: str) -> Path:
        for name in names:
            (folder / name).write_bytes(b"AC1032")
        return folder

    return make
