"""Engine command-script generation."""

from enum import Enum
from pathlib import Path
from typing import List, Sequence

from domain.exceptions import ScriptBuildError
from domain.models import WorkItem
from infrastructure.storage.temp_storage import ScriptStorage
from shared.logging import get_logger
from shared.types import PathLike

logger = get_logger(__name__)


class ScriptMode(Enum):
    """Open/save/quit bracket of a script."""

    BATCH = "batch"
    INTERACTIVE = "interactive"


def _lisp_string(text: str) -> str:
    """Escape text for use inside a double-quoted engine string."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _princ(text: str) -> str:
    return f'(princ "{text}")'


def _delay(milliseconds: int) -> str:
    return f'(command "_.DELAY" "{milliseconds}" "")'


class JobScriptBuilder:
    """
    Builds the ordered command script the engine runs for one job.

    Extension modules are loaded in the given order; each load directive is
    preceded by print directives naming the module and its path so that
    load failures can be attributed from the console output.
    """

    def __init__(
        self,
        extension_modules: Sequence[PathLike],
        command: str,
        mode: ScriptMode = ScriptMode.BATCH,
        settle_delay_ms: int = 500,
        exit_delay_ms: int = 100
    ):
        if not command or not command.strip():
            raise ScriptBuildError("Automation command name cannot be empty")
        self.extension_modules = [Path(p) for p in extension_modules]
        self.command = command.strip()
        self.mode = mode
        self.settle_delay_ms = settle_delay_ms
        self.exit_delay_ms = exit_delay_ms

    def build(self, item: WorkItem, output_dir: PathLike, output_filename: str) -> str:
        """
        Render the script text for one item.

        Args:
            item: Work item being processed
            output_dir: Run output folder
            output_filename: Artifact file name for the item

        Returns:
            Script text, one directive per line
        """
        lines: List[str] = [
            f"; Drawing: {item.identity}",
            f"; Output: {Path(output_dir) / output_filename}",
        ]

        if self.mode is ScriptMode.INTERACTIVE:
            lines.append(f'_.OPEN "{item.path.as_posix()}"')

        for module in self.extension_modules:
            escaped = _lisp_string(str(module))
            lines.append(f'(princ (strcat "\\n[Loading] " "{_lisp_string(module.name)}" "\\n"))')
            lines.append(f'(princ (strcat "[Loading] Path: " "{escaped}" "\\n"))')
            lines.append(f'NETLOAD "{escaped}"')

        lines.append(_princ("\\n[Loading] Waiting for modules to fully initialize...\\n"))
        lines.append(_delay(self.settle_delay_ms))

        lines.append(self.command)

        if self.mode is ScriptMode.INTERACTIVE:
            lines.append("_.QSAVE")
            lines.append("_.QUIT")
        else:
            lines.append(_princ("\\n[Command execution completed - preparing to exit...]\\n"))
            lines.append(_delay(self.exit_delay_ms))
            lines.append(_princ("\\n[Exiting engine...]\\n"))
            lines.append("_EXIT")
            lines.append("QUIT")

        return "\n".join(lines) + "\n"

    def write(
        self,
        item: WorkItem,
        storage: ScriptStorage,
        output_dir: PathLike,
        output_filename: str
    ) -> Path:
        """
        Write the script for an item to a fresh temporary file.

        The caller owns the returned path and must release it.

        Raises:
            ScriptBuildError: If the script file cannot be written
        """
        script = self.build(item, output_dir, output_filename)
        path = storage.allocate(item.identity)
        try:
            path.write_text(script, encoding="utf-8")
        except (OSError, ValueError) as e:
            # ValueError covers names the script encoding cannot represent
            storage.release(path)
            raise ScriptBuildError(f"Failed to write script for {item.identity}: {e}") from e

        logger.debug(f"Script for {item.identity}: {path}")
        return path
