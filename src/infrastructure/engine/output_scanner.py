"""
Heuristic classification of engine console output.

The engine reports module-load and command-resolution problems only as
free text, so each line is matched against fixed vocabularies. The
classifier is stateless; the process runner accumulates its findings.
"""

from typing import Optional, Iterable

from domain.models import DiagnosticKind, LineDiagnostic

LOADING_MARKER = "[Loading]"

LOAD_VOCABULARY = ("netload", "assembly")
FAILURE_KEYWORDS = ("error", "failed", "cannot", "unable", "not found", "exception", "could not")

NOISE_EXACT = frozenset({
    "Command:",
    "Regenerating model.",
    "Loading Modeler DLLs.",
    "AutoCAD menu utilities loaded.",
    "CoreHeartBeat",
})
NOISE_PREFIXES = (
    "Substituting [",
    "AcCoreConsole:",
    "AutoCAD Core Engine Console",
    "Version Number:",
    "LogFilePath has been set",
    "Execution Path:",
    "Current Directory:",
    "Redirect stdout",
)
NOISE_FRAGMENTS = ("System Variable Changed", "monitored system variables")


def _contains_any(text: str, needles: Iterable[str]) -> bool:
    return any(needle in text for needle in needles)


class EngineOutputClassifier:
    """
    Line classifier for engine stdout/stderr.
    Implements ILineClassifier protocol.

    Args:
        command: Automation command name, used to attribute "not found" lines
        shared_module_name: Module whose load failure is flagged run-wide
    """

    def __init__(self, command: str = "", shared_module_name: str = "UIPlugin"):
        self.command = command
        self.shared_module_name = shared_module_name

    def classify(self, line: str, stream: str = "stdout") -> Optional[LineDiagnostic]:
        data = line.strip()

        if stream == "stderr":
            return LineDiagnostic(DiagnosticKind.STDERR, data) if data else None

        if not data:
            return LineDiagnostic(DiagnosticKind.NOISE, data)

        lowered = data.lower()

        if self.is_load_error(lowered):
            shared = bool(self.shared_module_name) and self.shared_module_name.lower() in lowered
            return LineDiagnostic(DiagnosticKind.LOAD_ERROR, data, shared_module=shared)

        if self.is_command_not_found(lowered):
            return LineDiagnostic(DiagnosticKind.COMMAND_NOT_FOUND, data)

        if LOADING_MARKER in data:
            return LineDiagnostic(DiagnosticKind.MODULE_LOADING, data)

        if self.is_noise(data):
            return LineDiagnostic(DiagnosticKind.NOISE, data)

        return None

    @staticmethod
    def is_load_error(lowered: str) -> bool:
        return _contains_any(lowered, LOAD_VOCABULARY) and _contains_any(lowered, FAILURE_KEYWORDS)

    def is_command_not_found(self, lowered: str) -> bool:
        command = self.command.lower()
        if "unknown command" in lowered or "command not found" in lowered:
            return True
        if "not recognized" in lowered and ("command" in lowered or (command and command in lowered)):
            return True
        return bool(command) and "not found" in lowered and command in lowered

    @staticmethod
    def is_noise(data: str) -> bool:
        return (
            data in NOISE_EXACT
            or data.startswith(NOISE_PREFIXES)
            or _contains_any(data, NOISE_FRAGMENTS)
        )
