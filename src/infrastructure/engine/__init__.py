"""External engine integration: scripts, process supervision, output scanning."""

from infrastructure.engine.output_scanner import EngineOutputClassifier
from infrastructure.engine.script_builder import JobScriptBuilder, ScriptMode
from infrastructure.engine.process_runner import ProcessRunner, EngineParameters

__all__ = [
    "EngineOutputClassifier",
    "JobScriptBuilder",
    "ScriptMode",
    "ProcessRunner",
    "EngineParameters",
]
