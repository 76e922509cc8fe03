"""Settings loading and validation."""

import os
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field, fields

import yaml

from domain.exceptions import ConfigurationError
from shared.logging import get_logger
from shared.remote_config import load_config_with_remote

logger = get_logger(__name__)

DEFAULT_ENGINE_PATH = Path(r"C:\Program Files\Autodesk\AutoCAD 2025\accoreconsole.exe")


@dataclass
class BatchSettings:
    """Settings for a batch run."""

    # Engine
    engine_path: Path = DEFAULT_ENGINE_PATH
    extension_modules: List[Path] = field(default_factory=list)
    main_command: str = "ProcessWithJsonBatch"
    available_commands: List[str] = field(default_factory=list)
    mode: str = "batch"  # 'batch', 'interactive'
    output_encoding: str = "utf-8"

    # Scheduling
    max_parallel: int = 4
    timeout_seconds: float = 360.0
    kill_grace_seconds: float = 10.0

    # Files
    temp_script_dir: Optional[Path] = None
    input_pattern: str = "*.dwg"
    artifact_extension: str = ".json"

    # Script
    settle_delay_ms: int = 500

    # Output scanning
    shared_module_name: str = "UIPlugin"

    # Overrides
    csv_delimiter: str = ","
    field_mapping: Dict[str, str] = field(default_factory=dict)
    field_kinds: Dict[str, str] = field(default_factory=dict)

    # Misc
    verbose: bool = False
    log_file: Optional[Path] = None
    config_url: Optional[str] = None

    def __post_init__(self):
        """Normalize types and validate."""
        self.engine_path = Path(self.engine_path)
        self.extension_modules = [Path(p) for p in (self.extension_modules or [])]
        self.available_commands = [str(c) for c in (self.available_commands or [])]
        if self.temp_script_dir is not None:
            self.temp_script_dir = Path(self.temp_script_dir)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)
        self.mode = str(self.mode).lower()
        self._validate()

    def _validate(self):
        """Validate settings values."""
        if self.mode not in ("batch", "interactive"):
            raise ConfigurationError(f"Invalid mode: {self.mode}")

        if not isinstance(self.max_parallel, int) or self.max_parallel < 1:
            raise ConfigurationError(f"max_parallel must be a positive integer, got: {self.max_parallel}")

        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be positive, got: {self.timeout_seconds}")

        if self.kill_grace_seconds < 0:
            raise ConfigurationError(f"kill_grace_seconds cannot be negative, got: {self.kill_grace_seconds}")

        if self.settle_delay_ms < 0:
            raise ConfigurationError(f"settle_delay_ms cannot be negative, got: {self.settle_delay_ms}")

        if not self.main_command or not self.main_command.strip():
            raise ConfigurationError("main_command cannot be empty")

        if self.available_commands and self.main_command not in self.available_commands:
            raise ConfigurationError(
                f"main_command '{self.main_command}' is not one of available_commands: "
                f"{', '.join(self.available_commands)}"
            )

        if not self.artifact_extension.startswith("."):
            raise ConfigurationError(f"artifact_extension must start with '.', got: {self.artifact_extension}")

        if len(self.csv_delimiter) != 1:
            raise ConfigurationError(f"csv_delimiter must be a single character, got: {self.csv_delimiter!r}")


class SettingsLoader:
    """
    Loads settings from YAML, an optional remote overlay, environment
    variables and runtime overrides, in increasing order of precedence.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize settings loader.

        Args:
            config_path: Optional path to YAML settings file
        """
        self.config_path = config_path or Path("batch_settings.yaml")
        self._logger = get_logger(__name__)

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> BatchSettings:
        """
        Load settings from file, remote overlay and environment.

        Args:
            overrides: Runtime overrides (from CLI); None values are ignored

        Returns:
            BatchSettings instance

        Raises:
            ConfigurationError: If settings are invalid
        """
        config_dict: Dict[str, Any] = {}

        if self.config_path.exists():
            self._logger.info(f"Loading settings from {self.config_path}")
            try:
                config_dict.update(load_config_with_remote(self.config_path, logger_instance=self._logger))
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid settings file {self.config_path}: {e}")
        else:
            self._logger.warning(f"Settings file not found: {self.config_path}")

        config_dict.update(self._load_from_env())

        if overrides:
            for k, v in overrides.items():
                if v is None:
                    continue
                config_dict[k] = v

        valid_fields = {f.name for f in fields(BatchSettings)}
        unknown = sorted(k for k in config_dict if k not in valid_fields)
        if unknown:
            self._logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")

        filtered_config = {k: v for k, v in config_dict.items() if k in valid_fields}

        try:
            return BatchSettings(**filtered_config)
        except TypeError as e:
            raise ConfigurationError(f"Invalid settings: {e}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load settings from environment variables."""
        env_config: Dict[str, Any] = {}

        if engine := os.getenv("BATCH_ENGINE_PATH"):
            env_config["engine_path"] = Path(engine)

        if max_parallel := os.getenv("BATCH_MAX_PARALLEL"):
            try:
                env_config["max_parallel"] = int(max_parallel)
            except ValueError:
                self._logger.warning(f"Invalid BATCH_MAX_PARALLEL value: {max_parallel}")

        if timeout := os.getenv("BATCH_TIMEOUT"):
            try:
                env_config["timeout_seconds"] = float(timeout)
            except ValueError:
                self._logger.warning(f"Invalid BATCH_TIMEOUT value: {timeout}")

        if command := os.getenv("BATCH_COMMAND"):
            env_config["main_command"] = command

        if mode := os.getenv("BATCH_MODE"):
            env_config["mode"] = mode.lower()

        if temp_dir := os.getenv("BATCH_TEMP_DIR"):
            env_config["temp_script_dir"] = Path(temp_dir)

        if verbose := os.getenv("BATCH_VERBOSE"):
            env_config["verbose"] = verbose.lower() in ("true", "1", "yes")

        if modules := os.getenv("BATCH_MODULES"):
            env_config["extension_modules"] = [Path(p) for p in modules.split(os.pathsep) if p]

        return env_config
