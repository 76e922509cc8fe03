"""Temporary script storage."""

import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Optional, Set

from domain.exceptions import ScriptBuildError
from shared.logging import get_logger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class ScriptStorage:
    """Allocates collision-free per-job script files and releases them."""

    def __init__(self, base_dir: Optional[Path] = None, suffix: str = ".scr"):
        """
        Initialize script storage.

        Args:
            base_dir: Folder for script files (defaults to system temp)
            suffix: Script file extension
        """
        self.base_dir = Path(base_dir) if base_dir else Path(tempfile.gettempdir())
        self.suffix = suffix
        self._logger = get_logger(__name__)
        self._lock = threading.Lock()
        self._allocated: Set[Path] = set()

    def allocate(self, identity: str) -> Path:
        """
        Reserve a unique script path for a job.

        Raises:
            ScriptBuildError: If the file cannot be created
        """
        prefix = "batch_" + _UNSAFE_CHARS.sub("_", Path(identity).stem)[:40] + "_"
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(prefix=prefix, suffix=self.suffix, dir=self.base_dir)
        except OSError as e:
            raise ScriptBuildError(f"Cannot create script file in {self.base_dir}: {e}") from e
        os.close(fd)

        path = Path(name)
        with self._lock:
            self._allocated.add(path)
        return path

    def release(self, path: Optional[Path]) -> None:
        """Delete a script file. Safe to call more than once."""
        if path is None:
            return
        with self._lock:
            self._allocated.discard(path)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self._logger.warning(f"[WARN] Failed to delete script {path}: {e}")

    @property
    def outstanding(self) -> Set[Path]:
        """Paths allocated and not yet released."""
        with self._lock:
            return set(self._allocated)

    def release_all(self) -> None:
        for path in self.outstanding:
            self.release(path)
