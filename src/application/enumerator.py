"""Input folder enumeration."""

import fnmatch
from pathlib import Path
from typing import List

from domain.models import WorkItem
from shared.logging import get_logger

logger = get_logger(__name__)


class WorkEnumerator:
    """Lists the top-level files of a folder matching a case-insensitive pattern."""

    def __init__(self, pattern: str = "*.dwg"):
        self.pattern = pattern

    def enumerate(self, folder: Path) -> List[WorkItem]:
        folder = Path(folder)
        if not folder.is_dir():
            logger.warning(f"[WARN] Input folder not found: {folder}")
            return []

        pattern = self.pattern.lower()
        paths = sorted(
            (p for p in folder.iterdir() if p.is_file() and fnmatch.fnmatchcase(p.name.lower(), pattern)),
            key=lambda p: p.name.lower(),
        )
        return [WorkItem.from_path(p) for p in paths]
