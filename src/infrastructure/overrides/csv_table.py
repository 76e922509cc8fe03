"""CSV-backed override table."""

import csv
from pathlib import Path
from typing import Dict, List, Optional, Iterable, Mapping

from domain.exceptions import OverrideTableError
from shared.logging import get_logger
from shared.types import OverrideRow, PathLike

logger = get_logger(__name__)

IDENTITY_COLUMNS = ("filename", "file", "drawing")


class CsvOverrideTable:
    """
    Immutable per-run override table loaded from a delimited text file.
    Implements IOverrideTable protocol.

    Each row is stored under its raw identity and under the identity
    without extension.
    """

    def __init__(self, headers: List[str], rows: Dict[str, OverrideRow], identity_column: str):
        self._headers = list(headers)
        self._rows = rows
        self.identity_column = identity_column

    @property
    def headers(self) -> List[str]:
        return list(self._headers)

    def keys(self) -> Iterable[str]:
        return list(self._rows.keys())

    def get(self, key: str) -> Optional[Mapping[str, str]]:
        row = self._rows.get(key)
        return dict(row) if row is not None else None

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, key: str) -> bool:
        return key in self._rows

    @classmethod
    def load(cls, path: PathLike, delimiter: str = ",", encoding: str = "utf-8-sig") -> "CsvOverrideTable":
        """
        Load an override table from disk.

        Args:
            path: CSV file path
            delimiter: Field delimiter
            encoding: File encoding (BOM tolerated by default)

        Returns:
            Loaded table

        Raises:
            OverrideTableError: If the file is missing, unreadable, or has no data rows
        """
        path = Path(path)
        if not path.exists():
            raise OverrideTableError(f"Override table not found: {path}")

        try:
            with open(path, "r", encoding=encoding, newline="") as f:
                records = list(csv.reader(f, delimiter=delimiter))
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise OverrideTableError(f"Failed to read override table {path}: {e}") from e

        records = [r for r in records if any(cell.strip() for cell in r)]
        if len(records) < 2:
            raise OverrideTableError(
                f"Override table must have a header row and at least one data row: {path}"
            )

        headers = [h.strip() for h in records[0]]
        identity_index = cls._identity_index(headers)
        identity_column = headers[identity_index]

        rows: Dict[str, OverrideRow] = {}
        loaded = 0
        for record in records[1:]:
            if identity_index >= len(record):
                continue
            identity = record[identity_index].strip()
            if not identity:
                continue

            row = {headers[i]: record[i].strip() for i in range(min(len(headers), len(record)))}
            rows[identity] = row
            rows[Path(identity).stem] = row
            loaded += 1

        logger.info(f"[OK] Loaded {loaded} override rows ({len(headers)} columns) from {path.name}")
        return cls(headers, rows, identity_column)

    @staticmethod
    def _identity_index(headers: List[str]) -> int:
        if headers[0].lower() == "filename":
            return 0
        for index, header in enumerate(headers):
            if header.lower() in IDENTITY_COLUMNS:
                return index
        logger.warning("[WARN] No Filename/File/Drawing column, using first column as identity")
        return 0
