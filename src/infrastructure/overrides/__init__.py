"""Override table infrastructure."""

from infrastructure.overrides.csv_table import CsvOverrideTable
from infrastructure.overrides.field_mapping import (
    FieldKind,
    FieldMapping,
    DEFAULT_FIELD_MAPPING,
    coerce_value,
)

__all__ = ["CsvOverrideTable", "FieldKind", "FieldMapping", "DEFAULT_FIELD_MAPPING", "coerce_value"]
