"""
Column -> configuration field mapping and value coercion.

Override tables use spreadsheet-friendly column names; the engine expects
the configuration field names below. Each destination field has a declared
kind that decides how the raw cell text is coerced.
"""

import json
import re
from enum import Enum
from typing import Dict, Any, Optional, List, Mapping

from domain.exceptions import ConfigurationError


class FieldKind(Enum):
    BOOLEAN = "boolean"
    LIST = "list"
    NUMERIC = "numeric"
    STRING = "string"


DEFAULT_COLUMN_MAP: Dict[str, str] = {
    # Same name in table and configuration
    "ProjectType": "ProjectType",
    "NatureOfDevelopment": "NatureOfDevelopment",
    "PlotUse": "PlotUse",
    "PlotSubUse": "PlotSubUse",
    "SpecialBuildingType": "SpecialBuildingType",
    "AvailTDR": "AvailTDR",
    "AvailRoadWideningConcession": "AvailRoadWideningConcession",
    "RoadWideningConcessionFor": "RoadWideningConcessionFor",
    "EffectedByNalaWidening": "EffectedByNalaWidening",
    "AvailNalaWideningConcession": "AvailNalaWideningConcession",
    "NalaWideningConcessionFor": "NalaWideningConcessionFor",
    "Authority": "Authority",
    "CategoryOfLayoutPermission": "CategoryOfLayoutPermission",
    # Renamed columns
    "EffectedByRoadWidening": "EffectedbyRoadWidening",
    "DoYouWantToAvailExtraMortgageForNalaConversion": "AvailExtraMortgageForNalaConversion",
    "DoYouWantToAvailExtraMortgageForCityLevelImpactFee": "AvailExtraMortgageForCityLevelImpactFee",
    "DoYouWantToAvailExtraMortgageForCapitalizationCharges": "AvailExtraMortgageForCapitalizationCharges",
}

DEFAULT_FIELD_KINDS: Dict[str, FieldKind] = {
    "ExtractBlockNames": FieldKind.BOOLEAN,
    "ExtractLayerNames": FieldKind.BOOLEAN,
    "AvailTDR": FieldKind.BOOLEAN,
    "EffectedbyRoadWidening": FieldKind.BOOLEAN,
    "AvailRoadWideningConcession": FieldKind.BOOLEAN,
    "EffectedByNalaWidening": FieldKind.BOOLEAN,
    "AvailNalaWideningConcession": FieldKind.BOOLEAN,
    "AvailExtraMortgageForNalaConversion": FieldKind.BOOLEAN,
    "AvailExtraMortgageForCityLevelImpactFee": FieldKind.BOOLEAN,
    "AvailExtraMortgageForCapitalizationCharges": FieldKind.BOOLEAN,
    "RoadWideningConcessionFor": FieldKind.LIST,
    "NalaWideningConcessionFor": FieldKind.LIST,
    "layersToValidate": FieldKind.LIST,
    "PlotAreaAsPerDocument": FieldKind.NUMERIC,
}

# Applied to fields present in neither template nor overrides
DEFAULT_FIELD_VALUES: Dict[str, Any] = {
    "ExtractBlockNames": True,
    "ExtractLayerNames": True,
    "layersToValidate": [],
    "PluginVersion": "1.0",
}

RECOMMENDED_COLUMNS = ("ProjectType", "PlotUse", "Authority")

_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


def coerce_value(raw: str, kind: FieldKind) -> Any:
    """
    Coerce one raw cell value to the given field kind.

    Unparseable values are passed through as the (trimmed) raw string.

    Args:
        raw: Cell text
        kind: Declared kind of the destination field

    Returns:
        Coerced value
    """
    value = raw.strip()

    if kind is FieldKind.BOOLEAN:
        upper = value.upper()
        if upper in ("TRUE", "1"):
            return True
        if upper in ("FALSE", "0"):
            return False
        return value

    if kind is FieldKind.LIST:
        if value.startswith("[") and value.endswith("]"):
            try:
                parsed = json.loads(value)
            except ValueError:
                return value
            if not isinstance(parsed, list):
                return value
            return [item if isinstance(item, str) else json.dumps(item) for item in parsed]
        if "," in value:
            parts = (part.strip().strip('"') for part in value.split(","))
            return [part for part in parts if part]
        return [value]

    if kind is FieldKind.NUMERIC:
        if not _NUMBER_RE.match(value):
            return value
        if _INTEGER_RE.match(value):
            return int(value)
        return float(value)

    return value


class FieldMapping:
    """Resolves override columns to configuration fields and coerces values."""

    def __init__(
        self,
        columns: Optional[Mapping[str, str]] = None,
        kinds: Optional[Mapping[str, FieldKind]] = None,
        defaults: Optional[Mapping[str, Any]] = None
    ):
        self._columns = dict(DEFAULT_COLUMN_MAP if columns is None else columns)
        self._kinds = dict(DEFAULT_FIELD_KINDS if kinds is None else kinds)
        self.defaults: Dict[str, Any] = dict(DEFAULT_FIELD_VALUES if defaults is None else defaults)

        # Column names are matched case-insensitively
        self._columns_folded = {k.casefold(): v for k, v in self._columns.items()}
        self._fields_folded = {v.casefold(): v for v in self._columns.values()}
        self._kinds_folded = {k.casefold(): v for k, v in self._kinds.items()}

    @classmethod
    def from_settings(
        cls,
        columns: Optional[Mapping[str, str]] = None,
        kinds: Optional[Mapping[str, str]] = None
    ) -> "FieldMapping":
        """
        Build a mapping from plain settings values, layered over the defaults.

        Raises:
            ConfigurationError: If a field kind name is unknown
        """
        parsed_kinds = dict(DEFAULT_FIELD_KINDS)
        for field_name, kind_name in (kinds or {}).items():
            try:
                parsed_kinds[field_name] = FieldKind(str(kind_name).lower())
            except ValueError:
                raise ConfigurationError(
                    f"Unknown field kind '{kind_name}' for field '{field_name}'"
                )
        merged_columns = dict(DEFAULT_COLUMN_MAP)
        merged_columns.update(columns or {})
        return cls(columns=merged_columns, kinds=parsed_kinds)

    def destination(self, column: str) -> Optional[str]:
        """Configuration field fed by a column, or None when the column is unmapped."""
        folded = column.casefold()
        if folded in self._columns_folded:
            return self._columns_folded[folded]
        return self._fields_folded.get(folded)

    def kind_of(self, field_name: str) -> FieldKind:
        return self._kinds_folded.get(field_name.casefold(), FieldKind.STRING)

    def apply(self, row: Mapping[str, str]) -> Dict[str, Any]:
        """
        Map and coerce every non-empty mapped cell of a row.

        Args:
            row: Column -> raw value

        Returns:
            Field -> coerced value
        """
        result: Dict[str, Any] = {}
        for column, raw in row.items():
            if raw is None or not str(raw).strip():
                continue
            field_name = self.destination(column)
            if field_name is None:
                continue
            result[field_name] = coerce_value(str(raw), self.kind_of(field_name))
        return result

    def missing_recommended(self, headers: List[str]) -> List[str]:
        folded = {h.casefold() for h in headers}
        return [c for c in RECOMMENDED_COLUMNS if c.casefold() not in folded]

    def summary(self) -> str:
        fields = list(dict.fromkeys(self._columns.values()))
        counts = {kind: 0 for kind in FieldKind}
        for field_name in fields:
            counts[self.kind_of(field_name)] += 1
        return (
            f"Override mapping: {counts[FieldKind.BOOLEAN]} boolean, "
            f"{counts[FieldKind.LIST]} list, {counts[FieldKind.NUMERIC]} numeric, "
            f"{counts[FieldKind.STRING]} string fields; "
            f"{len(self._columns)} mapped columns"
        )


DEFAULT_FIELD_MAPPING = FieldMapping()
