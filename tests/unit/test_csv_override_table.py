"""Tests for CsvOverrideTable."""

import pytest

from domain.exceptions import ConfigurationError, OverrideTableError
from infrastructure.overrides.csv_table import CsvOverrideTable


def _write(tmp_path, text, name="overrides.csv"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestLoad:
    """Test loading CSV files."""

    def test_rows_stored_with_and_without_extension(self, tmp_path):
        """Each row is reachable by identity and by identity stem."""
        path = _write(tmp_path, "Filename,ProjectType\nPlan A.dwg,Residential\nPlan B,Commercial\n")

        table = CsvOverrideTable.load(path)

        assert table.get("Plan A.dwg")["ProjectType"] == "Residential"
        assert table.get("Plan A")["ProjectType"] == "Residential"
        assert table.get("Plan B")["ProjectType"] == "Commercial"
        assert table.headers == ["Filename", "ProjectType"]
        assert list(table.keys()) == ["Plan A.dwg", "Plan A", "Plan B"]

    def test_quoted_fields_with_delimiter_and_newline(self, tmp_path):
        """Quoted cells may contain the delimiter and embedded newlines."""
        path = _write(
            tmp_path,
            'Filename,RoadWideningConcessionFor,Notes\n'
            'A.dwg,"FSI,Setback","line one\nline two"\n',
        )

        table = CsvOverrideTable.load(path)
        row = table.get("A.dwg")

        assert row["RoadWideningConcessionFor"] == "FSI,Setback"
        assert row["Notes"] == "line one\nline two"

    def test_identity_column_by_name(self, tmp_path):
        """A Drawing column is used when the first column is not Filename."""
        path = _write(tmp_path, "ProjectType,Drawing\nResidential,X.dwg\n")

        table = CsvOverrideTable.load(path)

        assert table.identity_column == "Drawing"
        assert table.get("X")["ProjectType"] == "Residential"

    def test_identity_column_defaults_to_first(self, tmp_path):
        """Without a known identity column the first column is used."""
        path = _write(tmp_path, "Name,PlotUse\nY.dwg,Industrial\n")

        table = CsvOverrideTable.load(path)

        assert table.identity_column == "Name"
        assert "Y.dwg" in table

    def test_empty_identity_rows_skipped(self, tmp_path):
        """Rows with a blank identity are ignored."""
        path = _write(tmp_path, "Filename,PlotUse\n ,Industrial\nZ.dwg,Residential\n")

        table = CsvOverrideTable.load(path)

        assert len(table) == 2
        assert table.get("") is None

    def test_custom_delimiter(self, tmp_path):
        """Semicolon-delimited files load with delimiter=';'."""
        path = _write(tmp_path, "Filename;PlotUse\nA.dwg;Residential\n")

        table = CsvOverrideTable.load(path, delimiter=";")

        assert table.get("A")["PlotUse"] == "Residential"

    def test_bom_tolerated(self, tmp_path):
        """A UTF-8 BOM does not end up in the first header."""
        path = tmp_path / "bom.csv"
        path.write_bytes("\ufeffFilename,PlotUse\nA.dwg,Residential\n".encode("utf-8"))

        table = CsvOverrideTable.load(path)

        assert table.headers[0] == "Filename"

    def test_get_returns_copy(self, tmp_path):
        """Callers cannot mutate the table through get()."""
        path = _write(tmp_path, "Filename,PlotUse\nA.dwg,Residential\n")
        table = CsvOverrideTable.load(path)

        table.get("A.dwg")["PlotUse"] = "changed"

        assert table.get("A.dwg")["PlotUse"] == "Residential"


class TestLoadErrors:
    """Test load failures."""

    def test_missing_file(self, tmp_path):
        """Missing file raises OverrideTableError."""
        with pytest.raises(OverrideTableError):
            CsvOverrideTable.load(tmp_path / "missing.csv")

    def test_header_only(self, tmp_path):
        """A header without data rows is rejected."""
        path = _write(tmp_path, "Filename,PlotUse\n")

        with pytest.raises(OverrideTableError):
            CsvOverrideTable.load(path)

    def test_error_is_configuration_error(self, tmp_path):
        """Table errors are run-level configuration errors."""
        with pytest.raises(ConfigurationError):
            CsvOverrideTable.load(tmp_path / "missing.csv")
