"""Tests for JobScriptBuilder."""

from pathlib import Path
from unittest.mock import patch

import pytest

from domain.exceptions import ScriptBuildError
from domain.models import WorkItem
from infrastructure.engine.script_builder import JobScriptBuilder, ScriptMode
from infrastructure.storage.temp_storage import ScriptStorage


@pytest.fixture
def item():
    return WorkItem.from_path(Path("/drawings/Plot 12.dwg"))


def _lines(script):
    return script.splitlines()


class TestBuild:
    """Test script rendering."""

    def test_directive_order(self, item, tmp_path):
        """Modules load in order, then settle, then command, then exit."""
        builder = JobScriptBuilder([Path("/plugins/Core.dll"), Path("/plugins/UIPlugin.dll")], "RUNCHECK")

        lines = _lines(builder.build(item, tmp_path, "Plot 12.json"))

        netloads = [i for i, line in enumerate(lines) if line.startswith("NETLOAD")]
        command = lines.index("RUNCHECK")
        delay = next(i for i, line in enumerate(lines) if '"_.DELAY" "500"' in line)

        assert len(netloads) == 2
        assert "Core.dll" in lines[netloads[0]]
        assert "UIPlugin.dll" in lines[netloads[1]]
        assert netloads[1] < delay < command
        assert lines[-2:] == ["_EXIT", "QUIT"]

    def test_load_preceded_by_announcements(self, item, tmp_path):
        """Each load directive follows a module name and a path print."""
        builder = JobScriptBuilder([Path("/plugins/Core.dll")], "RUNCHECK")

        lines = _lines(builder.build(item, tmp_path, "Plot 12.json"))
        index = next(i for i, line in enumerate(lines) if line.startswith("NETLOAD"))

        assert '"\\n[Loading] " "Core.dll"' in lines[index - 2]
        assert "[Loading] Path: " in lines[index - 1]

    def test_header_names_drawing_and_output(self, item, tmp_path):
        builder = JobScriptBuilder([], "RUNCHECK")

        lines = _lines(builder.build(item, tmp_path, "Plot 12.json"))

        assert lines[0] == "; Drawing: Plot 12.dwg"
        assert lines[1] == f"; Output: {tmp_path / 'Plot 12.json'}"

    def test_paths_escaped(self, item, tmp_path):
        """Backslashes and quotes in module paths are escaped."""
        builder = JobScriptBuilder(['C:\\Plugins\\My "Core".dll'], "RUNCHECK")

        script = builder.build(item, tmp_path, "Plot 12.json")

        assert 'NETLOAD "C:\\\\Plugins\\\\My \\"Core\\".dll"' in script

    def test_interactive_bracket(self, item, tmp_path):
        """Interactive mode opens the drawing first and saves before quitting."""
        builder = JobScriptBuilder([Path("/plugins/Core.dll")], "RUNCHECK", mode=ScriptMode.INTERACTIVE)

        lines = _lines(builder.build(item, tmp_path, "Plot 12.json"))

        assert lines[2] == '_.OPEN "/drawings/Plot 12.dwg"'
        assert lines[-2:] == ["_.QSAVE", "_.QUIT"]
        assert "_EXIT" not in lines

    def test_custom_settle_delay(self, item, tmp_path):
        builder = JobScriptBuilder([], "RUNCHECK", settle_delay_ms=2000)

        assert '(command "_.DELAY" "2000" "")' in builder.build(item, tmp_path, "x.json")

    def test_empty_command_rejected(self):
        """A blank command name cannot produce a script."""
        with pytest.raises(ScriptBuildError):
            JobScriptBuilder([], "  ")


class TestWrite:
    """Test writing scripts through storage."""

    def test_write_creates_unique_files(self, item, tmp_path):
        """Two scripts for the same item never share a path."""
        storage = ScriptStorage(tmp_path / "scripts")
        builder = JobScriptBuilder([], "RUNCHECK")

        first = builder.write(item, storage, tmp_path, "Plot 12.json")
        second = builder.write(item, storage, tmp_path, "Plot 12.json")

        assert first != second
        assert first.read_text(encoding="utf-8") == builder.build(item, tmp_path, "Plot 12.json")
        assert storage.outstanding == {first, second}

    def test_write_failure_releases_file(self, item, tmp_path):
        """A failed write deletes the allocated file and raises ScriptBuildError."""
        storage = ScriptStorage(tmp_path / "scripts")
        builder = JobScriptBuilder([], "RUNCHECK")

        with patch.object(Path, "write_text", side_effect=OSError("disk full")):
            with pytest.raises(ScriptBuildError):
                builder.write(item, storage, tmp_path, "Plot 12.json")

        assert storage.outstanding == set()
        assert list((tmp_path / "scripts").iterdir()) == []

    def test_unencodable_name_raises_build_error(self, tmp_path):
        """A drawing name the script encoding cannot hold fails the job, not the caller."""
        storage = ScriptStorage(tmp_path / "scripts")
        builder = JobScriptBuilder([], "RUNCHECK")
        item = WorkItem.from_path(Path("/drawings/bad\udcff.dwg"))

        with pytest.raises(ScriptBuildError):
            builder.write(item, storage, tmp_path, "bad\udcff.json")

        assert storage.outstanding == set()
