"""Tests for important CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import FakeOracle
from typer.testing import CliRunner

from important import __version__
from important.cli import app
from important.edits import Edit
from important.oracle.base import Diagnostic, OracleConfig

runner = CliRunner()

ENV_VARS = [
    "IMPORTANT_ENABLED",
    "IMPORTANT_REMOVE_UNUSED_IMPORTS",
    "IMPORTANT_ORGANIZE_IMPORTS",
    "IMPORTANT_LINE_LENGTH",
    "IMPORTANT_LINES_AFTER_IMPORTS",
    "IMPORTANT_DEPTH_LIMIT",
    "IMPORTANT_ORACLE_TIMEOUT",
    "IMPORTANT_ALWAYS_IMPORT",
]


@pytest.fixture
def oracle(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeOracle:
    """Run commands in tmp_path against a FakeOracle."""
    fake = FakeOracle()
    monkeypatch.chdir(tmp_path)
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("important.cli.build_oracle", lambda filename, settings: fake)
    return fake


def never_settles(text: str, config: OracleConfig) -> list[Diagnostic]:
    return [Diagnostic("I001", "Import block is un-sorted", fix=(Edit.insert(0, 0, "\n"),))]


def write_notebook(path: Path, *sources: str) -> Path:
    cells = [
        {"cell_type": "code", "metadata": {}, "outputs": [], "source": source}
        for source in sources
    ]
    path.write_text(json.dumps({"cells": cells, "metadata": {}, "nbformat": 4}))
    return path


def test_version() -> None:
    """Test --version flag shows version."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"important version {__version__}" in result.stdout


def test_help() -> None:
    """Test --help flag lists the commands."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "format" in result.stdout
    assert "undefined" in result.stdout


# -----------------------------------------------------------------------------
# Format Command Tests
# -----------------------------------------------------------------------------


class TestFormatCommand:
    """Tests for the format command."""

    def test_fixes_file_in_place(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that a missing import is written back to the file."""
        target = tmp_path / "mod.py"
        target.write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "mod.py"])
        assert result.exit_code == 0
        assert target.read_text() == "import pandas as pd\n\n\n_ = pd\n"
        assert "Fixed imports in mod.py" in result.stdout
        assert "1 of 1 file(s) changed" in result.stdout

    def test_unchanged_file(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that a tidy file is reported as unchanged."""
        (tmp_path / "mod.py").write_text("import numpy as np\n\n\n_ = np\n")

        result = runner.invoke(app, ["format", "mod.py"])
        assert result.exit_code == 0
        assert "0 of 1 file(s) changed" in result.stdout

    def test_check_does_not_write(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --check reports pending changes and exits 1."""
        target = tmp_path / "mod.py"
        target.write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "--check", "mod.py"])
        assert result.exit_code == 1
        assert "Would fix imports in mod.py" in result.stdout
        assert target.read_text() == "_ = pd\n"

    def test_check_passes_on_tidy_file(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --check exits 0 when nothing would change."""
        (tmp_path / "mod.py").write_text("x = 1\n")

        result = runner.invoke(app, ["format", "--check", "mod.py"])
        assert result.exit_code == 0

    def test_diff(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --diff prints a unified diff without writing."""
        target = tmp_path / "mod.py"
        target.write_text("_ = np\n")

        result = runner.invoke(app, ["format", "--diff", "mod.py"])
        assert result.exit_code == 0
        assert "--- a/mod.py" in result.stdout
        assert "+import numpy as np" in result.stdout
        assert target.read_text() == "_ = np\n"

    def test_narrow(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --narrow only adds imports."""
        target = tmp_path / "mod.py"
        target.write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "--narrow", "mod.py"])
        assert result.exit_code == 0
        assert target.read_text() == "import pandas as pd\n_ = pd\n"
        assert "I001" not in oracle.codes_called()

    def test_no_organize(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --no-organize skips sorting."""
        (tmp_path / "mod.py").write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "--no-organize", "mod.py"])
        assert result.exit_code == 0
        assert "I001" not in oracle.codes_called()

    def test_remove_unused_flag(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --remove-unused enables the removal pass."""
        (tmp_path / "mod.py").write_text("x = 1\n")

        runner.invoke(app, ["format", "--remove-unused", "mod.py"])
        assert "F401" in oracle.codes_called()

    def test_json_output(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --json reports each file."""
        (tmp_path / "mod.py").write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "--json", "mod.py"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["changed"] == 1
        assert data["files"][0]["imports"] == ["import pandas as pd"]
        assert data["files"][0]["iterations"] == 2

    def test_quiet(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that -q suppresses progress output."""
        (tmp_path / "mod.py").write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "-q", "mod.py"])
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_stdin(self, oracle: FakeOracle) -> None:
        """Test that - formats stdin to stdout."""
        result = runner.invoke(app, ["format", "-"], input="_ = xr\n")
        assert result.exit_code == 0
        assert result.stdout == "import xarray as xr\n\n\n_ = xr\n"

    def test_stdin_package_init(self, oracle: FakeOracle) -> None:
        """Test that --stdin-filename marks text as a package init."""
        result = runner.invoke(
            app, ["format", "--stdin-filename", "pkg/__init__.py", "-"], input="_ = xr\n"
        )
        assert result.exit_code == 0
        assert result.stdout == "import xarray as xr\n_ = xr\n"

    def test_notebook(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that notebook cells are fixed with earlier cells in view."""
        target = write_notebook(tmp_path / "nb.ipynb", "import pandas as pd", "_ = pd\n_ = np")

        result = runner.invoke(app, ["format", "nb.ipynb"])
        assert result.exit_code == 0

        cells = json.loads(target.read_text())["cells"]
        assert cells[0]["source"] == "import pandas as pd"
        assert "".join(cells[1]["source"]) == "import numpy as np\n\n\n_ = pd\n_ = np"

    def test_notebook_single_cell(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --cell formats one cell only."""
        target = write_notebook(tmp_path / "nb.ipynb", "_ = pd", "_ = np")

        result = runner.invoke(app, ["format", "--cell", "1", "nb.ipynb"])
        assert result.exit_code == 0

        cells = json.loads(target.read_text())["cells"]
        assert cells[0]["source"] == "_ = pd"
        assert "".join(cells[1]["source"]).startswith("import numpy as np\n")

    def test_cell_requires_notebook(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --cell is refused for Python files."""
        (tmp_path / "mod.py").write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "--cell", "0", "mod.py"])
        assert result.exit_code == 1
        assert "--cell can only be used with notebooks" in result.output

    def test_cell_out_of_range(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that an unknown cell index is a user error."""
        write_notebook(tmp_path / "nb.ipynb", "_ = pd")

        result = runner.invoke(app, ["format", "--cell", "4", "nb.ipynb"])
        assert result.exit_code == 1
        assert "outside the notebook" in result.output

    def test_missing_file(self, oracle: FakeOracle) -> None:
        """Test that a missing file is a user error."""
        result = runner.invoke(app, ["format", "missing.py"])
        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_disabled(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that a disabled formatter refuses to run."""
        (tmp_path / ".importantrc").write_text("enabled = false\n")
        (tmp_path / "mod.py").write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "mod.py"])
        assert result.exit_code == 1
        assert "not enabled" in result.output
        assert oracle.calls == []

    def test_depth_limit_exceeded(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that a loop that never settles exits 2 and writes nothing."""
        oracle.rules["I001"] = never_settles
        target = tmp_path / "mod.py"
        target.write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "--depth-limit", "2", "mod.py"])
        assert result.exit_code == 2
        assert "depth-limit 2 exceeded" in result.output
        assert "discarded" in result.output
        assert target.read_text() == "_ = pd\n"

    def test_oracle_failure(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that a failing pass is reported and the file left alone."""
        oracle.fail_on = "I002"
        target = tmp_path / "mod.py"
        target.write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "mod.py"])
        assert result.exit_code == 1
        assert "Failed to create ruff config" in result.output
        assert target.read_text() == "_ = pd\n"

    def test_missing_path_aborts_the_run(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that a missing path stops the run before later files are written."""
        (tmp_path / "good.py").write_text("_ = np\n")

        result = runner.invoke(app, ["format", "missing.ipynb", "good.py"])
        assert result.exit_code == 1
        assert (tmp_path / "good.py").read_text() == "_ = np\n"

    def test_cell_is_checked_before_any_write(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that --cell with a Python path fails before earlier notebooks change."""
        notebook = write_notebook(tmp_path / "nb.ipynb", "_ = pd")
        before = notebook.read_text()
        (tmp_path / "mod.py").write_text("_ = pd\n")

        result = runner.invoke(app, ["format", "--cell", "0", "nb.ipynb", "mod.py"])
        assert result.exit_code == 1
        assert "--cell can only be used with notebooks: mod.py" in result.output
        assert notebook.read_text() == before
        assert oracle.calls == []

    def test_keeps_crlf_line_endings(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that a CRLF file is written back with CRLF line endings."""
        target = tmp_path / "mod.py"
        target.write_bytes(b"x = 1\r\n_ = pd\r\n")

        result = runner.invoke(app, ["format", "mod.py"])
        assert result.exit_code == 0
        assert target.read_bytes() == b"import pandas as pd\r\n\r\n\r\nx = 1\r\n_ = pd\r\n"

    def test_invalid_utf8_is_reported(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that an undecodable file is an error for that file, not a crash."""
        (tmp_path / "bad.py").write_bytes(b"_ = pd\n# \xff\n")
        (tmp_path / "good.py").write_text("_ = np\n")

        result = runner.invoke(app, ["format", "bad.py", "good.py"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Could not read" in result.output
        assert (tmp_path / "bad.py").read_bytes() == b"_ = pd\n# \xff\n"
        assert (tmp_path / "good.py").read_text().startswith("import numpy as np\n")


# -----------------------------------------------------------------------------
# Undefined Command Tests
# -----------------------------------------------------------------------------


class TestUndefinedCommand:
    """Tests for the undefined command."""

    def test_lists_names(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that undefined names are listed with their imports."""
        (tmp_path / "mod.py").write_text("_ = pd\n_ = foo\n")

        result = runner.invoke(app, ["undefined", "mod.py"])
        assert result.exit_code == 0
        assert "import pandas as pd" in result.stdout
        assert "foo" in result.stdout
        assert "no auto-import configured" in result.stdout

    def test_nothing_undefined(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test the message for a clean file."""
        (tmp_path / "mod.py").write_text("x = 1\n")

        result = runner.invoke(app, ["undefined", "mod.py"])
        assert result.exit_code == 0
        assert "No undefined names found" in result.stdout

    def test_json(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test the JSON form."""
        (tmp_path / "mod.py").write_text("_ = np\n")

        result = runner.invoke(app, ["undefined", "--json", "mod.py"])
        data = json.loads(result.stdout)
        assert data["undefined"] == [
            {"cell": None, "name": "np", "imports": ["import numpy as np"]}
        ]

    def test_notebook_skips_names_from_earlier_cells(
        self, tmp_path: Path, oracle: FakeOracle
    ) -> None:
        """Test that names imported by an earlier cell are not listed."""
        write_notebook(tmp_path / "nb.ipynb", "import pandas as pd", "_ = pd\n_ = np")

        result = runner.invoke(app, ["undefined", "--json", "nb.ipynb"])
        data = json.loads(result.stdout)
        assert data["undefined"] == [
            {"cell": 1, "name": "np", "imports": ["import numpy as np"]}
        ]

    def test_notebook_skips_names_assigned_in_earlier_cells(
        self, tmp_path: Path, oracle: FakeOracle
    ) -> None:
        """Test that a name without an auto-import is hidden once an earlier cell defines it."""
        write_notebook(tmp_path / "nb.ipynb", "alpha = 1", "_ = alpha")

        result = runner.invoke(app, ["undefined", "--json", "nb.ipynb"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["undefined"] == []

    def test_invalid_utf8_is_reported(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that an undecodable file exits 1 with an error message."""
        (tmp_path / "bad.py").write_bytes(b"_ = pd\n# \xff\n")

        result = runner.invoke(app, ["undefined", "bad.py"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Could not read" in result.output


# -----------------------------------------------------------------------------
# Config Command Tests
# -----------------------------------------------------------------------------


class TestConfigCommand:
    """Tests for the config command."""

    def test_json(self, tmp_path: Path, oracle: FakeOracle) -> None:
        """Test that resolved settings are shown as JSON."""
        (tmp_path / ".importantrc").write_text("line_length = 100\n")

        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["line_length"] == 100
        assert data["depth_limit"] == 5
        assert {"variable": "pd", "import": "import pandas as pd"} in data["auto_imports"]

    def test_table(self, oracle: FakeOracle) -> None:
        """Test the table form."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "remove_unused_imports" in result.stdout
        assert "pd: import pandas as pd" in result.stdout
