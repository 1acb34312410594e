"""important CLI Tool - Main entry point."""

from __future__ import annotations

import difflib
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from important import __version__
from important.cli_utils import (
    EXIT_SUCCESS,
    EXIT_USER_ERROR,
    LF,
    cell_option,
    configure_logging,
    depth_limit_option,
    describe_failure,
    ensure_path_exists,
    exit_code_for,
    is_notebook,
    json_option,
    line_length_option,
    read_source,
    resolve_path,
    verbose_option,
    wire_settings,
    write_source,
)
from important.context import STANDALONE, ContextAggregator, UnitContext
from important.errors import ImportantError, SourceFileError
from important.formatter import DocumentFormatter, FormatResult
from important.masker import mask
from important.notebook import Notebook
from important.oracle.base import Oracle
from important.oracle.ruff import DEFAULT_STDIN_FILENAME, RuffOracle
from important.settings import ImportantSettings, SettingsStore

app = typer.Typer(
    name="important",
    help="important - Add, prune and sort Python imports with ruff until nothing changes.",
    add_completion=False,
)

# Rich consoles for output
console = Console()
err_console = Console(stderr=True)

STDIN_PATH = "-"
NOTEBOOK_CELL_FILENAME = "cell.py"


# -----------------------------------------------------------------------------
# Output Helpers
# -----------------------------------------------------------------------------


def _output_success(message: str, quiet: bool = False) -> None:
    """Print a success message."""
    if not quiet:
        console.print(f"[green]Success:[/green] {message}")


def _output_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[red]Error:[/red] {message}", markup=True, highlight=False)


def _output_info(message: str, quiet: bool = False) -> None:
    """Print an info message."""
    if not quiet:
        console.print(message, highlight=False)


def _exit_error(message: str, exit_code: int = EXIT_USER_ERROR) -> None:
    """Print error and exit."""
    _output_error(message)
    raise typer.Exit(code=exit_code)


def build_oracle(stdin_filename: str, settings: ImportantSettings) -> Oracle:
    """Create the oracle used for one input file."""
    return RuffOracle(stdin_filename=stdin_filename, timeout=settings.oracle_timeout)


def _unified_diff(before: str, after: str, name: str) -> str:
    return "".join(
        difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=f"a/{name}",
            tofile=f"b/{name}",
        )
    )


# -----------------------------------------------------------------------------
# Version and Main Callbacks
# -----------------------------------------------------------------------------


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"important version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """important - Add, prune and sort Python imports with ruff until nothing changes."""
    pass


# -----------------------------------------------------------------------------
# Format Command
# -----------------------------------------------------------------------------


@dataclass
class _FileReport:
    """Formatting outcome for one input path."""

    path: str
    before: str = ""
    after: str = ""
    results: list[FormatResult] = field(default_factory=list)
    newline: str = LF
    error: str | None = None
    exit_code: int = EXIT_SUCCESS

    @property
    def changed(self) -> bool:
        return self.before != self.after

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "path": self.path,
            "changed": self.changed,
            "imports": sorted({s for r in self.results for s in r.imports}),
            "batches": sum(len(r.batches) for r in self.results),
            "iterations": sum(r.iterations for r in self.results),
        }
        if self.error:
            result["error"] = self.error
        return result


def _format_python(
    text: str,
    filename: str,
    settings: ImportantSettings,
    full_format: bool,
) -> FormatResult:
    store = SettingsStore(settings)
    formatter = DocumentFormatter(build_oracle(filename, settings), store)
    return formatter.format_document(text, full_format, filename=filename)


def _format_notebook(
    text: str,
    path: Path,
    settings: ImportantSettings,
    full_format: bool,
    cell: int | None,
) -> tuple[str, list[FormatResult]]:
    notebook = Notebook.from_text(text, path)
    formatter = DocumentFormatter(
        build_oracle(NOTEBOOK_CELL_FILENAME, settings), SettingsStore(settings)
    )
    if cell is None:
        results = formatter.format_notebook(notebook, full_format)
    else:
        results = [formatter.format_cell(notebook, cell, full_format)]
    if not any(r.changed for r in results):
        return text, results
    return notebook.to_text(), results


def _input_path(raw_path: str, stdin_filename: str | None) -> Path:
    if raw_path == STDIN_PATH:
        return Path(stdin_filename or DEFAULT_STDIN_FILENAME)
    return resolve_path(raw_path)


def _check_inputs(paths: list[str], cell: int | None, stdin_filename: str | None) -> None:
    """Reject unusable inputs before any file is touched."""
    for raw_path in paths:
        path = _input_path(raw_path, stdin_filename)
        if raw_path != STDIN_PATH:
            ensure_path_exists(path, "File")
        if cell is not None and not is_notebook(path):
            _exit_error(f"--cell can only be used with notebooks: {raw_path}")


def _process_path(
    raw_path: str,
    settings: ImportantSettings,
    *,
    full_format: bool,
    cell: int | None,
    stdin_filename: str | None,
) -> _FileReport:
    path = _input_path(raw_path, stdin_filename)
    report = _FileReport(path=raw_path)
    try:
        if raw_path == STDIN_PATH:
            report.before = sys.stdin.read()
        else:
            report.before, report.newline = read_source(path)
        report.after = report.before

        if is_notebook(path):
            report.after, report.results = _format_notebook(
                report.before, path, settings, full_format, cell
            )
        else:
            result = _format_python(report.before, path.name, settings, full_format)
            report.after = result.text
            report.results = [result]
    except ImportantError as e:
        report.after = report.before
        report.error = describe_failure(e)
        report.exit_code = exit_code_for(e)
    return report


@app.command("format")
def format_command(
    paths: list[str] = typer.Argument(
        ...,
        help="Python files or notebooks to format. Use - to read from stdin.",
    ),
    check: bool = typer.Option(
        False,
        "--check",
        help="Don't write files; exit 1 if any file would change.",
    ),
    diff: bool = typer.Option(
        False,
        "--diff",
        help="Don't write files; print a unified diff of the changes.",
    ),
    narrow: bool = typer.Option(
        False,
        "--narrow",
        help="Only add missing imports; don't remove or sort imports.",
    ),
    cell: int | None = cell_option(),
    remove_unused: bool | None = typer.Option(
        None,
        "--remove-unused/--keep-unused",
        help="Remove unused imports (default from settings).",
    ),
    organize: bool | None = typer.Option(
        None,
        "--organize/--no-organize",
        help="Sort the import block (default from settings).",
    ),
    depth_limit: int | None = depth_limit_option(),
    line_length: int | None = line_length_option(),
    stdin_filename: str | None = typer.Option(
        None,
        "--stdin-filename",
        help="File name to assume for text read from stdin.",
    ),
    json_output: bool = json_option(),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Minimal output for CI.",
    ),
    verbose: bool = verbose_option(),
) -> None:
    """Fix the imports of Python files and notebooks.

    Undefined names with a configured auto-import get their import added.
    A full format also removes unused imports (when enabled) and sorts the
    import block; --narrow only adds imports. Fixes are re-run until the
    file stops changing.

    Exit codes:
      0 - Success (or nothing to do)
      1 - Files would change (--check) or a file could not be formatted
      2 - Fixes did not settle within the depth limit
    """
    configure_logging(verbose)
    settings = wire_settings(
        depth_limit=depth_limit,
        line_length=line_length,
        remove_unused_imports=remove_unused,
        organize_imports=organize,
    )
    if not settings.enabled:
        _exit_error(
            "The import formatter is not enabled. "
            "Set `enabled = true` under [tool.important] or export IMPORTANT_ENABLED=1."
        )

    _check_inputs(paths, cell, stdin_filename)

    write = not (check or diff)
    reports: list[_FileReport] = []
    for raw_path in paths:
        report = _process_path(
            raw_path,
            settings,
            full_format=not narrow,
            cell=cell,
            stdin_filename=stdin_filename,
        )
        reports.append(report)

        if report.error:
            if not json_output:
                _output_error(f"{report.path}: {report.error}")
            continue

        if report.path == STDIN_PATH and write:
            sys.stdout.write(report.after)
            continue

        if diff and report.changed and not json_output:
            typer.echo(_unified_diff(report.before, report.after, report.path), nl=False)
        if write and report.changed:
            try:
                write_source(resolve_path(report.path), report.after, report.newline)
            except SourceFileError as e:
                report.after = report.before
                report.error = str(e)
                report.exit_code = EXIT_USER_ERROR
                if not json_output:
                    _output_error(f"{report.path}: {report.error}")
                continue
            if not json_output:
                _output_info(f"Fixed imports in {report.path}", quiet)

    changed = [r for r in reports if r.changed]
    failed = [r for r in reports if r.error]

    if json_output:
        result = {
            "success": not failed and not (check and changed),
            "changed": len(changed),
            "failed": len(failed),
            "files": [r.to_dict() for r in reports],
        }
        console.print_json(json.dumps(result))
    elif not (len(reports) == 1 and reports[0].path == STDIN_PATH and write):
        if check and changed:
            for report in changed:
                _output_info(f"Would fix imports in {report.path}", quiet)
        elif not failed:
            verb = "would change" if (check or diff) else "changed"
            _output_success(f"{len(changed)} of {len(reports)} file(s) {verb}", quiet)

    if failed:
        raise typer.Exit(code=max(r.exit_code for r in failed))
    if check and changed:
        raise typer.Exit(code=EXIT_USER_ERROR)


# -----------------------------------------------------------------------------
# Undefined Command
# -----------------------------------------------------------------------------


@app.command()
def undefined(
    path: str = typer.Argument(..., help="Python file or notebook to inspect."),
    cell: int | None = cell_option(),
    json_output: bool = json_option(),
    verbose: bool = verbose_option(),
) -> None:
    """List undefined names and the import each one would receive.

    For a notebook cell, names defined by an earlier cell are not listed.
    """
    configure_logging(verbose)
    settings = wire_settings()
    store = SettingsStore(settings)
    file_path = ensure_path_exists(resolve_path(path), "File")
    if cell is not None and not is_notebook(file_path):
        _exit_error("--cell can only be used with notebooks")

    try:
        if is_notebook(file_path):
            notebook = Notebook.load(file_path)
            indexes = [cell] if cell is not None else [
                i for i, c in enumerate(notebook.cells) if c.is_code
            ]
            oracle = build_oracle(NOTEBOOK_CELL_FILENAME, settings)
            units = [
                (
                    i,
                    notebook.cells[i].text if 0 <= i < len(notebook) else "",
                    UnitContext(container=notebook.cells, cell_index=i),
                )
                for i in indexes
            ]
        else:
            oracle = build_oracle(file_path.name, settings)
            units = [(None, read_source(file_path)[0], STANDALONE)]

        aggregator = ContextAggregator(oracle, store.import_map)
        rows: list[dict[str, Any]] = []
        for index, text, context in units:
            for symbol in aggregator.undefined_names(mask(text)[1], context):
                rows.append(
                    {
                        "cell": index,
                        "name": symbol,
                        "imports": list(store.import_map.get(symbol, ())),
                    }
                )
    except ImportantError as e:
        _exit_error(describe_failure(e), exit_code=exit_code_for(e))

    if json_output:
        console.print_json(json.dumps({"path": path, "undefined": rows}))
        return

    if not rows:
        _output_success("No undefined names found")
        return

    table = Table(title=f"Undefined names in {path}")
    if is_notebook(file_path):
        table.add_column("Cell", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Import")
    for row in rows:
        statements = "\n".join(row["imports"]) or "[dim]no auto-import configured[/dim]"
        cells = [str(row["cell"])] if is_notebook(file_path) else []
        table.add_row(*cells, row["name"], statements)
    console.print(table)


# -----------------------------------------------------------------------------
# Config Command
# -----------------------------------------------------------------------------


@app.command("config")
def config_command(
    json_output: bool = json_option(),
) -> None:
    """Show the resolved settings."""
    settings = wire_settings()

    if json_output:
        console.print_json(json.dumps(settings.to_dict()))
        return

    table = Table(title="important settings")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    for key, value in settings.to_dict().items():
        if key == "auto_imports":
            value = "\n".join(f"{e['variable']}: {e['import']}" for e in value)
        elif key == "always_import":
            value = "\n".join(value) or "-"
        table.add_row(key, str(value))
    console.print(table)


if __name__ == "__main__":
    app()
