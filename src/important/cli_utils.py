"""CLI utility functions for important.

Provides helper functions for:
- Settings wiring: Extracting Typer CLI options and passing them to load_settings
- Path resolution: Resolving and checking input files
- Source files: Reading and writing UTF-8 text while keeping line endings
- Error formatting: Consistent user-friendly error messages with exit codes
- Logging: Configuring the standard library logger for --verbose
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, NoReturn

import typer

from important.errors import (
    ConvergenceError,
    DepthLimitExceededError,
    ImportantError,
    SourceFileError,
)
from important.settings import ImportantSettings, load_settings

# Exit code conventions
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1  # User error (bad input, missing file, failed check, etc.)
EXIT_SYSTEM_ERROR = 2  # Engine defect (fixes never settle, etc.)

PYTHON_SUFFIXES = (".py", ".pyi")
NOTEBOOK_SUFFIX = ".ipynb"

LF = "\n"
CRLF = "\r\n"


# -----------------------------------------------------------------------------
# Error Formatting Helpers
# -----------------------------------------------------------------------------


def error(msg: str, *, exit_code: int = EXIT_USER_ERROR) -> NoReturn:
    """Print an error message and exit with the given exit code.

    Args:
        msg: The error message to display.
        exit_code: Exit code to use (default: EXIT_USER_ERROR=1).

    Raises:
        typer.Exit: Always raises to exit the program.
    """
    styled_prefix = typer.style("Error:", fg=typer.colors.RED, bold=True)
    typer.echo(f"{styled_prefix} {msg}", err=True)
    raise typer.Exit(code=exit_code)


def exit_code_for(exc: ImportantError) -> int:
    """Pick the exit code for a failed formatting request.

    A loop that never settles is a defect in the fixer rather than in the
    user's input, so it gets EXIT_SYSTEM_ERROR.
    """
    if isinstance(exc, DepthLimitExceededError):
        return EXIT_SYSTEM_ERROR
    return EXIT_USER_ERROR


def describe_failure(exc: ImportantError) -> str:
    """Build a one-line description of a failed request."""
    message = str(exc)
    if isinstance(exc, ConvergenceError) and exc.batches:
        message += f" ({len(exc.batches)} edit batch(es) were discarded)"
    return message


# -----------------------------------------------------------------------------
# Path Resolution Helpers
# -----------------------------------------------------------------------------


def resolve_path(
    path: str | Path,
    base_path: Path | None = None,
) -> Path:
    """Resolve a path relative to a base path.

    Args:
        path: The path to resolve.
        base_path: Base path to resolve relative paths from. Defaults to cwd.

    Returns:
        Resolved absolute Path.
    """
    p = Path(path)
    base = base_path or Path.cwd()

    return p.resolve() if p.is_absolute() else (base / p).resolve()


def ensure_path_exists(path: Path, path_type: str = "path") -> Path:
    """Ensure a path exists and is a supported file.

    Args:
        path: The path to check.
        path_type: Human-readable name for the path (for error messages).

    Returns:
        The verified path.

    Raises:
        typer.Exit: If the path doesn't exist, is not a file, or is neither a
            Python file nor a notebook.
    """
    if not path.exists():
        error(f"{path_type} does not exist: {path}")

    if not path.is_file():
        error(f"{path_type} is not a file: {path}")

    if path.suffix not in (*PYTHON_SUFFIXES, NOTEBOOK_SUFFIX):
        error(f"{path_type} is not a Python file or notebook: {path}")

    return path


def is_notebook(path: Path) -> bool:
    return path.suffix == NOTEBOOK_SUFFIX


# -----------------------------------------------------------------------------
# Source File Helpers
# -----------------------------------------------------------------------------
# Edits address "\n"-separated lines, so text is normalized on read and the
# file's own line ending is put back on write.


def detect_newline(text: str) -> str:
    """Return the line ending of the first line break in ``text`` (LF if none)."""
    index = text.find(LF)
    return CRLF if index > 0 and text[index - 1] == "\r" else LF


def read_source(path: Path) -> tuple[str, str]:
    """Read a UTF-8 source file.

    Args:
        path: File to read.

    Returns:
        The text with every line break turned into ``\\n``, and the line
        ending to restore when writing it back.

    Raises:
        SourceFileError: If the file cannot be read or is not valid UTF-8.
    """
    try:
        with path.open(encoding="utf-8", newline="") as f:
            raw = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SourceFileError(f"Could not read {path}: {e}") from e
    return raw.replace(CRLF, LF).replace("\r", LF), detect_newline(raw)


def write_source(path: Path, text: str, newline: str = LF) -> None:
    """Write ``\\n``-separated text, using ``newline`` as the line ending.

    Raises:
        SourceFileError: If the file cannot be written.
    """
    try:
        path.write_text(text, encoding="utf-8", newline=newline)
    except OSError as e:
        raise SourceFileError(f"Could not write {path}: {e}") from e


# -----------------------------------------------------------------------------
# Settings Wiring Helper
# -----------------------------------------------------------------------------


def wire_settings(
    depth_limit: int | None = None,
    line_length: int | None = None,
    remove_unused_imports: bool | None = None,
    organize_imports: bool | None = None,
    start_dir: Path | None = None,
) -> ImportantSettings:
    """Wire CLI options to load_settings with appropriate overrides.

    Args:
        depth_limit: Override for the convergence depth limit.
        line_length: Override for the import line length.
        remove_unused_imports: Override for unused-import removal.
        organize_imports: Override for import sorting.
        start_dir: Directory to start searching for config files.

    Returns:
        Fully resolved ImportantSettings instance.

    Raises:
        typer.Exit: If the settings are invalid.
    """
    cli_overrides: dict[str, Any] = {}

    if depth_limit is not None:
        cli_overrides["depth_limit"] = depth_limit
    if line_length is not None:
        cli_overrides["line_length"] = line_length
    if remove_unused_imports is not None:
        cli_overrides["remove_unused_imports"] = remove_unused_imports
    if organize_imports is not None:
        cli_overrides["organize_imports"] = organize_imports

    try:
        return load_settings(cli_overrides=cli_overrides, start_dir=start_dir)
    except ValueError as e:
        error(f"Invalid configuration: {e}", exit_code=EXIT_USER_ERROR)


def configure_logging(verbose: bool) -> None:
    """Route library logging to stderr; DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s %(levelname)s %(message)s",
        force=True,
    )


# -----------------------------------------------------------------------------
# Typer Option Factory Functions
# -----------------------------------------------------------------------------
# Typer consumes Option objects when decorating commands, so each command
# needs a fresh instance.


def depth_limit_option() -> Any:
    """Create a Typer Option for --depth-limit."""
    return typer.Option(
        None,
        "--depth-limit",
        help="Highest fix round before giving up (default: 5).",
        envvar="IMPORTANT_DEPTH_LIMIT",
    )


def line_length_option() -> Any:
    """Create a Typer Option for --line-length."""
    return typer.Option(
        None,
        "--line-length",
        help="Line length used when wrapping imports (default: 88).",
        envvar="IMPORTANT_LINE_LENGTH",
    )


def cell_option() -> Any:
    """Create a Typer Option for --cell."""
    return typer.Option(
        None,
        "--cell",
        help="Only process this 0-based notebook cell.",
    )


def json_option() -> Any:
    """Create a Typer Option for --json."""
    return typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    )


def verbose_option() -> Any:
    """Create a Typer Option for --verbose."""
    return typer.Option(
        False,
        "--verbose",
        help="Log oracle diagnostics and applied edits.",
    )
