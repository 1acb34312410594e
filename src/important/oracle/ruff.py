"""Oracle backed by the ruff command-line linter.

Each check runs ``ruff check`` on stdin with ``--isolated`` so project
configuration never leaks into a pass, and reads the JSON report. Settings
travel as ``--config "key = value"`` overrides.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import sys
from collections.abc import Mapping, Sequence
from typing import Any

from important.edits import Edit, Position, Range
from important.errors import OracleInvocationError
from important.oracle.base import Diagnostic, Oracle, OracleConfig

logger = logging.getLogger(__name__)

DEFAULT_STDIN_FILENAME = "stdin.py"
DEFAULT_TIMEOUT = 30.0


def find_ruff() -> list[str]:
    """Locate the ruff executable.

    Returns:
        Command prefix: the ``ruff`` binary on PATH, or ``python -m ruff``
        for the current interpreter.
    """
    executable = shutil.which("ruff")
    if executable is not None:
        return [executable]
    return [sys.executable, "-m", "ruff"]


def _position(payload: Mapping[str, Any]) -> Position:
    return Position.from_one_based(int(payload["row"]), int(payload["column"]))


def parse_diagnostics(output: str) -> list[Diagnostic]:
    """Parse ruff's ``--output-format json`` report.

    Args:
        output: Raw stdout of ``ruff check``.

    Returns:
        Diagnostics with fix edits converted to 0-based positions.

    Raises:
        OracleInvocationError: If the report is not a JSON list.
    """
    if not output.strip():
        return []
    try:
        payload = json.loads(output)
    except json.JSONDecodeError as e:
        raise OracleInvocationError(f"Could not parse ruff output: {e}") from e
    if not isinstance(payload, list):
        raise OracleInvocationError("Unexpected ruff output: expected a JSON list")

    diagnostics: list[Diagnostic] = []
    for record in payload:
        fix = record.get("fix")
        edits: tuple[Edit, ...] | None = None
        if fix and fix.get("edits"):
            edits = tuple(
                Edit(
                    Range(_position(raw["location"]), _position(raw["end_location"])),
                    raw.get("content") or "",
                )
                for raw in fix["edits"]
            )
        location = record.get("location")
        diagnostics.append(
            Diagnostic(
                code=record.get("code"),
                message=record.get("message", ""),
                fix=edits,
                location=_position(location) if location else None,
            )
        )
    return diagnostics


class RuffOracle(Oracle):
    """Run ruff as a subprocess for every check.

    Attributes:
        command: Command prefix used to invoke ruff.
        stdin_filename: File name reported to ruff; ``__init__.py`` changes
            how some rules behave.
        timeout: Seconds to wait for a single invocation.
    """

    def __init__(
        self,
        command: Sequence[str] | None = None,
        stdin_filename: str = DEFAULT_STDIN_FILENAME,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.command = list(command) if command is not None else find_ruff()
        self.stdin_filename = stdin_filename
        self.timeout = timeout

    def build_args(self, config: OracleConfig) -> list[str]:
        """Build the full ruff command line for ``config``."""
        args = [
            *self.command,
            "check",
            "--isolated",
            "--no-cache",
            "--exit-zero",
            "--output-format",
            "json",
            "--stdin-filename",
            self.stdin_filename,
        ]
        for override in config.overrides():
            args.extend(["--config", override])
        args.append("-")
        return args

    def check(self, text: str, config: OracleConfig) -> list[Diagnostic]:
        args = self.build_args(config)
        try:
            process = subprocess.run(  # noqa: S603  # arguments are built above
                args,
                input=text,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise OracleInvocationError(f"ruff executable not found: {args[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise OracleInvocationError(
                f"ruff did not finish within {self.timeout:g}s ({config.label()})"
            ) from e

        if process.returncode != 0:
            detail = process.stderr.strip() or f"exit code {process.returncode}"
            raise OracleInvocationError(f"Failed to run ruff ({config.label()}): {detail}")

        diagnostics = parse_diagnostics(process.stdout)
        logger.debug(
            "ruff %s reported %d diagnostic(s): %s",
            config.label(),
            len(diagnostics),
            [f"{d.code}: {d.message}" for d in diagnostics],
        )
        return diagnostics
