"""Pytest configuration and fixtures for important tests."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Generator

import pytest

# Set a fixed terminal width to prevent line wrapping issues in CI
# This must be set before any Rich imports
os.environ.setdefault("COLUMNS", "200")
os.environ.setdefault("LINES", "50")
# Disable Rich's terminal detection to ensure consistent output
os.environ.setdefault("TERM", "dumb")

from important.edits import Edit, Position, Range  # noqa: E402
from important.errors import OracleInvocationError  # noqa: E402
from important.oracle.base import Diagnostic, Oracle, OracleConfig  # noqa: E402

Rule = Callable[[str, OracleConfig], list[Diagnostic]]

_IMPORT_LINE = re.compile(r"^(import|from)\s")


def _bound_names(line: str) -> set[str]:
    """Names bound by a single-line import statement."""
    if line.startswith("from "):
        _, _, names = line.partition(" import ")
    else:
        names = line[len("import ") :]
    bound: set[str] = set()
    for part in names.strip("()").split(","):
        tokens = part.split()
        if not tokens:
            continue
        bound.add(tokens[-1] if "as" in tokens else tokens[0].split(".")[0])
    return bound


def undefined_rule(text: str, config: OracleConfig) -> list[Diagnostic]:
    """Report names that are read but never imported or assigned."""
    lines = text.split("\n")
    defined: set[str] = set()
    for line in lines:
        if _IMPORT_LINE.match(line):
            defined |= _bound_names(line)
        match = re.match(r"^\s*(?:def|class)\s+(\w+)|^\s*(\w+)\s*=", line)
        if match:
            defined.add(match.group(1) or match.group(2))

    diagnostics: list[Diagnostic] = []
    seen: set[str] = set()
    for row, line in enumerate(lines):
        if _IMPORT_LINE.match(line) or line.lstrip().startswith("#"):
            continue
        code = re.sub(r"^\s*(?:def|class)\s+\w+|^\s*\w+\s*=", "", line)
        for name in re.findall(r"(?<![.\w])([A-Za-z_]\w*)", code):
            if name in defined or name in seen or name in {"return", "pass", "def", "_"}:
                continue
            seen.add(name)
            diagnostics.append(
                Diagnostic("F821", f"Undefined name `{name}`", location=Position(row, 0))
            )
    return diagnostics


def _import_block_start(lines: list[str]) -> int:
    index = 0
    while index < len(lines) and lines[index].startswith("#"):
        index += 1
    return index


def required_import_rule(text: str, config: OracleConfig) -> list[Diagnostic]:
    """Insert each missing required import after any leading comments."""
    lines = text.split("\n")
    at = _import_block_start(lines)
    return [
        Diagnostic(
            "I002",
            f"Missing required import: `{statement}`",
            fix=(Edit.insert(at, 0, statement + "\n"),),
        )
        for statement in config.required_imports or ()
        if statement not in lines
    ]


def organize_rule(text: str, config: OracleConfig) -> list[Diagnostic]:
    """Sort the leading import block and pad it with blank lines."""
    lines = text.split("\n")
    start = _import_block_start(lines)
    end = start
    imports: list[str] = []
    while end < len(lines) and (_IMPORT_LINE.match(lines[end]) or not lines[end].strip()):
        if lines[end].strip():
            imports.append(lines[end])
        end += 1
    if not imports or end >= len(lines):
        return []

    padding = config.lines_after_imports if config.lines_after_imports is not None else 1
    expected = "\n".join(sorted(set(imports))) + "\n" + "\n" * padding
    current = "\n".join(lines[start:end]) + "\n"
    if current == expected:
        return []
    return [
        Diagnostic(
            "I001",
            "Import block is un-sorted or un-formatted",
            fix=(Edit.replace(start, 0, end, 0, expected),),
        )
    ]


class FakeOracle(Oracle):
    """Deterministic oracle dispatching on the first selected rule code.

    Attributes:
        rules: Rule code -> function producing diagnostics.
        calls: Every (text, config) pair checked, in order.
        fail_on: Rule code whose check raises OracleInvocationError.
    """

    def __init__(self, rules: dict[str, Rule] | None = None) -> None:
        self.rules: dict[str, Rule] = {
            "F821": undefined_rule,
            "I002": required_import_rule,
            "I001": organize_rule,
        }
        self.rules.update(rules or {})
        self.calls: list[tuple[str, OracleConfig]] = []
        self.fail_on: str | None = None

    def check(self, text: str, config: OracleConfig) -> list[Diagnostic]:
        self.calls.append((text, config))
        code = config.select[0] if config.select else ""
        if code == self.fail_on:
            raise OracleInvocationError(f"Failed to create ruff config for {code}")
        rule = self.rules.get(code)
        return rule(text, config) if rule else []

    def codes_called(self) -> list[str]:
        return [config.select[0] if config.select else "" for _, config in self.calls]


def edit(
    start_line: int, start_column: int, end_line: int, end_column: int, new_text: str
) -> Edit:
    """Shorthand used throughout the tests."""
    return Edit(Range(Position(start_line, start_column), Position(end_line, end_column)), new_text)


@pytest.fixture
def fake_oracle() -> FakeOracle:
    """A FakeOracle with the undefined-name, required-import and sort rules."""
    return FakeOracle()


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Generator[None, None, None]:
    """Undo any logging.basicConfig done by CLI commands under test."""
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler and handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
