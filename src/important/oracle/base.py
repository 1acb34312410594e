"""Oracle boundary: diagnostics, configuration values and the oracle interface.

The oracle performs all static analysis and proposes fixes; the rest of the
package only consumes its output. Tests substitute a deterministic fake.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from important.edits import Edit, Position


@dataclass(frozen=True)
class Diagnostic:
    """One issue reported by the oracle.

    Attributes:
        code: Rule code (e.g. "F821"), or None for syntax errors.
        message: Human-readable description of the issue.
        fix: Edits resolving the issue, or None if the issue is informational.
        location: Where the issue starts, if reported.
    """

    code: str | None
    message: str
    fix: tuple[Edit, ...] | None = None
    location: Position | None = None

    @property
    def fixable(self) -> bool:
        return bool(self.fix)


def fix_edits(diagnostics: Iterable[Diagnostic]) -> list[Edit]:
    """Collect the fix edits of all diagnostics in reporting order."""
    return [edit for diagnostic in diagnostics for edit in diagnostic.fix or ()]


# Dotted ruff setting name -> OracleConfig field name
_SETTING_FIELDS = {
    "lint.select": "select",
    "lint.isort.required-imports": "required_imports",
    "lint.isort.lines-after-imports": "lines_after_imports",
    "lint.isort.combine-as-imports": "combine_as_imports",
    "lint.isort.split-on-trailing-comma": "split_on_trailing_comma",
    "line-length": "line_length",
    "format.skip-magic-trailing-comma": "skip_magic_trailing_comma",
}


@dataclass(frozen=True)
class OracleConfig:
    """Immutable selection of rules and their parameters for one oracle pass.

    Every field is optional; unset fields are left to the oracle's defaults.

    Attributes:
        select: Rule codes to enable (``lint.select``).
        required_imports: Import statements that must be present
            (``lint.isort.required-imports``).
        lines_after_imports: Blank lines after the import block.
        combine_as_imports: Combine ``as`` imports on one line.
        split_on_trailing_comma: Keep multi-line imports that end in a comma.
        line_length: Maximum line length.
        skip_magic_trailing_comma: Ignore magic trailing commas.
    """

    select: tuple[str, ...] = ()
    required_imports: tuple[str, ...] | None = None
    lines_after_imports: int | None = None
    combine_as_imports: bool | None = None
    split_on_trailing_comma: bool | None = None
    line_length: int | None = None
    skip_magic_trailing_comma: bool | None = None
    name: str = field(default="", compare=False)

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any], name: str = "") -> OracleConfig:
        """Build a config from dotted ruff setting names.

        Args:
            settings: Mapping such as ``{"lint.select": ["F821"]}``.
            name: Label used in log messages.

        Returns:
            The equivalent OracleConfig.

        Raises:
            ValueError: If a key is not a recognised setting.
        """
        unknown = sorted(set(settings) - set(_SETTING_FIELDS))
        if unknown:
            raise ValueError(f"Unsupported oracle setting(s): {', '.join(unknown)}")

        values: dict[str, Any] = {"name": name}
        for key, value in settings.items():
            attr = _SETTING_FIELDS[key]
            if attr in ("select", "required_imports") and value is not None:
                value = tuple(value)
            values[attr] = value
        return cls(**values)

    def to_mapping(self) -> dict[str, Any]:
        """Return the set fields keyed by dotted ruff setting name."""
        result: dict[str, Any] = {}
        for key, attr in _SETTING_FIELDS.items():
            value = getattr(self, attr)
            if value is None or (attr == "select" and not value):
                continue
            result[key] = list(value) if isinstance(value, tuple) else value
        return result

    def overrides(self) -> list[str]:
        """Render each set field as a TOML ``key = value`` pair.

        Returns:
            Strings accepted by ``ruff --config``.
        """
        return [f"{key} = {_toml_value(value)}" for key, value in self.to_mapping().items()]

    def label(self) -> str:
        return self.name or ",".join(self.select) or "default"


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    # JSON strings and string arrays are valid TOML basic strings/arrays
    return json.dumps(value)


class Oracle(ABC):
    """Static-analysis engine that reports diagnostics and proposes fixes."""

    @abstractmethod
    def check(self, text: str, config: OracleConfig) -> list[Diagnostic]:
        """Analyse ``text`` with the rules selected by ``config``.

        Args:
            text: Full document text.
            config: Rules and parameters for this pass.

        Returns:
            Diagnostics reported for ``text``. Fix edits use 0-based positions.

        Raises:
            OracleInvocationError: If the oracle rejects the config/text pair.
        """
