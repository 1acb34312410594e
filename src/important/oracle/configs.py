"""Oracle configurations for each formatting pass."""

from __future__ import annotations

from collections.abc import Iterable

from important.oracle.base import OracleConfig

UNDEFINED_NAME = "F821"
UNUSED_IMPORT = "F401"
UNSORTED_IMPORTS = "I001"
MISSING_REQUIRED_IMPORT = "I002"

DEFAULT_LINES_AFTER_IMPORTS = 2


def undefined_names_config() -> OracleConfig:
    """Diagnostics-only pass reporting undefined names."""
    return OracleConfig(select=(UNDEFINED_NAME,), name="undefined-names")


def add_imports_config(
    imports: Iterable[str],
    lines_after_imports: int = DEFAULT_LINES_AFTER_IMPORTS,
) -> OracleConfig:
    """Pass that inserts every statement of ``imports`` that is missing.

    Args:
        imports: Import statements to force present.
        lines_after_imports: Blank lines to leave after the import block.

    Returns:
        OracleConfig selecting the required-import rule.
    """
    return OracleConfig(
        select=(MISSING_REQUIRED_IMPORT,),
        required_imports=tuple(imports),
        lines_after_imports=lines_after_imports,
        combine_as_imports=True,
        name="add-imports",
    )


def remove_unused_config(keep: Iterable[str] = ()) -> OracleConfig:
    """Pass that deletes unused imports.

    Statements in ``keep`` are declared as required imports, which ruff
    exempts from the unused-import rule.

    Args:
        keep: Import statements that must never be removed.

    Returns:
        OracleConfig selecting the unused-import rule.
    """
    return OracleConfig(
        select=(UNUSED_IMPORT,),
        required_imports=tuple(keep),
        name="remove-unused",
    )


def organize_imports_config(
    line_length: int,
    lines_after_imports: int = DEFAULT_LINES_AFTER_IMPORTS,
) -> OracleConfig:
    """Pass that sorts and regroups the import block.

    Trailing commas never force a multi-line import, so removing names from a
    parenthesised import collapses it back onto one line when it fits.

    Args:
        line_length: Maximum line length for wrapped imports.
        lines_after_imports: Blank lines to leave after the import block.

    Returns:
        OracleConfig selecting the import-sorting rule.
    """
    return OracleConfig(
        select=(UNSORTED_IMPORTS,),
        lines_after_imports=lines_after_imports,
        combine_as_imports=True,
        split_on_trailing_comma=False,
        line_length=line_length,
        skip_magic_trailing_comma=True,
        name="organize-imports",
    )
