"""Decide which undefined symbols of a document should receive an import.

For a standalone file this is every undefined name that has a configured
import. A notebook cell is trickier: names used in the cell may be defined by
an earlier cell, while the concatenation of all cells up to this one can hide
or invent problems unrelated to the cell. The symbols to fix are those flagged
both in the cell alone and in the in-order concatenation.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from important.errors import ContextResolutionError
from important.masker import mask
from important.notebook import Cell
from important.oracle.base import Oracle
from important.oracle.configs import UNDEFINED_NAME, undefined_names_config

logger = logging.getLogger(__name__)

UNDEFINED_NAME_PATTERN = re.compile(r"^Undefined name `([^`]+)`")


@dataclass(frozen=True)
class UnitContext:
    """Where the document being formatted lives.

    Attributes:
        container: Cells of the enclosing notebook, in order, if any.
        cell_index: Index of the current cell, or None for a standalone file.
    """

    container: Sequence[Cell] | None = None
    cell_index: int | None = None

    @property
    def is_cell(self) -> bool:
        return self.cell_index is not None


STANDALONE = UnitContext()


def undefined_symbols(oracle: Oracle, text: str) -> list[str]:
    """List the undefined names in ``text`` in order of first use.

    Args:
        oracle: Oracle used for the diagnostics-only pass.
        text: Text to analyse (already masked).

    Returns:
        Distinct undefined names.

    Raises:
        OracleInvocationError: If the oracle fails.
    """
    symbols: list[str] = []
    for diagnostic in oracle.check(text, undefined_names_config()):
        if diagnostic.code not in (None, UNDEFINED_NAME):
            continue
        match = UNDEFINED_NAME_PATTERN.match(diagnostic.message)
        if match is None:
            if diagnostic.code == UNDEFINED_NAME:
                logger.warning(
                    "Undefined variable could not be determined from message (%s)",
                    diagnostic.message,
                )
            continue
        if match.group(1) not in symbols:
            symbols.append(match.group(1))
    return symbols


def imports_for(symbols: Iterable[str], import_map: Mapping[str, tuple[str, ...]]) -> list[str]:
    """Map symbols to their configured import statements.

    Args:
        symbols: Undefined names.
        import_map: Variable -> import statements lookup.

    Returns:
        Distinct statements, ordered by symbol name then declaration order.
    """
    statements: list[str] = []
    for symbol in sorted(set(symbols)):
        for statement in import_map.get(symbol, ()):
            if statement not in statements:
                statements.append(statement)
    return statements


def cells_through(container: Sequence[Cell], index: int, current_text: str) -> str:
    """Concatenate the code cells up to and including ``index``.

    Non-code cells are skipped, magic lines are masked, and the current cell
    contributes ``current_text`` rather than its stored source.

    Args:
        container: Notebook cells in order.
        index: Index of the current cell.
        current_text: Text of the current cell as being formatted.

    Returns:
        Cell texts joined by newlines.
    """
    parts: list[str] = []
    for position, cell in enumerate(container[: index + 1]):
        if position == index:
            parts.append(current_text)
        elif cell.is_code:
            parts.append(mask(cell.text)[1])
    return "\n".join(parts)


class ContextAggregator:
    """Compute the symbols that genuinely need an import.

    Attributes:
        oracle: Oracle used for the undefined-name passes.
        import_map: Variable -> import statements lookup.
    """

    def __init__(self, oracle: Oracle, import_map: Mapping[str, tuple[str, ...]]) -> None:
        self.oracle = oracle
        self.import_map = import_map

    def resolvable(self, text: str) -> set[str]:
        """Undefined names in ``text`` that have a configured import."""
        return {s for s in undefined_symbols(self.oracle, text) if s in self.import_map}

    def effective_symbols(self, text: str, context: UnitContext = STANDALONE) -> set[str]:
        """Resolve the symbols to import for ``text``.

        Args:
            text: Masked text of the current unit.
            context: Container membership of the unit.

        Returns:
            The fixable symbols of the unit alone, intersected with those of
            the in-order concatenation when the unit is a cell.

        Raises:
            ContextResolutionError: If the unit is a cell but its container
                is missing or does not hold the cell index.
            OracleInvocationError: If the oracle fails.
        """
        if context.is_cell:
            check_cell_context(context)

        alone = self.resolvable(text)
        if not context.is_cell or not alone:
            return alone

        assert context.container is not None and context.cell_index is not None
        combined = cells_through(context.container, context.cell_index, text)
        in_order = self.resolvable(combined)
        logger.debug("Cell %d: alone=%s, in order=%s", context.cell_index, alone, in_order)
        return alone & in_order

    def undefined_names(self, text: str, context: UnitContext = STANDALONE) -> list[str]:
        """List every undefined name of ``text``, configured import or not.

        For a cell, names that an earlier cell defines are left out.

        Raises:
            ContextResolutionError: If the unit is a cell but its container
                is missing or does not hold the cell index.
            OracleInvocationError: If the oracle fails.
        """
        if context.is_cell:
            check_cell_context(context)

        alone = undefined_symbols(self.oracle, text)
        if not context.is_cell or not alone:
            return alone

        assert context.container is not None and context.cell_index is not None
        combined = cells_through(context.container, context.cell_index, text)
        in_order = set(undefined_symbols(self.oracle, combined))
        return [symbol for symbol in alone if symbol in in_order]

    def effective_imports(self, text: str, context: UnitContext = STANDALONE) -> list[str]:
        """Import statements for the effective symbols of ``text``."""
        return imports_for(self.effective_symbols(text, context), self.import_map)


def check_cell_context(context: UnitContext) -> None:
    """Verify that a cell's container is present and holds the cell.

    Raises:
        ContextResolutionError: If the container is missing or the cell
            index falls outside it.
    """
    if context.container is None:
        raise ContextResolutionError(
            f"Unable to find the notebook containing cell {context.cell_index}"
        )
    index = context.cell_index
    if index is None or not 0 <= index < len(context.container):
        raise ContextResolutionError(
            f"Cell {index} is outside the notebook ({len(context.container)} cell(s))"
        )
