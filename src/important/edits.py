"""Positions, ranges and edits against a text snapshot.

All coordinates are 0-based. Columns count ``str`` code points, which is also
the unit ruff reports columns in.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Position:
    """A 0-based (line, column) location, ordered line first."""

    line: int
    column: int

    def __post_init__(self) -> None:
        if self.line < 0 or self.column < 0:
            raise ValueError(f"Position must be non-negative: ({self.line}, {self.column})")

    @classmethod
    def from_one_based(cls, row: int, column: int) -> Position:
        """Build a Position from ruff's 1-based (row, column) pair.

        Args:
            row: 1-based line number.
            column: 1-based column number.

        Returns:
            The equivalent 0-based Position.
        """
        return cls(row - 1, column - 1)


@dataclass(frozen=True, order=True)
class Range:
    """A span between two positions; ``start == end`` is an insertion point."""

    start: Position
    end: Position

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Range end {self.end} precedes start {self.start}")

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def intersects(self, other: Range) -> bool:
        """Check whether two ranges share a non-empty span.

        Ranges that only touch at a single point do not intersect.

        Args:
            other: Range to compare against.

        Returns:
            True if the overlap ``[max(start), min(end)]`` is non-empty.
        """
        return max(self.start, other.start) < min(self.end, other.end)

    def union(self, other: Range) -> Range:
        return Range(min(self.start, other.start), max(self.end, other.end))


@dataclass(frozen=True)
class Edit:
    """Replace the text in ``range`` with ``new_text``.

    An Edit is only meaningful against the snapshot that produced it.
    """

    range: Range
    new_text: str

    @property
    def start(self) -> Position:
        return self.range.start

    @property
    def end(self) -> Position:
        return self.range.end

    def sort_key(self) -> tuple[Position, Position, str]:
        return (self.range.start, self.range.end, self.new_text)

    @classmethod
    def replace(
        cls,
        start_line: int,
        start_column: int,
        end_line: int,
        end_column: int,
        new_text: str,
    ) -> Edit:
        """Shorthand constructor from four coordinates."""
        return cls(
            Range(Position(start_line, start_column), Position(end_line, end_column)),
            new_text,
        )

    @classmethod
    def insert(cls, line: int, column: int, new_text: str) -> Edit:
        return cls.replace(line, column, line, column, new_text)

    def to_dict(self) -> dict[str, object]:
        return {
            "start": {"line": self.start.line, "column": self.start.column},
            "end": {"line": self.end.line, "column": self.end.column},
            "new_text": self.new_text,
        }


def document_range(text: str) -> Range:
    """Return the range covering all of ``text``.

    Args:
        text: The full document text.

    Returns:
        Range from (0, 0) to the end of the last line.
    """
    lines = text.split("\n")
    return Range(Position(0, 0), Position(len(lines) - 1, len(lines[-1])))
