"""Apply a disjoint, ordered edit set to a text snapshot."""

from __future__ import annotations

from collections.abc import Sequence

from important.edits import Edit
from important.errors import PatchError


def _check_bounds(lines: list[str], edit: Edit) -> None:
    for position in (edit.start, edit.end):
        if position.line >= len(lines):
            raise PatchError(
                f"Edit line {position.line} is outside a text of {len(lines)} line(s)"
            )
        if position.column > len(lines[position.line]):
            raise PatchError(
                f"Edit column {position.column} is past the end of line {position.line} "
                f"({len(lines[position.line])} characters)"
            )


def apply_edit(text: str, edit: Edit) -> str:
    """Apply a single edit to ``text``.

    Args:
        text: Text the edit was computed against.
        edit: Edit to apply.

    Returns:
        The new text.

    Raises:
        PatchError: If the edit's coordinates fall outside ``text``.
    """
    lines = text.split("\n")
    _check_bounds(lines, edit)

    head = lines[edit.start.line][: edit.start.column]
    tail = lines[edit.end.line][edit.end.column :]
    middle = head + edit.new_text + tail

    return "\n".join([*lines[: edit.start.line], middle, *lines[edit.end.line + 1 :]])


def apply_edits(text: str, edits: Sequence[Edit]) -> str:
    """Apply normalized edits bottom-up.

    Every edit can shift the lines at or after its start, so edits are applied
    from the last to the first; the ones still pending sit strictly above the
    one just applied and keep valid coordinates.

    Args:
        text: Text all edits were computed against.
        edits: Disjoint edits sorted ascending, as returned by ``normalize``.

    Returns:
        The patched text.

    Raises:
        PatchError: If an edit does not address ``text``.
    """
    for edit in reversed(edits):
        text = apply_edit(text, edit)
    return text
