"""Collapse the raw edits of one oracle pass into a disjoint, ordered set.

Ruff proposes one fix per diagnostic, so two diagnostics touching the same
import statement (e.g. ``from p import one, two, three`` with ``two`` and
``three`` unused) produce overlapping or identical edits. Applying them as-is
would corrupt the text.
"""

from __future__ import annotations

from collections.abc import Iterable

from important.edits import Edit


def normalize(edits: Iterable[Edit]) -> list[Edit]:
    """Sort, deduplicate and merge edits that address one snapshot.

    Edits are ordered by (start, end, new_text). Exact duplicates are dropped.
    An edit whose range intersects the running accumulator is merged into it:
    the ranges are unioned and the texts concatenated in sorted order. This is
    only sound because one pass's fixes are non-nested, line-local replacements.

    Args:
        edits: Edits in any order, all valid against the same text.

    Returns:
        Pairwise non-intersecting edits sorted ascending.
    """
    ordered = sorted(edits, key=Edit.sort_key)
    if not ordered:
        return []

    disjoint: list[Edit] = []
    last = ordered[0]
    for edit in ordered[1:]:
        if edit == last:
            continue
        if edit.range.intersects(last.range):
            last = Edit(last.range.union(edit.range), last.new_text + edit.new_text)
            continue
        disjoint.append(last)
        last = edit
    disjoint.append(last)
    return disjoint
