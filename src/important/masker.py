"""Reversible masking of notebook magic lines.

Ruff cannot parse IPython magics such as ``%matplotlib inline``. Before the
text reaches the oracle each magic line has its leading ``%`` swapped for
``#`` (same length, so columns line up), and the result is restored afterwards
by looking lines up by content. Content lookup keeps working when the loop
moves a masked line around, but a masked line whose text is itself edited by
a fix is left as the comment.
"""

from __future__ import annotations

from collections.abc import Iterator

MAGIC_PREFIX = "%"
COMMENT_PREFIX = "#"


class MaskMap:
    """Mapping from masked line text to the original line text."""

    def __init__(self) -> None:
        self._originals: dict[str, str] = {}

    def record(self, masked: str, original: str) -> None:
        self._originals[masked] = original

    def original(self, line: str) -> str | None:
        return self._originals.get(line)

    def __contains__(self, line: object) -> bool:
        return line in self._originals

    def __len__(self) -> int:
        return len(self._originals)

    def __iter__(self) -> Iterator[str]:
        return iter(self._originals)

    def __repr__(self) -> str:
        return f"MaskMap({self._originals!r})"


def mask(text: str) -> tuple[MaskMap, str]:
    """Turn every magic line of ``text`` into a comment.

    Args:
        text: Source text, possibly containing lines starting with ``%``.

    Returns:
        Tuple of (mask map, masked text). The masked text has the same number
        of lines as ``text``.
    """
    mask_map = MaskMap()
    lines: list[str] = []
    for line in text.split("\n"):
        if line.startswith(MAGIC_PREFIX):
            masked = COMMENT_PREFIX + line[len(MAGIC_PREFIX) :]
            mask_map.record(masked, line)
            line = masked
        lines.append(line)
    return mask_map, "\n".join(lines)


def unmask(text: str, mask_map: MaskMap) -> str:
    """Restore the magic lines recorded in ``mask_map``.

    Args:
        text: Text produced from a masked text.
        mask_map: Map returned by ``mask``.

    Returns:
        Text with every recorded masked line replaced by its original.
    """
    if not mask_map:
        return text
    return "\n".join(mask_map.original(line) or line for line in text.split("\n"))
