"""Jupyter notebook reading and writing.

Only the cell kinds and sources are interpreted; everything else in the
notebook JSON (outputs, metadata) is carried through untouched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from important.errors import NotebookError

CODE_CELL = "code"


@dataclass
class Cell:
    """One notebook cell.

    Attributes:
        kind: Cell type ("code", "markdown" or "raw").
        text: Cell source joined into a single string.
    """

    kind: str
    text: str

    @property
    def is_code(self) -> bool:
        return self.kind == CODE_CELL


def _source_text(source: Any) -> str:
    if isinstance(source, list):
        return "".join(source)
    if isinstance(source, str):
        return source
    raise NotebookError(f"Unsupported cell source: {type(source).__name__}")


def _source_lines(text: str) -> list[str]:
    return text.splitlines(keepends=True)


class Notebook:
    """An ordered container of cells loaded from an ``.ipynb`` file."""

    def __init__(self, data: dict[str, Any], path: Path | None = None) -> None:
        raw_cells = data.get("cells")
        if not isinstance(raw_cells, list):
            raise NotebookError("Notebook has no 'cells' list")
        self.path = path
        self._data = data
        self.cells: list[Cell] = [
            Cell(kind=str(cell.get("cell_type", CODE_CELL)), text=_source_text(cell.get("source", "")))
            for cell in raw_cells
        ]

    @classmethod
    def from_text(cls, content: str, path: Path | None = None) -> Notebook:
        """Parse notebook JSON.

        Raises:
            NotebookError: If the content is not notebook JSON.
        """
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise NotebookError(f"Invalid notebook JSON{f' in {path}' if path else ''}: {e}") from e
        if not isinstance(data, dict):
            raise NotebookError("Notebook JSON must be an object")
        return cls(data, path)

    @classmethod
    def load(cls, path: Path) -> Notebook:
        """Read a notebook from disk.

        Raises:
            NotebookError: If the file cannot be read or parsed.
        """
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise NotebookError(f"Could not read notebook {path}: {e}") from e
        return cls.from_text(content, path)

    def __len__(self) -> int:
        return len(self.cells)

    def set_text(self, index: int, text: str) -> None:
        self.cells[index].text = text
        self._data["cells"][index]["source"] = _source_lines(text)

    def to_text(self) -> str:
        return json.dumps(self._data, indent=1, ensure_ascii=False) + "\n"

