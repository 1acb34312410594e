"""Exception hierarchy for the import fixer.

Every failure that ends a formatting request derives from ImportantError so
callers (the CLI in particular) can report it uniformly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from important.edits import Edit


class ImportantError(Exception):
    """Base class for all errors raised by a formatting request."""


class FormatterDisabledError(ImportantError):
    """Raised when formatting is requested while the formatter is disabled."""

    def __init__(self) -> None:
        super().__init__(
            "The import formatter is not enabled. "
            "Set `enabled = true` under [tool.important] or export IMPORTANT_ENABLED=1."
        )


class PatchError(ImportantError, ValueError):
    """Raised when an edit does not address the text it is applied to."""


class SourceFileError(ImportantError):
    """Raised when an input file cannot be read as UTF-8 text or written back."""


class NotebookError(ImportantError):
    """Raised when a notebook file cannot be read or parsed."""


class ContextResolutionError(ImportantError):
    """Raised when a cell claims a container that cannot be located."""


class ConvergenceError(ImportantError):
    """Base class for failures inside the convergence loop.

    Attributes:
        text: Working text reached before the failure. Never written back.
        batches: Edit batches applied to reach ``text``.
    """

    def __init__(
        self,
        message: str,
        *,
        text: str = "",
        batches: list[list[Edit]] | None = None,
    ) -> None:
        super().__init__(message)
        self.text = text
        self.batches: list[list[Edit]] = list(batches or [])


class OracleInvocationError(ConvergenceError):
    """Raised when the oracle rejects a config/text pair or cannot be run."""


class DepthLimitExceededError(ConvergenceError):
    """Raised when the fix loop does not settle within the depth limit."""

    def __init__(
        self,
        depth_limit: int,
        *,
        text: str = "",
        batches: list[list[Edit]] | None = None,
    ) -> None:
        super().__init__(
            f"Formatting error (depth-limit {depth_limit} exceeded). "
            "Please open an issue and include the contents of your file.",
            text=text,
            batches=batches,
        )
        self.depth_limit = depth_limit
