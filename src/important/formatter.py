"""Format a Python document or notebook cell by fixing its imports.

Ties the pieces together: masks magic lines, works out which imports are
missing, picks the passes allowed for the document, runs the convergence loop
and shapes the result into edits a caller can apply to the original text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import PurePath

from important.context import (
    STANDALONE,
    ContextAggregator,
    UnitContext,
    check_cell_context,
)
from important.driver import ConvergenceDriver
from important.edits import Edit, document_range
from important.errors import FormatterDisabledError
from important.masker import mask, unmask
from important.notebook import Notebook
from important.oracle.base import Oracle, OracleConfig
from important.oracle.configs import (
    add_imports_config,
    organize_imports_config,
    remove_unused_config,
)
from important.settings import SettingsStore

logger = logging.getLogger(__name__)

PACKAGE_INIT = "__init__.py"


@dataclass
class FormatResult:
    """Outcome of formatting one document.

    Attributes:
        original_text: Text that was formatted.
        text: Formatted text.
        edits: Edits to apply to ``original_text``: the fine-grained edits of
            a single batch, or one whole-document replacement. Empty when
            nothing changed.
        batches: Every edit batch applied by the convergence loop.
        whole_document: Whether ``edits`` is a whole-document replacement.
        imports: Import statements the add pass was asked to ensure.
        iterations: Convergence rounds run (0 when no pass was needed).
    """

    original_text: str
    text: str
    edits: list[Edit] = field(default_factory=list)
    batches: list[list[Edit]] = field(default_factory=list)
    whole_document: bool = False
    imports: list[str] = field(default_factory=list)
    iterations: int = 0

    @property
    def changed(self) -> bool:
        return self.text != self.original_text

    @classmethod
    def no_op(cls, text: str) -> FormatResult:
        return cls(original_text=text, text=text)


def is_package_init(filename: str | None) -> bool:
    return filename is not None and PurePath(filename).name == PACKAGE_INIT


class DocumentFormatter:
    """Fix the imports of documents using one oracle and a settings store.

    Attributes:
        oracle: Oracle used for every pass.
        store: Settings store; each request reads one snapshot from it.
    """

    def __init__(self, oracle: Oracle, store: SettingsStore | None = None) -> None:
        self.oracle = oracle
        self.store = store or SettingsStore()

    def format_document(
        self,
        text: str,
        full_format: bool = True,
        *,
        filename: str | None = None,
        context: UnitContext = STANDALONE,
    ) -> FormatResult:
        """Add missing imports and, on a full format, tidy the import block.

        Args:
            text: Document text.
            full_format: Whole-document reformat (add, remove unused,
                organize) when True; only add missing imports when False.
            filename: Name of the file, used to detect ``__init__.py``.
            context: Notebook membership of the document.

        Returns:
            FormatResult describing the new text and the edits to get there.

        Raises:
            FormatterDisabledError: If formatting is disabled in settings.
            ContextResolutionError: If the cell's notebook cannot be located.
            OracleInvocationError: If a ruff pass fails.
            DepthLimitExceededError: If the fixes never settle.
        """
        settings, import_map = self.store.snapshot()
        if not settings.enabled:
            raise FormatterDisabledError()

        mask_map, masked = mask(text)
        aggregator = ContextAggregator(self.oracle, import_map)
        imports = aggregator.effective_imports(masked, context)

        in_notebook = context.is_cell
        package_init = is_package_init(filename)
        if not in_notebook and not package_init:
            imports.extend(s for s in settings.always_import if s not in imports)

        configs: list[OracleConfig] = []
        if imports:
            configs.append(add_imports_config(imports, settings.lines_after_imports))
        if full_format and not package_init:
            if settings.remove_unused_imports and not in_notebook:
                configs.append(remove_unused_config(keep=settings.always_import))
            if settings.organize_imports:
                configs.append(
                    organize_imports_config(settings.line_length, settings.lines_after_imports)
                )

        if not configs:
            logger.debug("Nothing to do for %s", filename or "document")
            return FormatResult.no_op(text)

        driver = ConvergenceDriver(self.oracle, settings.depth_limit)
        converged = driver.run(masked, configs)
        final_text = unmask(converged.final_text, mask_map)

        result = FormatResult(
            original_text=text,
            text=final_text,
            batches=converged.batches,
            imports=imports,
            iterations=converged.iterations,
        )
        if not result.changed:
            return result

        if len(converged.batches) == 1 and not mask_map:
            result.edits = list(converged.batches[0])
        else:
            # Hosts expect every edit to address the original snapshot, which
            # only holds for a single batch on unmasked text.
            result.edits = [Edit(document_range(text), final_text)]
            result.whole_document = True
        return result

    def format_cell(self, notebook: Notebook, index: int, full_format: bool = True) -> FormatResult:
        """Format one cell of ``notebook`` in place.

        Markdown and other non-code cells are left alone.

        Raises:
            ContextResolutionError: If ``index`` is not a cell of the notebook.
        """
        context = UnitContext(container=notebook.cells, cell_index=index)
        check_cell_context(context)
        cell = notebook.cells[index]
        if not cell.is_code:
            return FormatResult.no_op(cell.text)

        result = self.format_document(cell.text, full_format, context=context)
        if result.changed:
            notebook.set_text(index, result.text)
        return result

    def format_notebook(self, notebook: Notebook, full_format: bool = True) -> list[FormatResult]:
        """Format every code cell in order, each seeing the cells before it."""
        return [self.format_cell(notebook, index, full_format) for index in range(len(notebook))]
