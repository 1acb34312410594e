"""Static-analysis oracle used to find and fix import problems.

Provides the oracle interface, its configuration values and the ruff-backed
implementation.
"""

from __future__ import annotations

from important.oracle.base import Diagnostic, Oracle, OracleConfig, fix_edits
from important.oracle.configs import (
    add_imports_config,
    organize_imports_config,
    remove_unused_config,
    undefined_names_config,
)
from important.oracle.ruff import RuffOracle, find_ruff, parse_diagnostics

__all__ = [
    # Base types
    "Diagnostic",
    "Oracle",
    "OracleConfig",
    "fix_edits",
    # Pass configurations
    "add_imports_config",
    "organize_imports_config",
    "remove_unused_config",
    "undefined_names_config",
    # Ruff
    "RuffOracle",
    "find_ruff",
    "parse_diagnostics",
]
