"""important - iterative ruff-driven import fixing for Python files and notebooks."""

from __future__ import annotations

__version__ = "0.3.0"
