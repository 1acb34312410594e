"""Settings management for the import fixer.

Handles settings loading from multiple sources with precedence:
CLI args > environment variables > .importantrc > pyproject.toml > defaults

Settings objects are frozen. A change of configuration builds a new snapshot
(and a new symbol lookup table) that replaces the old one in a single
assignment, so a format already in flight keeps the snapshot it started with.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any

# tomllib is only available in Python 3.11+
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import-not-found]

RC_FILENAME = ".importantrc"
ENV_PREFIX = "IMPORTANT_"


@dataclass(frozen=True)
class AutoImport:
    """Import statement that provides a variable.

    Attributes:
        variable: Name that triggers the import when used undefined (e.g. "pd").
        import_: Statement that defines it (e.g. "import pandas as pd").
    """

    variable: str
    import_: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AutoImport:
        """Build an AutoImport from a ``{variable = ..., import = ...}`` table.

        Raises:
            ValueError: If either key is missing or empty.
        """
        variable = data.get("variable")
        statement = data.get("import")
        if not isinstance(variable, str) or not variable.strip():
            raise ValueError(f"auto_imports entry is missing 'variable': {dict(data)}")
        if not isinstance(statement, str) or not statement.strip():
            raise ValueError(f"auto_imports entry is missing 'import': {dict(data)}")
        return cls(variable.strip(), statement.strip())

    def to_dict(self) -> dict[str, str]:
        return {"variable": self.variable, "import": self.import_}


DEFAULT_AUTO_IMPORTS: tuple[AutoImport, ...] = (
    AutoImport("pd", "import pandas as pd"),
    AutoImport("np", "import numpy as np"),
    AutoImport("xr", "import xarray as xr"),
    AutoImport("xrt", "from xarray import testing as xrt"),
)


@dataclass(frozen=True)
class ImportantSettings:
    """Settings for the import fixer.

    Attributes:
        enabled: Whether formatting is allowed at all (default: True).
        auto_imports: Variable-to-import pairs; a variable may appear more
            than once (default: pd, np, xr, xrt).
        always_import: Statements added to every Python file, except
            notebooks and ``__init__.py`` (default: none).
        remove_unused_imports: Delete unused imports on full formats
            (default: False).
        organize_imports: Sort the import block on full formats (default: True).
        line_length: Line length used when wrapping imports (default: 88).
        lines_after_imports: Blank lines after the import block (default: 2).
        depth_limit: Highest fix round index before giving up (default: 5).
        oracle_timeout: Seconds allowed for one ruff invocation (default: 30).
    """

    enabled: bool = True
    auto_imports: tuple[AutoImport, ...] = DEFAULT_AUTO_IMPORTS
    always_import: tuple[str, ...] = ()
    remove_unused_imports: bool = False
    organize_imports: bool = True
    line_length: int = 88
    lines_after_imports: int = 2
    depth_limit: int = 5
    oracle_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate settings values.

        Raises:
            ValueError: If any settings value is invalid.
        """
        for entry in self.auto_imports:
            if not isinstance(entry, AutoImport):
                raise ValueError("auto_imports must contain AutoImport entries")

        for statement in self.always_import:
            if not isinstance(statement, str) or not statement.strip():
                raise ValueError("always_import must contain non-empty strings")

        if isinstance(self.line_length, bool) or not isinstance(self.line_length, int):
            raise ValueError("line_length must be an integer")
        if self.line_length < 1:
            raise ValueError("line_length must be positive")

        if isinstance(self.lines_after_imports, bool) or not isinstance(
            self.lines_after_imports, int
        ):
            raise ValueError("lines_after_imports must be an integer")
        if self.lines_after_imports < -1:
            raise ValueError("lines_after_imports must be -1 or greater")

        if isinstance(self.depth_limit, bool) or not isinstance(self.depth_limit, int):
            raise ValueError("depth_limit must be an integer")
        if self.depth_limit < 0:
            raise ValueError("depth_limit must be non-negative")

        if self.oracle_timeout <= 0:
            raise ValueError("oracle_timeout must be positive")

    def import_map(self) -> Mapping[str, tuple[str, ...]]:
        """Build the read-only variable -> import statements lookup.

        Returns:
            Mapping preserving declaration order of each variable's imports.
        """
        table: dict[str, list[str]] = {}
        for entry in self.auto_imports:
            statements = table.setdefault(entry.variable, [])
            if entry.import_ not in statements:
                statements.append(entry.import_)
        return MappingProxyType({k: tuple(v) for k, v in table.items()})

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "auto_imports": [entry.to_dict() for entry in self.auto_imports],
            "always_import": list(self.always_import),
            "remove_unused_imports": self.remove_unused_imports,
            "organize_imports": self.organize_imports,
            "line_length": self.line_length,
            "lines_after_imports": self.lines_after_imports,
            "depth_limit": self.depth_limit,
            "oracle_timeout": self.oracle_timeout,
        }


def _get_settings_field_names() -> set[str]:
    """Get the set of valid settings field names.

    Returns:
        Set of field names from ImportantSettings.
    """
    return {f.name for f in fields(ImportantSettings)}


def find_config_file(filename: str = RC_FILENAME, start_dir: Path | None = None) -> Path | None:
    """Find a configuration file by traversing up the directory tree.

    Args:
        filename: Name of the config file to find.
        start_dir: Directory to start searching from. Defaults to current directory.

    Returns:
        Path to the config file if found, None otherwise.
    """
    current = (start_dir or Path.cwd()).resolve()

    while True:
        config_path = current / filename
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
    """
    with open(path, "rb") as f:
        result: dict[str, Any] = tomllib.load(f)
        return result


def _filter_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    valid_fields = _get_settings_field_names()
    return {k.replace("-", "_"): v for k, v in data.items() if k.replace("-", "_") in valid_fields}


def _load_from_rc(start_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from the nearest .importantrc file.

    Returns:
        Dictionary of settings, or empty dict if not found or unreadable.
    """
    config_path = find_config_file(RC_FILENAME, start_dir)
    if config_path is None:
        return {}

    try:
        return _filter_fields(_load_toml_file(config_path))
    except (tomllib.TOMLDecodeError, OSError):
        return {}


def _load_from_pyproject(start_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from pyproject.toml [tool.important] section.

    Returns:
        Dictionary of settings, or empty dict if not found or unreadable.
    """
    config_path = find_config_file("pyproject.toml", start_dir)
    if config_path is None:
        return {}

    try:
        data = _load_toml_file(config_path)
        section = data.get("tool", {}).get("important", {})
        return _filter_fields(section)
    except (tomllib.TOMLDecodeError, OSError):
        return {}


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


def _load_from_env() -> dict[str, Any]:
    """Load settings from environment variables.

    Variables are prefixed with IMPORTANT_ and use uppercase names, for
    example IMPORTANT_REMOVE_UNUSED_IMPORTS=1. IMPORTANT_ALWAYS_IMPORT holds
    statements separated by semicolons.

    Returns:
        Dictionary containing settings from environment variables.

    Raises:
        ValueError: If a variable cannot be converted to its field type.
    """
    result: dict[str, Any] = {}
    for name in ("enabled", "remove_unused_imports", "organize_imports"):
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            result[name] = _parse_bool(ENV_PREFIX + name.upper(), value)

    for name in ("line_length", "lines_after_imports", "depth_limit"):
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            result[name] = _parse_int(ENV_PREFIX + name.upper(), value)

    timeout = os.environ.get(ENV_PREFIX + "ORACLE_TIMEOUT")
    if timeout is not None:
        try:
            result["oracle_timeout"] = float(timeout)
        except ValueError as e:
            raise ValueError(f"{ENV_PREFIX}ORACLE_TIMEOUT must be a number, got {timeout!r}") from e

    always = os.environ.get(ENV_PREFIX + "ALWAYS_IMPORT")
    if always is not None:
        result["always_import"] = [s.strip() for s in always.split(";") if s.strip()]

    return result


def _merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge settings dictionaries; later dictionaries take precedence."""
    result: dict[str, Any] = {}
    for config in configs:
        for key, value in config.items():
            if value is not None:
                result[key] = value
    return result


def _coerce(merged: dict[str, Any]) -> dict[str, Any]:
    """Convert raw TOML/CLI values to the frozen field types."""
    result = dict(merged)
    if "auto_imports" in result:
        entries = result["auto_imports"]
        if not isinstance(entries, (list, tuple)):
            raise ValueError("auto_imports must be a list of tables")
        result["auto_imports"] = tuple(
            entry if isinstance(entry, AutoImport) else AutoImport.from_mapping(entry)
            for entry in entries
        )
    if "always_import" in result:
        statements = result["always_import"]
        if isinstance(statements, str) or not isinstance(statements, (list, tuple)):
            raise ValueError("always_import must be a list of strings")
        result["always_import"] = tuple(statements)
    if "oracle_timeout" in result and isinstance(result["oracle_timeout"], int):
        result["oracle_timeout"] = float(result["oracle_timeout"])
    return result


def load_settings(
    cli_overrides: dict[str, Any] | None = None,
    start_dir: Path | None = None,
) -> ImportantSettings:
    """Load settings with full precedence chain.

    Precedence (highest to lowest):
    1. CLI arguments (cli_overrides)
    2. Environment variables (IMPORTANT_*)
    3. .importantrc file
    4. pyproject.toml [tool.important] section
    5. Default values

    Args:
        cli_overrides: Settings overrides from CLI arguments.
        start_dir: Directory to start searching for config files.

    Returns:
        Fully resolved ImportantSettings instance.

    Raises:
        ValueError: If the resulting settings are invalid.
    """
    pyproject_config = _load_from_pyproject(start_dir)
    rc_config = _load_from_rc(start_dir)
    env_config = _load_from_env()
    cli_config = _filter_fields(cli_overrides or {})

    merged = _merge_configs(pyproject_config, rc_config, env_config, cli_config)
    return ImportantSettings(**_coerce(merged))


class SettingsStore:
    """Holds the current settings snapshot and its derived lookup table.

    ``reload`` never mutates the previous snapshot; readers that grabbed
    ``settings`` or ``import_map`` earlier keep a consistent pair.
    """

    def __init__(self, settings: ImportantSettings | None = None) -> None:
        self._snapshot = self._build(settings or ImportantSettings())

    @staticmethod
    def _build(
        settings: ImportantSettings,
    ) -> tuple[ImportantSettings, Mapping[str, tuple[str, ...]]]:
        return settings, settings.import_map()

    @property
    def settings(self) -> ImportantSettings:
        return self._snapshot[0]

    @property
    def import_map(self) -> Mapping[str, tuple[str, ...]]:
        return self._snapshot[1]

    def snapshot(self) -> tuple[ImportantSettings, Mapping[str, tuple[str, ...]]]:
        """Return the current (settings, import map) pair."""
        return self._snapshot

    def replace(self, settings: ImportantSettings) -> None:
        self._snapshot = self._build(settings)

    def reload(
        self,
        cli_overrides: dict[str, Any] | None = None,
        start_dir: Path | None = None,
    ) -> ImportantSettings:
        """Reload settings from disk and the environment and swap them in.

        Raises:
            ValueError: If the new settings are invalid; the current snapshot
                is kept.
        """
        settings = load_settings(cli_overrides=cli_overrides, start_dir=start_dir)
        self.replace(settings)
        return settings
