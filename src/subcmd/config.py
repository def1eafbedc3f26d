"""
Configuration for subcmd dispatchers.

A dispatcher is configured either directly with keyword arguments or from a
TOML file:

1. Project config: .subcmd.toml or subcmd.toml, found by walking up from the
   working directory, with a ``[subcmd]`` table
2. pyproject.toml with a ``[tool.subcmd]`` table, when passed explicitly

Example .subcmd.toml::

    [subcmd]
    root = "commands"
    manuals = "man"
    strict = true
    usage = "help"

Relative ``root`` and ``manuals`` paths are resolved against the directory
holding the config file. Keyword arguments given on the command line override
file values.
"""

from __future__ import annotations

import dataclasses
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from subcmd.context import DEFAULT_ENV_VAR
from subcmd.exceptions import ConfigurationError

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

__all__ = ["DispatcherConfig", "load_config", "find_config", "CONFIG_FILENAMES"]

# Config file names to search for in project directories
CONFIG_FILENAMES = [".subcmd.toml", "subcmd.toml"]

DEFAULT_USAGE = "help"

# All known keys of the [subcmd] table
KNOWN_KEYS = {
    "root",
    "strict",
    "usage",
    "fallback",
    "default",
    "manuals",
    "env_var",
    "publish_env",
}

_PATH_KEYS = {"root", "manuals"}
_BOOL_KEYS = {"strict", "publish_env"}


@dataclass(frozen=True)
class DispatcherConfig:
    """Immutable dispatcher settings.

    Attributes:
        root: Directory holding command modules. Required.
        strict: Report unknown commands as errors instead of running the
            fallback command.
        usage: Command run for ``--help``/``-h``.
        fallback: Command run for unknown names (defaults to ``usage``).
        default: Command run when no name is given (defaults to ``usage``).
        manuals: Directory of usage text files, one per command.
        env_var: Variable naming the current command in child environments.
        publish_env: Also write ``env_var`` into this process's environment.
    """

    root: Optional[Path] = None
    strict: bool = False
    usage: str = DEFAULT_USAGE
    fallback: Optional[str] = None
    default: Optional[str] = None
    manuals: Optional[Path] = None
    env_var: str = DEFAULT_ENV_VAR
    publish_env: bool = False

    def __post_init__(self):
        if not self.root:
            raise ConfigurationError(
                "Root directory is required.",
                suggestions=["Pass root= to the dispatcher or set root in the [subcmd] table"],
            )
        object.__setattr__(self, "root", Path(self.root))
        if self.manuals:
            object.__setattr__(self, "manuals", Path(self.manuals))
        else:
            object.__setattr__(self, "manuals", None)
        if not self.usage:
            object.__setattr__(self, "usage", DEFAULT_USAGE)

    @property
    def fallback_command(self) -> str:
        return self.fallback or self.usage

    @property
    def default_command(self) -> str:
        return self.default or self.usage

    def with_overrides(self, **overrides: Any) -> "DispatcherConfig":
        """Return a copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return dataclasses.replace(self, **values)


def find_config(start_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Find a project config by walking up the directory tree.

    Stops at a .git directory or the filesystem root.

    Args:
        start_dir: Directory to start searching from (default: current directory)

    Returns:
        Path to config file if found, None otherwise
    """
    current = (start_dir or Path.cwd()).resolve()

    while True:
        for filename in CONFIG_FILENAMES:
            config_path = current / filename
            if config_path.is_file():
                return config_path

        if (current / ".git").exists():
            break

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _load_toml_file(path: Path) -> dict[str, Any]:
    """
    Load a TOML file.

    Raises:
        ConfigurationError: If TOML support is missing, or the file is
            unreadable or invalid
    """
    if tomllib is None:
        raise ConfigurationError(
            "Config file support requires the tomli package on Python < 3.11",
            context={"file": str(path)},
            suggestions=["pip install tomli"],
        )

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e


def _section(data: dict[str, Any], path: Path) -> dict[str, Any]:
    if path.name == "pyproject.toml":
        table = data.get("tool", {}).get("subcmd")
        where = "[tool.subcmd]"
    else:
        table = data.get("subcmd")
        where = "[subcmd]"

    if not isinstance(table, dict):
        raise ConfigurationError(
            f"No {where} table in config file",
            context={"file": str(path)},
        )
    return table


def load_config(path: Union[str, Path], **overrides: Any) -> DispatcherConfig:
    """
    Load dispatcher settings from a TOML file.

    Args:
        path: A .subcmd.toml/subcmd.toml file, or a pyproject.toml
        **overrides: Values taking precedence over the file (None is ignored)

    Returns:
        DispatcherConfig built from the file and overrides

    Raises:
        ConfigurationError: If the file is invalid or lacks a root directory
    """
    path = Path(path).resolve()
    table = _section(_load_toml_file(path), path)
    base_dir = path.parent

    values: dict[str, Any] = {}
    for key, value in table.items():
        if key not in KNOWN_KEYS:
            warnings.warn(f"Unknown config key '{key}' in {path}", stacklevel=2)
            continue
        if key in _BOOL_KEYS and not isinstance(value, bool):
            raise ConfigurationError(
                f"Config key '{key}' must be true or false",
                context={"file": str(path), "value": repr(value)},
            )
        if key in _PATH_KEYS:
            value = (base_dir / Path(value).expanduser()).resolve()
        values[key] = value

    values.update({key: value for key, value in overrides.items() if value is not None})
    return DispatcherConfig(**values)
