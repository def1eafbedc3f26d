"""Command loaders for subcmd.

A loader turns a command name into one of three results:

    Found(command)      the command exists and is usable
    NotFound(name)      no such command (or the module is not a command)
    Broken(name, cause) the module exists but raised while loading

Keeping NotFound and Broken apart matters: a command whose own import of some
helper fails must not be mistaken for a command that does not exist.

Two loaders are provided:

    DirectoryLoader  loads ``<root>/<name>.py`` or ``<root>/<name>/__init__.py``
                     from disk, fresh on every call
    RegistryLoader   looks names up in an in-memory mapping

Usage:
    from subcmd.loader import DirectoryLoader, Found

    loader = DirectoryLoader("commands", manuals="man")
    result = loader.resolve("build")
    if isinstance(result, Found):
        result.command.run([], {}, None)
"""

from __future__ import annotations

import errno
import importlib.util
import logging
import os
import re
import sys
import types
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

from subcmd.command import Command, is_command
from subcmd.exceptions import CommandDefinitionError
from subcmd.manuals import ManualLoader

logger = logging.getLogger(__name__)

__all__ = [
    "Found",
    "NotFound",
    "Broken",
    "LoadResult",
    "CommandLoader",
    "DirectoryLoader",
    "RegistryLoader",
    "normalize_export",
    "EXPORT_ATTRIBUTE",
]

# Module attribute holding a callable-shaped (or explicit object) export
EXPORT_ATTRIBUTE = "command"

# Prefix for the private names command modules are executed under
MODULE_PREFIX = "_subcmd_command_"

# Errors on the command path itself that mean "no such command"
_MISSING_ERRNOS = {errno.ENOENT, errno.ENAMETOOLONG}


@dataclass(frozen=True)
class Found:
    """The command was loaded."""

    command: Command


@dataclass(frozen=True)
class NotFound:
    """No usable command exists under this name."""

    name: str
    path: Optional[str] = None


@dataclass(frozen=True)
class Broken:
    """The command exists but could not be loaded."""

    name: str
    cause: BaseException
    path: Optional[str] = None


LoadResult = Union[Found, NotFound, Broken]


class CommandLoader(Protocol):
    """Anything that can resolve a command name."""

    def resolve(self, name: str) -> LoadResult: ...


def _export_of(value: Any) -> Any:
    if isinstance(value, types.ModuleType):
        return getattr(value, EXPORT_ATTRIBUTE, value)
    return value


def normalize_export(
    name: str,
    export: Any,
    manuals: ManualLoader,
    source: Optional[str] = None,
) -> Optional[Command]:
    """
    Build a Command from whatever a command module exports.

    A callable export runs as is (or through its own ``run`` attribute when
    it has one) and takes its usage from the manuals directory; missing usage
    is an error. Any other export supplies ``run`` and ``usage`` attributes
    itself and ``usage`` may be absent.

    Args:
        name: Name the command was requested under.
        export: The module or object to normalize.
        manuals: Where usage text for callable exports is looked up.
        source: Informational origin recorded on the Command.

    Returns:
        A Command, or None if the export is not a command.

    Raises:
        CommandDefinitionError: If a callable export has no usage text.
    """
    if callable(export):
        run = getattr(export, "run", None) or export
        usage = manuals.load(name)
        if not usage:
            manual_path = manuals.path_for(name)
            raise CommandDefinitionError(
                f"command {name} must have usage",
                command=name,
                context={"manual": str(manual_path) if manual_path else "no manuals directory"},
                suggestions=[
                    f"Add a manual file named '{name}' to the manuals directory",
                    "Or define module-level run() and usage instead of a callable",
                ],
            )
        record = Command(name=name, run=run, usage=usage, source=source)
    elif export is None:
        return None
    else:
        record = Command(
            name=name,
            run=getattr(export, "run", None),
            usage=getattr(export, "usage", None),
            source=source,
        )

    if not is_command(record):
        return None
    return record


def _refers_to(filename: Any, path: Path) -> bool:
    return filename is not None and os.fspath(filename) == str(path)


def _module_name(name: str) -> str:
    return MODULE_PREFIX + re.sub(r"\W", "_", name)


def _exec_module(name: str, path: Path) -> types.ModuleType:
    """Execute the file at ``path`` as a fresh module.

    The module is visible in sys.modules only while it runs (so relative
    imports inside a package command work) and is removed afterwards,
    together with any submodules it imported relatively.
    """
    module_name = _module_name(name)
    # __init__.py files get a package __path__ automatically
    spec = importlib.util.spec_from_file_location(module_name, str(path))
    if spec is None or spec.loader is None:
        raise FileNotFoundError(2, "No loader for command module", str(path))

    module = importlib.util.module_from_spec(spec)
    previous = sys.modules.get(module_name)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    finally:
        for key in [k for k in sys.modules if k.startswith(module_name + ".")]:
            del sys.modules[key]
        if previous is None:
            sys.modules.pop(module_name, None)
        else:
            sys.modules[module_name] = previous
    return module


class DirectoryLoader:
    """Loads command modules from a directory on disk.

    Nothing is cached: every resolve() reads the module again, so edits to
    command files apply on the next run.
    """

    def __init__(
        self,
        root: Union[str, Path],
        manuals: Optional[Union[str, Path, ManualLoader]] = None,
    ):
        self.root = Path(root).resolve()
        self.manuals = manuals if isinstance(manuals, ManualLoader) else ManualLoader(manuals)

    def path_for(self, name: str) -> Path:
        """Absolute path of the module that would back command ``name``."""
        target = self.root / str(name)
        if target.is_dir():
            return target / "__init__.py"
        if target.suffix == ".py" and target.is_file():
            return target
        return target.parent / f"{target.name}.py"

    def resolve(self, name: str) -> LoadResult:
        """Load command ``name`` from the root directory.

        Raises:
            CommandDefinitionError: If a callable-shaped module has no usage.
        """
        try:
            path = self.path_for(name)
        except OSError as e:
            # e.g. a name too long for the filesystem
            logger.debug("Command name %r cannot name a file: %s", name, e)
            return NotFound(str(name))

        try:
            module = _exec_module(str(name), path)
        except OSError as e:
            # Only the command file itself being absent means "not found";
            # a missing file opened by the command is a broken command.
            if e.errno in _MISSING_ERRNOS and _refers_to(e.filename, path):
                logger.debug("No command module for %s at %s", name, path)
                return NotFound(str(name), str(path))
            return Broken(str(name), e, str(path))
        except ImportError as e:
            if _refers_to(e.path, path) and not isinstance(e, ModuleNotFoundError):
                logger.debug("Import of command module %s failed at its own path", path)
                return NotFound(str(name), str(path))
            return Broken(str(name), e, str(path))
        except Exception as e:
            logger.debug("Command module %s failed to load: %r", path, e)
            return Broken(str(name), e, str(path))

        command = normalize_export(str(name), _export_of(module), self.manuals, str(path))
        if command is None:
            logger.debug("Module %s does not export a command", path)
            return NotFound(str(name), str(path))
        return Found(command)


class RegistryLoader:
    """Resolves commands from an in-memory mapping.

    Values are anything a command module could export: a module, an object
    with ``run``/``usage``, or a callable (usage then comes from manuals).
    Registering a factory with lazy() defers creation, e.g. an import, to
    the moment the command is resolved.
    """

    def __init__(
        self,
        commands: Optional[Mapping[str, Any]] = None,
        manuals: Optional[Union[str, Path, ManualLoader]] = None,
    ):
        self._commands: Dict[str, Any] = dict(commands or {})
        self._factories: Dict[str, Callable[[], Any]] = {}
        self.manuals = manuals if isinstance(manuals, ManualLoader) else ManualLoader(manuals)

    def register(self, name: str, export: Any) -> Any:
        """Register ``export`` under ``name`` and return it."""
        self._factories.pop(name, None)
        self._commands[name] = export
        return export

    def lazy(self, name: str, factory: Callable[[], Any]) -> None:
        """Register a zero-argument factory producing the export for ``name``."""
        self._commands.pop(name, None)
        self._factories[name] = factory

    def names(self) -> List[str]:
        """Sorted names of all registered commands."""
        return sorted(set(self._commands) | set(self._factories))

    def resolve(self, name: str) -> LoadResult:
        source = f"registry:{name}"
        if name in self._factories:
            try:
                export = self._factories[name]()
            except Exception as e:
                logger.debug("Factory for command %s failed: %r", name, e)
                return Broken(name, e, source)
        elif name in self._commands:
            export = self._commands[name]
        else:
            return NotFound(name)

        command = normalize_export(name, _export_of(export), self.manuals, source)
        if command is None:
            return NotFound(name, source)
        return Found(command)
