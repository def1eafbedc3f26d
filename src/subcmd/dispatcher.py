"""
Git-style command dispatcher.

Given an argv list, the dispatcher picks a command name, loads the matching
module from its root directory, re-parses the arguments that follow the name
and calls the command::

    from subcmd import Dispatcher

    dispatcher = Dispatcher("commands", manuals="man", strict=True)
    dispatcher.on("error", lambda err: print(err, file=sys.stderr))
    sys.exit(dispatcher.run())

Which command runs:

1. ``--help``/``-h`` given: the usage command, whatever else is on the line
2. No positional arguments: the default command
3. First positional names an existing command: that command, with argv
   reduced to the tokens after the name
4. Unknown name, strict: an error is reported, nothing runs
5. Unknown name, not strict: the fallback command, with the full argv

The usage, default and fallback commands must exist; if the one that is
needed cannot be loaded, run() raises ConfigurationError.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from subcmd.command import Command, CommandRunner
from subcmd.config import DEFAULT_USAGE, DispatcherConfig, load_config
from subcmd.context import DEFAULT_ENV_VAR, ExecutionContext
from subcmd.exceptions import (
    ArgvError,
    CommandLoadError,
    ConfigurationError,
    DispatchError,
    UnknownCommandError,
)
from subcmd.loader import Broken, CommandLoader, DirectoryLoader, Found
from subcmd.manuals import ManualLoader
from subcmd.options import ParsedOptions, parse_options

logger = logging.getLogger(__name__)

__all__ = ["Dispatcher", "create_dispatcher", "format_message", "EVENTS"]

# Events listeners can subscribe to
EVENTS = ("error",)

ErrorListener = Callable[[DispatchError], Any]

_FORMAT_RE = re.compile(r"%[sdifjoO%]")


def format_message(fmt: Any, *args: Any) -> str:
    """Format a printf-style message.

    Supports ``%s``, ``%d``/``%i``, ``%f``, ``%j`` (JSON), ``%o``/``%O``
    (repr) and ``%%``. Placeholders without a matching argument are left
    as they are; arguments without a placeholder are appended, separated
    by spaces.
    """
    if not isinstance(fmt, str):
        return " ".join(str(part) for part in (fmt, *args))

    remaining = list(args)

    def substitute(match: re.Match) -> str:
        spec = match.group(0)
        if spec == "%%":
            return "%"
        if not remaining:
            return spec
        value = remaining.pop(0)
        if spec in ("%d", "%i"):
            try:
                return str(int(value))
            except (TypeError, ValueError):
                return "NaN"
        if spec == "%f":
            try:
                return str(float(value))
            except (TypeError, ValueError):
                return "NaN"
        if spec == "%j":
            return json.dumps(value, default=str)
        if spec in ("%o", "%O"):
            return repr(value)
        return str(value)

    message = _FORMAT_RE.sub(substitute, fmt)
    if remaining:
        message = " ".join([message, *(str(value) for value in remaining)])
    return message


class Dispatcher:
    """
    Resolves argv to a command module and runs it.

    Args:
        root: Directory of command modules. Required.
        strict: Report unknown command names through the error channel
            instead of running the fallback command.
        usage: Command run for ``--help``/``-h`` (default "help").
        fallback: Command run for unknown names (defaults to ``usage``).
        default: Command run when no name is given (defaults to ``usage``).
        manuals: Directory of usage text files for callable commands.
        env_var: Name under which the running command is published to
            child process environments.
        publish_env: Also set ``env_var`` in this process's environment
            before each command runs.
        loader: Alternative command loader (default: load from ``root``).
        context: Execution context shared with commands.

    Raises:
        ConfigurationError: If ``root`` is missing.
    """

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        *,
        strict: bool = False,
        usage: Optional[str] = None,
        fallback: Optional[str] = None,
        default: Optional[str] = None,
        manuals: Optional[Union[str, Path]] = None,
        env_var: Optional[str] = None,
        publish_env: bool = False,
        loader: Optional[CommandLoader] = None,
        context: Optional[ExecutionContext] = None,
    ):
        self.config = DispatcherConfig(
            root=root,
            strict=bool(strict),
            usage=usage or DEFAULT_USAGE,
            fallback=fallback,
            default=default,
            manuals=manuals,
            env_var=env_var or DEFAULT_ENV_VAR,
            publish_env=publish_env,
        )

        self.manual_loader = ManualLoader(self.config.manuals)
        self.loader: CommandLoader = loader or DirectoryLoader(
            self.config.root, self.manual_loader
        )
        self.context = context or ExecutionContext(env_var=self.config.env_var)
        self._listeners: Dict[str, List[ErrorListener]] = {event: [] for event in EVENTS}

    @classmethod
    def from_config(
        cls,
        config: DispatcherConfig,
        *,
        loader: Optional[CommandLoader] = None,
        context: Optional[ExecutionContext] = None,
    ) -> "Dispatcher":
        """Create a dispatcher from a DispatcherConfig."""
        return cls(
            config.root,
            strict=config.strict,
            usage=config.usage,
            fallback=config.fallback,
            default=config.default,
            manuals=config.manuals,
            env_var=config.env_var,
            publish_env=config.publish_env,
            loader=loader,
            context=context,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path], **overrides: Any) -> "Dispatcher":
        """Create a dispatcher from a TOML config file. See subcmd.config."""
        return cls.from_config(load_config(path, **overrides))

    @property
    def root(self) -> Path:
        return self.config.root

    @property
    def strict(self) -> bool:
        return self.config.strict

    @property
    def usage(self) -> str:
        return self.config.usage

    @property
    def fallback(self) -> str:
        return self.config.fallback_command

    @property
    def default(self) -> str:
        return self.config.default_command

    @property
    def manuals(self) -> Optional[Path]:
        return self.config.manuals

    # -- events ---------------------------------------------------------

    def _check_event(self, event: str) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown event {event!r}; expected one of {', '.join(EVENTS)}")

    def on(self, event: str, listener: ErrorListener) -> "Dispatcher":
        """Register ``listener`` for ``event``. Returns self."""
        self._check_event(event)
        self._listeners[event].append(listener)
        return self

    def off(self, event: str, listener: ErrorListener) -> "Dispatcher":
        """Remove a previously registered listener. Returns self."""
        self._check_event(event)
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)
        return self

    def listeners(self, event: str) -> List[ErrorListener]:
        self._check_event(event)
        return list(self._listeners[event])

    def error(
        self,
        fmt: Any,
        *args: Any,
        command: Optional[str] = None,
        cause: Optional[BaseException] = None,
        kind: Type[DispatchError] = DispatchError,
    ) -> "Dispatcher":
        """
        Report a non-fatal error to the "error" listeners.

        The message is built with format_message(fmt, *args). With no
        listeners registered the error is dropped. Never raises.

        Returns:
            self, for chaining
        """
        err = kind(format_message(fmt, *args), command=command, cause=cause)
        listeners = list(self._listeners["error"])
        if not listeners:
            logger.debug("Dropped unobserved dispatch error: %s", err.message)
        for listener in listeners:
            listener(err)
        return self

    # -- parsing and loading --------------------------------------------

    def parse(
        self, argv: Sequence[str], spec: Optional[Mapping[str, Mapping[str, Any]]] = None
    ) -> ParsedOptions:
        """Parse ``argv`` into options. See subcmd.options.parse_options.

        Raises:
            ArgvError: If argv is not a list or tuple.
        """
        if not isinstance(argv, (list, tuple)):
            raise ArgvError("argv must be a list.", context={"got": type(argv).__name__})
        return parse_options(argv, spec)

    def load_command(self, name: str) -> Optional[Command]:
        """
        Load the command registered as ``name``.

        A command that exists but fails to load is reported through the
        error channel.

        Returns:
            The Command, or None if it does not exist or could not be loaded

        Raises:
            CommandDefinitionError: If a callable command has no usage text
        """
        result = self.loader.resolve(str(name))
        if isinstance(result, Found):
            return result.command
        if isinstance(result, Broken):
            self.error(
                'Error loading command "%s":',
                result.name,
                result.cause,
                command=result.name,
                cause=result.cause,
                kind=CommandLoadError,
            )
        return None

    def get_usage(self, name: str) -> Optional[str]:
        """Usage text of command ``name``, or None if it cannot be loaded."""
        command = self.load_command(name)
        return command.usage if command else None

    def get_run(self, name: str) -> Optional[CommandRunner]:
        """Entry point of command ``name``, or None if it cannot be loaded."""
        command = self.load_command(name)
        return command.run if command else None

    def load_manual(self, name: str) -> Optional[str]:
        """Manual text for ``name`` from the manuals directory, if any."""
        return self.manual_loader.load(name)

    # -- dispatch -------------------------------------------------------

    def run(
        self,
        argv: Optional[Sequence[str]] = None,
        spec: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Any:
        """
        Dispatch ``argv`` (default: ``sys.argv[1:]``) to a command.

        Args:
            argv: Arguments without the program name.
            spec: Option spec for the first parse (see parse_options).

        Returns:
            Whatever the command returned, or self if strict mode rejected
            the command name.

        Raises:
            ArgvError: If argv is not a list or tuple.
            ConfigurationError: If the usage, default or fallback command
                needed for this argv does not exist.
        """
        if argv is None:
            argv = sys.argv[1:]
        options = self.parse(argv, spec)
        argv = [str(token) for token in argv]
        command: Optional[Command] = None

        if options.get("help") or options.get("h"):
            # --help takes precedence over any command name
            logger.debug("Help requested; using %s", self.usage)
            command = self.load_command(self.usage)
        elif not options.args:
            logger.debug("No command given; using %s", self.default)
            command = self.load_command(self.default)
        else:
            name = options.args[0]
            command = self.load_command(name)

            if command is not None:
                argv = argv[argv.index(name) + 1 :]
                options = self.parse(argv)
            elif self.strict:
                return self.error(
                    '"%s" is not a recognized command. See "%s" for more information.',
                    name,
                    self.usage,
                    command=name,
                    kind=UnknownCommandError,
                )
            else:
                logger.debug("Unknown command %s; using %s", name, self.fallback)
                command = self.load_command(self.fallback)

        if command is None:
            raise ConfigurationError(
                "No command loaded. This usually happens when no usage, default "
                "or fallback command exists.",
                context={
                    "root": str(self.root),
                    "usage": self.usage,
                    "default": self.default,
                    "fallback": self.fallback,
                },
                suggestions=[f"Add a '{self.usage}' command module to {self.root}"],
            )

        self.context.enter(command.name)
        if self.config.publish_env:
            self.context.publish()

        logger.debug("Running %s with %r", command.name, argv)
        return command.run(argv, options, self)


def create_dispatcher(root: Optional[Union[str, Path]] = None, **kwargs: Any) -> Dispatcher:
    """Create a Dispatcher. Same arguments as Dispatcher()."""
    return Dispatcher(root, **kwargs)
