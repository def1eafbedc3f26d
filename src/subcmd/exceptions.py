"""
Custom exception hierarchy for subcmd.

Provides consistent error handling with context and suggestions.
All exceptions include:
- Context information (command name, paths, etc.)
- Suggestions for how to fix the issue
- Clear, formatted error messages

Two families exist. Errors deriving from ConfigurationError are raised: they
mean the dispatcher or one of its mandatory commands is set up wrong. Errors
deriving from DispatchError are never raised by the dispatcher; they are
delivered to listeners registered with ``Dispatcher.on("error", ...)``.

Example::

    from subcmd.exceptions import ConfigurationError

    raise ConfigurationError(
        "Root directory is required.",
        suggestions=["Pass root= to Dispatcher()"],
    )
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class SubcmdError(Exception):
    """
    Base exception for all subcmd errors.

    Provides consistent formatting with context and suggestions.

    Attributes:
        context: Dictionary of contextual information (command, path, etc.)
        suggestions: List of actionable suggestions for fixing the error
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        self.message = message
        self.context = context or {}
        self.suggestions = suggestions or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context and suggestions."""
        parts = [self.message]

        if self.context:
            parts.append("\n\nContext:")
            for key, value in self.context.items():
                parts.append(f"\n  {key}: {value}")

        if self.suggestions:
            parts.append("\n\nSuggestions:")
            for suggestion in self.suggestions:
                parts.append(f"\n  - {suggestion}")

        return "".join(parts)

    def __str__(self) -> str:
        return self._format_message()


class ConfigurationError(SubcmdError):
    """
    Dispatcher configuration error.

    Raised when the dispatcher cannot work at all: no root directory, an
    unreadable config file, or a usage/default/fallback command that does
    not exist.

    Example::

        raise ConfigurationError(
            "No command loaded.",
            context={"usage": "help", "root": "/opt/tool/commands"},
            suggestions=["Add a help command to the root directory"],
        )
    """

    pass


class ArgvError(ConfigurationError, TypeError):
    """argv passed to the dispatcher or option parser is not a list of strings."""

    pass


class OptionError(SubcmdError):
    """The option parser rejected the argument tokens."""

    pass


class CommandDefinitionError(SubcmdError):
    """
    A command module was found but does not satisfy the command contract.

    Raised when a module exports a bare callable and no usage text can be
    found for it in the manuals directory.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        command: Optional[str] = None,
    ):
        ctx = context or {}
        if command is not None and "command" not in ctx:
            ctx["command"] = command
        self.command = command
        super().__init__(message, ctx, suggestions)


class DispatchError(SubcmdError):
    """
    Non-fatal error reported through the dispatcher's error channel.

    Instances are handed to "error" listeners instead of being raised, so a
    long-running host can keep going after a bad command.

    Attributes:
        command: Name of the command involved, if any
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        command: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        ctx = context or {}
        if command is not None and "command" not in ctx:
            ctx["command"] = command
        self.command = command
        self.cause = cause
        super().__init__(message, ctx, suggestions)


class UnknownCommandError(DispatchError):
    """A requested command does not exist and the dispatcher is strict."""

    pass


class CommandLoadError(DispatchError):
    """A command module exists but raised while it was being loaded."""

    pass


__all__ = [
    "SubcmdError",
    "ConfigurationError",
    "ArgvError",
    "OptionError",
    "CommandDefinitionError",
    "DispatchError",
    "UnknownCommandError",
    "CommandLoadError",
]
