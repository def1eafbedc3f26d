"""Command record and protocol for subcmd.

A command module is found under the dispatcher's root directory and comes in
one of two shapes:

    # commands/build.py - object shape
    usage = "build [--release]"

    def run(argv, options, dispatcher):
        return 0

    # commands/clean.py - callable shape, usage read from manuals/clean
    def command(argv, options, dispatcher):
        return 0

Both shapes are normalized into a Command by the loader.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from subcmd.dispatcher import Dispatcher
    from subcmd.options import ParsedOptions

__all__ = ["Command", "CommandRunner", "is_command"]


@runtime_checkable
class CommandRunner(Protocol):
    """Entry point of a command.

    Receives the arguments after the command name, the options parsed from
    them and the dispatcher that invoked it. The return value is handed back
    unchanged to the caller of ``Dispatcher.run()``.
    """

    def __call__(
        self, argv: list[str], options: ParsedOptions, dispatcher: Dispatcher
    ) -> Any: ...


@dataclass
class Command:
    """A resolved command.

    Built fresh on every lookup; nothing holds on to it between runs.

    Attributes:
        name: The name the command was requested under.
        run: Entry point, called as ``run(argv, options, dispatcher)``.
        usage: Usage text. Always set for callable-shaped modules, may be
            None for object-shaped ones.
        source: Where the command came from (file path or registry key).
    """

    name: str
    run: CommandRunner
    usage: Optional[str] = None
    source: Optional[str] = None


def is_command(value: Any) -> bool:
    """Return True if ``value`` can be dispatched to.

    A value qualifies when it is callable itself or has a callable ``run``.
    This says nothing about usage text; callable-shaped modules are held to
    the stricter usage requirement separately when they are loaded.
    """
    if isinstance(value, CommandRunner):
        return True
    return value is not None and isinstance(getattr(value, "run", None), CommandRunner)
