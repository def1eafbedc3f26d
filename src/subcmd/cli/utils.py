"""Shared utilities for the subcmd CLI."""

from __future__ import annotations

import sys
import traceback
from typing import TYPE_CHECKING

from subcmd.exceptions import DispatchError, SubcmdError

if TYPE_CHECKING:
    from rich.console import Console

__all__ = ["format_error", "print_error", "get_error_console"]

# Module-level console for error output, created lazily
_error_console: Console | None = None


def get_error_console() -> Console:
    """Get or create the Rich console for error output.

    Returns a console configured for stderr. The console is created lazily
    and cached for reuse.
    """
    global _error_console
    if _error_console is None:
        from rich.console import Console

        _error_console = Console(stderr=True, force_terminal=None)
    return _error_console


def print_error(
    e: BaseException,
    verbose: bool = False,
    use_rich: bool | None = None,
) -> None:
    """
    Print an exception, with Rich formatting on a terminal.

    Args:
        e: The exception to print
        verbose: If True, include the traceback of the underlying cause
        use_rich: Override automatic TTY detection (None = auto-detect)
    """
    console = get_error_console()

    if use_rich is None:
        use_rich = console.is_terminal

    if use_rich and isinstance(e, SubcmdError):
        from rich.markup import escape

        console.print(f"[bold red]Error:[/bold red] {escape(e.message)}")
        for key, value in e.context.items():
            console.print(f"  [dim]{escape(str(key))}:[/dim] {escape(str(value))}")
        for suggestion in e.suggestions:
            console.print(f"  [yellow]-[/yellow] {escape(suggestion)}")
    else:
        print(format_error(e), file=sys.stderr)

    cause = e.cause if isinstance(e, DispatchError) else e.__cause__
    if verbose and cause is not None:
        print(
            "".join(traceback.format_exception(type(cause), cause, cause.__traceback__)),
            file=sys.stderr,
        )


def format_error(e: BaseException) -> str:
    """
    Format an exception for user-friendly display (plain text).

    Args:
        e: The exception to format

    Returns:
        Formatted error message string
    """
    if isinstance(e, SubcmdError):
        return f"Error: {e}"

    # For other exceptions, show type and message
    return f"Error: {type(e).__name__}: {e}"
