"""
Command-line runner for subcmd command directories.

Runs a git-style tool straight from a directory of command modules, without
writing an entry-point script:

    subcmd --root commands <command> [args...]
    subcmd --config tool.toml <command> [args...]
    subcmd <command> [args...]          (uses .subcmd.toml found from cwd)

Options placed before the command name configure the dispatcher; everything
from the command name on is handed to the dispatcher as argv.

Exit status:
    the command's integer result, 0 for any other result,
    1 if the dispatcher reported an error, 2 on configuration or option errors.

Examples:
    subcmd --root ./commands --manuals ./man build --release
    subcmd --root ./commands --strict deploy staging
    subcmd --root ./commands --default status
"""

import argparse
import logging
from pathlib import Path
from typing import Any, List, Optional

from subcmd import __version__
from subcmd.cli.utils import print_error
from subcmd.config import find_config
from subcmd.dispatcher import Dispatcher
from subcmd.exceptions import (
    CommandDefinitionError,
    ConfigurationError,
    DispatchError,
    OptionError,
)

__all__ = ["main", "build_parser", "exit_code"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="subcmd",
        description="Run a command from a directory of command modules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", action="version", version=f"subcmd {__version__}")
    parser.add_argument("--root", help="Directory of command modules")
    parser.add_argument("--config", help="TOML config file with a [subcmd] table")
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Report unknown commands instead of running the fallback",
    )
    parser.add_argument("--usage", help="Command run for --help (default: help)")
    parser.add_argument("--fallback", help="Command run for unknown names")
    parser.add_argument("--default", help="Command run when no command is given")
    parser.add_argument("--manuals", help="Directory of usage text files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "argv",
        nargs=argparse.REMAINDER,
        help="Command name and its arguments",
    )
    return parser


def _create_dispatcher(args: argparse.Namespace) -> Dispatcher:
    overrides = {
        "root": args.root,
        "strict": args.strict,
        "usage": args.usage,
        "fallback": args.fallback,
        "default": args.default,
        "manuals": args.manuals,
    }

    if args.config:
        config_path: Optional[Path] = Path(args.config)
    elif args.root:
        config_path = None
    else:
        config_path = find_config()

    if config_path is not None:
        return Dispatcher.from_file(config_path, **overrides)

    return Dispatcher(**{key: value for key, value in overrides.items() if value is not None})


def exit_code(result: Any) -> int:
    """Map a command's return value to a process exit status."""
    if isinstance(result, int) and not isinstance(result, bool):
        return result
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the subcmd CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    command_argv = list(args.argv)
    if command_argv and command_argv[0] == "--":
        command_argv = command_argv[1:]

    reported: List[DispatchError] = []

    def report(err: DispatchError) -> None:
        reported.append(err)
        print_error(err, verbose=args.verbose)

    try:
        dispatcher = _create_dispatcher(args)
        dispatcher.on("error", report)
        result = dispatcher.run(command_argv)
    except (ConfigurationError, CommandDefinitionError, OptionError) as e:
        print_error(e, verbose=args.verbose)
        return 2

    if reported:
        return 1
    return exit_code(result)
