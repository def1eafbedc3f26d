"""
subcmd: git-style subcommand dispatch for command-line tools.

A tool keeps one Python module per subcommand in a directory. The dispatcher
reads argv, loads the module named by the first positional argument and runs
it with the remaining arguments.

Modules:
    dispatcher: Dispatcher - argv to command resolution and invocation
    loader: Directory and registry command loaders
    options: Option parsing into flags and positional arguments
    manuals: Usage text lookup
    config: Dispatcher settings and TOML config files
    context: Execution context shared with commands
    exceptions: Error hierarchy

Quick Start::

    # commands/hello.py
    usage = "hello [NAME]"

    def run(argv, options, dispatcher):
        print(f"hello {argv[0] if argv else 'world'}")
        return 0

    # tool.py
    import sys
    from subcmd import Dispatcher

    dispatcher = Dispatcher("commands", default="hello")
    sys.exit(dispatcher.run())
"""

__version__ = "0.3.0"

from subcmd.command import Command, CommandRunner, is_command
from subcmd.config import DispatcherConfig, find_config, load_config
from subcmd.context import ExecutionContext
from subcmd.dispatcher import Dispatcher, create_dispatcher
from subcmd.exceptions import (
    ArgvError,
    CommandDefinitionError,
    CommandLoadError,
    ConfigurationError,
    DispatchError,
    OptionError,
    SubcmdError,
    UnknownCommandError,
)
from subcmd.loader import Broken, DirectoryLoader, Found, NotFound, RegistryLoader
from subcmd.manuals import ManualLoader
from subcmd.options import ParsedOptions, parse_options

__all__ = [
    # Version
    "__version__",
    # Dispatch
    "Dispatcher",
    "create_dispatcher",
    "DispatcherConfig",
    "load_config",
    "find_config",
    "ExecutionContext",
    # Commands
    "Command",
    "CommandRunner",
    "is_command",
    "DirectoryLoader",
    "RegistryLoader",
    "Found",
    "NotFound",
    "Broken",
    "ManualLoader",
    # Options
    "ParsedOptions",
    "parse_options",
    # Errors
    "SubcmdError",
    "ConfigurationError",
    "ArgvError",
    "OptionError",
    "CommandDefinitionError",
    "DispatchError",
    "UnknownCommandError",
    "CommandLoadError",
]
