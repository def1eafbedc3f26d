"""Pytest fixtures for subcmd tests."""

import textwrap
from pathlib import Path

import pytest

# Command modules written into the commands directory, by relative path
COMMAND_MODULES = {
    # Object shape: module-level run and usage
    "test.py": """
        usage = "test command"

        def run(argv, options, dispatcher):
            return ("test", argv, options)
    """,
    "return.py": """
        usage = "returns 42"

        def run(argv, options, dispatcher):
            return 42
    """,
    "index.py": """
        usage = "default command"

        def run(argv, options, dispatcher):
            return ("default", argv, options)
    """,
    "fallback.py": """
        usage = "fallback command"

        def run(argv, options, dispatcher):
            return ("fallback", argv, options)
    """,
    "help.py": """
        usage = "help command"

        def run(argv, options, dispatcher):
            return ("help", argv, options)
    """,
    "context.py": """
        usage = "reports the execution context"

        def run(argv, options, dispatcher):
            return dispatcher.context.command
    """,
    # Callable shape: usage comes from the manuals directory
    "function.py": """
        def command(argv, options, dispatcher):
            return ("function", argv, options)
    """,
    "callable_run.py": """
        class _Callable:
            def __call__(self, argv, options, dispatcher):
                return "called"

            def run(self, argv, options, dispatcher):
                return "run attribute"

        command = _Callable()
    """,
    "no_usage.py": """
        def command(argv, options, dispatcher):
            return "never"
    """,
    "bad_run.py": """
        def command(argv, options, dispatcher):
            return "never"

        command.run = "not callable"
    """,
    "no_usage_object.py": """
        def run(argv, options, dispatcher):
            return "object without usage"
    """,
    # Not commands at all
    "invalid.py": """
        usage = "no run function here"
    """,
    # Exist but fail to load
    "missing_dependency.py": """
        import subcmd_tests_this_module_does_not_exist  # noqa: F401

        usage = "unreachable"

        def run(argv, options, dispatcher):
            return "unreachable"
    """,
    "missing_file.py": """
        from pathlib import Path

        USAGE_PATH = Path(__file__).with_name("missing_usage.txt")
        usage = open(USAGE_PATH).read()

        def run(argv, options, dispatcher):
            return "unreachable"
    """,
    "syntax_error.py": """
        def run(argv, options, dispatcher)
            return "unreachable"
    """,
    # Package command with a relative import
    "pkg/__init__.py": """
        from .helper import ANSWER

        usage = "package command"

        def run(argv, options, dispatcher):
            return ANSWER
    """,
    "pkg/helper.py": """
        ANSWER = "from helper"
    """,
}

MANUALS = {
    "function": "test function\n",
    "callable_run": "callable with run\n",
    "bad_run": "has usage but a bad run\n",
}


def write_files(base: Path, files: dict) -> Path:
    """Write dedented file contents under base and return base."""
    for relative, content in files.items():
        path = base / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
    return base


@pytest.fixture
def commands_dir(tmp_path: Path) -> Path:
    """Directory of command modules."""
    return write_files(tmp_path / "commands", COMMAND_MODULES)


@pytest.fixture
def manuals_dir(tmp_path: Path) -> Path:
    """Directory of manual files."""
    return write_files(tmp_path / "manuals", MANUALS)


@pytest.fixture
def dispatcher(commands_dir: Path, manuals_dir: Path):
    """Dispatcher with distinct fallback and default commands."""
    from subcmd import Dispatcher

    return Dispatcher(
        commands_dir,
        fallback="fallback",
        default="index",
        manuals=manuals_dir,
    )


@pytest.fixture
def errors(dispatcher):
    """List collecting every error the dispatcher reports."""
    collected = []
    dispatcher.on("error", collected.append)
    return collected
