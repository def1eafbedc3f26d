"""Tests for subcmd.dispatcher."""

import os
import sys
import types

import pytest

from subcmd import Dispatcher, create_dispatcher
from subcmd.context import ExecutionContext
from subcmd.exceptions import (
    ArgvError,
    CommandDefinitionError,
    CommandLoadError,
    ConfigurationError,
    DispatchError,
    UnknownCommandError,
)
from subcmd.dispatcher import format_message
from subcmd.loader import RegistryLoader


class TestConstruction:
    """Tests for creating dispatchers."""

    def test_requires_root(self):
        """Creating a dispatcher without a root fails."""
        with pytest.raises(ConfigurationError, match="Root directory is required."):
            Dispatcher()

    def test_factory_requires_root(self):
        """create_dispatcher() without arguments fails too."""
        with pytest.raises(ConfigurationError):
            create_dispatcher()

    def test_factory_returns_dispatcher(self, commands_dir):
        """create_dispatcher returns a Dispatcher."""
        assert isinstance(create_dispatcher(commands_dir), Dispatcher)

    def test_names_default_to_help(self, commands_dir):
        """usage defaults to help; fallback and default follow usage."""
        dispatcher = Dispatcher(commands_dir)
        assert dispatcher.usage == "help"
        assert dispatcher.fallback == "help"
        assert dispatcher.default == "help"
        assert dispatcher.strict is False
        assert dispatcher.manuals is None

    def test_fallback_and_default_follow_custom_usage(self, commands_dir):
        """A custom usage command is also the fallback and default."""
        dispatcher = Dispatcher(commands_dir, usage="test")
        assert dispatcher.fallback == "test"
        assert dispatcher.default == "test"

    def test_config_is_frozen(self, dispatcher):
        """Configuration cannot change after construction."""
        with pytest.raises(AttributeError):
            dispatcher.config.strict = True


class TestParse:
    """Tests for Dispatcher.parse."""

    def test_requires_list(self, dispatcher):
        """Non-sequences are rejected."""
        with pytest.raises(ArgvError, match="argv must be a list."):
            dispatcher.parse(None)

    def test_returns_positionals(self, dispatcher):
        """parse([]) has an empty positional list."""
        assert dispatcher.parse([])["_"] == []

    def test_accepts_spec(self, dispatcher):
        """The option spec is passed through."""
        assert dispatcher.parse([], {"foo": {"default": "bar"}})["foo"] == "bar"


class TestRun:
    """Tests for command selection in Dispatcher.run."""

    def test_runs_named_command(self, dispatcher):
        """The first positional selects the command."""
        name, argv, options = dispatcher.run(["test"])
        assert name == "test"
        assert argv == []
        assert options == {"_": []}

    def test_command_gets_arguments_after_name(self, dispatcher):
        """Residual argv and options only cover tokens after the name."""
        name, argv, options = dispatcher.run(["--verbose=1", "test", "one", "--flag", "2"])
        assert name == "test"
        assert argv == ["one", "--flag", "2"]
        assert options["flag"] == 2
        assert options.args == ["one"]
        assert "verbose" not in options

    def test_flag_before_name_consumes_it(self, dispatcher):
        """A valued flag before the name takes the name as its value."""
        name, argv, options = dispatcher.run(["--target", "test"])
        assert name == "default"
        assert options["target"] == "test"

    def test_fallback(self, dispatcher):
        """Unknown commands run the fallback with the original argv."""
        name, argv, options = dispatcher.run(["doesnotexist", "--flag"])
        assert name == "fallback"
        assert argv == ["doesnotexist", "--flag"]
        assert options.args == ["doesnotexist"]
        assert options["flag"] is True

    def test_overlong_unknown_name_runs_fallback(self, dispatcher):
        """A name no file could have still runs the fallback."""
        name, argv, options = dispatcher.run(["x" * 300])
        assert name == "fallback"
        assert argv == ["x" * 300]

    def test_default(self, dispatcher):
        """No command name runs the default command."""
        name, argv, options = dispatcher.run([])
        assert name == "default"
        assert argv == []

    def test_default_with_only_flags(self, dispatcher):
        """Flags without a name still run the default."""
        name, argv, options = dispatcher.run(["--quiet"])
        assert name == "default"
        assert options["quiet"] is True

    @pytest.mark.parametrize("argv", [["--help"], ["-h"], ["test", "--help"], ["-h", "test"]])
    def test_help_wins(self, dispatcher, argv):
        """--help or -h anywhere runs the usage command."""
        name, _, _ = dispatcher.run(argv)
        assert name == "help"

    def test_returns_command_result(self, dispatcher):
        """run() returns exactly what the command returned."""
        assert dispatcher.run(["return"]) == 42

    def test_callable_command(self, dispatcher):
        """Callable-shaped commands are dispatched too."""
        name, argv, _ = dispatcher.run(["function", "a"])
        assert name == "function"
        assert argv == ["a"]

    def test_spec_applies_to_first_parse_only(self, dispatcher):
        """The caller's spec shapes the first parse, not the command's."""
        spec = {"verbose": {"alias": "v", "boolean": True}}
        name, argv, options = dispatcher.run(["-v", "test", "-v"], spec)
        assert name == "test"
        assert argv == ["-v"]
        assert options == {"v": True, "_": []}

    def test_uses_sys_argv_by_default(self, dispatcher, monkeypatch):
        """Omitting argv dispatches sys.argv without the program name."""
        monkeypatch.setattr(sys, "argv", ["tool", "test", "arg"])
        name, argv, _ = dispatcher.run()
        assert name == "test"
        assert argv == ["arg"]

    def test_rejects_non_list(self, dispatcher):
        """run() validates argv like parse()."""
        with pytest.raises(ArgvError):
            dispatcher.run("test")


class TestStrictMode:
    """Tests for strict dispatchers."""

    @pytest.fixture
    def strict(self, commands_dir, manuals_dir):
        return Dispatcher(commands_dir, strict=True, fallback="fallback", default="index", manuals=manuals_dir)

    def test_unknown_command_reports_error(self, strict):
        """Unknown names are reported, not dispatched."""
        seen = []
        strict.on("error", seen.append)

        result = strict.run(["doesnotexist"])

        assert result is strict
        assert len(seen) == 1
        assert isinstance(seen[0], UnknownCommandError)
        assert seen[0].command == "doesnotexist"
        assert '"doesnotexist" is not a recognized command' in seen[0].message

    def test_overlong_unknown_name_reported(self, strict):
        """A name too long for the filesystem is reported like any unknown name."""
        seen = []
        strict.on("error", seen.append)

        assert strict.run(["x" * 300]) is strict
        assert len(seen) == 1
        assert isinstance(seen[0], UnknownCommandError)

    def test_no_command_invoked(self, strict):
        """Nothing runs for an unknown name, so the context is untouched."""
        strict.on("error", lambda err: None)
        strict.run(["doesnotexist"])
        assert strict.context.command is None

    def test_unobserved_error_is_dropped(self, strict):
        """Without listeners the error disappears silently."""
        assert strict.run(["doesnotexist"]) is strict

    def test_known_commands_still_run(self, strict):
        """Strict mode only affects unknown names."""
        assert strict.run(["return"]) == 42


class TestMissingMandatoryCommands:
    """Tests for usage/default/fallback commands that do not exist."""

    def test_missing_default_raises(self, commands_dir):
        """A missing default command is a configuration error."""
        dispatcher = Dispatcher(commands_dir, default="nope")
        with pytest.raises(ConfigurationError, match="No command loaded"):
            dispatcher.run([])

    def test_missing_fallback_raises(self, commands_dir):
        """A missing fallback command is a configuration error."""
        dispatcher = Dispatcher(commands_dir, fallback="nope")
        with pytest.raises(ConfigurationError):
            dispatcher.run(["doesnotexist"])

    def test_missing_usage_raises(self, tmp_path):
        """An empty root cannot even show help."""
        dispatcher = Dispatcher(tmp_path)
        with pytest.raises(ConfigurationError):
            dispatcher.run(["--help"])

    def test_broken_usage_reports_then_raises(self, commands_dir):
        """A broken usage command is reported, then run() raises."""
        seen = []
        dispatcher = Dispatcher(commands_dir, usage="syntax_error")
        dispatcher.on("error", seen.append)
        with pytest.raises(ConfigurationError):
            dispatcher.run(["-h"])
        assert isinstance(seen[0], CommandLoadError)


class TestLoadCommand:
    """Tests for the loader passthroughs."""

    def test_object_command(self, dispatcher):
        """Object commands load with run and usage."""
        command = dispatcher.load_command("test")
        assert command.name == "test"
        assert callable(command.run)
        assert isinstance(command.usage, str)

    def test_function_command(self, dispatcher):
        """Callable commands load with usage from the manual."""
        command = dispatcher.load_command("function")
        assert callable(command.run)
        assert command.usage == "test function\n"
        assert command.run([], {}, dispatcher)[0] == "function"

    def test_missing_command(self, dispatcher, errors):
        """Missing commands are None and not an error."""
        assert dispatcher.load_command("doesnotexist") is None
        assert errors == []

    def test_invalid_command(self, dispatcher, errors):
        """Modules without run are None and not an error."""
        assert dispatcher.load_command("invalid") is None
        assert errors == []

    def test_broken_command_reported(self, dispatcher, errors):
        """A missing nested import is reported as a load error."""
        assert dispatcher.load_command("missing_dependency") is None
        assert len(errors) == 1
        err = errors[0]
        assert isinstance(err, CommandLoadError)
        assert err.command == "missing_dependency"
        assert isinstance(err.cause, ModuleNotFoundError)
        assert 'Error loading command "missing_dependency":' in err.message
        assert "subcmd_tests_this_module_does_not_exist" in err.message

    def test_broken_command_without_listener(self, dispatcher):
        """Load errors without listeners neither raise nor print."""
        assert dispatcher.load_command("syntax_error") is None

    def test_function_without_usage_raises(self, dispatcher):
        """Callable commands without a manual fail when loaded."""
        with pytest.raises(CommandDefinitionError):
            dispatcher.load_command("no_usage")

    def test_object_without_usage_loads(self, dispatcher):
        """Object commands may omit usage."""
        command = dispatcher.load_command("no_usage_object")
        assert command is not None
        assert command.usage is None

    def test_get_usage(self, dispatcher):
        """get_usage returns usage text or None."""
        assert dispatcher.get_usage("test") == "test command"
        assert dispatcher.get_usage("doesnotexist") is None

    def test_get_run(self, dispatcher):
        """get_run returns the entry point or None."""
        assert dispatcher.get_run("return")([], {}, dispatcher) == 42
        assert dispatcher.get_run("doesnotexist") is None

    def test_load_manual(self, dispatcher):
        """load_manual reads from the manuals directory."""
        assert dispatcher.load_manual("function") == "test function\n"
        assert dispatcher.load_manual("doesnotexist") is None


class TestErrorChannel:
    """Tests for error listeners."""

    def test_error_returns_self(self, dispatcher):
        """error() is chainable and does not raise."""
        assert dispatcher.error("boom") is dispatcher

    def test_error_formats_message(self, dispatcher, errors):
        """Arguments are formatted into the message."""
        dispatcher.error("bad %s (%d)", "thing", 3)
        assert isinstance(errors[0], DispatchError)
        assert errors[0].message == "bad thing (3)"

    def test_every_listener_called(self, dispatcher):
        """All listeners receive the same error."""
        first, second = [], []
        dispatcher.on("error", first.append).on("error", second.append)
        dispatcher.error("x")
        assert first == second
        assert len(first) == 1

    def test_off_unsubscribes(self, dispatcher):
        """Removed listeners are not called."""
        seen = []
        dispatcher.on("error", seen.append)
        dispatcher.off("error", seen.append)
        dispatcher.error("x")
        assert seen == []
        assert dispatcher.listeners("error") == []

    def test_off_unknown_listener_is_noop(self, dispatcher):
        """Removing a listener that was never added is harmless."""
        dispatcher.off("error", print)

    def test_unknown_event(self, dispatcher):
        """Only the error event exists."""
        with pytest.raises(ValueError):
            dispatcher.on("finish", print)


class TestFormatMessage:
    """Tests for printf-style formatting."""

    def test_string_placeholder(self):
        assert format_message('"%s" missing', "x") == '"x" missing'

    def test_extra_arguments_appended(self):
        assert format_message("loading:", "a", 1) == "loading: a 1"

    def test_missing_arguments_leave_placeholder(self):
        assert format_message("%s and %s", "a") == "a and %s"

    def test_number_placeholders(self):
        assert format_message("%d/%i/%f", "4", 5.9, 1) == "4/5/1.0"

    def test_json_placeholder(self):
        assert format_message("%j", {"a": [1]}) == '{"a": [1]}'

    def test_percent_escape(self):
        assert format_message("100%%") == "100%"

    def test_non_string_format(self):
        assert format_message(42, "x") == "42 x"


class TestExecutionContext:
    """Tests for publishing the running command's name."""

    def test_context_set_before_invocation(self, dispatcher):
        """The command sees its own name in the context."""
        assert dispatcher.run(["context"]) == "context"

    def test_context_keeps_last_command(self, dispatcher):
        """After a run the context names the last command."""
        dispatcher.run(["test"])
        assert dispatcher.context.command == "test"
        dispatcher.run([])
        assert dispatcher.context.command == "index"

    def test_fallback_name_published(self, dispatcher):
        """The fallback's own name is published, not the unknown one."""
        dispatcher.run(["doesnotexist"])
        assert dispatcher.context.command == "fallback"

    def test_child_env(self, dispatcher):
        """child_env carries the command name for subprocesses."""
        dispatcher.run(["test"])
        env = dispatcher.context.child_env({"PATH": "/bin"})
        assert env == {"PATH": "/bin", "SUBCMD_COMMAND": "test"}

    def test_process_env_untouched_by_default(self, dispatcher, monkeypatch):
        """Without publish_env the process environment is not modified."""
        monkeypatch.delenv("SUBCMD_COMMAND", raising=False)
        dispatcher.run(["test"])
        assert "SUBCMD_COMMAND" not in os.environ

    def test_publish_env(self, commands_dir, monkeypatch):
        """publish_env writes the name into os.environ."""
        monkeypatch.delenv("TOOL_COMMAND", raising=False)
        dispatcher = Dispatcher(commands_dir, env_var="TOOL_COMMAND", publish_env=True)
        dispatcher.run(["return"])
        assert os.environ["TOOL_COMMAND"] == "return"
        monkeypatch.delenv("TOOL_COMMAND")

    def test_shared_context(self, commands_dir):
        """A context passed in is the one updated."""
        context = ExecutionContext()
        Dispatcher(commands_dir, context=context).run(["return"])
        assert context.command == "return"


class TestCustomLoader:
    """Tests for dispatching through a registry."""

    def test_registry_dispatch(self, tmp_path):
        """Commands can come from an in-memory registry."""
        registry = RegistryLoader(
            {
                "help": types.SimpleNamespace(run=lambda a, o, d: "help", usage="help"),
                "greet": types.SimpleNamespace(
                    run=lambda a, o, d: f"hello {a[0]}", usage="greet NAME"
                ),
            }
        )
        dispatcher = Dispatcher(tmp_path, loader=registry)
        assert dispatcher.run(["greet", "world"]) == "hello world"
        assert dispatcher.run(["unknown"]) == "help"
