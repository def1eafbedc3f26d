"""Option parsing for dispatched commands.

Turns an argv list into a ParsedOptions dict: one key per flag and the
positional tokens, in order, under ``"_"``.

Declared options (the ``spec`` mapping) are registered on an argparse parser
up front. Flags that were not declared are still captured: every flag-looking
token is registered on the fly before parsing, so nothing is rejected as
"unrecognized".

Usage:
    from subcmd.options import parse_options

    opts = parse_options(["build", "-j", "4", "--release"])
    opts.args        # ["build"]
    opts["j"]        # 4
    opts["release"]  # True

    opts = parse_options([], {"target": {"alias": "t", "default": "debug"}})
    opts["target"]   # "debug"
    opts["t"]        # "debug"
"""

from __future__ import annotations

import argparse
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from subcmd.exceptions import ArgvError, OptionError

logger = logging.getLogger(__name__)

__all__ = ["POSITIONAL_KEY", "ParsedOptions", "parse_options", "coerce_value"]

POSITIONAL_KEY = "_"

# Keys understood in an option spec entry
SPEC_KEYS = {"alias", "default", "boolean", "string", "describe"}

_NUMBER_RE = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$")
_INT_RE = re.compile(r"^[-+]?\d+$")
_LONG_RE = re.compile(r"^--([^=\s]+)(?:=.*)?$")
_SHORT_RE = re.compile(r"^-([A-Za-z]+)(.*)$")

# Attached values that switch a boolean flag off
_FALSE_WORDS = {"false", "0", "no", "off"}


class ParsedOptions(dict):
    """Flags by name plus positional arguments under ``"_"``."""

    @property
    def args(self) -> List[str]:
        """Positional arguments in their original order."""
        return self.setdefault(POSITIONAL_KEY, [])


def coerce_value(value: Any) -> Any:
    """Convert numeric-looking strings to int or float.

    Anything else, including non-strings, is returned unchanged.
    """
    if not isinstance(value, str) or not _NUMBER_RE.match(value):
        return value
    if _INT_RE.match(value):
        return int(value)
    return float(value)


class _ArgvParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of printing usage and exiting."""

    def __init__(self) -> None:
        super().__init__(prog="subcmd", add_help=False)
        # Dests assigned during the current parse; repeats become lists
        self.seen: Set[str] = set()

    def error(self, message: str):
        raise OptionError(message)


class _StoreOption(argparse.Action):
    """Store a flag value, collecting repeated flags into a list."""

    def __init__(self, option_strings, dest, coerce: bool = True, **kwargs):
        self.coerce = coerce
        super().__init__(option_strings, dest, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        value = self.const if self.nargs == 0 else values
        if self.coerce:
            value = coerce_value(value)

        if self.dest not in parser.seen:
            parser.seen.add(self.dest)
            setattr(namespace, self.dest, value)
            return

        current = getattr(namespace, self.dest)
        if isinstance(current, list):
            current.append(value)
        else:
            setattr(namespace, self.dest, [current, value])


def _option_string(name: str) -> str:
    return f"-{name}" if len(name) == 1 else f"--{name}"


def _aliases(entry: Mapping[str, Any]) -> List[str]:
    alias = entry.get("alias")
    if alias is None:
        return []
    if isinstance(alias, str):
        return [alias]
    return list(alias)


def _expand_short_clusters(tokens: Sequence[str]) -> List[str]:
    """Split ``-abc`` into ``-a -b -c`` and ``-n5`` into ``-n 5``."""
    expanded: List[str] = []
    for token in tokens:
        match = _SHORT_RE.match(token)
        if not match or any(ch.isspace() for ch in token):
            expanded.append(token)
            continue

        letters, rest = match.groups()
        expanded.extend(f"-{letter}" for letter in letters)
        value = rest[1:] if rest.startswith("=") else rest
        if value:
            expanded.append(value)
    return expanded


def _detach_boolean_values(
    tokens: Sequence[str], spec: Mapping[str, Mapping[str, Any]]
) -> List[str]:
    """Rewrite ``--flag=value`` for flags that never take a value.

    ``--no-x=value`` becomes ``--no-x``. For a declared boolean,
    ``--name=false`` (or 0, no, off) becomes ``--no-<canonical>`` and any
    other value becomes ``--name``.
    """
    booleans: Dict[str, str] = {}
    for name, entry in spec.items():
        if isinstance(entry, Mapping) and entry.get("boolean"):
            for option in [name] + _aliases(entry):
                if len(option) > 1:
                    booleans[option] = name

    rewritten: List[str] = []
    for token in tokens:
        flag, sep, value = token.partition("=")
        if not sep or not flag.startswith("--") or any(ch.isspace() for ch in flag):
            rewritten.append(token)
        elif flag[2:] in booleans:
            canonical = booleans[flag[2:]]
            rewritten.append(f"--no-{canonical}" if value.lower() in _FALSE_WORDS else flag)
        elif flag.startswith("--no-"):
            rewritten.append(flag)
        else:
            rewritten.append(token)
    return rewritten


def _flag_strings(tokens: Sequence[str]) -> List[str]:
    """Option strings for every flag-looking token, in order of appearance."""
    found: List[str] = []
    for token in tokens:
        if len(token) < 2 or not token.startswith("-"):
            continue
        if _NUMBER_RE.match(token) or any(ch.isspace() for ch in token):
            # Negative numbers and strings with spaces are positional
            continue

        match = _LONG_RE.match(token)
        if match:
            found.append(f"--{match.group(1)}")
        elif not token.startswith("--") and len(token) == 2:
            found.append(token)
    return found


def _build_parser(
    spec: Mapping[str, Mapping[str, Any]], tokens: Sequence[str]
) -> Tuple[_ArgvParser, Dict[str, List[str]]]:
    parser = _ArgvParser()
    registered: Set[str] = set()
    aliases: Dict[str, List[str]] = {}

    for name, entry in spec.items():
        if not isinstance(entry, Mapping):
            raise OptionError(
                f"Option spec for '{name}' must be a mapping",
                context={"option": name, "got": type(entry).__name__},
            )
        unknown = set(entry) - SPEC_KEYS
        if unknown:
            logger.debug("Ignoring unknown keys %s in spec for option %s", sorted(unknown), name)

        names = [name] + _aliases(entry)
        aliases[name] = names[1:]
        option_strings = [_option_string(n) for n in names]
        registered.update(option_strings)

        if entry.get("boolean"):
            parser.add_argument(
                *option_strings,
                dest=name,
                action=_StoreOption,
                nargs=0,
                const=True,
                default=entry.get("default", False),
                coerce=False,
            )
            negated = f"--no-{name}"
            if negated not in registered:
                registered.add(negated)
                parser.add_argument(
                    negated,
                    dest=name,
                    action=_StoreOption,
                    nargs=0,
                    const=False,
                    default=argparse.SUPPRESS,
                    coerce=False,
                )
        elif entry.get("string"):
            parser.add_argument(
                *option_strings,
                dest=name,
                action=_StoreOption,
                nargs="?",
                const="",
                default=entry.get("default", argparse.SUPPRESS),
                coerce=False,
            )
        else:
            parser.add_argument(
                *option_strings,
                dest=name,
                action=_StoreOption,
                nargs="?",
                const=True,
                default=entry.get("default", argparse.SUPPRESS),
            )

    for option_string in _flag_strings(tokens):
        if option_string in registered:
            continue
        registered.add(option_string)

        key = option_string.lstrip("-")
        if option_string.startswith("--no-"):
            parser.add_argument(
                option_string,
                dest=key[3:],
                action=_StoreOption,
                nargs=0,
                const=False,
                default=argparse.SUPPRESS,
                coerce=False,
            )
        else:
            parser.add_argument(
                option_string,
                dest=key,
                action=_StoreOption,
                nargs="?",
                const=True,
                default=argparse.SUPPRESS,
            )

    return parser, aliases


def parse_options(
    tokens: Sequence[str], spec: Optional[Mapping[str, Mapping[str, Any]]] = None
) -> ParsedOptions:
    """Parse argv tokens into flags and positional arguments.

    Args:
        tokens: Argument list, without the program name.
        spec: Optional mapping of option name to settings. Recognized
            settings are ``alias`` (name or list of names), ``default``,
            ``boolean`` (never takes a value), ``string`` (value is not
            coerced to a number) and ``describe`` (ignored here).

    Returns:
        ParsedOptions with one key per flag and ``"_"`` holding positionals.

    Raises:
        ArgvError: If tokens is not a list or tuple.
        OptionError: If the spec is malformed or argparse rejects the tokens.
    """
    if not isinstance(tokens, (list, tuple)):
        raise ArgvError(
            "argv must be a list.",
            context={"got": type(tokens).__name__},
        )
    if spec is None:
        spec = {}
    elif not isinstance(spec, Mapping):
        raise OptionError(
            "Option spec must be a mapping of option names to settings",
            context={"got": type(spec).__name__},
        )

    tokens = [str(token) for token in tokens]
    if "--" in tokens:
        split = tokens.index("--")
        head, tail = tokens[:split], tokens[split + 1 :]
    else:
        head, tail = tokens, []

    head = _detach_boolean_values(_expand_short_clusters(head), spec)
    try:
        parser, aliases = _build_parser(spec, head)
    except argparse.ArgumentError as e:
        # Conflicting option strings in the spec (e.g. an alias reused)
        raise OptionError(f"Invalid option spec: {e}") from e
    namespace, extras = parser.parse_known_args(head)

    result = ParsedOptions(vars(namespace))
    for name, names in aliases.items():
        if name in result:
            for alias in names:
                result[alias] = result[name]

    result[POSITIONAL_KEY] = list(extras) + tail
    return result
