"""Block-structured configuration files and command-line options.

A configuration file is a tree of named blocks holding ``key value;``
settings::

    srt {
        worker_threads 1;
        server {
            listen 8080;
        }
    }

Each block name is registered in a :class:`ConfRegistry` together with the
:class:`ConfCommand` objects describing the settings it accepts.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from .common import remove_marks

log = logging.getLogger(__name__)

CONF_OUT_RANGE = "out of range"
CONF_NAME_NOT_EXISTS = "name not exist"
CONF_WRONG_TYPE = "wrong type"

_KINDS = ("int", "string", "double", "bool")
_DEFAULTS: dict[str, Any] = {"int": 0, "string": "", "double": 0.0, "bool": False}

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class ConfError(Exception):
    """Raised for an unreadable or invalid configuration or option."""


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _atof(text: str) -> float:
    match = _LEADING_FLOAT.match(text)
    return float(match.group(1)) if match else 0.0


@dataclass(frozen=True)
class ConfCommand:
    """One named setting: its type, valid range and target attribute.

    For ``string`` settings the range bounds the length of the value.
    ``attr`` defaults to ``name``.
    """

    name: str
    kind: str
    mark: str = ""
    min: float = 0
    max: float = 0
    attr: str = ""

    def __post_init__(self) -> None:
        if self.kind not in _KINDS:
            raise ValueError(f"unknown setting type {self.kind!r}")
        if not self.attr:
            object.__setattr__(self, "attr", self.name)

    @property
    def default(self) -> Any:
        return _DEFAULTS[self.kind]

    def apply(self, value: str, target: Any) -> None:
        """Convert *value* and store it on *target*; raise ConfError if invalid."""
        if self.kind == "int":
            number: Any = _atoi(value)
            if number < self.min or number > self.max:
                raise ConfError(CONF_OUT_RANGE)
        elif self.kind == "double":
            number = _atof(value)
            if number < self.min or number > self.max:
                raise ConfError(CONF_OUT_RANGE)
        elif self.kind == "string":
            if len(value) < self.min or len(value) > self.max:
                raise ConfError(CONF_OUT_RANGE)
            number = value
        else:
            if value == "true":
                number = True
            elif value == "false":
                number = False
            else:
                raise ConfError(CONF_WRONG_TYPE)
        setattr(target, self.attr, number)


class ConfBlock:
    """A named configuration block; nested blocks are in ``children``."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.children: list[ConfBlock] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, children={len(self.children)})"


@dataclass
class _BlockType:
    factory: Callable[[], ConfBlock]
    commands: tuple[ConfCommand, ...] = field(default_factory=tuple)


class ConfRegistry:
    """Known block names, how to create them and what settings they accept."""

    def __init__(self) -> None:
        self._types: dict[str, _BlockType] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def register(
        self,
        name: str,
        factory: Callable[[], ConfBlock],
        commands: Iterable[ConfCommand],
    ) -> None:
        """Register block *name*, built by *factory*, accepting *commands*."""
        self._types[name] = _BlockType(factory, tuple(commands))

    def create(self, name: str) -> ConfBlock:
        """Create an empty block of type *name* with every setting at its default."""
        block_type = self._types.get(name)
        if block_type is None:
            raise ConfError(f"block name='{name}' not found.")
        block = block_type.factory()
        block.name = name
        for command in block_type.commands:
            if not hasattr(block, command.attr):
                setattr(block, command.attr, command.default)
        return block

    def _commands(self, name: str) -> tuple[ConfCommand, ...]:
        return self._types[name].commands


def find_command(name: str, commands: Iterable[ConfCommand]) -> ConfCommand | None:
    """Return the command called *name*, or None."""
    return next((command for command in commands if command.name == name), None)


def split_conf_string(text: str, delim: str) -> list[str]:
    """Split *text* on any of the characters in *delim*, dropping empty parts."""
    if not text:
        return []
    if not delim:
        return [text]
    pattern = "[" + re.escape(delim) + "]+"
    return [part for part in re.split(pattern, text) if part]


def parse_conf_lines(lines: Iterable[str], registry: ConfRegistry) -> list[ConfBlock]:
    """Parse configuration text given line by line; return the top-level blocks."""
    top: list[ConfBlock] = []
    stack: list[tuple[ConfBlock, tuple[ConfCommand, ...]]] = []
    last = ""
    for lineno, raw in enumerate(lines, 1):
        text = raw.rstrip("\r\n").split("#", 1)[0].replace("\t", "").strip(" ")
        if not text:
            continue
        end = text[-1]
        if end == ";":
            if not stack:
                raise ConfError(f"line:{lineno}='{text}', not found block.")
            body = text[:-1].strip(" ")
            key, sep, value = body.partition(" ")
            if not sep:
                raise ConfError(f"line:{lineno}='{body}', no space separator.")
            value = value.strip(" ")
            block, commands = stack[-1]
            command = find_command(key, commands)
            if command is None:
                raise ConfError(f"line:{lineno}='{body}', wrong name='{key}'.")
            try:
                command.apply(value, block)
            except ConfError as exc:
                raise ConfError(
                    f"line:{lineno}, set failed, {exc}, name='{key}', value='{value}'."
                ) from exc
            log.debug("line:%d, set name='%s', value='%s'.", lineno, key, value)
            last = body
        elif end == "{":
            header = text[:-1].strip(" ")
            name = header
            if not name:
                if not last:
                    raise ConfError(f"line:{lineno}, no name found.")
                name = last
            if name not in registry:
                raise ConfError(f"line:{lineno}, name='{name}' not found.")
            block = registry.create(name)
            (stack[-1][0].children if stack else top).append(block)
            stack.append((block, registry._commands(name)))
            last = header
        elif end == "}":
            if text != "}":
                raise ConfError(f"line:{lineno}='{text}', end indicator '}}' with more info.")
            if not stack:
                raise ConfError(f"line:{lineno}, unexpected '}}', please check count of '{{' and '}}'.")
            stack.pop()
            last = text
        else:
            raise ConfError(f"line:{lineno}='{text}', invalid end flag, expect ';', '{{', '}}'.")
    if stack:
        raise ConfError("unclosed block, please check count of '{' and '}'.")
    if not top:
        raise ConfError("no conf block found.")
    return top


def load_conf(path: str | os.PathLike[str], registry: ConfRegistry) -> list[ConfBlock]:
    """Read and parse the configuration file at *path*."""
    log.info("load_conf, parsing conf file='%s'.", path)
    try:
        with open(path, encoding="utf-8") as handle:
            lines = handle.readlines()
    except OSError as exc:
        raise ConfError(
            f"open conf file='{path}' failed, please check if the file exist."
        ) from exc
    try:
        return parse_conf_lines(lines, registry)
    except ConfError as exc:
        raise ConfError(f"parse conf file='{path}' failed: {exc}") from exc


def _help_text(commands: Sequence[ConfCommand]) -> str:
    rows = ["option help info:"]
    rows.extend(
        f"-{command.name}, {command.mark}, range: {command.min:.0f}-{command.max:.0f}."
        for command in commands
    )
    return "\n".join(rows)


def parse_argv(argv: Sequence[str], commands: Sequence[ConfCommand], target: Any) -> Any:
    """Apply ``-name value`` pairs from *argv* (without program name) to *target*.

    A single argument is only accepted as ``-h``, which prints the option
    help; both that and any other single argument end with ConfError.
    """
    if len(argv) == 1:
        if remove_marks(argv[0]) == "-h":
            print(_help_text(commands))
            raise ConfError("help requested")
        raise ConfError(f"wrong parameter, '{argv[0]}'.")

    args = iter(argv)
    for arg in args:
        if not arg:
            raise ConfError("wrong parameter, is ''.")
        option = remove_marks(arg)
        if not option.startswith("-"):
            raise ConfError(f"wrong parameter '{option}', the first character must be '-'.")
        name = option[1:]
        command = find_command(name, commands)
        if command is None:
            raise ConfError(f"wrong parameter '{arg}'.")
        try:
            value = remove_marks(next(args))
        except StopIteration:
            raise ConfError(f"parameter '{arg}' has no value.") from None
        try:
            command.apply(value, target)
        except ConfError as exc:
            raise ConfError(
                f"parameter set failed, {exc}, name='{name}', value='{value}'."
            ) from exc
    return target