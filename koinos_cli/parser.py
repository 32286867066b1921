"""Command line parser turning raw input into typed command invocations.

The parser is a small recursive-descent tokenizer: each command name is
looked up in a :class:`~koinos_cli.registry.CommandSet` and its declared
arguments are matched one at a time by type-specific sub-grammars. Parse
errors carry the results gathered before the failure so that interactive
callers can still render completions or usage for the last command.
"""

from __future__ import annotations

import logging
import re
import string
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from .registry import ArgType, CommandDeclaration, CommandSet

logger = logging.getLogger(__name__)

COMMAND_TERMINATOR = ";"

_COMMAND_NAME_RE = re.compile(r"([a-zA-Z0-9_]+\.)?[a-zA-Z0-9_]+")
_SKIP_RE = re.compile(r"\s*")
_ADDRESS_RE = re.compile(r"[1-9A-HJ-NP-Za-km-z]+")
_SIMPLE_STRING_RE = re.compile(r"[^\s\"';]+")
_AMOUNT_RE = re.compile(r"(\d+(\.\d*)?)|(\.\d+)")
_UINT_RE = re.compile(r"[+]?[0-9]+")
_INT_RE = re.compile(r"[+-]?[0-9]+")
_BYTES_RE = re.compile(r"[A-Fa-f0-9\-_=]+")
_BOOL_RE = re.compile(r"(?P<false>false|0)|(?P<true>true|1)", re.IGNORECASE)
_HEX_RE = re.compile(r"0x[0-9a-fA-F]+")


class Termination(Enum):
    NONE = 0
    INPUT = 1
    COMMAND = 2


class ParseError(ValueError):
    """Base class for parse failures; ``results`` holds the partial parse."""

    kind = "parse error"

    def __init__(self, detail: str = "", results: "ParseResults | None" = None) -> None:
        message = f"{self.kind}: {detail}" if detail else self.kind
        super().__init__(message)
        self.detail = detail
        self.results = results if results is not None else ParseResults()


class InvalidCommandNameError(ParseError):
    kind = "invalid command name"


class EmptyCommandNameError(ParseError):
    kind = "empty command name"


class UnknownCommandError(ParseError):
    kind = "unknown command"


class MissingParamError(ParseError):
    kind = "missing parameter"


class InvalidParamError(ParseError):
    kind = "invalid value given for parameter"


@dataclass
class CommandParseResult:
    command_name: str
    decl: CommandDeclaration | None = None
    args: Dict[str, str | None] = field(default_factory=dict)
    current_arg: int = -1
    termination: Termination = Termination.NONE

    def instantiate(self) -> Any:
        if self.decl is None:
            raise UnknownCommandError(self.command_name)
        return self.decl.factory(self)


@dataclass(frozen=True)
class ParseMetrics:
    current_result_index: int
    current_arg: int
    current_param_type: ArgType


class ParseResults(List[CommandParseResult]):
    """Ordered results of a single :meth:`CommandParser.parse` call."""

    def metrics(self) -> ParseMetrics:
        """Locate the logical cursor for interactive completion."""

        if not self:
            return ParseMetrics(0, -1, ArgType.CMD_NAME)

        index = len(self) - 1
        last = self[index]
        if last.termination is Termination.COMMAND:
            return ParseMetrics(index + 1, -1, ArgType.CMD_NAME)

        arg = last.current_arg
        if arg < 0:
            param_type = ArgType.CMD_NAME
        elif last.decl is None or arg >= len(last.decl.args):
            param_type = ArgType.NO_ARG
        else:
            param_type = last.decl.args[arg].arg_type
        return ParseMetrics(index, arg, param_type)


Matcher = Callable[[str], Tuple[str, int]]


class CommandParser:
    """Parse command lines against a mutable :class:`CommandSet`."""

    def __init__(self, commands: CommandSet) -> None:
        self.commands = commands
        self._matchers: Dict[ArgType, Matcher] = {
            ArgType.ADDRESS: _regex_matcher(_ADDRESS_RE),
            ArgType.STRING: _parse_string,
            ArgType.AMOUNT: _regex_matcher(_AMOUNT_RE),
            ArgType.CMD_NAME: _parse_string,
            ArgType.FILE: _parse_string,
            ArgType.UINT: _regex_matcher(_UINT_RE),
            ArgType.INT: _regex_matcher(_INT_RE),
            ArgType.BYTES: _regex_matcher(_BYTES_RE),
            ArgType.BOOL: _parse_bool,
            ArgType.HEX: _regex_matcher(_HEX_RE),
        }

    def parse(self, text: str) -> ParseResults:
        """Parse ``text`` into one result per command.

        Raises a :class:`ParseError` subclass whose ``results`` attribute
        holds every invocation parsed before (and including) the failure.
        """

        results = ParseResults()
        remaining = _skip_separators(text)

        while remaining:
            try:
                result, remaining = self._parse_next_command(remaining, results)
            except ParseError as exc:
                exc.results = results
                raise
            results.append(result)
            if result.termination is not Termination.COMMAND:
                break

        return results

    def _parse_next_command(
        self, text: str, results: ParseResults
    ) -> Tuple[CommandParseResult, str]:
        name = _match_command_name(text, after_command=bool(results))
        remaining = text[len(name):]

        result = CommandParseResult(command_name=name)
        decl = self.commands.lookup(name)
        if decl is None:
            _parse_skip(remaining, result, inc_args=True)
            results.append(result)
            raise UnknownCommandError(name)
        result.decl = decl

        try:
            remaining = self._parse_args(remaining, result)
        except ParseError:
            results.append(result)
            raise

        if result.termination is Termination.NONE:
            remaining, result.termination, _ = _parse_skip(remaining, result, inc_args=False)
        return result, remaining

    def _parse_args(self, text: str, result: CommandParseResult) -> str:
        assert result.decl is not None
        args = result.decl.args
        for index, arg in enumerate(args):
            text, termination, skipped = _parse_skip(text, result, inc_args=True)
            if termination is not Termination.NONE:
                if not arg.optional:
                    raise MissingParamError(arg.name)
                for remaining_arg in args[index:]:
                    result.args[remaining_arg.name] = None
                result.termination = termination
                return text

            # Argument grammars are not self-delimiting
            if not skipped:
                raise InvalidParamError(arg.name)

            try:
                value, consumed = self._matchers[arg.arg_type](text)
            except _NoMatch as exc:
                raise InvalidParamError(f"{arg.name}{exc.suffix}") from None
            text = text[consumed:]
            result.args[arg.name] = value
        return text


def parse_command_name(text: str) -> str:
    """Validate that ``text`` is exactly one well-formed command name."""

    match = _COMMAND_NAME_RE.match(text)
    if match is None or match.end() != len(text):
        raise InvalidCommandNameError(text)
    return text


class _NoMatch(Exception):
    def __init__(self, suffix: str = "") -> None:
        super().__init__(suffix)
        self.suffix = suffix


def _match_command_name(text: str, *, after_command: bool) -> str:
    match = _COMMAND_NAME_RE.match(text)
    if match is None:
        if after_command and text.startswith(COMMAND_TERMINATOR):
            raise EmptyCommandNameError()
        raise InvalidCommandNameError(text)
    return match.group(0)


def _skip_separators(text: str) -> str:
    return text.lstrip(COMMAND_TERMINATOR + string.whitespace)


def _parse_skip(
    text: str, result: CommandParseResult | None, *, inc_args: bool
) -> Tuple[str, Termination, bool]:
    """Skip whitespace, at most one terminator, then whitespace again."""

    skipped = False
    termination = Termination.NONE

    whitespace = _SKIP_RE.match(text).group(0)
    if whitespace:
        skipped = True
        text = text[len(whitespace):]

    if not text:
        termination = Termination.INPUT
    elif text[0] == COMMAND_TERMINATOR:
        termination = Termination.COMMAND
        text = text[1:]

    whitespace = _SKIP_RE.match(text).group(0)
    if whitespace:
        skipped = True
        text = text[len(whitespace):]

    if skipped and inc_args and result is not None:
        result.current_arg += 1
    return text, termination, skipped


def _regex_matcher(pattern: re.Pattern[str]) -> Matcher:
    def matcher(text: str) -> Tuple[str, int]:
        match = pattern.match(text)
        if match is None:
            raise _NoMatch()
        return match.group(0), match.end()

    return matcher


def _parse_bool(text: str) -> Tuple[str, int]:
    match = _BOOL_RE.match(text)
    if match is None:
        raise _NoMatch()
    value = "false" if match.group("false") is not None else "true"
    return value, match.end()


def _parse_string(text: str) -> Tuple[str, int]:
    if text[0] in "\"'":
        return _parse_quoted_string(text)
    match = _SIMPLE_STRING_RE.match(text)
    if match is None:
        raise _NoMatch()
    return match.group(0), match.end()


def _parse_quoted_string(text: str) -> Tuple[str, int]:
    quote = text[0]
    output: list[str] = []
    escape = False

    for index, char in enumerate(text[1:]):
        if escape:
            escape = False
            if char in "\\\"'":
                output.append(char)
                continue
            # Unknown escapes keep their backslash
            output.append("\\")

        if char == "\\":
            escape = True
            continue
        if char == quote:
            return "".join(output), index + 2
        output.append(char)

    raise _NoMatch(" (missing closing quote)")
