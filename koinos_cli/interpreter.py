"""Run parsed command invocations against an execution environment."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Protocol

from google.protobuf.message import DecodeError

from .errors import KoinosCLIError
from .parser import CommandParser, ParseError, ParseResults, Termination
from .rpc_client import RPCError, RPCTransportError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .environment import ExecutionEnvironment

logger = logging.getLogger(__name__)

LIST_HINT = 'Type "list" for a list of commands.'

# Failures reported as result lines instead of aborting the batch
COMMAND_ERRORS = (KoinosCLIError, RPCError, RPCTransportError, DecodeError, ValueError, OSError)


class ExecutionResult:
    def __init__(self, *messages: str) -> None:
        self.messages: List[str] = list(messages)

    def add_message(self, *messages: str) -> None:
        self.messages.extend(messages)


class Command(Protocol):
    def execute(self, env: "ExecutionEnvironment") -> ExecutionResult:
        ...


@dataclass
class InterpretResults:
    """Output lines of one input line; ``halted`` marks leftover, unparsed input."""

    results: List[str] = field(default_factory=list)
    halted: bool = False

    def add_result(self, *lines: str) -> None:
        self.results.extend(lines)

    def print(self) -> None:
        for line in self.results:
            print(line)
        if self.results:
            print("")


def interpret(results: ParseResults, env: "ExecutionEnvironment") -> InterpretResults:
    """Execute every invocation in order, collecting messages or errors."""

    output = InterpretResults()
    for invocation in results:
        try:
            command = invocation.instantiate()
            result = command.execute(env)
        except COMMAND_ERRORS as exc:
            logger.debug("Command %s failed", invocation.command_name, exc_info=True)
            output.add_result(str(exc), *getattr(exc, "details", []))
        else:
            output.add_result(*result.messages)

    if results and results[-1].termination is Termination.NONE:
        output.halted = True
    return output


def parse_and_interpret(parser: CommandParser, env: "ExecutionEnvironment", text: str) -> InterpretResults:
    try:
        results = parser.parse(text)
    except ParseError as exc:
        output = InterpretResults()
        output.add_result(str(exc))
        partial = exc.results
        index = partial.metrics().current_result_index
        if index < len(partial) and partial[index].decl is not None:
            output.add_result(f"Usage: {partial[index].decl}")
        else:
            output.add_result(LIST_HINT)
        return output

    return interpret(results, env)
