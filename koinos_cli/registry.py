"""Command declarations and the mutable set of known commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Sequence

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .parser import CommandParseResult

logger = logging.getLogger(__name__)


class ArgType(Enum):
    ADDRESS = "address"
    STRING = "string"
    AMOUNT = "amount"
    CMD_NAME = "cmdname"
    INT = "int"
    UINT = "uint"
    BYTES = "bytes"
    BOOL = "bool"
    HEX = "hex"
    FILE = "file"
    NO_ARG = "none"


@dataclass(frozen=True)
class CommandArg:
    name: str
    arg_type: ArgType
    optional: bool = False

    def __str__(self) -> str:
        body = f"{self.name}:{self.arg_type.value}"
        return f"[{body}]" if self.optional else f"<{body}>"


CommandFactory = Callable[["CommandParseResult"], Any]


@dataclass(frozen=True)
class CommandDeclaration:
    """Immutable description of a command and how to build it.

    ``factory`` receives the parse result and returns an object exposing
    ``execute(env)``. Required arguments must precede optional ones.
    """

    name: str
    description: str
    factory: CommandFactory
    args: Sequence[CommandArg] = field(default_factory=tuple)
    hidden: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        seen_optional = False
        for arg in self.args:
            if arg.optional:
                seen_optional = True
            elif seen_optional:
                raise ValueError(
                    f"command {self.name}: required argument {arg.name} follows an optional argument"
                )

    def __str__(self) -> str:
        return " ".join([self.name, *(str(arg) for arg in self.args)])


class CommandSet:
    """Ordered registry of command declarations with a revision counter."""

    def __init__(self) -> None:
        self.commands: List[CommandDeclaration] = []
        self.name2command: Dict[str, CommandDeclaration] = {}
        self.revision = 0

    def add_command(self, decl: CommandDeclaration) -> None:
        if decl.name in self.name2command:
            logger.debug("Replacing command declaration %s", decl.name)
        self.commands.append(decl)
        self.name2command[decl.name] = decl
        self.revision += 1

    def lookup(self, name: str) -> CommandDeclaration | None:
        return self.name2command.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.name2command

    def list(self, pretty: bool = False) -> List[str]:
        """Return the sorted names of visible commands, optionally with descriptions."""

        visible = sorted(
            {decl.name: decl for decl in self.name2command.values() if not decl.hidden}.items()
        )
        if not pretty:
            return [name for name, _ in visible]
        width = max((len(name) for name, _ in visible), default=0)
        return [f"{name:<{width}} - {decl.description}" for name, decl in visible]
