"""Interactive console built on prompt_toolkit."""

from __future__ import annotations

import logging
import os
from typing import Iterable, List

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import CompleteEvent, Completer, Completion, PathCompleter
from prompt_toolkit.document import Document
from prompt_toolkit.history import FileHistory

from . import __version__
from .cli import run_line
from .config import CLIConfig
from .environment import ExecutionEnvironment
from .parser import COMMAND_TERMINATOR, CommandParser, ParseError, ParseResults
from .registry import ArgType

logger = logging.getLogger(__name__)

ASCII_STATUS = {
    "online": "(online) ",
    "offline": "(offline) ",
    "locked": "(locked) ",
    "unlocked": "(unlocked) ",
    "session": "(session) ",
}

UNICODE_STATUS = {
    "online": "",
    "offline": "\U0001F6AB ",
    "locked": "\U0001F510 ",
    "unlocked": "\U0001F513 ",
    "session": "\U0001F4C4 ",
}


def status_symbols(env_vars: dict[str, str] | None = None) -> dict[str, str]:
    lang = (env_vars if env_vars is not None else os.environ).get("LANG", "").upper()
    return UNICODE_STATUS if "UTF" in lang else ASCII_STATUS


def status_prompt(env: ExecutionEnvironment, symbols: dict[str, str] = ASCII_STATUS) -> str:
    online = symbols["online"] if env.is_online() else symbols["offline"]
    wallet = symbols["unlocked"] if env.is_wallet_open() else symbols["locked"]
    session = symbols["session"] if env.session.is_valid() else ""
    return f"{online}{wallet}{session}> "


def _current_word(text: str) -> str:
    for index in range(len(text) - 1, -1, -1):
        if text[index].isspace() or text[index] == COMMAND_TERMINATOR:
            return text[index + 1:]
    return text


class KoinosCompleter(Completer):
    """Suggest command names or file paths depending on the parse cursor."""

    def __init__(self, parser: CommandParser) -> None:
        self.parser = parser
        self._paths = PathCompleter(expanduser=True)
        self._revision = -1
        self._suggestions: List[tuple[str, str]] = []

    def _command_suggestions(self) -> List[tuple[str, str]]:
        commands = self.parser.commands
        if self._revision != commands.revision:
            self._revision = commands.revision
            self._suggestions = [
                (name, commands.lookup(name).description) for name in commands.list(pretty=False)
            ]
        return self._suggestions

    def _parse(self, text: str) -> ParseResults:
        try:
            return self.parser.parse(text)
        except ParseError as exc:
            return exc.results or ParseResults()

    def get_completions(self, document: Document, complete_event: CompleteEvent) -> Iterable[Completion]:
        text = document.text_before_cursor
        param_type = self._parse(text).metrics().current_param_type
        word = _current_word(text)

        if param_type is ArgType.CMD_NAME:
            for name, description in self._command_suggestions():
                if name.startswith(word):
                    yield Completion(name, start_position=-len(word), display_meta=description)
        elif param_type is ArgType.FILE:
            yield from self._paths.get_completions(Document(word, len(word)), complete_event)


def console_main(parser: CommandParser, env: ExecutionEnvironment, config: CLIConfig) -> None:
    config.history_file.parent.mkdir(parents=True, exist_ok=True)
    session: PromptSession[str] = PromptSession(
        history=FileHistory(str(config.history_file)),
        completer=KoinosCompleter(parser),
    )
    symbols = status_symbols()

    print(f"Koinos CLI {__version__}")
    print('Type "list" for a list of commands, "help <command>" for help on a specific command.')
    print('Type "exit" or press Ctrl-D to exit.')
    env.add_cleanup(lambda: print("Goodbye!"))

    while True:
        try:
            text = session.prompt(lambda: status_prompt(env, symbols))
        except KeyboardInterrupt:
            continue
        except EOFError:
            break
        run_line(parser, env, text)

    env.close()
