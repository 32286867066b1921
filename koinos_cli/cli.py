"""Command line entry point for the Koinos CLI.

Commands given with ``--execute`` run first, then the rc files and any
``--file`` scripts line by line. The interactive console starts when it is
forced or when nothing was given to execute.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Sequence

from . import __version__
from .commands import new_koinos_command_set
from .config import CLIConfig, ConfigurationError, load_cli_config
from .environment import ExecutionEnvironment
from .errors import FileNotFoundCLIError
from .interpreter import InterpretResults, parse_and_interpret
from .parser import CommandParser
from .rpc_client import KoinosRPCClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="koinos-cli", description="Koinos command line wallet")
    parser.add_argument("--rpc", "-r", help="RPC server URL")
    parser.add_argument(
        "--execute", "-x", action="append", default=[], metavar="COMMAND", help="Command to execute"
    )
    parser.add_argument("--file", "-f", action="append", default=[], metavar="PATH", help="File to execute")
    parser.add_argument(
        "--force-interactive",
        "-i",
        action="store_true",
        help="Forces interactive mode. Useful for forcing a prompt when using the execute option",
    )
    parser.add_argument("--version", "-v", action="store_true", help="Display the version")
    parser.add_argument("--config", help="Path to a YAML configuration file")
    parser.add_argument("--verbose", "-V", action="store_true", help="Enable debug logging")
    return parser


def run_line(parser: CommandParser, env: ExecutionEnvironment, line: str) -> InterpretResults:
    results = parse_and_interpret(parser, env, line)
    if results.halted:
        logger.warning("Ignored unparsed input after the last command in: %s", line.strip())
    results.print()
    return results


def run_file(parser: CommandParser, env: ExecutionEnvironment, path: Path) -> None:
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            run_line(parser, env, line)


def script_files(config: CLIConfig, files: Iterable[str]) -> list[tuple[Path, bool]]:
    """Return scripts to run with a flag telling whether a missing file is an error."""

    scripts = [(Path(name).expanduser(), False) for name in config.rc_files]
    scripts.extend((Path(name).expanduser(), True) for name in files)
    return scripts


def create_environment(config: CLIConfig) -> tuple[CommandParser, ExecutionEnvironment]:
    commands = new_koinos_command_set()
    client = KoinosRPCClient(config.rpc_url) if config.rpc_url else None
    env = ExecutionEnvironment(client=client, command_set=commands, config=config)
    return CommandParser(commands), env


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_cli_config(config_path=args.config, overrides={"rpc_url": args.rpc})
    except ConfigurationError as exc:
        parser.exit(1, f"error: {exc}\n")

    command_parser, env = create_environment(config)
    try:
        for command in args.execute:
            run_line(command_parser, env, command)

        for path, required in script_files(config, args.file):
            if not path.is_file():
                if required:
                    print(FileNotFoundCLIError(str(path)))
                    print("")
                continue
            try:
                run_file(command_parser, env, path)
            except OSError as exc:
                parser.exit(1, f"error: {exc}\n")

        if args.force_interactive or not (args.execute or args.file):
            from .console import console_main

            console_main(command_parser, env, config)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    finally:
        env.close()


if __name__ == "__main__":
    main(sys.argv[1:])
