import logging
from pathlib import Path

import pytest

from koinos_cli import __version__, cli
from koinos_cli.config import CLIConfig


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    monkeypatch.delenv("KOINOS_RPC_URL", raising=False)
    monkeypatch.delenv("KOINOS_RC_LIMIT", raising=False)
    monkeypatch.setattr("koinos_cli.config.DEFAULT_CONFIG_PATH", home / ".koinos-cli.yaml")
    return home


@pytest.fixture
def console_calls(monkeypatch: pytest.MonkeyPatch) -> list:
    calls = []
    monkeypatch.setattr("koinos_cli.console.console_main", lambda parser, env, config: calls.append(env))
    return calls


def test_version(capsys) -> None:
    cli.main(["--version"])

    assert capsys.readouterr().out == f"{__version__}\n"


def test_execute_commands(capsys, console_calls) -> None:
    cli.main(["-x", "nonce 5; nonce", "-x", "payer"])

    assert capsys.readouterr().out == "Nonce set to 5\nNonce: 5\n\nPayer: me\n\n"
    assert console_calls == []


def test_execute_then_rc_files_then_scripts(tmp_path: Path, capsys, console_calls) -> None:
    (tmp_path / "home" / ".koinosrc").write_text("nonce 7\n")
    (tmp_path / "work" / ".koinosrc").write_text("chain_id auto\n")
    script = tmp_path / "script.koinos"
    script.write_text("nonce\nrclimit\n")

    cli.main(["-x", "nonce 3", "-f", str(script)])

    assert capsys.readouterr().out.split("\n") == [
        "Nonce set to 3",
        "",
        "Nonce set to 7",
        "",
        "Chain ID set to auto",
        "",
        "Nonce: 7",
        "",
        "Current rc limit: 100%",
        "",
        "",
    ]


def test_missing_script_is_reported(tmp_path: Path, capsys, console_calls) -> None:
    missing = tmp_path / "missing.koinos"

    cli.main(["-f", str(missing)])

    assert capsys.readouterr().out == f"file {missing} not found\n\n"


def test_interactive_when_nothing_to_execute(console_calls) -> None:
    cli.main([])

    assert len(console_calls) == 1
    assert not console_calls[0].is_online()


def test_force_interactive_after_execute(capsys, console_calls) -> None:
    cli.main(["-x", "nonce 1", "-i", "--rpc", "http://localhost:8080"])

    assert capsys.readouterr().out == "Nonce set to 1\n\n"
    assert len(console_calls) == 1
    assert console_calls[0].client.url == "http://localhost:8080"


def test_invalid_configuration_exits(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--rpc", "ftp://example.org"])

    assert excinfo.value.code == 1
    assert "error: Invalid RPC endpoint URL" in capsys.readouterr().err


def test_trailing_input_is_warned(capsys, caplog, console_calls) -> None:
    with caplog.at_level(logging.WARNING, logger="koinos_cli.cli"):
        cli.main(["-x", "nonce 5 6"])

    assert capsys.readouterr().out == "Nonce set to 5\n\n"
    assert "Ignored unparsed input" in caplog.text


def test_exit_command_stops_processing(capsys, console_calls) -> None:
    with pytest.raises(SystemExit):
        cli.main(["-x", "nonce 5; exit", "-x", "nonce"])

    assert capsys.readouterr().out == ""


def test_script_files_order() -> None:
    config = CLIConfig(rc_files=["~/.koinosrc", "local.rc"])

    scripts = cli.script_files(config, ["run.koinos"])

    assert scripts == [
        (Path("~/.koinosrc").expanduser(), False),
        (Path("local.rc"), False),
        (Path("run.koinos"), True),
    ]


def test_create_environment_connects_when_configured() -> None:
    parser, env = cli.create_environment(CLIConfig(rpc_url="https://api.example.org"))

    assert env.is_online()
    assert parser.commands is env.command_set
    assert "register_token" in env.command_set
