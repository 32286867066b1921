import pytest

from koinos_cli.encoding import decode_address
from koinos_cli.interpreter import parse_and_interpret
from koinos_cli.rpc_client import RPCError
from koinos_cli.token_commands import (
    BALANCE_OF_ENTRY,
    DECIMALS_ENTRY,
    SYMBOL_ENTRY,
    TOKEN_TYPES,
    TOTAL_SUPPLY_ENTRY,
    TRANSFER_ENTRY,
    TokenInfo,
)

TOKEN_ADDRESS = "15DJN4a8SgrbGhhGksSBASiSYjGnMU8dGL"
ADDRESS = "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
OTHER_ADDRESS = "1GbiqgoMhvkztWytizNPn8g5SvXrrYHQQg"


def run(parser, env, text: str) -> list[str]:
    return parse_and_interpret(parser, env, text).results


def token_message(name: str, **fields):
    return TOKEN_TYPES.message_class(f"koinos.contracts.token.{name}")(**fields)


@pytest.fixture
def koin_node(stub_client):
    stub_client.reads[SYMBOL_ENTRY] = token_message("symbol_result", value="KOIN").SerializeToString()
    stub_client.reads[DECIMALS_ENTRY] = token_message("decimals_result", value=8).SerializeToString()
    stub_client.reads[BALANCE_OF_ENTRY] = token_message("balance_of_result", value=150_000_000).SerializeToString()
    stub_client.reads[TOTAL_SUPPLY_ENTRY] = token_message(
        "total_supply_result", value=10**17
    ).SerializeToString()
    return stub_client


def test_format_amount() -> None:
    token = TokenInfo("koin", TOKEN_ADDRESS, "KOIN", 8)

    assert token.format_amount(150_000_000) == "1.5 KOIN"
    assert token.format_amount(0) == "0 KOIN"
    assert token.contract_id == decode_address(TOKEN_ADDRESS)


def test_register_reads_symbol_and_precision(command_parser, online_env, koin_node) -> None:
    lines = run(command_parser, online_env, f"register_token koin {TOKEN_ADDRESS}")

    assert lines == [f"Token 'koin' at address {TOKEN_ADDRESS} registered"]
    token = online_env.contracts["koin"]
    assert (token.symbol, token.precision) == ("KOIN", 8)
    for command in ("koin.balance_of", "koin.total_supply", "koin.transfer"):
        assert command in online_env.command_set


def test_register_offline_needs_symbol_and_precision(command_parser, command_env) -> None:
    assert run(command_parser, command_env, f"register_token koin {TOKEN_ADDRESS}") == [
        "not connected to a node, use connect first: cannot retrieve symbol and precision"
    ]
    assert run(command_parser, command_env, f"register_token koin {TOKEN_ADDRESS} KOIN x") == ["invalid precision x"]
    assert run(command_parser, command_env, f"register_token koin {TOKEN_ADDRESS} KOIN 8") == [
        f"Token 'koin' at address {TOKEN_ADDRESS} registered"
    ]
    assert run(command_parser, command_env, f"register_token koin {TOKEN_ADDRESS} KOIN 8") == [
        "token koin already exists"
    ]
    assert run(command_parser, command_env, f"register_token bad.name {TOKEN_ADDRESS} KOIN 8") == [
        "invalid characters in contract name bad.name"
    ]


def test_balance_and_total_supply(command_parser, online_env, koin_node) -> None:
    run(command_parser, online_env, f"register_token koin {TOKEN_ADDRESS}")

    assert run(command_parser, online_env, "koin.balance_of") == ["1.5 KOIN"]
    assert run(command_parser, online_env, f"koin.balance_of {OTHER_ADDRESS}") == ["1.5 KOIN"]
    assert run(command_parser, online_env, "koin.total_supply") == ["1000000000 KOIN"]
    assert koin_node.calls.count(f"read_contract:{BALANCE_OF_ENTRY:#x}") == 2


def test_transfer(command_parser, online_env, koin_node) -> None:
    run(command_parser, online_env, f"register_token koin {TOKEN_ADDRESS}")

    lines = run(command_parser, online_env, f"koin.transfer {OTHER_ADDRESS} 1.25")

    assert lines[0] == f"Transferring 1.25 KOIN to {OTHER_ADDRESS}"
    call = koin_node.submitted[0].operations[0].call_contract
    assert call.entry_point == TRANSFER_ENTRY
    assert call.contract_id == decode_address(TOKEN_ADDRESS)
    arguments = TOKEN_TYPES.message_class("koinos.contracts.token.transfer_arguments").FromString(call.args)
    assert getattr(arguments, "from") == decode_address(ADDRESS)
    assert arguments.to == decode_address(OTHER_ADDRESS)
    assert arguments.value == 125_000_000


def test_transfer_amount_checks(command_parser, online_env, koin_node) -> None:
    run(command_parser, online_env, f"register_token koin {TOKEN_ADDRESS}")

    assert run(command_parser, online_env, f"koin.transfer {OTHER_ADDRESS} 0.000000001") == [
        "cannot transfer 0.000000001 KOIN, amount should be greater than minimal 0.00000001 (1e-8) KOIN"
    ]
    assert run(command_parser, online_env, f"koin.transfer {OTHER_ADDRESS} 2") == [
        f"insufficient balance 1.5 KOIN on opened wallet {ADDRESS}, cannot transfer 2 KOIN"
    ]
    assert koin_node.submitted == []


def test_offline_transfer_in_session_skips_balance_check(command_parser, command_env, wallet_key) -> None:
    command_env.open_wallet(wallet_key)
    run(command_parser, command_env, f"register_token tkn {TOKEN_ADDRESS} TKN 2; session begin")

    lines = run(command_parser, command_env, f"tkn.transfer {OTHER_ADDRESS} 10")

    assert lines == [f"Transferring 10 TKN to {OTHER_ADDRESS}", "Adding operation to transaction session"]
    assert command_env.session.get_operations()[0].log_message == f"Transfer 10 TKN to {OTHER_ADDRESS}"


def test_transfer_failure(command_parser, online_env, koin_node) -> None:
    run(command_parser, online_env, f"register_token koin {TOKEN_ADDRESS}")
    koin_node.submit_error = RPCError(-32603, "reverted", ["transfer failed"])

    assert run(command_parser, online_env, f"koin.transfer {OTHER_ADDRESS} 1") == [
        "cannot transfer, reverted",
        "transfer failed",
    ]
