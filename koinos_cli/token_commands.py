"""Commands for tokens following the standard Koinos token interface.

``register_token`` adds ``<alias>.balance_of``, ``<alias>.total_supply`` and
``<alias>.transfer`` for a token contract. The symbol and precision are read
from the contract unless both are given on the command line.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError

from .contract_commands import validate_alias
from .descriptors import OPTIONS_FILE_NAME, BytesType, TypeRegistry
from .encoding import base58_encode, decimal_to_satoshi, decode_address, format_decimal, parse_decimal, satoshi_to_decimal
from .environment import require_submit_path, submit_or_stage
from .errors import ContractError, InvalidAmountError, KoinosCLIError, OfflineError
from .interpreter import ExecutionResult
from .parser import CommandParseResult
from .protocol import FDP, call_contract_operation, define_message
from .registry import ArgType, CommandArg, CommandDeclaration

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .environment import ExecutionEnvironment
    from .rpc_client import KoinosRPCClient

logger = logging.getLogger(__name__)

BALANCE_OF_ENTRY = 0x5C721497
TRANSFER_ENTRY = 0x27F576CA
TOTAL_SUPPLY_ENTRY = 0xB0DA3934
SYMBOL_ENTRY = 0xB76A7CA1
DECIMALS_ENTRY = 0xEE80FD2F


def _token_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="koinos/contracts/token/token.proto",
        package="koinos.contracts.token",
        syntax="proto3",
        dependency=[OPTIONS_FILE_NAME],
    )
    address = {"btype": BytesType.ADDRESS}
    for name in ("symbol_arguments", "decimals_arguments", "total_supply_arguments"):
        define_message(file_proto, name, [])
    define_message(file_proto, "symbol_result", [("value", 1, FDP.TYPE_STRING, {})])
    define_message(file_proto, "decimals_result", [("value", 1, FDP.TYPE_UINT32, {})])
    define_message(file_proto, "total_supply_result", [("value", 1, FDP.TYPE_UINT64, {})])
    define_message(file_proto, "balance_of_arguments", [("owner", 1, FDP.TYPE_BYTES, address)])
    define_message(file_proto, "balance_of_result", [("value", 1, FDP.TYPE_UINT64, {})])
    define_message(
        file_proto,
        "transfer_arguments",
        [
            ("from", 1, FDP.TYPE_BYTES, address),
            ("to", 2, FDP.TYPE_BYTES, address),
            ("value", 3, FDP.TYPE_UINT64, {}),
        ],
    )
    return file_proto


TOKEN_TYPES = TypeRegistry([_token_file()])


def _token_message(name: str) -> Any:
    return TOKEN_TYPES.message_class(f"koinos.contracts.token.{name}")


def _read(client: "KoinosRPCClient", contract_id: bytes, entry_point: int, arguments: Any, result_name: str) -> Any:
    response = client.read_contract(contract_id, entry_point, arguments.SerializeToString())
    try:
        return _token_message(result_name).FromString(response.result)
    except DecodeError as exc:
        raise KoinosCLIError(f"could not decode {result_name}: {exc}") from exc


def retrieve_symbol(client: "KoinosRPCClient", contract_id: bytes) -> str:
    return _read(client, contract_id, SYMBOL_ENTRY, _token_message("symbol_arguments")(), "symbol_result").value


def retrieve_decimals(client: "KoinosRPCClient", contract_id: bytes) -> int:
    return _read(client, contract_id, DECIMALS_ENTRY, _token_message("decimals_arguments")(), "decimals_result").value


def retrieve_balance(client: "KoinosRPCClient", contract_id: bytes, address: bytes) -> int:
    arguments = _token_message("balance_of_arguments")(owner=address)
    return _read(client, contract_id, BALANCE_OF_ENTRY, arguments, "balance_of_result").value


@dataclass(frozen=True)
class TokenInfo:
    name: str
    address: str
    symbol: str
    precision: int

    @property
    def contract_id(self) -> bytes:
        return decode_address(self.address)

    def format_amount(self, amount: int) -> str:
        return f"{format_decimal(satoshi_to_decimal(amount, self.precision))} {self.symbol}"


class RegisterTokenCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.name = result.args["name"]
        self.address = result.args["address"]
        self.symbol = result.args.get("symbol")
        self.precision = result.args.get("precision")

    def execute(self, env: "ExecutionEnvironment") -> ExecutionResult:
        if (self.symbol is None or self.precision is None) and not env.is_online():
            raise KoinosCLIError(f"{OfflineError()}: cannot retrieve symbol and precision")
        if self.name in env.contracts:
            raise ContractError(f"token {self.name} already exists")
        validate_alias(self.name)
        contract_id = decode_address(self.address)

        symbol = self.symbol
        if symbol is None:
            symbol = retrieve_symbol(env.require_online(), contract_id)

        if self.precision is None:
            precision = retrieve_decimals(env.require_online(), contract_id)
        else:
            try:
                precision = int(self.precision)
            except ValueError as exc:
                raise KoinosCLIError(f"invalid precision {self.precision}") from exc
            if precision < 0:
                raise KoinosCLIError(f"invalid precision {self.precision}")

        token = TokenInfo(self.name, self.address, symbol, precision)
        env.add_contract(self.name, token)
        if env.command_set is not None:
            for decl in token_declarations(token):
                env.command_set.add_command(decl)

        return ExecutionResult(f"Token '{self.name}' at address {self.address} registered")


def token_declarations(token: TokenInfo) -> list[CommandDeclaration]:
    return [
        CommandDeclaration(
            f"{token.name}.balance_of",
            "Checks the balance at an address",
            functools.partial(TokenBalanceCommand, token=token),
            [CommandArg("address", ArgType.ADDRESS, optional=True)],
        ),
        CommandDeclaration(
            f"{token.name}.total_supply",
            "Checks the token total supply",
            functools.partial(TokenTotalSupplyCommand, token=token),
        ),
        CommandDeclaration(
            f"{token.name}.transfer",
            "Transfers the token",
            functools.partial(TokenTransferCommand, token=token),
            [CommandArg("to", ArgType.ADDRESS), CommandArg("amount", ArgType.AMOUNT)],
        ),
    ]


class TokenBalanceCommand:
    def __init__(self, result: CommandParseResult, token: TokenInfo) -> None:
        self.address = result.args.get("address")
        self.token = token

    def execute(self, env: "ExecutionEnvironment") -> ExecutionResult:
        client = env.require_online()
        if self.address is None:
            address = env.require_wallet().address_bytes
        else:
            address = decode_address(self.address)

        balance = retrieve_balance(client, self.token.contract_id, address)
        return ExecutionResult(self.token.format_amount(balance))


class TokenTotalSupplyCommand:
    def __init__(self, result: CommandParseResult, token: TokenInfo) -> None:
        self.token = token

    def execute(self, env: "ExecutionEnvironment") -> ExecutionResult:
        client = env.require_online()
        supply = _read(
            client,
            self.token.contract_id,
            TOTAL_SUPPLY_ENTRY,
            _token_message("total_supply_arguments")(),
            "total_supply_result",
        ).value
        return ExecutionResult(self.token.format_amount(supply))


class TokenTransferCommand:
    def __init__(self, result: CommandParseResult, token: TokenInfo) -> None:
        self.to = result.args["to"]
        self.amount = result.args["amount"]
        self.token = token

    def execute(self, env: "ExecutionEnvironment") -> ExecutionResult:
        key = require_submit_path(env)
        token = self.token

        amount = parse_decimal(self.amount)
        value = decimal_to_satoshi(amount, token.precision)
        if value <= 0:
            minimal = format_decimal(satoshi_to_decimal(1, token.precision))
            raise InvalidAmountError(
                f"cannot transfer {self.amount} {token.symbol}, amount should be greater than "
                f"minimal {minimal} (1e-{token.precision}) {token.symbol}"
            )

        if env.is_online():
            balance = retrieve_balance(env.require_online(), token.contract_id, key.address_bytes)
            if balance < value:
                raise InvalidAmountError(
                    f"insufficient balance {token.format_amount(balance)} on opened wallet "
                    f"{base58_encode(key.address_bytes)}, cannot transfer {self.amount} {token.symbol}"
                )

        to_address = decode_address(self.to)
        arguments = _token_message("transfer_arguments")(to=to_address, value=value)
        # "from" is a Python keyword
        setattr(arguments, "from", key.address_bytes)
        operation = call_contract_operation(
            token.contract_id, TRANSFER_ENTRY, arguments.SerializeToString(deterministic=True)
        )

        description = f"{self.amount} {token.symbol} to {self.to}"
        result = ExecutionResult(f"Transferring {description}")
        return submit_or_stage(env, result, operation, f"Transfer {description}", "cannot transfer")
