"""Built-in commands of the Koinos command line client.

Every command is a small class built from a parse result by its
declaration's factory and executed against an
:class:`~koinos_cli.environment.ExecutionEnvironment`. Commands that change
chain state go through :func:`~koinos_cli.environment.submit_or_stage` so
they are staged when a transaction session is active.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from pathlib import Path
from typing import Optional

from .config import ConfigurationError, parse_rc_limit
from .contract_commands import RegisterCommand
from .encoding import (
    KOIN_PRECISION,
    b64_decode_any,
    b64url_decode,
    b64url_encode,
    base58_encode,
    decode_address,
    format_decimal,
    parse_decimal,
    parse_entry_point,
    satoshi_to_decimal,
)
from .environment import ExecutionEnvironment, require_submit_path, submit_or_stage
from .errors import (
    FileNotFoundCLIError,
    InvalidABIError,
    KoinosCLIError,
    OfflineError,
    WalletExistsError,
)
from .interpreter import ExecutionResult
from .keys import KoinosKey
from .parser import CommandParseResult, UnknownCommandError
from .protocol import (
    SYSTEM_CALL_IDS,
    call_contract_operation,
    format_receipt,
    set_system_call_operation,
    set_system_contract_operation,
    sign_transaction,
    transaction_from_bytes,
    transaction_to_b64,
    transaction_to_json,
    upload_contract_operation,
)
from .registry import ArgType, CommandArg, CommandDeclaration, CommandSet
from .rpc_client import KoinosRPCClient, RPCError, RPCTransportError
from .token_commands import RegisterTokenCommand
from .wallet import create_wallet_file, get_password, read_wallet_file

logger = logging.getLogger(__name__)


def _decode_entry_point(value: str) -> int:
    try:
        return parse_entry_point(value)
    except ValueError as exc:
        raise KoinosCLIError(str(exc)) from exc


def _account_address(env: ExecutionEnvironment, address: Optional[str]) -> bytes:
    if address is None:
        return env.require_wallet().address_bytes
    return decode_address(address)


# Wallet ----------------------------------------------------------------------


class AddressCommand:
    def __init__(self, result: CommandParseResult) -> None:
        pass

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        key = env.require_wallet()
        return ExecutionResult(f"Wallet address: {key.address}")


class PrivateCommand:
    def __init__(self, result: CommandParseResult) -> None:
        pass

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        key = env.require_wallet()
        return ExecutionResult(f"Private key: {key.wif()}")


class PublicCommand:
    def __init__(self, result: CommandParseResult) -> None:
        pass

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        key = env.require_wallet()
        return ExecutionResult(f"Public key: {key.public_b64()}")


class CloseCommand:
    def __init__(self, result: CommandParseResult) -> None:
        pass

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        env.require_wallet()
        env.close_wallet()
        return ExecutionResult("Wallet closed")


class GenerateKeyCommand:
    def __init__(self, result: CommandParseResult) -> None:
        pass

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        key = KoinosKey.generate()
        return ExecutionResult(
            "New key generated\nThis is only shown once, make sure to record this information\n---",
            f"Address: {key.address}",
            f"Public : {key.public_b64()}",
            f"Private: {key.wif()}",
        )


class CreateCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.filename = result.args["filename"]
        self.password = result.args.get("password")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        if Path(self.filename).exists():
            raise WalletExistsError(self.filename)
        password = get_password(self.password)
        key = KoinosKey.generate()
        create_wallet_file(self.filename, password, key)
        env.open_wallet(key)
        return ExecutionResult(
            f"Created and opened new wallet: {self.filename}", f"Address: {key.address}"
        )


class ImportCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.private_key = result.args["private-key"]
        self.filename = result.args["filename"]
        self.password = result.args.get("password")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        if Path(self.filename).exists():
            raise WalletExistsError(self.filename)
        key = KoinosKey.from_wif(self.private_key)
        password = get_password(self.password)
        create_wallet_file(self.filename, password, key)
        env.open_wallet(key)
        return ExecutionResult(
            f"Created and opened new wallet: {self.filename}", f"Address: {key.address}"
        )


class OpenCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.filename = result.args["filename"]
        self.password = result.args.get("password")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        password = get_password(self.password)
        key = read_wallet_file(self.filename, password)
        env.open_wallet(key)
        return ExecutionResult(f"Opened wallet: {self.filename}")


# Connection ------------------------------------------------------------------


class ConnectCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.url = result.args["url"]

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        env.connect(KoinosRPCClient(self.url))
        return ExecutionResult(f"Connected to endpoint {self.url}")


class DisconnectCommand:
    def __init__(self, result: CommandParseResult) -> None:
        pass

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        env.require_online()
        env.disconnect()
        return ExecutionResult("Disconnected")


# Information -----------------------------------------------------------------


class HelpCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.command = result.args["command"]

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        decl = env.command_set.lookup(self.command) if env.command_set is not None else None
        if decl is None:
            raise UnknownCommandError(f"cannot show help for {self.command}")
        return ExecutionResult(decl.description, f"Usage: {decl}")


class ListCommand:
    def __init__(self, result: CommandParseResult) -> None:
        pass

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        if env.command_set is None:
            return ExecutionResult()
        return ExecutionResult(*env.command_set.list(pretty=True))


class AccountRcCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.address = result.args.get("address")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        client = env.require_online()
        rc = client.get_account_rc(_account_address(env, self.address))
        return ExecutionResult(f"{rc // 10**KOIN_PRECISION}.{rc % 10**KOIN_PRECISION:08d} rc")


class AccountNonceCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.address = result.args.get("address")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        client = env.require_online()
        return ExecutionResult(str(client.get_account_nonce(_account_address(env, self.address))))


class SleepCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.seconds = parse_decimal(result.args["seconds"])

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        time.sleep(float(self.seconds))
        return ExecutionResult(f"Slept for {format_decimal(self.seconds)}s")


class ExitCommand:
    def __init__(self, result: CommandParseResult) -> None:
        pass

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        env.close()
        raise SystemExit(0)


# Transaction settings --------------------------------------------------------


class PayerCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.payer = result.args.get("payer")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        if self.payer is not None:
            env.set_payer(self.payer)
            return ExecutionResult(f"Payer set to {env.payer}")

        if not env.is_self_paying():
            return ExecutionResult(f"Payer: {env.payer}")
        if env.is_wallet_open():
            return ExecutionResult(f"Payer: me ({base58_encode(env.get_payer_address())})")
        return ExecutionResult("Payer: me")


class NonceCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.nonce = result.args.get("nonce")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        if self.nonce is not None:
            env.set_nonce(self.nonce)
            return ExecutionResult(f"Nonce set to {env.nonce_mode}")

        if not env.is_nonce_auto():
            return ExecutionResult(f"Nonce: {env.nonce_mode}")
        if env.is_online() and env.is_wallet_open():
            nonce = env.get_next_nonce(env.get_payer_address(), update=False)
            return ExecutionResult(f"Nonce: auto (next nonce: {nonce})")
        return ExecutionResult("Nonce: auto")


class ChainIDCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.chain_id = result.args.get("id")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        if self.chain_id is not None:
            env.set_chain_id(self.chain_id)
            return ExecutionResult(f"Chain ID set to {env.chain_id}")

        if not env.is_chain_id_auto():
            return ExecutionResult(f"Chain ID: {env.chain_id}")
        if env.is_online():
            return ExecutionResult(f"Chain ID: auto ({b64url_encode(env.get_chain_id())})")
        return ExecutionResult("Chain ID: auto")


class RcLimitCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.limit = result.args.get("limit")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        if self.limit is None:
            return ExecutionResult(self._describe(env))

        try:
            value, absolute = parse_rc_limit(self.limit, source="rclimit")
        except ConfigurationError as exc:
            if self.limit.endswith("%"):
                raise KoinosCLIError("percentage rc limit must be between 0% and 100%") from exc
            raise KoinosCLIError(f"invalid rc limit {self.limit}") from exc
        env.set_rc_limit(value, absolute)
        return ExecutionResult(f"Set rc limit to {env.rc_limit}")

    @staticmethod
    def _describe(env: ExecutionEnvironment) -> str:
        if env.rc_limit.absolute or not (env.is_online() and env.is_wallet_open()):
            return f"Current rc limit: {env.rc_limit}"
        amount = satoshi_to_decimal(env.get_rc_limit(), KOIN_PRECISION)
        return f"Current rc limit: {env.rc_limit} ({format_decimal(amount)})"


# Contract operations ---------------------------------------------------------


class UploadContractCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.filename = result.args["filename"]
        self.abi_filename = result.args.get("abi-filename")
        self.authorizes_call_contract = result.args.get("override-authorize-call-contract")
        self.authorizes_transaction_application = result.args.get(
            "override-authorize-transaction-application"
        )
        self.authorizes_upload_contract = result.args.get("override-authorize-upload-contract")

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        key = require_submit_path(env)

        path = Path(self.filename)
        if not path.is_file():
            raise FileNotFoundCLIError(self.filename)
        bytecode = path.read_bytes()

        abi = ""
        if self.abi_filename is not None:
            abi_path = Path(self.abi_filename)
            if not abi_path.is_file():
                raise FileNotFoundCLIError(self.abi_filename)
            abi = abi_path.read_text(encoding="utf-8")
            try:
                json.loads(abi)
            except ValueError as exc:
                raise InvalidABIError(f"invalid ABI JSON: {exc}") from exc

        operation = upload_contract_operation(
            key.address_bytes,
            bytecode,
            abi,
            authorizes_call_contract=self.authorizes_call_contract == "true",
            authorizes_transaction_application=self.authorizes_transaction_application == "true",
            authorizes_upload_contract=self.authorizes_upload_contract == "true",
        )

        result = ExecutionResult(f"Contract uploaded with address {key.address}")
        return submit_or_stage(
            env,
            result,
            operation,
            f"Upload contract with address {key.address}",
            "cannot upload contract",
        )


class CallCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.contract_id = result.args["contract-id"]
        self.entry_point = result.args["entry-point"]
        self.arguments = result.args["arguments"]

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        require_submit_path(env)
        entry_point = _decode_entry_point(self.entry_point)
        contract_id = decode_address(self.contract_id)
        arguments = b64_decode_any(self.arguments)

        operation = call_contract_operation(contract_id, entry_point, arguments)
        description = (
            f"contract {self.contract_id} at entry point: {self.entry_point} with arguments {self.arguments}"
        )
        result = ExecutionResult(f"Calling {description}")
        return submit_or_stage(env, result, operation, f"Call {description}", "cannot call contract")


class ReadCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.contract_id = result.args["contract-id"]
        self.entry_point = result.args["entry-point"]
        self.arguments = result.args["arguments"]

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        client = env.require_online()
        entry_point = _decode_entry_point(self.entry_point)
        contract_id = decode_address(self.contract_id)
        arguments = b64_decode_any(self.arguments)

        response = client.read_contract(contract_id, entry_point, arguments)
        result = ExecutionResult(base64.b64encode(response.result).decode("ascii"))
        result.add_message(*response.logs)
        return result


class SetSystemCallCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.system_call = result.args["system-call"]
        self.contract_id = result.args["contract-id"]
        self.entry_point = result.args["entry-point"]

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        require_submit_path(env)
        try:
            call_id = int(self.system_call)
        except ValueError:
            if self.system_call not in SYSTEM_CALL_IDS:
                raise KoinosCLIError(f"no system call: {self.system_call}") from None
            call_id = SYSTEM_CALL_IDS[self.system_call]
        if not 0 <= call_id <= 0xFFFFFFFF:
            raise KoinosCLIError(f"no system call: {self.system_call}")
        entry_point = _decode_entry_point(self.entry_point)
        contract_id = decode_address(self.contract_id)

        operation = set_system_call_operation(call_id, contract_id, entry_point)
        description = (
            f"system call {self.system_call} to contract {self.contract_id} at entry point {self.entry_point}"
        )
        result = ExecutionResult(f"Setting {description}")
        return submit_or_stage(env, result, operation, f"Set {description}", "cannot set system call")


class SetSystemContractCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.contract_id = result.args["contract-id"]
        self.system_contract = result.args["system-contract"] == "true"

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        require_submit_path(env)
        contract_id = decode_address(self.contract_id)
        operation = set_system_contract_operation(contract_id, self.system_contract)

        level = "system" if self.system_contract else "user"
        result = ExecutionResult(f"Setting contract {self.contract_id} to {level} level permissions")
        return submit_or_stage(
            env,
            result,
            operation,
            f"Set contract {self.contract_id} to {level} level permissions",
            "cannot set contract",
        )


# Transactions ----------------------------------------------------------------


def _signed_transaction_lines(transaction) -> list[str]:
    return [
        "JSON:",
        json.dumps(transaction_to_json(transaction), indent=2),
        "",
        "Base64:",
        transaction_to_b64(transaction),
    ]


class SessionCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.command = result.args["command"]

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        handler = {
            "begin": self._begin,
            "submit": self._submit,
            "cancel": self._cancel,
            "view": self._view,
        }.get(self.command)
        if handler is None:
            raise KoinosCLIError(
                f"unknown command {self.command}, options are (begin, submit, cancel, view)"
            )
        return handler(env)

    def _begin(self, env: ExecutionEnvironment) -> ExecutionResult:
        env.require_wallet()
        env.session.begin_session()
        return ExecutionResult("Began transaction session")

    def _submit(self, env: ExecutionEnvironment) -> ExecutionResult:
        env.require_wallet()
        offline = not env.is_online()
        if offline:
            if env.is_nonce_auto():
                raise KoinosCLIError(f"{OfflineError()}: cannot submit offline session if nonce is auto")
            if env.is_chain_id_auto():
                raise KoinosCLIError(f"{OfflineError()}: cannot submit offline session if chain id is auto")
            if not env.rc_limit.absolute:
                raise KoinosCLIError(
                    f"{OfflineError()}: cannot submit offline session if resource limit is a percentage"
                )

        pending = env.session.get_operations()
        result = ExecutionResult()
        if not pending:
            result.add_message("Cancelling transaction because session has 0 operations")
        elif offline:
            transaction = env.create_signed_transaction([entry.operation for entry in pending])
            result.add_message(*_signed_transaction_lines(transaction))
        else:
            try:
                result.add_message(*env.submit_transaction([entry.operation for entry in pending]))
            except (KoinosCLIError, RPCError, RPCTransportError) as exc:
                raise KoinosCLIError(f"error submitting transaction, {exc}", getattr(exc, "details", [])) from exc

        env.session.end_session()
        return result

    def _cancel(self, env: ExecutionEnvironment) -> ExecutionResult:
        env.session.end_session()
        return ExecutionResult("Cancelled transaction session")

    def _view(self, env: ExecutionEnvironment) -> ExecutionResult:
        pending = env.session.get_operations()
        result = ExecutionResult(f"Transaction Session ({len(pending)} operations):")
        for index, entry in enumerate(pending):
            result.add_message(f"{index}: {entry.log_message}")
        return result


class SignTransactionCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.transaction = result.args["transaction"]

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        key = env.require_wallet()
        transaction = sign_transaction(transaction_from_bytes(b64url_decode(self.transaction)), key)
        return ExecutionResult("Signed Transaction:", *_signed_transaction_lines(transaction))


class SubmitTransactionCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.transaction = result.args["transaction"]

    def execute(self, env: ExecutionEnvironment) -> ExecutionResult:
        client = env.require_online()
        transaction = transaction_from_bytes(b64url_decode(self.transaction))
        receipt = client.submit_transaction(transaction, broadcast=True)
        return ExecutionResult(*format_receipt(receipt, len(transaction.operations)))


# Command set -----------------------------------------------------------------


def _arg(name: str, arg_type: ArgType) -> CommandArg:
    return CommandArg(name, arg_type)


def _opt(name: str, arg_type: ArgType) -> CommandArg:
    return CommandArg(name, arg_type, optional=True)


def new_koinos_command_set() -> CommandSet:
    """Create the command set with every built-in command."""

    cs = CommandSet()
    add = cs.add_command

    add(CommandDeclaration("address", "Show the currently opened wallet's address", AddressCommand))
    add(CommandDeclaration("connect", "Connect to an RPC endpoint", ConnectCommand, [_arg("url", ArgType.STRING)]))
    add(CommandDeclaration("close", "Close the currently open wallet (lock also works)", CloseCommand))
    add(CommandDeclaration("lock", "Synonym for close", CloseCommand, hidden=True))
    add(
        CommandDeclaration(
            "create",
            "Create and open a new wallet file",
            CreateCommand,
            [_arg("filename", ArgType.FILE), _opt("password", ArgType.STRING)],
        )
    )
    add(CommandDeclaration("disconnect", "Disconnect from RPC endpoint", DisconnectCommand))
    add(CommandDeclaration("generate", "Generate and display a new private key", GenerateKeyCommand))
    add(CommandDeclaration("help", "Show help on a given command", HelpCommand, [_arg("command", ArgType.CMD_NAME)]))
    add(
        CommandDeclaration(
            "import",
            "Import a WIF private key to a new wallet file",
            ImportCommand,
            [
                _arg("private-key", ArgType.STRING),
                _arg("filename", ArgType.FILE),
                _opt("password", ArgType.STRING),
            ],
        )
    )
    add(CommandDeclaration("list", "List available commands", ListCommand))
    add(
        CommandDeclaration(
            "upload",
            "Upload a smart contract",
            UploadContractCommand,
            [
                _arg("filename", ArgType.FILE),
                _opt("abi-filename", ArgType.FILE),
                _opt("override-authorize-call-contract", ArgType.BOOL),
                _opt("override-authorize-transaction-application", ArgType.BOOL),
                _opt("override-authorize-upload-contract", ArgType.BOOL),
            ],
        )
    )
    add(
        CommandDeclaration(
            "call",
            "Call a smart contract",
            CallCommand,
            [
                _arg("contract-id", ArgType.STRING),
                _arg("entry-point", ArgType.HEX),
                _arg("arguments", ArgType.STRING),
            ],
        )
    )
    add(
        CommandDeclaration(
            "open",
            "Open a wallet file (unlock also works)",
            OpenCommand,
            [_arg("filename", ArgType.FILE), _opt("password", ArgType.STRING)],
        )
    )
    add(
        CommandDeclaration(
            "unlock",
            "Synonym for open",
            OpenCommand,
            [_arg("filename", ArgType.FILE), _opt("password", ArgType.STRING)],
            hidden=True,
        )
    )
    add(
        CommandDeclaration(
            "nonce",
            "Set nonce for transactions. 'auto' will default to querying for nonce. Blank nonce to view",
            NonceCommand,
            [_opt("nonce", ArgType.STRING)],
        )
    )
    add(
        CommandDeclaration(
            "chain_id",
            "Set chain id in base64 for transactions. 'auto' will default to querying for chain id. Blank id to view",
            ChainIDCommand,
            [_opt("id", ArgType.STRING)],
        )
    )
    add(
        CommandDeclaration(
            "payer",
            "Set the payer address for transactions. 'me' will default to current wallet. Blank address to view",
            PayerCommand,
            [_opt("payer", ArgType.ADDRESS)],
        )
    )
    add(CommandDeclaration("private", "Show the currently opened wallet's private key", PrivateCommand))
    add(CommandDeclaration("public", "Show the currently opened wallet's public key", PublicCommand))
    add(
        CommandDeclaration(
            "rclimit",
            "Set or show the current rc limit. Give no limit to see current value. "
            "Give limit as either mana or a percent (i.e. 80%).",
            RcLimitCommand,
            [_opt("limit", ArgType.STRING)],
        )
    )
    add(
        CommandDeclaration(
            "read",
            "Read from a smart contract",
            ReadCommand,
            [
                _arg("contract-id", ArgType.STRING),
                _arg("entry-point", ArgType.STRING),
                _arg("arguments", ArgType.STRING),
            ],
        )
    )
    add(
        CommandDeclaration(
            "register",
            "Register a smart contract's commands",
            RegisterCommand,
            [_arg("name", ArgType.STRING), _arg("address", ArgType.ADDRESS), _opt("abi-filename", ArgType.FILE)],
        )
    )
    add(
        CommandDeclaration(
            "register_token",
            "Register a token's commands",
            RegisterTokenCommand,
            [
                _arg("name", ArgType.STRING),
                _arg("address", ArgType.ADDRESS),
                _opt("symbol", ArgType.STRING),
                _opt("precision", ArgType.STRING),
            ],
        )
    )
    add(
        CommandDeclaration(
            "account_rc",
            "Get the current resource credits for a given address (open wallet if blank)",
            AccountRcCommand,
            [_opt("address", ArgType.ADDRESS)],
        )
    )
    add(
        CommandDeclaration(
            "account_nonce",
            "Get the current nonce for a given address (open wallet if blank)",
            AccountNonceCommand,
            [_opt("address", ArgType.ADDRESS)],
        )
    )
    add(
        CommandDeclaration(
            "set_system_call",
            "Set a system call to a new contract and entry point",
            SetSystemCallCommand,
            [
                _arg("system-call", ArgType.STRING),
                _arg("contract-id", ArgType.ADDRESS),
                _arg("entry-point", ArgType.HEX),
            ],
        )
    )
    add(
        CommandDeclaration(
            "set_system_contract",
            "Change a contract's permission level between user and system",
            SetSystemContractCommand,
            [_arg("contract-id", ArgType.ADDRESS), _arg("system-contract", ArgType.BOOL)],
        )
    )
    add(
        CommandDeclaration(
            "session",
            "Create or manage a transaction session (begin, submit, cancel, or view)",
            SessionCommand,
            [_arg("command", ArgType.STRING)],
        )
    )
    add(
        CommandDeclaration(
            "sign_transaction",
            "Signs a transaction with the open wallet, adding it to the transaction",
            SignTransactionCommand,
            [_arg("transaction", ArgType.STRING)],
            hidden=True,
        )
    )
    add(
        CommandDeclaration(
            "submit_transaction",
            "Submit a transaction from base64 data",
            SubmitTransactionCommand,
            [_arg("transaction", ArgType.STRING)],
        )
    )
    add(
        CommandDeclaration(
            "sleep", "Sleep for the given number seconds", SleepCommand, [_arg("seconds", ArgType.AMOUNT)], hidden=True
        )
    )
    add(CommandDeclaration("exit", "Exit the wallet (quit also works)", ExitCommand))
    add(CommandDeclaration("quit", "Synonym for exit", ExitCommand, hidden=True))

    return cs
