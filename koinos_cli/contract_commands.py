"""Commands generated from contract ABIs.

``register`` loads a contract's ABI (from a file or the node's contract
meta store) and adds one ``<alias>.<method>`` command per method. Read-only
methods query the node directly, the others build a call operation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Tuple

from .abi import ABI, ABIMethod, ContractInfo, message_to_text
from .encoding import decode_address
from .environment import require_submit_path, submit_or_stage
from .errors import ContractError, FileNotFoundCLIError, InvalidABIError, OfflineError
from .interpreter import ExecutionResult
from .parser import CommandParseResult, ParseError, parse_command_name
from .protocol import call_contract_operation
from .registry import CommandDeclaration

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .environment import ExecutionEnvironment

logger = logging.getLogger(__name__)


def validate_alias(name: str) -> str:
    try:
        parse_command_name(name)
    except ParseError as exc:
        raise ContractError(f"invalid characters in contract name {name}") from exc
    if "." in name:
        raise ContractError(f"invalid characters in contract name {name}")
    return name


def resolve_method(env: "ExecutionEnvironment", command_name: str) -> Tuple[ContractInfo, ABIMethod]:
    alias, _, method_name = command_name.partition(".")
    contract = env.contracts.get(alias)
    if not isinstance(contract, ContractInfo):
        raise ContractError(f"contract {alias} is not registered")
    return contract, contract.abi.method(method_name)


def _load_abi_text(env: "ExecutionEnvironment", address: bytes, abi_filename: str | None) -> str:
    if abi_filename is not None:
        path = Path(abi_filename)
        if not path.is_file():
            raise FileNotFoundCLIError(abi_filename)
        return path.read_text(encoding="utf-8")

    if not env.is_online():
        raise OfflineError()
    meta = env.require_online().get_contract_meta(address)
    abi = meta.get("abi")
    if not abi:
        raise InvalidABIError("contract has no ABI stored on chain, provide an ABI file")
    return abi


def contract_declarations(name: str, abi: ABI) -> List[CommandDeclaration]:
    declarations = []
    for method in abi.methods.values():
        factory = ReadContractCommand if method.read_only else WriteContractCommand
        declarations.append(
            CommandDeclaration(
                f"{name}.{method.name}",
                method.description,
                factory,
                abi.argument_fields(method),
            )
        )
    return declarations


class RegisterCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.name = result.args["name"]
        self.address = result.args["address"]
        self.abi_filename = result.args.get("abi-filename")

    def execute(self, env: "ExecutionEnvironment") -> ExecutionResult:
        if self.name in env.contracts:
            raise ContractError(f"contract {self.name} already exists")
        validate_alias(self.name)
        address = decode_address(self.address)

        abi = ABI.from_json(_load_abi_text(env, address, self.abi_filename))
        declarations = contract_declarations(self.name, abi)

        env.add_contract(self.name, ContractInfo(self.name, self.address, abi))
        if env.command_set is not None:
            for decl in declarations:
                env.command_set.add_command(decl)

        logger.debug("Registered %d methods for contract %s", len(declarations), self.name)
        return ExecutionResult(f"Contract '{self.name}' at address {self.address} registered")


class ReadContractCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.command_name = result.command_name
        self.args = dict(result.args)

    def execute(self, env: "ExecutionEnvironment") -> ExecutionResult:
        client = env.require_online()
        contract, method = resolve_method(env, self.command_name)
        abi = contract.abi

        arguments = abi.encode_arguments(method, self.args)
        raw = arguments.SerializeToString() if arguments is not None else b""
        response = client.read_contract(contract.address_bytes, method.entry_point, raw)

        result = ExecutionResult(message_to_text(abi.registry, abi.decode_result(method, response.result)))
        result.add_message(*response.logs)
        return result


class WriteContractCommand:
    def __init__(self, result: CommandParseResult) -> None:
        self.command_name = result.command_name
        self.args = dict(result.args)

    def execute(self, env: "ExecutionEnvironment") -> ExecutionResult:
        require_submit_path(env)
        contract, method = resolve_method(env, self.command_name)
        abi = contract.abi

        arguments = abi.encode_arguments(method, self.args)
        raw = arguments.SerializeToString() if arguments is not None else b""
        operation = call_contract_operation(contract.address_bytes, method.entry_point, raw)

        text = message_to_text(abi.registry, arguments)
        result = ExecutionResult(f"Calling {self.command_name} with arguments '{text}'")
        return submit_or_stage(
            env,
            result,
            operation,
            f"Call {self.command_name} with arguments '{text}'",
            "cannot make call",
        )
