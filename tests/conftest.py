import base64
import json
from typing import Any, Dict, List

import pytest
from google.protobuf import descriptor_pb2

from koinos_cli.commands import new_koinos_command_set
from koinos_cli.descriptors import OPTIONS_FILE_NAME, BytesType
from koinos_cli.environment import ExecutionEnvironment
from koinos_cli.keys import KoinosKey
from koinos_cli.parser import CommandParser
from koinos_cli.protocol import FDP, define_message
from koinos_cli.rpc_client import ReadContractResult


class StubClient:
    """In-memory node client recording every call made by a command."""

    def __init__(self) -> None:
        self.nonces: Dict[bytes, int] = {}
        self.pending_nonces: Dict[bytes, int] = {}
        self.rc: Dict[bytes, int] = {}
        self.chain_id = b"\x12\x20" + b"\x01" * 32
        self.reads: Dict[int, bytes] = {}
        self.read_logs: List[str] = []
        self.submitted: List[Any] = []
        self.submit_error: Exception | None = None
        self.meta: Dict[str, Any] = {}
        self.calls: List[str] = []

    def read_contract(self, contract_id: bytes, entry_point: int, args: bytes) -> ReadContractResult:
        self.calls.append(f"read_contract:{entry_point:#x}")
        return ReadContractResult(self.reads.get(entry_point, b""), list(self.read_logs))

    def get_account_nonce(self, address: bytes) -> int:
        self.calls.append("get_account_nonce")
        return self.nonces.get(address, 0)

    def get_pending_nonce(self, address: bytes) -> int:
        self.calls.append("get_pending_nonce")
        if address in self.pending_nonces:
            return self.pending_nonces[address]
        return self.nonces.get(address, 0)

    def get_account_rc(self, address: bytes) -> int:
        self.calls.append("get_account_rc")
        return self.rc.get(address, 0)

    def get_chain_id(self) -> bytes:
        self.calls.append("get_chain_id")
        return self.chain_id

    def submit_transaction(self, transaction: Any, broadcast: bool = True) -> Dict[str, Any]:
        self.calls.append("submit_transaction")
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(transaction)
        return {
            "id": transaction.id.hex(),
            "rc_used": "100000000",
            "disk_storage_used": "10",
            "network_bandwidth_used": "20",
            "compute_bandwidth_used": "30",
        }

    def get_contract_meta(self, contract_id: bytes) -> Dict[str, Any]:
        self.calls.append("get_contract_meta")
        return self.meta


@pytest.fixture
def stub_client() -> StubClient:
    return StubClient()


@pytest.fixture
def wallet_key() -> KoinosKey:
    return KoinosKey.from_private_bytes(bytes(31) + b"\x01")


@pytest.fixture
def command_env() -> ExecutionEnvironment:
    return ExecutionEnvironment(command_set=new_koinos_command_set())


@pytest.fixture
def command_parser(command_env: ExecutionEnvironment) -> CommandParser:
    return CommandParser(command_env.command_set)


@pytest.fixture
def online_env(command_env, stub_client, wallet_key) -> ExecutionEnvironment:
    """Environment connected to the stub client with a funded wallet open."""

    command_env.connect(stub_client)
    command_env.open_wallet(wallet_key)
    stub_client.rc[wallet_key.address_bytes] = 10 * 10**8
    stub_client.nonces[wallet_key.address_bytes] = 4
    return command_env


def _calc_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="test/calc.proto", package="test.calc", syntax="proto3", dependency=[OPTIONS_FILE_NAME]
    )
    define_message(
        file_proto,
        "leaf_a",
        [("value", 1, FDP.TYPE_UINT64, {}), ("name", 2, FDP.TYPE_STRING, {}), ("num", 3, FDP.TYPE_INT32, {})],
    )
    define_message(file_proto, "leaf_b", [("active", 1, FDP.TYPE_BOOL, {}), ("name", 2, FDP.TYPE_STRING, {})])
    define_message(
        file_proto,
        "inner",
        [
            ("name", 1, FDP.TYPE_STRING, {}),
            ("a", 2, FDP.TYPE_MESSAGE, {"type_name": ".test.calc.leaf_a"}),
            ("value", 3, FDP.TYPE_UINT64, {}),
            ("b", 4, FDP.TYPE_MESSAGE, {"type_name": ".test.calc.leaf_b"}),
        ],
    )
    define_message(
        file_proto,
        "nested_arguments",
        [("name", 1, FDP.TYPE_STRING, {}), ("data", 2, FDP.TYPE_MESSAGE, {"type_name": ".test.calc.inner"})],
    )
    define_message(
        file_proto, "owner_arguments", [("owner", 1, FDP.TYPE_BYTES, {"btype": BytesType.ADDRESS})]
    )
    define_message(
        file_proto,
        "owner_result",
        [
            ("owner", 1, FDP.TYPE_BYTES, {"btype": BytesType.ADDRESS}),
            ("label", 2, FDP.TYPE_STRING, {}),
            ("count", 3, FDP.TYPE_UINT64, {}),
        ],
    )
    define_message(
        file_proto,
        "set_arguments",
        [("id", 1, FDP.TYPE_BYTES, {"btype": BytesType.HEX}), ("value", 2, FDP.TYPE_UINT32, {})],
    )
    define_message(file_proto, "set_result", [])
    define_message(
        file_proto, "list_arguments", [("items", 1, FDP.TYPE_UINT64, {"label": FDP.LABEL_REPEATED})]
    )
    return file_proto


@pytest.fixture
def calc_abi_json() -> str:
    """ABI document for a small contract exercising nested and bytes fields."""

    types = descriptor_pb2.FileDescriptorSet(file=[_calc_file()]).SerializeToString()
    return json.dumps(
        {
            "methods": {
                "nested": {
                    "argument": "test.calc.nested_arguments",
                    "return": "",
                    "entry_point": "0x00000001",
                    "description": "Takes nested data",
                },
                "get_owner": {
                    "argument": "test.calc.owner_arguments",
                    "return": "test.calc.owner_result",
                    "entry-point": "0x00000002",
                    "description": "Gets the owner",
                    "read-only": True,
                },
                "set": {
                    "argument": "test.calc.set_arguments",
                    "return": "test.calc.set_result",
                    "entry_point": 3,
                    "description": "Sets a value",
                },
            },
            "types": base64.b64encode(types).decode("ascii"),
        }
    )
