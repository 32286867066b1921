"""Koinos protocol messages and transaction assembly.

The protocol types are declared here as descriptor protos and loaded into a
:class:`~koinos_cli.descriptors.TypeRegistry`, so no generated ``_pb2``
modules are needed. Transactions are built the way the node expects them:
the operation merkle root and the transaction id are SHA-256 multihashes of
the deterministic serialization, and signatures are compact recoverable
secp256k1 signatures over the id digest.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Sequence, Tuple

from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError

from .descriptors import OPTIONS_FILE_NAME, BytesType, TypeRegistry, btype_option_bytes
from .encoding import (
    KOIN_PRECISION,
    b64url_decode,
    b64url_encode,
    format_decimal,
    merkle_root,
    multihash_digest,
    multihash_sha256,
    satoshi_to_decimal,
)
from .errors import KoinosCLIError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .keys import KoinosKey

logger = logging.getLogger(__name__)

FDP = descriptor_pb2.FieldDescriptorProto

# (name, number, type, options); options may hold "label", "type_name",
# "btype" and "oneof".
FieldSpec = Tuple[str, int, int, Dict[str, Any]]


def define_message(
    file_proto: descriptor_pb2.FileDescriptorProto,
    name: str,
    fields: Sequence[FieldSpec],
    oneofs: Sequence[str] = (),
) -> descriptor_pb2.DescriptorProto:
    """Append a message declaration to ``file_proto``."""

    message = file_proto.message_type.add(name=name)
    for oneof in oneofs:
        message.oneof_decl.add(name=oneof)
    for field_name, number, field_type, extra in fields:
        field_proto = message.field.add(
            name=field_name,
            number=number,
            type=field_type,
            label=extra.get("label", FDP.LABEL_OPTIONAL),
            json_name=field_name,
        )
        if "type_name" in extra:
            field_proto.type_name = extra["type_name"]
        if "oneof" in extra:
            field_proto.oneof_index = oneofs.index(extra["oneof"])
        if "btype" in extra:
            field_proto.options.MergeFromString(btype_option_bytes(extra["btype"]))
    return message


def _bytes_field(name: str, number: int, btype: BytesType | None = None, **extra: Any) -> FieldSpec:
    if btype is not None:
        extra["btype"] = btype
    return (name, number, FDP.TYPE_BYTES, extra)


def _value_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="koinos/chain/value.proto", package="koinos.chain", syntax="proto3"
    )
    define_message(
        file_proto,
        "value_type",
        [
            ("double_value", 2, FDP.TYPE_DOUBLE, {"oneof": "kind"}),
            ("float_value", 3, FDP.TYPE_FLOAT, {"oneof": "kind"}),
            ("int32_value", 4, FDP.TYPE_INT32, {"oneof": "kind"}),
            ("int64_value", 5, FDP.TYPE_INT64, {"oneof": "kind"}),
            ("uint32_value", 6, FDP.TYPE_UINT32, {"oneof": "kind"}),
            ("uint64_value", 7, FDP.TYPE_UINT64, {"oneof": "kind"}),
        ],
        oneofs=["kind"],
    )
    return file_proto


def _protocol_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="koinos/protocol/protocol.proto",
        package="koinos.protocol",
        syntax="proto3",
        dependency=[OPTIONS_FILE_NAME],
    )
    repeated = {"label": FDP.LABEL_REPEATED}

    define_message(
        file_proto,
        "upload_contract_operation",
        [
            _bytes_field("contract_id", 1, BytesType.CONTRACT_ID),
            _bytes_field("bytecode", 2),
            ("abi", 3, FDP.TYPE_STRING, {}),
            ("authorizes_call_contract", 4, FDP.TYPE_BOOL, {}),
            ("authorizes_transaction_application", 5, FDP.TYPE_BOOL, {}),
            ("authorizes_upload_contract", 6, FDP.TYPE_BOOL, {}),
        ],
    )
    define_message(
        file_proto,
        "call_contract_operation",
        [
            _bytes_field("contract_id", 1, BytesType.CONTRACT_ID),
            ("entry_point", 2, FDP.TYPE_UINT32, {}),
            _bytes_field("args", 3),
        ],
    )
    define_message(
        file_proto,
        "contract_call_bundle",
        [
            _bytes_field("contract_id", 1, BytesType.CONTRACT_ID),
            ("entry_point", 2, FDP.TYPE_UINT32, {}),
        ],
    )
    define_message(
        file_proto,
        "system_call_target",
        [
            ("thunk_id", 1, FDP.TYPE_UINT32, {"oneof": "target"}),
            (
                "system_call_bundle",
                2,
                FDP.TYPE_MESSAGE,
                {"oneof": "target", "type_name": ".koinos.protocol.contract_call_bundle"},
            ),
        ],
        oneofs=["target"],
    )
    define_message(
        file_proto,
        "set_system_call_operation",
        [
            ("call_id", 1, FDP.TYPE_UINT32, {}),
            ("target", 2, FDP.TYPE_MESSAGE, {"type_name": ".koinos.protocol.system_call_target"}),
        ],
    )
    define_message(
        file_proto,
        "set_system_contract_operation",
        [
            _bytes_field("contract_id", 1, BytesType.CONTRACT_ID),
            ("system_contract", 2, FDP.TYPE_BOOL, {}),
        ],
    )
    define_message(
        file_proto,
        "operation",
        [
            (name, number, FDP.TYPE_MESSAGE, {"oneof": "op", "type_name": f".koinos.protocol.{name}_operation"})
            for name, number in (
                ("upload_contract", 1),
                ("call_contract", 2),
                ("set_system_call", 3),
                ("set_system_contract", 4),
            )
        ],
        oneofs=["op"],
    )
    define_message(
        file_proto,
        "transaction_header",
        [
            _bytes_field("chain_id", 1),
            ("rc_limit", 2, FDP.TYPE_UINT64, {}),
            _bytes_field("nonce", 3),
            _bytes_field("operation_merkle_root", 4),
            _bytes_field("payer", 5, BytesType.ADDRESS),
            _bytes_field("payee", 6, BytesType.ADDRESS),
        ],
    )
    define_message(
        file_proto,
        "transaction",
        [
            _bytes_field("id", 1, BytesType.TRANSACTION_ID),
            ("header", 2, FDP.TYPE_MESSAGE, {"type_name": ".koinos.protocol.transaction_header"}),
            ("operations", 3, FDP.TYPE_MESSAGE, dict(repeated, type_name=".koinos.protocol.operation")),
            _bytes_field("signatures", 4, **repeated),
        ],
    )
    return file_proto


PROTOCOL = TypeRegistry([_value_file(), _protocol_file()])

ValueType = PROTOCOL.message_class("koinos.chain.value_type")
Operation = PROTOCOL.message_class("koinos.protocol.operation")
UploadContractOperation = PROTOCOL.message_class("koinos.protocol.upload_contract_operation")
CallContractOperation = PROTOCOL.message_class("koinos.protocol.call_contract_operation")
SetSystemCallOperation = PROTOCOL.message_class("koinos.protocol.set_system_call_operation")
SetSystemContractOperation = PROTOCOL.message_class("koinos.protocol.set_system_contract_operation")
TransactionHeader = PROTOCOL.message_class("koinos.protocol.transaction_header")
Transaction = PROTOCOL.message_class("koinos.protocol.transaction")


# System calls ----------------------------------------------------------------

# koinos.chain.system_call_id
SYSTEM_CALL_IDS: Dict[str, int] = {
    "apply_block": 1,
    "apply_transaction": 2,
    "apply_upload_contract_operation": 3,
    "apply_call_contract_operation": 4,
    "apply_set_system_call_operation": 5,
    "apply_set_system_contract_operation": 6,
    "pre_block_callback": 7,
    "post_block_callback": 8,
    "pre_transaction_callback": 9,
    "post_transaction_callback": 10,
    "get_chain_id": 11,
    "process_block_signature": 101,
    "get_transaction": 102,
    "get_transaction_field": 103,
    "get_block": 104,
    "get_block_field": 105,
    "get_last_irreversible_block": 106,
    "get_account_nonce": 107,
    "verify_account_nonce": 108,
    "set_account_nonce": 109,
    "check_system_authority": 110,
    "get_account_rc": 201,
    "consume_account_rc": 202,
    "get_resource_limits": 203,
    "consume_block_resources": 204,
    "put_object": 401,
    "remove_object": 402,
    "get_object": 403,
    "get_next_object": 404,
    "get_prev_object": 405,
    "log": 501,
    "event": 502,
    "hash": 601,
    "recover_public_key": 602,
    "verify_merkle_root": 603,
    "verify_signature": 604,
    "verify_vrf_proof": 605,
    "call": 701,
    "get_entry_point": 702,
    "get_contract_arguments": 703,
    "set_contract_result": 704,
    "exit": 705,
    "get_contract_id": 706,
    "get_caller": 707,
    "check_authority": 708,
}


# Nonces ----------------------------------------------------------------------


def encode_nonce(nonce: int) -> bytes:
    """Serialize a nonce the way the chain stores it (a ``value_type``)."""

    return ValueType(uint64_value=nonce).SerializeToString(deterministic=True)


def decode_nonce(raw: bytes) -> int:
    return ValueType.FromString(raw).uint64_value


def decode_nonce_b64(value: str) -> int:
    if not value:
        return 0
    return decode_nonce(b64url_decode(value))


# Operations ------------------------------------------------------------------


def call_contract_operation(contract_id: bytes, entry_point: int, args: bytes) -> Any:
    return Operation(
        call_contract=CallContractOperation(contract_id=contract_id, entry_point=entry_point, args=args)
    )


def upload_contract_operation(
    contract_id: bytes,
    bytecode: bytes,
    abi: str = "",
    *,
    authorizes_call_contract: bool = False,
    authorizes_transaction_application: bool = False,
    authorizes_upload_contract: bool = False,
) -> Any:
    return Operation(
        upload_contract=UploadContractOperation(
            contract_id=contract_id,
            bytecode=bytecode,
            abi=abi,
            authorizes_call_contract=authorizes_call_contract,
            authorizes_transaction_application=authorizes_transaction_application,
            authorizes_upload_contract=authorizes_upload_contract,
        )
    )


def set_system_call_operation(call_id: int, contract_id: bytes, entry_point: int) -> Any:
    op = SetSystemCallOperation(call_id=call_id)
    op.target.system_call_bundle.contract_id = contract_id
    op.target.system_call_bundle.entry_point = entry_point
    return Operation(set_system_call=op)


def set_system_contract_operation(contract_id: bytes, system_contract: bool) -> Any:
    return Operation(
        set_system_contract=SetSystemContractOperation(
            contract_id=contract_id, system_contract=system_contract
        )
    )


# Transactions ----------------------------------------------------------------


def operation_merkle_root(operations: Iterable[Any]) -> bytes:
    leaves = [multihash_sha256(op.SerializeToString(deterministic=True)) for op in operations]
    return merkle_root(leaves)


def create_transaction(
    operations: Sequence[Any],
    *,
    chain_id: bytes,
    rc_limit: int,
    nonce: int,
    payer: bytes,
    payee: bytes | None = None,
) -> Any:
    """Assemble an unsigned transaction and compute its id."""

    header = TransactionHeader(
        chain_id=chain_id,
        rc_limit=rc_limit,
        nonce=encode_nonce(nonce),
        operation_merkle_root=operation_merkle_root(operations),
        payer=payer,
    )
    if payee:
        header.payee = payee

    transaction = Transaction(header=header)
    transaction.operations.extend(operations)
    transaction.id = multihash_sha256(header.SerializeToString(deterministic=True))
    logger.debug(
        "Built transaction 0x%s with %d operations (nonce=%d rc_limit=%d)",
        transaction.id.hex(),
        len(operations),
        nonce,
        rc_limit,
    )
    return transaction


def sign_transaction(transaction: Any, key: "KoinosKey") -> Any:
    """Append ``key``'s signature over the transaction id."""

    transaction.signatures.append(key.sign_digest(multihash_digest(transaction.id)))
    return transaction


def transaction_to_json(transaction: Any) -> Dict[str, Any]:
    return PROTOCOL.to_json(transaction)


def transaction_to_b64(transaction: Any) -> str:
    return b64url_encode(transaction.SerializeToString(deterministic=True))


def transaction_from_bytes(raw: bytes) -> Any:
    try:
        return Transaction.FromString(raw)
    except DecodeError as exc:
        raise KoinosCLIError(f"could not parse transaction: {exc}") from exc


# Receipts --------------------------------------------------------------------


def format_receipt(receipt: Dict[str, Any], operation_count: int) -> List[str]:
    """Render a transaction receipt returned by ``chain.submit_transaction``."""

    tx_id = receipt.get("id", "")
    if not tx_id.startswith("0x"):
        tx_id = "0x" + tx_id
    outcome = "reverted" if receipt.get("reverted") else "submitted"
    lines = [f"Transaction with ID {tx_id} containing {operation_count} operations {outcome}."]

    rc_used = satoshi_to_decimal(int(receipt.get("rc_used", 0)), KOIN_PRECISION)
    lines.append(
        "Mana cost: {} (Disk: {}, Network: {}, Compute: {})".format(
            format_decimal(rc_used),
            int(receipt.get("disk_storage_used", 0)),
            int(receipt.get("network_bandwidth_used", 0)),
            int(receipt.get("compute_bandwidth_used", 0)),
        )
    )

    logs = receipt.get("logs") or []
    if logs:
        lines.append("Logs:")
        lines.extend(logs)
    return lines


def mana_to_decimal(value: int) -> Decimal:
    return satoshi_to_decimal(value, KOIN_PRECISION)
