import pytest
from google.protobuf import descriptor_pb2

from koinos_cli.descriptors import (
    BytesType,
    TypeRegistry,
    btype_option_bytes,
    decode_bytes,
    encode_bytes,
    field_btype,
    parse_file_descriptors,
)
from koinos_cli.encoding import multihash_digest, multihash_sha256
from koinos_cli.errors import KoinosCLIError
from koinos_cli.keys import recover_public_key
from koinos_cli.protocol import (
    FDP,
    PROTOCOL,
    SYSTEM_CALL_IDS,
    call_contract_operation,
    create_transaction,
    decode_nonce,
    decode_nonce_b64,
    define_message,
    encode_nonce,
    format_receipt,
    operation_merkle_root,
    set_system_call_operation,
    sign_transaction,
    transaction_from_bytes,
    transaction_to_b64,
    transaction_to_json,
)

PAYER = b"\x00" + b"\x33" * 24


def test_btype_option_round_trip() -> None:
    field = FDP(name="owner", number=1, type=FDP.TYPE_BYTES)
    assert field_btype(field) is BytesType.BASE64

    field.options.MergeFromString(btype_option_bytes(BytesType.ADDRESS))
    assert field_btype(field) is BytesType.ADDRESS


@pytest.mark.parametrize(
    "btype, text",
    [
        (BytesType.BASE64, "AQID"),
        (BytesType.HEX, "0x010203"),
        (BytesType.TRANSACTION_ID, "0x010203"),
        (BytesType.ADDRESS, "Ldp"),
        (BytesType.CONTRACT_ID, "Ldp"),
    ],
)
def test_bytes_rendering(btype: BytesType, text: str) -> None:
    assert encode_bytes(b"\x01\x02\x03", btype) == text
    assert decode_bytes(text, btype) == b"\x01\x02\x03"


def test_registry_orders_dependencies() -> None:
    base = descriptor_pb2.FileDescriptorProto(name="a/base.proto", package="a", syntax="proto3")
    define_message(base, "thing", [("value", 1, FDP.TYPE_UINT64, {})])
    user = descriptor_pb2.FileDescriptorProto(
        name="a/user.proto", package="a", syntax="proto3", dependency=["a/base.proto"]
    )
    define_message(user, "holder", [("thing", 1, FDP.TYPE_MESSAGE, {"type_name": ".a.thing"})])

    registry = TypeRegistry([user, base])

    assert registry.has_message("a.holder")
    assert registry.has_message(".a.thing")
    holder = registry.message_class("a.holder")()
    holder.thing.value = 2**63
    assert registry.to_json(holder) == {"thing": {"value": str(2**63)}}


def test_registry_reports_missing_dependency() -> None:
    orphan = descriptor_pb2.FileDescriptorProto(
        name="b/orphan.proto", package="b", syntax="proto3", dependency=["b/nowhere.proto"]
    )

    with pytest.raises(ValueError, match="b/nowhere.proto"):
        TypeRegistry([orphan])


def test_parse_file_descriptors_accepts_set_or_single_file() -> None:
    single = descriptor_pb2.FileDescriptorProto(name="c/one.proto", package="c")
    file_set = descriptor_pb2.FileDescriptorSet(file=[single])

    assert [f.name for f in parse_file_descriptors(file_set.SerializeToString())] == ["c/one.proto"]
    assert [f.name for f in parse_file_descriptors(single.SerializeToString())] == ["c/one.proto"]


def test_nonce_encoding() -> None:
    assert decode_nonce(encode_nonce(42)) == 42
    assert encode_nonce(1) == b"\x38\x01"
    assert decode_nonce_b64("") == 0


def test_transaction_id_and_merkle_root() -> None:
    operations = [call_contract_operation(PAYER, 1, b"\x01"), call_contract_operation(PAYER, 2, b"")]

    transaction = create_transaction(
        operations, chain_id=b"\x12\x20" + bytes(32), rc_limit=500, nonce=3, payer=PAYER
    )

    header = transaction.header
    assert header.operation_merkle_root == operation_merkle_root(operations)
    assert transaction.id == multihash_sha256(header.SerializeToString(deterministic=True))
    assert decode_nonce(header.nonce) == 3
    assert not header.payee
    assert len(transaction.operations) == 2


def test_signed_transaction_recovers_signer(wallet_key) -> None:
    transaction = create_transaction(
        [call_contract_operation(PAYER, 1, b"")], chain_id=b"\x01", rc_limit=1, nonce=1, payer=PAYER, payee=PAYER
    )

    sign_transaction(transaction, wallet_key)

    signature = transaction.signatures[0]
    assert recover_public_key(multihash_digest(transaction.id), signature) == wallet_key.public_bytes
    restored = transaction_from_bytes(transaction.SerializeToString())
    assert restored.signatures[0] == signature


def test_corrupt_transaction_bytes() -> None:
    with pytest.raises(KoinosCLIError, match="could not parse transaction"):
        transaction_from_bytes(b"\x00\x00\x00")


def test_system_call_ids() -> None:
    assert SYSTEM_CALL_IDS["apply_block"] == 1
    assert SYSTEM_CALL_IDS["apply_call_contract_operation"] == 4
    assert len(set(SYSTEM_CALL_IDS.values())) == len(SYSTEM_CALL_IDS)


def test_transaction_json_uses_koinos_conventions() -> None:
    transaction = create_transaction(
        [set_system_call_operation(7, PAYER, 0x10)], chain_id=b"\x01", rc_limit=10**9, nonce=2, payer=PAYER
    )

    rendered = transaction_to_json(transaction)

    assert rendered["id"].startswith("0x1220")
    assert rendered["header"]["rc_limit"] == "1000000000"
    assert rendered["header"]["chain_id"] == "AQ=="
    operation = rendered["operations"][0]["set_system_call"]
    assert operation["call_id"] == 7
    assert operation["target"]["system_call_bundle"]["entry_point"] == 0x10
    assert transaction_to_b64(transaction)
    assert PROTOCOL.has_message("koinos.protocol.transaction")


def test_format_receipt() -> None:
    receipt = {
        "id": "1220ab",
        "rc_used": "123456789",
        "disk_storage_used": "1",
        "network_bandwidth_used": "2",
        "compute_bandwidth_used": "3",
        "logs": ["emitted"],
    }

    assert format_receipt(receipt, 2) == [
        "Transaction with ID 0x1220ab containing 2 operations submitted.",
        "Mana cost: 1.23456789 (Disk: 1, Network: 2, Compute: 3)",
        "Logs:",
        "emitted",
    ]
    assert format_receipt({"id": "0x01", "reverted": True}, 1)[0] == (
        "Transaction with ID 0x01 containing 1 operations reverted."
    )
