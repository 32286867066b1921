"""Protobuf descriptor registry with Koinos JSON conventions.

Koinos annotates ``bytes`` fields with a ``koinos.btype`` field option
(extension 50000 on ``FieldOptions``) that decides how the bytes are shown
to people: Base58 for addresses, ``0x`` hex for ids and URL-safe Base64
otherwise. :class:`TypeRegistry` keeps a private descriptor pool per set of
files and remembers the option of every bytes field it indexes.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.descriptor import FieldDescriptor
from google.protobuf.message import DecodeError

from .encoding import b64url_decode, b64url_encode, base58_decode, base58_encode, hex_to_bytes

logger = logging.getLogger(__name__)

BTYPE_FIELD_NUMBER = 50000
OPTIONS_FILE_NAME = "koinos/options.proto"

FDP = descriptor_pb2.FieldDescriptorProto


class BytesType(IntEnum):
    BASE64 = 0
    BASE58 = 1
    HEX = 2
    BLOCK_ID = 3
    TRANSACTION_ID = 4
    CONTRACT_ID = 5
    ADDRESS = 6

    @property
    def is_hex(self) -> bool:
        return self in (BytesType.HEX, BytesType.BLOCK_ID, BytesType.TRANSACTION_ID)

    @property
    def is_base58(self) -> bool:
        return self in (BytesType.BASE58, BytesType.CONTRACT_ID, BytesType.ADDRESS)


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        to_write = value & 0x7F
        value >>= 7
        if value:
            out.append(to_write | 0x80)
        else:
            out.append(to_write)
            return bytes(out)


def btype_option_bytes(btype: BytesType) -> bytes:
    """Serialized ``FieldOptions`` carrying only the ``koinos.btype`` option."""

    return _encode_varint(BTYPE_FIELD_NUMBER << 3) + _encode_varint(int(btype))


def _build_option_reader() -> Any:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="koinos_cli/btype_reader.proto", package="koinos_cli", syntax="proto2"
    )
    reader = file_proto.message_type.add(name="btype_reader")
    reader.field.add(
        name="btype", number=BTYPE_FIELD_NUMBER, type=FDP.TYPE_INT32, label=FDP.LABEL_OPTIONAL
    )
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(pool.FindMessageTypeByName("koinos_cli.btype_reader"))


_OptionReader = _build_option_reader()


def field_btype(field_proto: descriptor_pb2.FieldDescriptorProto) -> BytesType:
    """Return the ``koinos.btype`` option of a field (BASE64 when absent)."""

    if not field_proto.HasField("options"):
        return BytesType.BASE64
    reader = _OptionReader.FromString(field_proto.options.SerializeToString())
    try:
        return BytesType(reader.btype)
    except ValueError:
        logger.debug("Unknown btype %s on field %s", reader.btype, field_proto.name)
        return BytesType.BASE64


def options_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name=OPTIONS_FILE_NAME,
        package="koinos",
        syntax="proto3",
        dependency=["google/protobuf/descriptor.proto"],
    )
    enum = file_proto.enum_type.add(name="bytes_type")
    for member in BytesType:
        enum.value.add(name=member.name, number=int(member))
    file_proto.extension.add(
        name="btype",
        number=BTYPE_FIELD_NUMBER,
        label=FDP.LABEL_OPTIONAL,
        type=FDP.TYPE_ENUM,
        type_name=".koinos.bytes_type",
        extendee=".google.protobuf.FieldOptions",
    )
    return file_proto


def descriptor_file() -> descriptor_pb2.FileDescriptorProto:
    return descriptor_pb2.FileDescriptorProto.FromString(descriptor_pb2.DESCRIPTOR.serialized_pb)


class TypeRegistry:
    """A descriptor pool plus the raw descriptor protos indexed by full name."""

    def __init__(self, files: Iterable[descriptor_pb2.FileDescriptorProto] = ()) -> None:
        self.pool = descriptor_pool.DescriptorPool()
        self._files: Dict[str, descriptor_pb2.FileDescriptorProto] = {}
        self._messages: Dict[str, descriptor_pb2.DescriptorProto] = {}
        self._btypes: Dict[Tuple[str, str], BytesType] = {}
        self.add_files([descriptor_file(), options_file(), *files])

    def add_files(self, files: Iterable[descriptor_pb2.FileDescriptorProto]) -> None:
        """Add files, ordering them so dependencies are loaded first."""

        pending = {f.name: f for f in files if f.name not in self._files}
        while pending:
            ready = [
                f
                for f in pending.values()
                if all(dep in self._files for dep in f.dependency)
            ]
            if not ready:
                missing = sorted(
                    {dep for f in pending.values() for dep in f.dependency if dep not in self._files and dep not in pending}
                )
                raise ValueError(
                    f"Unresolvable proto dependencies: {', '.join(missing) or 'cyclic imports'}"
                )
            for file_proto in ready:
                self._add_file(file_proto)
                del pending[file_proto.name]

    def _add_file(self, file_proto: descriptor_pb2.FileDescriptorProto) -> None:
        self.pool.AddSerializedFile(file_proto.SerializeToString())
        self._files[file_proto.name] = file_proto
        prefix = file_proto.package
        for message in file_proto.message_type:
            self._index_message(message, prefix)
        logger.debug("Loaded proto file %s", file_proto.name)

    def _index_message(self, message: descriptor_pb2.DescriptorProto, prefix: str) -> None:
        full_name = f"{prefix}.{message.name}" if prefix else message.name
        self._messages[full_name] = message
        for field_proto in message.field:
            if field_proto.type == FDP.TYPE_BYTES:
                self._btypes[(full_name, field_proto.name)] = field_btype(field_proto)
        for nested in message.nested_type:
            self._index_message(nested, full_name)

    def has_message(self, full_name: str) -> bool:
        return full_name.lstrip(".") in self._messages

    def message_proto(self, full_name: str) -> descriptor_pb2.DescriptorProto:
        try:
            return self._messages[full_name.lstrip(".")]
        except KeyError as exc:
            raise KeyError(f"Unknown message type: {full_name}") from exc

    def message_class(self, full_name: str) -> Any:
        descriptor = self.pool.FindMessageTypeByName(full_name.lstrip("."))
        return message_factory.GetMessageClass(descriptor)

    def btype(self, message_name: str, field_name: str) -> BytesType:
        return self._btypes.get((message_name, field_name), BytesType.BASE64)

    # Koinos JSON ------------------------------------------------------------

    def to_json(self, message: Any) -> Dict[str, Any]:
        """Render a message as a dict following Koinos JSON conventions."""

        full_name = message.DESCRIPTOR.full_name
        output: Dict[str, Any] = {}
        for field, value in message.ListFields():
            if field.label == FieldDescriptor.LABEL_REPEATED:
                output[field.name] = [self._value_to_json(full_name, field, item) for item in value]
            else:
                output[field.name] = self._value_to_json(full_name, field, value)
        return output

    def _value_to_json(self, message_name: str, field: FieldDescriptor, value: Any) -> Any:
        if field.type == FieldDescriptor.TYPE_MESSAGE:
            return self.to_json(value)
        if field.type == FieldDescriptor.TYPE_BYTES:
            return encode_bytes(value, self.btype(message_name, field.name))
        if field.type == FieldDescriptor.TYPE_ENUM:
            enum_value = field.enum_type.values_by_number.get(value)
            return enum_value.name if enum_value is not None else value
        if field.type in _SIXTY_FOUR_BIT_TYPES:
            return str(value)
        return value


_SIXTY_FOUR_BIT_TYPES = {
    FieldDescriptor.TYPE_INT64,
    FieldDescriptor.TYPE_UINT64,
    FieldDescriptor.TYPE_SINT64,
    FieldDescriptor.TYPE_FIXED64,
    FieldDescriptor.TYPE_SFIXED64,
}


def encode_bytes(value: bytes, btype: BytesType) -> str:
    if btype.is_base58:
        return base58_encode(value)
    if btype.is_hex:
        return "0x" + value.hex()
    return b64url_encode(value)


def decode_bytes(value: str, btype: BytesType) -> bytes:
    if btype.is_base58:
        return base58_decode(value)
    if btype.is_hex:
        return hex_to_bytes(value)
    return b64url_decode(value)


def parse_file_descriptors(raw: bytes) -> List[descriptor_pb2.FileDescriptorProto]:
    """Parse a serialized ``FileDescriptorSet`` or a single ``FileDescriptorProto``."""

    try:
        file_set = descriptor_pb2.FileDescriptorSet.FromString(raw)
    except DecodeError:
        logger.debug("Descriptor data is not a FileDescriptorSet, trying a single file")
    else:
        if file_set.file and all(f.name for f in file_set.file):
            return list(file_set.file)
    single = descriptor_pb2.FileDescriptorProto.FromString(raw)
    if not single.name:
        raise ValueError("Descriptor data contains no named proto files")
    return [single]
