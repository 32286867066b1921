"""Contract ABI loading and message conversion.

An ABI is a JSON document with a ``methods`` mapping and a ``types`` member
holding a Base64 serialized ``FileDescriptorSet`` (or a single
``FileDescriptorProto``). Method argument messages are flattened into one
command argument per scalar field, using dotted names for nested messages,
and parsed command values are converted back into a message for the call.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from google.protobuf.descriptor import Descriptor, FieldDescriptor
from google.protobuf.message import DecodeError

from .descriptors import TypeRegistry, decode_bytes, encode_bytes, parse_file_descriptors
from .encoding import b64_decode_any, base58_decode, parse_entry_point
from .errors import InvalidABIError, UnsupportedTypeError
from .registry import ArgType, CommandArg

logger = logging.getLogger(__name__)


@dataclass
class ABIMethod:
    name: str
    argument: str
    returns: str
    entry_point: int
    description: str = ""
    read_only: bool = False


def _method_entry_point(name: str, raw: Mapping[str, Any]) -> int:
    value = raw.get("entry_point", raw.get("entry-point"))
    if value is None:
        raise InvalidABIError(f"method {name} missing entry point")
    if isinstance(value, bool):
        raise InvalidABIError(f"method {name} has an invalid entry point")
    if isinstance(value, int):
        return value
    try:
        return parse_entry_point(str(value))
    except ValueError as exc:
        raise InvalidABIError(f"method {name}: {exc}") from exc


class ABI:
    """Parsed contract ABI with its own protobuf type registry."""

    def __init__(self, methods: Dict[str, ABIMethod], registry: TypeRegistry) -> None:
        self.methods = methods
        self.registry = registry

    @classmethod
    def from_json(cls, data: str | bytes | Mapping[str, Any]) -> "ABI":
        if isinstance(data, Mapping):
            document = dict(data)
        else:
            try:
                document = json.loads(data)
            except ValueError as exc:
                raise InvalidABIError(f"invalid ABI JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise InvalidABIError("ABI must be a JSON object")

        registry = TypeRegistry()
        types = document.get("types")
        if types:
            try:
                registry.add_files(parse_file_descriptors(b64_decode_any(types)))
            except (ValueError, DecodeError, TypeError) as exc:
                raise InvalidABIError(f"invalid ABI types: {exc}") from exc

        raw_methods = document.get("methods") or {}
        if not isinstance(raw_methods, dict):
            raise InvalidABIError("ABI methods must be a JSON object")

        methods: Dict[str, ABIMethod] = {}
        for name, raw in raw_methods.items():
            if not isinstance(raw, dict):
                raise InvalidABIError(f"method {name} must be a JSON object")
            method = ABIMethod(
                name=name,
                argument=raw.get("argument", "") or "",
                returns=raw.get("return", "") or "",
                entry_point=_method_entry_point(name, raw),
                description=raw.get("description", "") or "",
                read_only=bool(raw.get("read-only", raw.get("read_only", False))),
            )
            for type_name in (method.argument, method.returns):
                if type_name and not registry.has_message(type_name):
                    raise InvalidABIError(f"could not find type {type_name}")
            methods[name] = method

        logger.debug("Loaded ABI with %d methods", len(methods))
        return cls(methods, registry)

    def method(self, name: str) -> ABIMethod:
        try:
            return self.methods[name]
        except KeyError as exc:
            raise InvalidABIError(f"unknown method {name}") from exc

    def argument_fields(self, method: ABIMethod) -> List[CommandArg]:
        if not method.argument:
            return []
        return parse_abi_fields(self.registry, method.argument)

    def encode_arguments(self, method: ABIMethod, values: Mapping[str, str | None]) -> Any:
        """Build the argument message of ``method``; ``None`` when it takes none."""

        if not method.argument:
            return None
        return data_to_message(self.registry, method.argument, values)

    def decode_result(self, method: ABIMethod, raw: bytes) -> Any:
        """Decode a read result into its return message; ``None`` when it has none."""

        if not method.returns:
            return None
        message_class = self.registry.message_class(method.returns)
        try:
            message = message_class.FromString(raw)
        except DecodeError as exc:
            raise InvalidABIError(f"could not decode {method.returns}: {exc}") from exc
        return message


def _descriptor(registry: TypeRegistry, full_name: str) -> Descriptor:
    return registry.pool.FindMessageTypeByName(full_name.lstrip("."))


def _bytes_arg_type(registry: TypeRegistry, message: Descriptor, field: FieldDescriptor) -> ArgType:
    btype = registry.btype(message.full_name, field.name)
    if btype.is_hex:
        return ArgType.HEX
    if btype.is_base58:
        return ArgType.ADDRESS
    return ArgType.BYTES


_SCALAR_ARG_TYPES = {
    FieldDescriptor.TYPE_BOOL: ArgType.BOOL,
    FieldDescriptor.TYPE_INT32: ArgType.INT,
    FieldDescriptor.TYPE_INT64: ArgType.INT,
    FieldDescriptor.TYPE_UINT32: ArgType.UINT,
    FieldDescriptor.TYPE_UINT64: ArgType.UINT,
    FieldDescriptor.TYPE_STRING: ArgType.STRING,
}


def _check_supported(field: FieldDescriptor) -> None:
    if field.label == FieldDescriptor.LABEL_REPEATED:
        raise UnsupportedTypeError(f"unsupported type: repeated field {field.name}")


def parse_abi_fields(registry: TypeRegistry, message_name: str) -> List[CommandArg]:
    """Flatten a message into command arguments, depth first in declaration order."""

    return _parse_fields(registry, _descriptor(registry, message_name), "")


def _parse_fields(registry: TypeRegistry, message: Descriptor, root: str) -> List[CommandArg]:
    params: List[CommandArg] = []
    for field in message.fields:
        _check_supported(field)
        name = f"{root}.{field.name}" if root else field.name
        if field.type == FieldDescriptor.TYPE_MESSAGE:
            params.extend(_parse_fields(registry, field.message_type, name))
            continue
        if field.type == FieldDescriptor.TYPE_BYTES:
            arg_type = _bytes_arg_type(registry, message, field)
        elif field.type in _SCALAR_ARG_TYPES:
            arg_type = _SCALAR_ARG_TYPES[field.type]
        else:
            raise UnsupportedTypeError(f"unsupported type: {field.name} has protobuf type {field.type}")
        params.append(CommandArg(name, arg_type))
    return params


def data_to_message(registry: TypeRegistry, message_name: str, data: Mapping[str, str | None]) -> Any:
    message = registry.message_class(message_name)()
    _fill_message(registry, message, data, "")
    return message


def _fill_message(registry: TypeRegistry, message: Any, data: Mapping[str, str | None], root: str) -> None:
    descriptor = message.DESCRIPTOR
    for field in descriptor.fields:
        _check_supported(field)
        name = f"{root}.{field.name}" if root else field.name
        if field.type == FieldDescriptor.TYPE_MESSAGE:
            _fill_message(registry, getattr(message, field.name), data, name)
            # Touch the sub-message so empty nested messages are still present
            getattr(message, field.name).SetInParent()
            continue

        raw = data.get(name)
        if raw is None:
            raise InvalidABIError(f"missing value for {name}")
        value = _convert_value(registry, descriptor, field, raw)
        try:
            setattr(message, field.name, value)
        except ValueError as exc:
            raise InvalidABIError(f"invalid value for {name}: {exc}") from exc


def _convert_value(registry: TypeRegistry, message: Descriptor, field: FieldDescriptor, raw: str) -> Any:
    try:
        if field.type == FieldDescriptor.TYPE_BOOL:
            return raw == "true"
        if field.type in (
            FieldDescriptor.TYPE_INT32,
            FieldDescriptor.TYPE_INT64,
            FieldDescriptor.TYPE_UINT32,
            FieldDescriptor.TYPE_UINT64,
        ):
            return int(raw)
        if field.type == FieldDescriptor.TYPE_STRING:
            return raw
        if field.type == FieldDescriptor.TYPE_BYTES:
            return decode_bytes(raw, registry.btype(message.full_name, field.name))
    except ValueError as exc:
        raise InvalidABIError(f"invalid value for {field.name}: {exc}") from exc
    raise UnsupportedTypeError(f"unsupported type: {field.name} has protobuf type {field.type}")


def message_to_text(registry: TypeRegistry, message: Any) -> str:
    """Render a message in one-line text form with bytes shown by their btype."""

    if message is None:
        return ""
    return _render_message(registry, message)


def _render_message(registry: TypeRegistry, message: Any) -> str:
    message_name = message.DESCRIPTOR.full_name
    parts: List[str] = []
    for field, value in message.ListFields():
        items = value if field.label == FieldDescriptor.LABEL_REPEATED else [value]
        for item in items:
            if field.type == FieldDescriptor.TYPE_MESSAGE:
                inner = _render_message(registry, item)
                parts.append(f"{field.name} {{ {inner} }}" if inner else f"{field.name} {{}}")
            else:
                parts.append(f"{field.name}: {_render_scalar(registry, message_name, field, item)}")
    return " ".join(parts)


def _render_scalar(registry: TypeRegistry, message_name: str, field: FieldDescriptor, value: Any) -> str:
    if field.type == FieldDescriptor.TYPE_BYTES:
        return json.dumps(encode_bytes(value, registry.btype(message_name, field.name)))
    if field.type == FieldDescriptor.TYPE_BOOL:
        return "true" if value else "false"
    if field.type == FieldDescriptor.TYPE_STRING:
        return json.dumps(value)
    if field.type == FieldDescriptor.TYPE_ENUM:
        enum_value = field.enum_type.values_by_number.get(value)
        return enum_value.name if enum_value is not None else str(value)
    return str(value)


@dataclass
class ContractInfo:
    name: str
    address: str
    abi: ABI

    @property
    def address_bytes(self) -> bytes:
        return base58_decode(self.address)
