"""Byte and amount encodings used on the Koinos wire.

Addresses and contract ids are plain Base58 over the full 25-byte address
(version byte, RIPEMD-160 hash and a 4-byte double-SHA256 checksum). Hashes
are SHA-256 multihashes and binary payloads travel as URL-safe Base64.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import List, Sequence

from .errors import InvalidAmountError, KoinosCLIError

b58_digits = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

SHA2_256_CODE = 0x12
SHA2_256_LENGTH = 0x20

KOIN_PRECISION = 8


def _double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def base58_encode(data: bytes) -> str:
    """Encode raw bytes as Base58, preserving leading zero bytes as ``1``."""

    value = int("0x0" + binascii.hexlify(data).decode("utf8"), 16)

    output: List[str] = []
    while value > 0:
        value, remainder = divmod(value, 58)
        output.append(b58_digits[remainder])
    encoded = "".join(output[::-1])

    leading_zero_count = 0
    for byte in data:
        if byte == 0:
            leading_zero_count += 1
        else:
            break

    return b58_digits[0] * leading_zero_count + encoded


def base58_decode(value: str) -> bytes:
    """Decode a Base58 string into raw bytes (no checksum handling)."""

    if not value:
        raise ValueError("Empty Base58 string")

    number = 0
    for character in value:
        if character not in b58_digits:
            raise ValueError(f"Invalid Base58 character: {character}")
        number = number * 58 + b58_digits.index(character)

    hex_value = f"{number:x}" if number else ""
    if len(hex_value) % 2:
        hex_value = "0" + hex_value
    decoded = binascii.unhexlify(hex_value.encode("utf8"))

    padding = 0
    for character in value:
        if character == b58_digits[0]:
            padding += 1
        else:
            break
    return b"\x00" * padding + decoded


def decode_address(value: str) -> bytes:
    try:
        return base58_decode(value)
    except ValueError as exc:
        raise KoinosCLIError(f"could not parse address {value}") from exc


def base58_check_encode(payload: bytes, version: bytes) -> str:
    data = version + payload
    return base58_encode(data + _double_sha256(data)[:4])


def base58_check_decode(value: str) -> bytes:
    """Decode Base58Check and return ``version + payload`` after verifying the checksum."""

    raw = base58_decode(value)
    if len(raw) < 5:
        raise ValueError("Base58Check string too short")
    data, checksum = raw[:-4], raw[-4:]
    if _double_sha256(data)[:4] != checksum:
        raise ValueError("Base58Check checksum mismatch")
    return data


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii")


def b64url_decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 data: {value}") from exc


def b64_decode_any(value: str) -> bytes:
    """Decode standard or URL-safe Base64, with or without padding."""

    normalized = value.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    try:
        return base64.b64decode(normalized.encode("ascii"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 data: {value}") from exc


def hex_to_bytes(value: str) -> bytes:
    digits = value[2:] if value.lower().startswith("0x") else value
    try:
        return bytes.fromhex(digits)
    except ValueError as exc:
        raise ValueError(f"Invalid hex string: {value}") from exc


def parse_entry_point(value: str) -> int:
    """Parse a ``0x``-prefixed 32-bit entry point."""

    try:
        entry_point = int(value, 16)
    except ValueError as exc:
        raise ValueError(f"Invalid entry point: {value}") from exc
    if not 0 <= entry_point <= 0xFFFFFFFF:
        raise ValueError(f"Entry point out of range: {value}")
    return entry_point


def multihash_sha256(data: bytes) -> bytes:
    return bytes([SHA2_256_CODE, SHA2_256_LENGTH]) + hashlib.sha256(data).digest()


def multihash_digest(multihash: bytes) -> bytes:
    if len(multihash) < 2 or multihash[0] != SHA2_256_CODE or multihash[1] != len(multihash) - 2:
        raise ValueError("Not a SHA-256 multihash")
    return multihash[2:]


def merkle_root(leaves: Sequence[bytes]) -> bytes:
    """Compute the multihash merkle root of multihash ``leaves``.

    Pairs are hashed as ``sha256(left || right)``; an odd trailing node is
    carried up unchanged.
    """

    if not leaves:
        return multihash_sha256(b"")

    nodes = list(leaves)
    while len(nodes) > 1:
        parents: List[bytes] = []
        for index in range(0, len(nodes), 2):
            if index + 1 < len(nodes):
                parents.append(multihash_sha256(nodes[index] + nodes[index + 1]))
            else:
                parents.append(nodes[index])
        nodes = parents
    return nodes[0]


def parse_decimal(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise InvalidAmountError(f"invalid amount: {value}") from exc
    if not amount.is_finite():
        raise InvalidAmountError(f"invalid amount: {value}")
    return amount


def satoshi_to_decimal(amount: int, precision: int) -> Decimal:
    """Convert an integer amount to a Decimal with ``precision`` places."""

    return Decimal(amount).scaleb(-precision)


def decimal_to_satoshi(amount: Decimal, precision: int) -> int:
    """Convert a Decimal to its integer representation, truncating extra digits."""

    return int(amount.scaleb(precision).to_integral_value(rounding=ROUND_DOWN))


def format_decimal(amount: Decimal) -> str:
    """Render a Decimal without exponent or trailing zeros."""

    normalized = amount.normalize()
    if normalized == normalized.to_integral_value():
        return f"{normalized.to_integral_value():f}"
    return f"{normalized:f}"
