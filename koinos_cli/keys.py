"""secp256k1 keys, Koinos addresses and compact recoverable signatures."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from Crypto.Hash import RIPEMD160
from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.util import sigencode_string_canonize

from .encoding import base58_check_decode, base58_check_encode, base58_encode, b64url_encode
from .errors import KoinosCLIError

logger = logging.getLogger(__name__)

ADDRESS_VERSION = b"\x00"
WIF_VERSION = b"\x80"
COMPRESSED_FLAG = b"\x01"

# 27 plus 4 for a compressed public key
COMPACT_HEADER = 31


def address_from_public_key(public_key: bytes) -> bytes:
    """Return the 25-byte address (version, hash160, checksum) of a compressed key."""

    payload = ADDRESS_VERSION + RIPEMD160.new(hashlib.sha256(public_key).digest()).digest()
    return payload + hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:4]


@dataclass(frozen=True)
class KoinosKey:
    signing_key: SigningKey

    @classmethod
    def generate(cls) -> "KoinosKey":
        return cls(SigningKey.generate(curve=SECP256k1))

    @classmethod
    def from_private_bytes(cls, private_key: bytes) -> "KoinosKey":
        if len(private_key) != 32:
            raise KoinosCLIError("private key must be 32 bytes")
        return cls(SigningKey.from_string(private_key, curve=SECP256k1))

    @classmethod
    def from_wif(cls, wif: str) -> "KoinosKey":
        """Decode a WIF private key (compressed or uncompressed form)."""

        try:
            data = base58_check_decode(wif)
        except ValueError as exc:
            raise KoinosCLIError(f"invalid private key: {exc}") from exc
        if data[:1] != WIF_VERSION:
            raise KoinosCLIError("invalid private key: unexpected WIF version")
        body = data[1:]
        if len(body) == 33 and body[-1:] == COMPRESSED_FLAG:
            body = body[:-1]
        if len(body) != 32:
            raise KoinosCLIError("invalid private key: unexpected length")
        return cls.from_private_bytes(body)

    @property
    def private_bytes(self) -> bytes:
        return self.signing_key.to_string()

    @property
    def public_bytes(self) -> bytes:
        return self.signing_key.get_verifying_key().to_string("compressed")

    @property
    def address_bytes(self) -> bytes:
        return address_from_public_key(self.public_bytes)

    @property
    def address(self) -> str:
        return base58_encode(self.address_bytes)

    def wif(self, compressed: bool = False) -> str:
        payload = self.private_bytes + (COMPRESSED_FLAG if compressed else b"")
        return base58_check_encode(payload, WIF_VERSION)

    def public_b64(self) -> str:
        return b64url_encode(self.public_bytes)

    def sign_digest(self, digest: bytes) -> bytes:
        """Return a 65-byte compact signature (recovery header then ``r || s``)."""

        signature = self.signing_key.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=sigencode_string_canonize
        )
        own = self.public_bytes
        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            signature, digest, SECP256k1, hashfunc=hashlib.sha256
        )
        for recovery_id, candidate in enumerate(candidates):
            if candidate.to_string("compressed") == own:
                return bytes([COMPACT_HEADER + recovery_id]) + signature
        raise KoinosCLIError("could not compute signature recovery id")


def recover_public_key(digest: bytes, compact_signature: bytes) -> bytes:
    """Recover the compressed public key from a compact signature."""

    if len(compact_signature) != 65:
        raise KoinosCLIError("compact signature must be 65 bytes")
    recovery_id = compact_signature[0] - COMPACT_HEADER
    candidates = VerifyingKey.from_public_key_recovery_with_digest(
        compact_signature[1:], digest, SECP256k1, hashfunc=hashlib.sha256
    )
    if not 0 <= recovery_id < len(candidates):
        raise KoinosCLIError("invalid signature recovery id")
    return candidates[recovery_id].to_string("compressed")
