"""Passphrase-protected wallet files.

A wallet file stores a single private key encrypted with AES-GCM under a
key derived from the passphrase with scrypt. The file itself is a small
JSON document so that its parameters can be inspected without decrypting.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Mapping

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .errors import (
    BlankPasswordError,
    FileNotFoundCLIError,
    KoinosCLIError,
    WalletDecryptError,
    WalletExistsError,
)
from .keys import KoinosKey

logger = logging.getLogger(__name__)

WALLET_PASS_ENV = "WALLET_PASS"

_AESGCM_NONCE_SIZE = 12
_SCRYPT_SALT_SIZE = 16
_SCRYPT_KEY_LENGTH = 32
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1


@dataclass
class WalletFile:
    """Serialized form of an encrypted wallet."""

    version: int
    algorithm: str
    kdf: str
    salt: str
    nonce: str
    ciphertext: str


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    kdf = Scrypt(
        salt=salt,
        length=_SCRYPT_KEY_LENGTH,
        n=_SCRYPT_N,
        r=_SCRYPT_R,
        p=_SCRYPT_P,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def get_password(password: str | None, env: Mapping[str, str] | None = None) -> str:
    """Resolve a wallet password from the argument or ``WALLET_PASS``."""

    env_map = os.environ if env is None else env
    resolved = password if password is not None else env_map.get(WALLET_PASS_ENV)
    if not resolved:
        raise BlankPasswordError()
    return resolved


def encrypt_key(key: KoinosKey, passphrase: str) -> WalletFile:
    salt = os.urandom(_SCRYPT_SALT_SIZE)
    nonce = os.urandom(_AESGCM_NONCE_SIZE)
    ciphertext = AESGCM(_derive_key(passphrase, salt)).encrypt(nonce, key.private_bytes, None)
    return WalletFile(
        version=1,
        algorithm="aes-gcm",
        kdf="scrypt",
        salt=base64.b64encode(salt).decode("ascii"),
        nonce=base64.b64encode(nonce).decode("ascii"),
        ciphertext=base64.b64encode(ciphertext).decode("ascii"),
    )


def decrypt_key(wallet: WalletFile, passphrase: str) -> KoinosKey:
    salt = base64.b64decode(wallet.salt.encode("ascii"))
    nonce = base64.b64decode(wallet.nonce.encode("ascii"))
    ciphertext = base64.b64decode(wallet.ciphertext.encode("ascii"))
    try:
        private_key = AESGCM(_derive_key(passphrase, salt)).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise WalletDecryptError() from exc
    return KoinosKey.from_private_bytes(private_key)


def create_wallet_file(path: str | Path, passphrase: str, key: KoinosKey) -> None:
    """Write ``key`` to a new wallet file; refuses to overwrite."""

    target = Path(path).expanduser()
    if target.exists():
        raise WalletExistsError(str(path))
    if not passphrase:
        raise BlankPasswordError()

    payload = json.dumps(asdict(encrypt_key(key, passphrase)), indent=2)
    target.write_text(payload + "\n", encoding="utf-8")
    logger.info("Wrote wallet file %s", target)


def read_wallet_file(path: str | Path, passphrase: str) -> KoinosKey:
    source = Path(path).expanduser()
    if not source.is_file():
        raise FileNotFoundCLIError(str(path))
    if not passphrase:
        raise BlankPasswordError()

    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
        wallet = WalletFile(**raw)
    except (ValueError, TypeError) as exc:
        raise KoinosCLIError(f"{path} is not a valid wallet file") from exc
    return decrypt_key(wallet, passphrase)
