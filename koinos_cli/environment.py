"""Execution environment shared by every command invocation.

The environment owns the mutable state of an interactive session: the open
wallet key, the node client, registered contracts, the transaction session
and the bookkeeping needed to build transactions (nonce cache, payer,
rc limit and chain id). Commands run one at a time, so plain fields are used
throughout.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, Generic, List, Optional, Sequence, TypeVar, Union

from .config import CLIConfig, parse_rc_limit
from .encoding import (
    KOIN_PRECISION,
    b64_decode_any,
    base58_decode,
    base58_encode,
    decimal_to_satoshi,
    format_decimal,
    satoshi_to_decimal,
)
from .errors import ContractError, InsufficientRCError, KoinosCLIError, OfflineError, WalletClosedError
from .protocol import create_transaction, format_receipt, sign_transaction
from .rpc_client import RPCError, RPCTransportError
from .session import TransactionSession

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .keys import KoinosKey
    from .registry import CommandSet
    from .rpc_client import KoinosRPCClient

logger = logging.getLogger(__name__)

NONCE_CHECK_TIME = 30.0

T = TypeVar("T")


@dataclass(frozen=True)
class Auto:
    def __str__(self) -> str:
        return "auto"


@dataclass(frozen=True)
class Me:
    def __str__(self) -> str:
        return "me"


@dataclass(frozen=True)
class Fixed(Generic[T]):
    value: T

    def __str__(self) -> str:
        return str(self.value)


AUTO = Auto()
ME = Me()

NonceMode = Union[Auto, Fixed[int]]
ChainIDMode = Union[Auto, Fixed[str]]
PayerMode = Union[Me, Fixed[str]]


@dataclass
class RCLimit:
    """Either an absolute mana amount or a fraction of the payer's available rc."""

    value: Decimal
    absolute: bool

    def __str__(self) -> str:
        if self.absolute:
            return format_decimal(self.value)
        return f"{format_decimal(self.value * 100)}%"


@dataclass
class NonceInfo:
    current_nonce: int
    nonce_time: float


def is_insufficient_rc(error: RPCError) -> bool:
    message = error.message.lower()
    return "insufficient rc" in message or "insufficient resource" in message


class ExecutionEnvironment:
    def __init__(
        self,
        client: Optional["KoinosRPCClient"] = None,
        command_set: Optional["CommandSet"] = None,
        config: CLIConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CLIConfig()
        self.client = client
        self.command_set = command_set
        self.key: Optional["KoinosKey"] = None
        self.contracts: Dict[str, Any] = {}
        self.session = TransactionSession()
        self.nonce_mode: NonceMode = AUTO
        self.chain_id: ChainIDMode = AUTO
        self.payer: PayerMode = ME
        value, absolute = parse_rc_limit(self.config.rc_limit)
        self.rc_limit = RCLimit(value, absolute)
        self._clock = clock
        self._nonces: Dict[bytes, NonceInfo] = {}
        self._cleanups: List[Callable[[], None]] = []

    # State ------------------------------------------------------------------

    def is_online(self) -> bool:
        return self.client is not None

    def is_wallet_open(self) -> bool:
        return self.key is not None

    def require_online(self) -> "KoinosRPCClient":
        if self.client is None:
            raise OfflineError()
        return self.client

    def require_wallet(self) -> "KoinosKey":
        if self.key is None:
            raise WalletClosedError()
        return self.key

    def open_wallet(self, key: "KoinosKey") -> None:
        self.key = key
        logger.debug("Opened wallet for %s", key.address)

    def close_wallet(self) -> None:
        self.key = None

    def connect(self, client: "KoinosRPCClient") -> None:
        self.client = client
        self._nonces.clear()

    def disconnect(self) -> None:
        self.client = None
        self._nonces.clear()

    # Contracts --------------------------------------------------------------

    def add_contract(self, name: str, info: Any) -> None:
        if name in self.contracts:
            raise ContractError(f"contract {name} already exists")
        self.contracts[name] = info

    # Nonce ------------------------------------------------------------------

    def is_nonce_auto(self) -> bool:
        return isinstance(self.nonce_mode, Auto)

    def set_nonce(self, value: str) -> None:
        if value == "auto":
            self.nonce_mode = AUTO
            return
        try:
            nonce = int(value)
        except ValueError as exc:
            raise KoinosCLIError('nonce must either be an integer number or "auto"') from exc
        if nonce < 0:
            raise KoinosCLIError('nonce must either be an integer number or "auto"')
        self.nonce_mode = Fixed(nonce)

    def get_next_nonce(self, address: bytes, update: bool) -> int:
        """Return the nonce to use for the next transaction paid by ``address``.

        A manual nonce is returned verbatim. In automatic mode the value is
        the cached account nonce plus one; the cache is refreshed from the
        node when missing or older than :data:`NONCE_CHECK_TIME`, and
        advanced locally when ``update`` is true.
        """

        if isinstance(self.nonce_mode, Fixed):
            return self.nonce_mode.value

        now = self._clock()
        info = self._nonces.get(address)
        if info is None or now - info.nonce_time > NONCE_CHECK_TIME:
            info = NonceInfo(self._fetch_nonce(address), now)
            self._nonces[address] = info

        nonce = info.current_nonce + 1
        if update:
            info.current_nonce += 1
            info.nonce_time = now
        return nonce

    def _fetch_nonce(self, address: bytes) -> int:
        client = self.require_online()
        try:
            nonce = client.get_pending_nonce(address)
        except RPCError as exc:
            logger.debug("Pending nonce unavailable (%s), using account nonce", exc)
            nonce = client.get_account_nonce(address)
        logger.debug("Fetched nonce %d for %s", nonce, base58_encode(address))
        return nonce

    def reset_nonce(self, address: bytes | None = None) -> None:
        if address is None:
            self._nonces.clear()
        else:
            self._nonces.pop(address, None)

    # Payer ------------------------------------------------------------------

    def is_self_paying(self) -> bool:
        return isinstance(self.payer, Me)

    def set_payer(self, value: str) -> None:
        if value == "me":
            self.payer = ME
            return
        try:
            base58_decode(value)
        except ValueError as exc:
            raise KoinosCLIError(f"invalid payer address {value}") from exc
        self.payer = Fixed(value)

    def get_payer_address(self) -> bytes:
        if isinstance(self.payer, Fixed):
            return base58_decode(self.payer.value)
        return self.require_wallet().address_bytes

    # Chain id ---------------------------------------------------------------

    def is_chain_id_auto(self) -> bool:
        return isinstance(self.chain_id, Auto)

    def set_chain_id(self, value: str) -> None:
        if value == "auto":
            self.chain_id = AUTO
            return
        try:
            b64_decode_any(value)
        except ValueError as exc:
            raise KoinosCLIError('chain id must either be a base64 string or "auto"') from exc
        self.chain_id = Fixed(value)

    def get_chain_id(self) -> bytes:
        if isinstance(self.chain_id, Fixed):
            return b64_decode_any(self.chain_id.value)
        return self.require_online().get_chain_id()

    # Rc limit ---------------------------------------------------------------

    def set_rc_limit(self, value: Decimal, absolute: bool) -> None:
        if not absolute and not 0 <= value <= 1:
            raise KoinosCLIError("percentage rc limit must be between 0% and 100%")
        self.rc_limit = RCLimit(value, absolute)

    def get_rc_limit(self, payer: bytes | None = None) -> int:
        """Resolve the rc limit in satoshi for a transaction paid by ``payer``."""

        if self.rc_limit.absolute:
            return decimal_to_satoshi(self.rc_limit.value, KOIN_PRECISION)

        if payer is None:
            payer = self.get_payer_address()
        available = self.require_online().get_account_rc(payer)
        limit = Decimal(available) * self.rc_limit.value
        return int(limit.to_integral_value(rounding=ROUND_DOWN))

    def insufficient_rc_advice(self, payer: bytes | None = None) -> List[str]:
        """Suggest a larger rc limit after a transaction ran out of rc."""

        if self.rc_limit.absolute:
            suggested = self.rc_limit.value * 2
            if self.is_online() and payer is not None:
                try:
                    available = satoshi_to_decimal(self.require_online().get_account_rc(payer), KOIN_PRECISION)
                except (RPCError, RPCTransportError) as exc:
                    logger.warning("Could not fetch available rc for advice: %s", exc)
                else:
                    suggested = min(suggested, available)
            if suggested <= self.rc_limit.value:
                return [
                    f"Current rc limit {self.rc_limit} already uses all available rc, the payer needs more mana"
                ]
            return [f"Try increasing the rc limit, for example: rclimit {format_decimal(suggested)}"]

        percent = self.rc_limit.value * 100
        if percent >= 100:
            return ["Current rc limit is already 100%, the payer needs more mana"]
        suggested = min(percent * 2, Decimal(100)) if percent > 0 else Decimal(100)
        return [f"Try increasing the rc limit, for example: rclimit {format_decimal(suggested)}%"]

    # Transactions -----------------------------------------------------------

    def create_signed_transaction(self, operations: Sequence[Any]) -> Any:
        """Build and sign a transaction from the current settings.

        Consumes a nonce from the cache in automatic mode.
        """

        key = self.require_wallet()
        payer = self.get_payer_address()
        chain_id = self.get_chain_id()
        rc_limit = self.get_rc_limit(payer)
        nonce = self.get_next_nonce(payer, update=True)
        payee = key.address_bytes if payer != key.address_bytes else None

        transaction = create_transaction(
            list(operations),
            chain_id=chain_id,
            rc_limit=rc_limit,
            nonce=nonce,
            payer=payer,
            payee=payee,
        )
        return sign_transaction(transaction, key)

    def submit_transaction(self, operations: Sequence[Any]) -> List[str]:
        """Sign and submit ``operations`` as one transaction, returning the receipt lines."""

        client = self.require_online()
        transaction = self.create_signed_transaction(operations)
        payer = transaction.header.payer
        try:
            receipt = client.submit_transaction(transaction, broadcast=True)
        except RPCError as exc:
            self.reset_nonce(payer)
            if is_insufficient_rc(exc):
                raise InsufficientRCError(
                    [*self.insufficient_rc_advice(payer), *exc.logs]
                ) from exc
            raise
        except RPCTransportError:
            self.reset_nonce(payer)
            raise

        logger.info("Submitted transaction 0x%s", transaction.id.hex())
        return format_receipt(receipt, len(transaction.operations))

    # Lifecycle --------------------------------------------------------------

    def add_cleanup(self, callback: Callable[[], None]) -> None:
        self._cleanups.append(callback)

    def close(self) -> None:
        while self._cleanups:
            self._cleanups.pop()()


def require_submit_path(env: ExecutionEnvironment) -> "KoinosKey":
    """A mutating command needs a wallet and either a node or an active session."""

    key = env.require_wallet()
    if not env.is_online() and not env.session.is_valid():
        raise OfflineError()
    return key


def submit_or_stage(
    env: ExecutionEnvironment,
    result: Any,
    operation: Any,
    log_message: str,
    failure: str,
) -> Any:
    """Stage ``operation`` in the active session or submit it on its own.

    ``failure`` prefixes submission errors, e.g. ``"cannot call contract"``.
    """

    if env.session.is_valid():
        env.session.add_operation(operation, log_message)
        result.add_message("Adding operation to transaction session")
        return result

    try:
        result.add_message(*env.submit_transaction([operation]))
    except (KoinosCLIError, RPCError, RPCTransportError) as exc:
        raise KoinosCLIError(f"{failure}, {exc}", getattr(exc, "details", [])) from exc
    return result
