"""JSON-RPC client for Koinos nodes.

Parameters and results use the node's JSON conventions: addresses and
contract ids are Base58 strings, binary payloads are URL-safe Base64 and
64-bit integers are decimal strings. Each helper maps to one node method and
converts to and from Python values.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from requests import RequestException, Response

from .encoding import b64url_decode, b64url_encode, base58_encode
from .protocol import decode_nonce_b64, transaction_to_json

logger = logging.getLogger(__name__)

READ_CONTRACT_CALL = "chain.read_contract"
GET_ACCOUNT_NONCE_CALL = "chain.get_account_nonce"
GET_PENDING_NONCE_CALL = "mempool.get_pending_nonce"
GET_ACCOUNT_RC_CALL = "chain.get_account_rc"
GET_CHAIN_ID_CALL = "chain.get_chain_id"
SUBMIT_TRANSACTION_CALL = "chain.submit_transaction"
GET_CONTRACT_META_CALL = "contract_meta_store.get_contract_meta"


class RPCError(RuntimeError):
    """Raised when the node responds with a JSON-RPC error.

    ``logs`` holds the contract logs the node attaches to failed calls.
    """

    def __init__(self, code: int, message: str, logs: List[str] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.logs = list(logs or [])

    @property
    def details(self) -> List[str]:
        return self.logs


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_logs(error: Dict[str, Any]) -> List[str]:
    data = error.get("data")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            return [data] if data else []
    if isinstance(data, dict):
        logs = data.get("logs") or []
        return [str(entry) for entry in logs]
    return []


@dataclass
class ReadContractResult:
    result: bytes
    logs: List[str] = field(default_factory=list)


class KoinosRPCClient:
    """Thin JSON-RPC client for a Koinos API node."""

    def __init__(self, url: str, session: requests.Session | None = None, timeout: float = 30) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Perform a JSON-RPC request and return its ``result`` member."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or {},
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self.url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(f"could not reach {self.url}: {exc}") from exc
        self._raise_for_status(response)
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if not isinstance(result, dict):
            raise RPCTransportError("RPC server returned malformed JSON")
        if result.get("error"):
            error = result["error"]
            raise RPCError(
                error.get("code", -1), error.get("message", "unknown"), _error_logs(error)
            )
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        # JSON-RPC errors may arrive with a 500 status and a valid body
        if response.ok or response.headers.get("content-type", "").startswith("application/json"):
            return
        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        logger.error("RPC error body: %s", response.text)
        raise RPCTransportError(
            f"RPC server returned HTTP {response.status_code}", status_code=response.status_code
        )

    # Chain ------------------------------------------------------------------

    def read_contract(self, contract_id: bytes, entry_point: int, args: bytes) -> ReadContractResult:
        result = self.call(
            READ_CONTRACT_CALL,
            {
                "contract_id": base58_encode(contract_id),
                "entry_point": entry_point,
                "args": b64url_encode(args),
            },
        ) or {}
        return ReadContractResult(
            result=b64url_decode(result.get("result", "")), logs=list(result.get("logs") or [])
        )

    def get_account_nonce(self, address: bytes) -> int:
        result = self.call(GET_ACCOUNT_NONCE_CALL, {"account": base58_encode(address)}) or {}
        return decode_nonce_b64(result.get("nonce", ""))

    def get_pending_nonce(self, address: bytes) -> int:
        result = self.call(GET_PENDING_NONCE_CALL, {"payer": base58_encode(address)}) or {}
        return decode_nonce_b64(result.get("nonce", ""))

    def get_account_rc(self, address: bytes) -> int:
        result = self.call(GET_ACCOUNT_RC_CALL, {"account": base58_encode(address)}) or {}
        return int(result.get("rc", 0))

    def get_chain_id(self) -> bytes:
        result = self.call(GET_CHAIN_ID_CALL, {}) or {}
        return b64url_decode(result.get("chain_id", ""))

    def submit_transaction(self, transaction: Any, broadcast: bool = True) -> Dict[str, Any]:
        """Submit a signed transaction and return the receipt as JSON."""

        result = self.call(
            SUBMIT_TRANSACTION_CALL,
            {"transaction": transaction_to_json(transaction), "broadcast": broadcast},
        ) or {}
        return result.get("receipt") or {}

    # Contract meta store ----------------------------------------------------

    def get_contract_meta(self, contract_id: bytes) -> Dict[str, Any]:
        result = self.call(GET_CONTRACT_META_CALL, {"contract_id": base58_encode(contract_id)}) or {}
        return result.get("meta") or {}
