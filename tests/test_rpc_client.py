import json
from typing import Any, Dict, List

import pytest
import requests

from koinos_cli.encoding import b64url_encode, base58_encode
from koinos_cli.protocol import call_contract_operation, create_transaction, encode_nonce
from koinos_cli.rpc_client import KoinosRPCClient, RPCError, RPCTransportError

URL = "http://node.example.org:8080"
ADDRESS = b"\x00" + b"\x22" * 24


class StubResponse:
    def __init__(self, body: Any, status_code: int = 200, content_type: str = "application/json") -> None:
        self._body = body
        self.status_code = status_code
        self.ok = status_code < 400
        self.headers = {"content-type": content_type}
        self.url = URL

    @property
    def text(self) -> str:
        return self._body if isinstance(self._body, str) else json.dumps(self._body)

    def json(self) -> Any:
        if isinstance(self._body, str):
            return json.loads(self._body)
        return self._body


class StubSession:
    """Records JSON-RPC requests and replays canned responses."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def post(self, url: str, data: str, headers: Dict[str, str], timeout: float) -> Any:
        self.requests.append(json.loads(data))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _result(result: Any) -> StubResponse:
    return StubResponse({"jsonrpc": "2.0", "id": "1", "result": result})


def test_call_sends_jsonrpc_envelope() -> None:
    session = StubSession(_result({"chain_id": b64url_encode(b"\x12\x20" + bytes(32))}))
    client = KoinosRPCClient(URL, session=session)

    assert client.get_chain_id() == b"\x12\x20" + bytes(32)
    request = session.requests[0]
    assert request["jsonrpc"] == "2.0"
    assert request["method"] == "chain.get_chain_id"
    assert request["params"] == {}


def test_read_contract() -> None:
    session = StubSession(_result({"result": b64url_encode(b"\x08\x01"), "logs": ["hello"]}))
    client = KoinosRPCClient(URL, session=session)

    response = client.read_contract(ADDRESS, 0x10, b"\x01")

    assert response.result == b"\x08\x01"
    assert response.logs == ["hello"]
    assert session.requests[0]["params"] == {
        "contract_id": base58_encode(ADDRESS),
        "entry_point": 0x10,
        "args": b64url_encode(b"\x01"),
    }


def test_empty_read_result() -> None:
    client = KoinosRPCClient(URL, session=StubSession(_result({})))

    response = client.read_contract(ADDRESS, 1, b"")

    assert response.result == b""
    assert response.logs == []


def test_nonce_and_rc() -> None:
    nonce = b64url_encode(encode_nonce(12))
    session = StubSession(_result({"nonce": nonce}), _result({"nonce": nonce}), _result({"rc": "5000"}), _result({}))
    client = KoinosRPCClient(URL, session=session)

    assert client.get_account_nonce(ADDRESS) == 12
    assert client.get_pending_nonce(ADDRESS) == 12
    assert client.get_account_rc(ADDRESS) == 5000
    assert client.get_account_nonce(ADDRESS) == 0
    assert [request["method"] for request in session.requests] == [
        "chain.get_account_nonce",
        "mempool.get_pending_nonce",
        "chain.get_account_rc",
        "chain.get_account_nonce",
    ]
    assert session.requests[1]["params"] == {"payer": base58_encode(ADDRESS)}


def test_submit_transaction_returns_receipt() -> None:
    transaction = create_transaction(
        [call_contract_operation(ADDRESS, 1, b"")], chain_id=b"\x01", rc_limit=10, nonce=1, payer=ADDRESS
    )
    session = StubSession(_result({"receipt": {"id": transaction.id.hex(), "rc_used": "7"}}))
    client = KoinosRPCClient(URL, session=session)

    receipt = client.submit_transaction(transaction)

    assert receipt["rc_used"] == "7"
    params = session.requests[0]["params"]
    assert params["broadcast"] is True
    assert params["transaction"]["id"] == "0x" + transaction.id.hex()
    assert params["transaction"]["header"]["rc_limit"] == "10"


def test_contract_meta() -> None:
    session = StubSession(_result({"meta": {"abi": "{}"}}), _result({}))
    client = KoinosRPCClient(URL, session=session)

    assert client.get_contract_meta(ADDRESS) == {"abi": "{}"}
    assert client.get_contract_meta(ADDRESS) == {}


def test_rpc_error_carries_logs() -> None:
    error = {"code": -32603, "message": "reverted", "data": json.dumps({"logs": ["first", "second"]})}
    session = StubSession(StubResponse({"jsonrpc": "2.0", "id": "1", "error": error}, status_code=500))
    client = KoinosRPCClient(URL, session=session)

    with pytest.raises(RPCError) as excinfo:
        client.get_chain_id()

    assert excinfo.value.code == -32603
    assert str(excinfo.value) == "reverted"
    assert excinfo.value.details == ["first", "second"]


def test_rpc_error_with_plain_data() -> None:
    error = {"code": 1, "message": "bad", "data": "not json"}
    client = KoinosRPCClient(URL, session=StubSession(StubResponse({"error": error})))

    with pytest.raises(RPCError) as excinfo:
        client.get_chain_id()
    assert excinfo.value.logs == ["not json"]


def test_connection_failure() -> None:
    client = KoinosRPCClient(URL, session=StubSession(requests.ConnectionError("refused")))

    with pytest.raises(RPCTransportError) as excinfo:
        client.get_chain_id()
    assert URL in str(excinfo.value)


def test_http_error_without_json() -> None:
    client = KoinosRPCClient(URL, session=StubSession(StubResponse("gateway down", 502, "text/html")))

    with pytest.raises(RPCTransportError) as excinfo:
        client.get_chain_id()
    assert excinfo.value.status_code == 502


def test_malformed_json() -> None:
    client = KoinosRPCClient(URL, session=StubSession(StubResponse("{not json")))

    with pytest.raises(RPCTransportError):
        client.get_chain_id()
