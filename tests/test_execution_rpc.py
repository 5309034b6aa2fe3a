import json

import pytest
import responses

from assertoor.execution.chainspec import ChainSpec, SyncStatus
from assertoor.execution.rpc import ExecutionClient, RpcError

URL = "http://node.test:8545"
ADDRESS = "0x" + "12" * 20


def _result(value):
    return {"jsonrpc": "2.0", "id": 1, "result": value}


def _request(mocked, index=0):
    return json.loads(mocked.calls[index].request.body)


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def client():
    return ExecutionClient("el-1", URL, {"X-Custom": "value"})


def test_client_version_request(client, mocked):
    mocked.add(responses.POST, URL, json=_result("Geth/v1.13.8"))
    assert client.get_client_version() == "Geth/v1.13.8"
    body = _request(mocked)
    assert body["method"] == "web3_clientVersion"
    assert body["params"] == []
    assert body["jsonrpc"] == "2.0"
    assert mocked.calls[0].request.headers["X-Custom"] == "value"


def test_chain_spec_is_decimal(client, mocked):
    mocked.add(responses.POST, URL, json=_result("0xa"))
    assert client.get_chain_spec() == ChainSpec(chain_id="10")


def test_not_syncing(client, mocked):
    mocked.add(responses.POST, URL, json=_result(False))
    assert client.get_node_syncing() == SyncStatus(is_syncing=False)


def test_syncing_progress(client, mocked):
    mocked.add(
        responses.POST,
        URL,
        json=_result({"startingBlock": "0x0", "currentBlock": "0x5", "highestBlock": "0xa"}),
    )
    status = client.get_node_syncing()
    assert status.is_syncing is True
    assert status.current_block == int("0x5", 16)
    assert status.highest_block == int("0xa", 16)


def test_nonce_defaults_to_latest(client, mocked):
    mocked.add(responses.POST, URL, json=_result("0x3"))
    assert client.get_nonce_at(ADDRESS) == 3
    assert _request(mocked)["params"] == [ADDRESS, "latest"]


def test_balance_at_block_number(client, mocked):
    mocked.add(responses.POST, URL, json=_result("0x0"))
    assert client.get_balance_at(bytes.fromhex("12" * 20), 16) == 0
    params = _request(mocked)["params"]
    assert params[0] == ADDRESS
    assert int(params[1], 16) == 16


def test_block_by_hash_params(client, mocked):
    block_hash = bytes.fromhex("34" * 32)
    block = {"hash": "0x" + "34" * 32, "number": "0x1"}
    mocked.add(responses.POST, URL, json=_result(block))
    assert client.get_block_by_hash(block_hash) == block
    assert _request(mocked)["params"] == ["0x" + block_hash.hex(), True]


def test_missing_latest_block_raises(client, mocked):
    mocked.add(responses.POST, URL, json=_result(None))
    with pytest.raises(LookupError):
        client.get_latest_block()


def test_missing_receipt_raises(client, mocked):
    mocked.add(responses.POST, URL, json=_result(None))
    with pytest.raises(LookupError):
        client.get_transaction_receipt("0x" + "56" * 32)


def test_send_raw_transaction_returns_hash(client, mocked):
    tx_hash = "0x" + "11" * 32
    mocked.add(responses.POST, URL, json=_result(tx_hash))
    raw = bytes.fromhex("02f8")
    assert client.send_raw_transaction(raw) == bytes.fromhex("11" * 32)
    assert _request(mocked)["params"] == ["0x" + raw.hex()]


def test_rpc_error_is_raised(client, mocked):
    mocked.add(
        responses.POST,
        URL,
        json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "nonce too low"}},
    )
    with pytest.raises(RpcError) as info:
        client.get_nonce_at(ADDRESS)
    assert info.value.code == -32000
    assert info.value.message == "nonce too low"


def test_http_error_is_raised(client, mocked):
    mocked.add(responses.POST, URL, body="boom", status=500)
    with pytest.raises(RpcError) as info:
        client.get_client_version()
    assert info.value.code == 500


def test_request_ids_increase(client, mocked):
    mocked.add(responses.POST, URL, json=_result("x"))
    first = client.call("web3_clientVersion")
    second = client.call("web3_clientVersion")
    assert (first, second) == ("x", "x")
    assert _request(mocked, 1)["id"] > _request(mocked, 0)["id"]


def test_unsupported_scheme_rejected():
    with pytest.raises(ValueError):
        ExecutionClient("el", "ws://node.test:8546").initialize()