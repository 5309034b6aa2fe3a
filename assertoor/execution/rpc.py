"""JSON-RPC client for execution layer nodes."""

from __future__ import annotations

import itertools
import threading
from typing import Any, Mapping
from urllib.parse import urlsplit

import requests

from assertoor.execution.chainspec import ChainSpec, SyncStatus


class RpcError(Exception):
    """An error returned by the node or its HTTP transport."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def _to_int(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value)
    if text.startswith(("0x", "0X")):
        return int(text[2:] or "0", 16)
    return int(text)


def _to_hex_data(value: bytes | str) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text if text.startswith(("0x", "0X")) else "0x" + text


def _block_ref(block_number: int | None) -> str:
    return "latest" if block_number is None else hex(block_number)


class ExecutionClient:
    """Talks to one execution node over HTTP JSON-RPC."""

    def __init__(self, name: str, url: str, headers: Mapping[str, str] | None = None) -> None:
        self.name = name
        self.endpoint = url
        self.headers = dict(headers or {})
        self.timeout = 60.0
        self._session: requests.Session | None = None
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Prepare the transport; raises ValueError for unsupported URLs."""
        with self._lock:
            if self._session is not None:
                return
            scheme = urlsplit(self.endpoint).scheme.lower()
            if scheme not in ("http", "https"):
                raise ValueError(f'no known transport for URL scheme "{scheme}"')
            session = requests.Session()
            session.headers.update(self.headers)
            self._session = session

    def call(self, method: str, *args: Any) -> Any:
        """Invoke ``method`` with positional ``args`` and return its result."""
        self.initialize()
        with self._lock:
            request_id = next(self._ids)
            session = self._session
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": list(args)}
        response = session.post(self.endpoint, json=payload, timeout=self.timeout)

        if not 200 <= response.status_code < 300:
            raise RpcError(response.status_code, f"{response.status_code} {response.reason}: {response.text}")
        try:
            body = response.json()
        except ValueError as exc:
            raise RpcError(-32700, f"invalid json response: {exc}") from exc
        if not isinstance(body, dict):
            raise RpcError(-32700, "invalid json-rpc response")

        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcError(int(error.get("code", 0)), str(error.get("message", "")), error.get("data"))
            raise RpcError(0, str(error))
        return body.get("result")

    def get_client_version(self) -> str:
        return str(self.call("web3_clientVersion"))

    def get_chain_spec(self) -> ChainSpec:
        return ChainSpec(chain_id=str(_to_int(self.call("eth_chainId"))))

    def get_node_syncing(self) -> SyncStatus:
        status = self.call("eth_syncing")
        if not status:
            return SyncStatus(is_syncing=False)
        return SyncStatus(
            is_syncing=True,
            starting_block=_to_int(status.get("startingBlock", 0)),
            current_block=_to_int(status.get("currentBlock", 0)),
            highest_block=_to_int(status.get("highestBlock", 0)),
        )

    def get_latest_block(self) -> dict:
        """Return the latest block with full transactions; LookupError if none."""
        block = self.call("eth_getBlockByNumber", "latest", True)
        if block is None:
            raise LookupError("not found")
        return block

    def get_block_by_hash(self, block_hash: bytes | str) -> dict:
        """Return the block with full transactions; LookupError if unknown."""
        block = self.call("eth_getBlockByHash", _to_hex_data(block_hash), True)
        if block is None:
            raise LookupError("not found")
        return block

    def get_nonce_at(self, address: bytes | str, block_number: int | None = None) -> int:
        return _to_int(self.call("eth_getTransactionCount", _to_hex_data(address), _block_ref(block_number)))

    def get_balance_at(self, address: bytes | str, block_number: int | None = None) -> int:
        return _to_int(self.call("eth_getBalance", _to_hex_data(address), _block_ref(block_number)))

    def get_transaction_receipt(self, tx_hash: bytes | str) -> dict:
        """Return the receipt; LookupError if the transaction is not mined."""
        receipt = self.call("eth_getTransactionReceipt", _to_hex_data(tx_hash))
        if receipt is None:
            raise LookupError("not found")
        return receipt

    def send_raw_transaction(self, raw_tx: bytes | str) -> bytes:
        """Submit a signed transaction and return its hash."""
        result = self.call("eth_sendRawTransaction", _to_hex_data(raw_tx))
        text = str(result)
        return bytes.fromhex(text[2:] if text.startswith(("0x", "0X")) else text)