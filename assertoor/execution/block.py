"""A cached execution block that is filled in once its body has been loaded."""

from __future__ import annotations

import threading
from typing import Any, Callable, Mapping


class Block:
    """An execution block known by hash and number, with its body loaded lazily.

    The loaded block is a JSON-RPC block object (a mapping).
    """

    def __init__(self, block_hash: bytes, number: int) -> None:
        self.hash = block_hash
        self.number = number
        self._block: Mapping[str, Any] | None = None
        self._loaded = threading.Event()
        self._load_lock = threading.Lock()
        self._seen_lock = threading.Lock()
        self._seen: dict[int, Any] = {}

    @property
    def block(self) -> Mapping[str, Any] | None:
        return self._block

    def get_seen_by(self) -> list:
        """Return the clients that reported this block, ordered by index."""
        with self._seen_lock:
            clients = list(self._seen.values())
        return sorted(clients, key=lambda client: client.index)

    def set_seen_by(self, client) -> None:
        with self._seen_lock:
            self._seen[client.index] = client

    def await_block(self, timeout: float | None = None) -> Mapping[str, Any] | None:
        """Wait up to ``timeout`` seconds for the body and return it (or None)."""
        self._loaded.wait(timeout)
        return self._block

    def get_parent_hash(self) -> bytes | None:
        if self._block is None:
            return None
        parent = self._block.get("parentHash")
        if parent is None:
            return None
        if isinstance(parent, (bytes, bytearray)):
            return bytes(parent)
        text = str(parent)
        return bytes.fromhex(text[2:] if text.startswith(("0x", "0X")) else text)

    def ensure_block(self, load_block: Callable[[], Mapping[str, Any] | None]) -> bool:
        """Load the body once; return True if this call loaded it.

        Errors from ``load_block`` propagate; a None result leaves the block unloaded.
        """
        if self._block is not None:
            return False
        with self._load_lock:
            if self._block is not None:
                return False
            body = load_block()
            if body is None:
                return False
            self._block = body
            self._loaded.set()
            return True