"""A cached beacon block whose header and body are loaded once."""

from __future__ import annotations

import threading
from typing import Any, Callable, Mapping


def _to_root(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value)
    return bytes.fromhex(text[2:] if text.startswith(("0x", "0X")) else text)


class Block:
    """A beacon block known by root and slot.

    The header is a signed block header mapping (``{"message": ..., "signature": ...}``)
    and the body a versioned signed block mapping.
    """

    def __init__(self, root: bytes, slot: int) -> None:
        self.root = root
        self.slot = slot
        self._header: Mapping[str, Any] | None = None
        self._header_ready = threading.Event()
        self._header_lock = threading.Lock()
        self._block: Mapping[str, Any] | None = None
        self._block_ready = threading.Event()
        self._block_lock = threading.Lock()
        self._seen_lock = threading.Lock()
        self._seen: dict[int, Any] = {}

    @property
    def header(self) -> Mapping[str, Any] | None:
        return self._header

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

    def await_header(self, timeout: float | None = None) -> Mapping[str, Any] | None:
        """Wait up to ``timeout`` seconds for the header and return it (or None)."""
        self._header_ready.wait(timeout)
        return self._header

    def await_block(self, timeout: float | None = None) -> Mapping[str, Any] | None:
        """Wait up to ``timeout`` seconds for the body and return it (or None)."""
        self._block_ready.wait(timeout)
        return self._block

    def get_parent_root(self) -> bytes | None:
        if self._header is None:
            return None
        message = self._header.get("message") or {}
        parent = message.get("parent_root")
        return None if parent is None else _to_root(parent)

    def set_header(self, header: Mapping[str, Any]) -> None:
        self._header = header
        if header is not None:
            self._header_ready.set()

    def ensure_header(self, load_header: Callable[[], Mapping[str, Any] | None]) -> None:
        """Load the header once; errors from ``load_header`` propagate."""
        if self._header is not None:
            return
        with self._header_lock:
            if self._header is not None:
                return
            header = load_header()
            if header is None:
                return
            self._header = header
            self._header_ready.set()

    def ensure_block(self, load_block: Callable[[], Mapping[str, Any] | None]) -> bool:
        """Load the body once; return True if this call loaded it.

        Errors from ``load_block`` propagate; a None result leaves the block unloaded.
        """
        if self._block is not None:
            return False
        with self._block_lock:
            if self._block is not None:
                return False
            body = load_block()
            if body is None:
                return False
            self._block = body
            self._block_ready.set()
            return True