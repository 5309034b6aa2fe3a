"""One execution node endpoint that is polled and notified of new blocks."""

from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from assertoor.execution.clienttype import ClientType, detect_client_type
from assertoor.execution.rpc import ExecutionClient

_log = logging.getLogger(__name__)

_EVENT_TIMEOUT = 30.0
_POLL_INTERVAL = 0.2
_QUEUE_SIZE = 10
_PROCESS_RETRIES = 3
_ZERO_HASH = bytes(32)


def _hash(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value)
    return bytes.fromhex(text[2:] if text.startswith(("0x", "0X")) else text)


def _to_int(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value)
    if text.startswith(("0x", "0X")):
        return int(text[2:] or "0", 16)
    return int(text)


class ClientStatus(enum.IntEnum):
    """Health of an execution node endpoint."""

    ONLINE = 1
    OFFLINE = 2
    SYNCHRONIZING = 3


@dataclass
class ClientConfig:
    """Connection settings of an execution node endpoint."""

    url: str
    name: str = ""
    headers: dict[str, str] = field(default_factory=dict)


class Client:
    """Follows the head of one execution node.

    ``pool`` provides ``block_cache`` and ``reset_head_fork_cache()``.
    """

    def __init__(self, pool, index: int, config: ClientConfig) -> None:
        self.pool = pool
        self.index = index
        self.config = config
        self.rpc_client = ExecutionClient(config.name, config.url, config.headers)
        self.logger = logging.LoggerAdapter(_log, {"client": config.name})
        self.is_online = False
        self.is_syncing = False
        self.version = ""
        self.client_type = ClientType.UNSPECIFIED
        self.last_event_time = 0.0
        self.retry_counter = 0
        self.last_error: Exception | None = None
        self._head_lock = threading.Lock()
        self._head_hash = _ZERO_HASH
        self._head_number = 0
        self._updates: queue.Queue = queue.Queue(maxsize=_QUEUE_SIZE)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def name(self) -> str:
        return self.config.name

    def start(self) -> None:
        """Start following the node in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run_client_loop, name=f"el-{self.name}", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop following the node."""
        self._stop.set()

    def get_last_head(self) -> tuple[int, bytes]:
        with self._head_lock:
            return self._head_number, self._head_hash

    def get_status(self) -> ClientStatus:
        if self.is_syncing:
            return ClientStatus.SYNCHRONIZING
        if self.is_online:
            return ClientStatus.ONLINE
        return ClientStatus.OFFLINE

    def notify_new_block(self, block_hash: bytes, number: int) -> None:
        """Queue a block announced elsewhere; ignored while the client is offline."""
        if not self.is_online:
            return
        updates = self._updates
        while not self._stop.is_set():
            try:
                updates.put((block_hash, number), timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def _run_client_loop(self) -> None:
        while not self._stop.is_set():
            try:
                self._check_client()
                self._run_client_logic()
            except Exception as exc:  # every failure leads to a delayed retry
                self.is_online = False
                self.last_error = exc
                self.last_event_time = time.time()
                self.retry_counter += 1
                wait_time = 10
                if self.retry_counter > 10:
                    wait_time = 300
                elif self.retry_counter > 5:
                    wait_time = 60
                self.logger.warning("execution client error: %s, retrying in %s sec...", exc, wait_time)
                self._stop.wait(wait_time)
            else:
                self.retry_counter = 0
                return

    def _check_client(self) -> None:
        try:
            self.rpc_client.initialize()
        except ValueError as exc:
            raise RuntimeError(f"initialization of execution client failed: {exc}") from exc

        try:
            version = self.rpc_client.get_client_version()
        except Exception as exc:
            raise RuntimeError(f"error while fetching node version: {exc}") from exc
        self.version = version
        self.client_type = detect_client_type(version)

        try:
            specs = self.rpc_client.get_chain_spec()
        except Exception as exc:
            raise RuntimeError(f"error while fetching specs: {exc}") from exc
        try:
            self.pool.block_cache.set_client_specs(specs)
        except ValueError as exc:
            raise RuntimeError(f"invalid node specs: {exc}") from exc

        try:
            sync_status = self.rpc_client.get_node_syncing()
        except Exception as exc:
            raise RuntimeError(f"error while fetching synchronization status: {exc}") from exc
        if sync_status is None:
            raise RuntimeError("could not get synchronization status")
        self.is_syncing = sync_status.is_syncing

    def _run_client_logic(self) -> None:
        self._poll_client_head()

        if self.is_syncing:
            raise RuntimeError("beacon node is synchronizing")

        self.last_event_time = time.time()
        updates: queue.Queue = queue.Queue(maxsize=_QUEUE_SIZE)
        self._updates = updates
        self.is_online = True

        while not self._stop.is_set():
            remaining = _EVENT_TIMEOUT - (time.time() - self.last_event_time)
            if remaining <= 0:
                try:
                    self._poll_client_head()
                except Exception:
                    self.is_online = False
                    raise
                self.last_event_time = time.time()
                continue

            try:
                block_hash, number = updates.get(timeout=min(_POLL_INTERVAL, remaining))
            except queue.Empty:
                continue
            self._process_notification(block_hash, number)

    def _process_notification(self, block_hash: bytes, number: int) -> None:
        error: Exception | None = None
        for _ in range(_PROCESS_RETRIES):
            try:
                self.process_block(block_hash, number, None, "notified")
            except Exception as exc:
                error = exc
                if self._stop.wait(1.0):
                    break
            else:
                error = None
                break

        if error is not None:
            self.logger.warning("error processing execution block update: %s", error)
        else:
            self.last_event_time = time.time()

    def _poll_client_head(self) -> None:
        try:
            latest = self.rpc_client.get_latest_block()
        except LookupError as exc:
            raise RuntimeError("could not find latest block") from exc
        except Exception as exc:
            raise RuntimeError(f"could not get latest block: {exc}") from exc

        try:
            self.process_block(_hash(latest["hash"]), _to_int(latest["number"]), latest, "polled")
        except Exception as exc:
            self.logger.warning("error processing execution block: %s", exc)

    def process_block(self, block_hash: bytes, number: int, block, source: str) -> None:
        """Register a block seen by this node, load its body and update the head."""
        cache = self.pool.block_cache
        cached, is_new = cache.add_block(block_hash, number)
        if cached is None:
            raise ValueError("could not add block to cache")

        cached.set_seen_by(self)
        if is_new:
            self.logger.info("received el block %s [0x%s] %s", number, block_hash.hex(), source)
        else:
            self.logger.debug("received known el block %s [0x%s] %s", number, block_hash.hex(), source)

        def load_block():
            if block is not None:
                return block
            return self.rpc_client.get_block_by_hash(block_hash)

        if cached.ensure_block(load_block):
            cache.notify_block_ready(cached)

        with self._head_lock:
            if self._head_hash == block_hash:
                return
            self._head_number = number
            self._head_hash = block_hash

        self.pool.reset_head_fork_cache()