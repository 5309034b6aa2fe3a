"""Pool of execution node endpoints with fork tracking and client selection."""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field

from assertoor.execution.blockcache import BlockCache
from assertoor.execution.client import Client, ClientConfig, ClientStatus
from assertoor.execution.clienttype import ClientType

_log = logging.getLogger(__name__)


class SchedulerMode(enum.IntEnum):
    """How a ready endpoint is picked from the canonical fork."""

    ROUND_ROBIN = 1


@dataclass
class PoolConfig:
    """Settings of an execution client pool."""

    follow_distance: int = 10
    fork_distance: int = 1
    scheduler_mode: str = ""


@dataclass
class HeadFork:
    """A chain head shared by a group of clients."""

    number: int
    hash: bytes
    all_clients: list = field(default_factory=list)
    ready_clients: list = field(default_factory=list)

    def is_client_ready(self, client) -> bool:
        return any(ready.index == client.index for ready in self.ready_clients)


class Pool:
    """A set of execution node endpoints sharing one block cache."""

    def __init__(self, config: PoolConfig | None = None, logger: logging.Logger | None = None) -> None:
        self.config = config if config is not None else PoolConfig()
        self.logger = logger if logger is not None else _log

        if self.config.scheduler_mode not in ("", "rr", "roundrobin"):
            raise ValueError(f"unknown pool schedulerMode: {self.config.scheduler_mode}")
        self.scheduler_mode = SchedulerMode.ROUND_ROBIN

        self.block_cache = BlockCache(self.config.follow_distance)

        self._clients_lock = threading.Lock()
        self._client_counter = 0
        self._clients: list = []
        self._fork_lock = threading.Lock()
        self._fork_cache: dict[int, list[HeadFork]] = {}
        self._scheduler_lock = threading.Lock()
        self._rr_last_indexes: dict[ClientType, int] = {}

    def _next_index(self) -> int:
        with self._clients_lock:
            index = self._client_counter
            self._client_counter += 1
            return index

    def _register_client(self, client) -> None:
        with self._clients_lock:
            self._clients.append(client)

    def add_endpoint(self, config: ClientConfig) -> Client:
        """Create a client for ``config``, start following it and return it."""
        client = Client(self, self._next_index(), config)
        client.start()
        self._register_client(client)
        return client

    def get_all_endpoints(self) -> list:
        with self._clients_lock:
            return list(self._clients)

    def get_ready_endpoint(self, client_type: ClientType = ClientType.UNSPECIFIED):
        """Pick a ready client of ``client_type`` from the canonical fork."""
        ready = self.get_ready_endpoints()
        if not ready:
            return None
        return self._run_client_scheduler(ready, client_type)

    def get_ready_endpoints(self) -> list | None:
        """Return the ready clients of the canonical fork, None if there are none."""
        fork = self.get_canonical_fork(-1)
        if fork is None or not fork.ready_clients:
            return None
        return list(fork.ready_clients)

    def is_client_ready(self, client) -> bool:
        if client is None:
            return False
        fork = self.get_canonical_fork(-1)
        if fork is None:
            return False
        return any(ready is client for ready in fork.ready_clients)

    def _run_client_scheduler(self, ready_clients: list, client_type: ClientType):
        with self._scheduler_lock:
            if self.scheduler_mode is not SchedulerMode.ROUND_ROBIN:
                return ready_clients[0]

            first_ready = None
            last_index = self._rr_last_indexes.get(client_type, 0)
            for client in ready_clients:
                if client_type != ClientType.UNSPECIFIED and client_type != client.client_type:
                    continue
                if first_ready is None:
                    first_ready = client
                if client.index > last_index:
                    self._rr_last_indexes[client_type] = client.index
                    return client

            if first_ready is None:
                return None
            self._rr_last_indexes[client_type] = first_ready.index
            return first_ready

    def reset_head_fork_cache(self) -> None:
        with self._fork_lock:
            self._fork_cache = {}

    def get_canonical_fork(self, fork_distance: int = -1) -> HeadFork | None:
        forks = self.get_head_forks(fork_distance)
        return forks[0] if forks else None

    def get_head_forks(self, fork_distance: int = -1) -> list[HeadFork]:
        """Group clients by chain head, most ready clients first.

        A negative ``fork_distance`` uses the configured one.
        """
        if fork_distance < 0:
            fork_distance = self.config.fork_distance

        with self._fork_lock:
            cached = self._fork_cache.get(fork_distance)
            if cached is not None:
                return list(cached)

            cache = self.block_cache
            forks: list[HeadFork] = []
            for client in self.get_all_endpoints():
                head_number, head_hash = client.get_last_head()
                matching: HeadFork | None = None
                for fork in forks:
                    if fork.hash == head_hash or cache.is_canonical_block(head_hash, fork.hash):
                        matching = fork
                        break
                    if cache.is_canonical_block(fork.hash, head_hash):
                        fork.hash = head_hash
                        fork.number = head_number
                        matching = fork
                        break

                if matching is None:
                    forks.append(HeadFork(number=head_number, hash=head_hash, all_clients=[client]))
                else:
                    matching.all_clients.append(client)

            for fork in forks:
                fork.ready_clients = []
                for client in fork.all_clients:
                    if client.get_status() != ClientStatus.ONLINE:
                        continue
                    _, head_hash = client.get_last_head()
                    distance = 0
                    if fork.hash != head_hash:
                        _, distance = cache.get_block_distance(head_hash, fork.hash)
                    if distance <= fork_distance:
                        fork.ready_clients.append(client)

            forks.sort(key=lambda fork: len(fork.ready_clients), reverse=True)
            self._fork_cache[fork_distance] = forks
            return list(forks)

    def close(self) -> None:
        """Stop all clients and the block cache."""
        for client in self.get_all_endpoints():
            client.stop()
        self.block_cache.close()