"""Cache of recent beacon blocks, chain parameters and the beacon wallclock."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

from assertoor.consensus.block import Block
from assertoor.consensus.chainspec import ChainSpec, FinalizedCheckpoint
from assertoor.subscriptions import Dispatcher, Subscription

_log = logging.getLogger(__name__)

_CLEANUP_INTERVAL = 30.0
_ZERO_ROOT = bytes(32)


def _hex_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value)
    return bytes.fromhex(text[2:] if text.startswith(("0x", "0X")) else text)


def _seconds(value: datetime | timedelta | float | int) -> float:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


@dataclass(frozen=True)
class Genesis:
    """Genesis information of a beacon chain."""

    genesis_time: datetime
    genesis_validators_root: bytes
    genesis_fork_version: bytes = bytes(4)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Genesis:
        """Build from the ``/eth/v1/beacon/genesis`` data object."""
        return cls(
            genesis_time=datetime.fromtimestamp(int(str(data["genesis_time"])), tz=timezone.utc),
            genesis_validators_root=_hex_bytes(data["genesis_validators_root"]),
            genesis_fork_version=_hex_bytes(data.get("genesis_fork_version", "0x00000000")),
        )


@dataclass(frozen=True)
class WallclockSlot:
    """A slot of the beacon wallclock with its start and end (unix seconds)."""

    number: int
    start: float
    end: float


@dataclass(frozen=True)
class WallclockEpoch:
    """An epoch of the beacon wallclock with its start and end (unix seconds)."""

    number: int
    start: float
    end: float


class Wallclock:
    """Maps wall time to beacon slots and epochs and reports slot changes."""

    def __init__(
        self,
        genesis_time: datetime | float,
        seconds_per_slot: timedelta | float,
        slots_per_epoch: int,
    ) -> None:
        self.genesis_time = _seconds(genesis_time)
        self.seconds_per_slot = _seconds(seconds_per_slot)
        self.slots_per_epoch = int(slots_per_epoch)
        if self.seconds_per_slot <= 0:
            raise ValueError("seconds per slot must be positive")
        if self.slots_per_epoch <= 0:
            raise ValueError("slots per epoch must be positive")
        self._lock = threading.Lock()
        self._slot_callbacks: list[Callable[[WallclockSlot], None]] = []
        self._epoch_callbacks: list[Callable[[WallclockEpoch], None]] = []
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _slot(self, number: int) -> WallclockSlot:
        start = self.genesis_time + number * self.seconds_per_slot
        return WallclockSlot(number, start, start + self.seconds_per_slot)

    def _epoch(self, number: int) -> WallclockEpoch:
        length = self.seconds_per_slot * self.slots_per_epoch
        start = self.genesis_time + number * length
        return WallclockEpoch(number, start, start + length)

    def now(self) -> tuple[WallclockSlot, WallclockEpoch]:
        """Return the current slot and epoch; ValueError before genesis."""
        current = time.time()
        if current < self.genesis_time:
            raise ValueError("genesis has not yet occurred")
        number = int((current - self.genesis_time) // self.seconds_per_slot)
        return self._slot(number), self._epoch(number // self.slots_per_epoch)

    def on_slot_changed(self, callback: Callable[[WallclockSlot], None]) -> None:
        with self._lock:
            self._slot_callbacks.append(callback)
        self._ensure_running()

    def on_epoch_changed(self, callback: Callable[[WallclockEpoch], None]) -> None:
        with self._lock:
            self._epoch_callbacks.append(callback)
        self._ensure_running()

    def stop(self) -> None:
        """Stop reporting slot and epoch changes."""
        self._stop.set()

    def _ensure_running(self) -> None:
        with self._lock:
            if self._thread is not None or self._stop.is_set():
                return
            self._thread = threading.Thread(target=self._run, name="wallclock", daemon=True)
            self._thread.start()

    def _run(self) -> None:
        try:
            last_epoch: int | None = self.now()[1].number
        except ValueError:
            last_epoch = None

        while True:
            current = time.time()
            if current < self.genesis_time:
                next_start = self.genesis_time
            else:
                elapsed = int((current - self.genesis_time) // self.seconds_per_slot)
                next_start = self.genesis_time + (elapsed + 1) * self.seconds_per_slot
            if self._stop.wait(max(next_start - current, 0.0)):
                return

            number = round((next_start - self.genesis_time) / self.seconds_per_slot)
            slot = self._slot(number)
            epoch = self._epoch(number // self.slots_per_epoch)
            with self._lock:
                slot_callbacks = list(self._slot_callbacks)
                epoch_callbacks = list(self._epoch_callbacks)

            for callback in slot_callbacks:
                self._invoke(callback, slot)
            if epoch.number != last_epoch:
                last_epoch = epoch.number
                for callback in epoch_callbacks:
                    self._invoke(callback, epoch)

    @staticmethod
    def _invoke(callback: Callable[[Any], None], value: Any) -> None:
        try:
            callback(value)
        except Exception:  # a failing listener must not stop the clock
            _log.exception("wallclock callback failed")


class BlockCache:
    """Recent beacon blocks by root and slot, plus shared chain state."""

    def __init__(self, follow_distance: int) -> None:
        if not follow_distance:
            raise ValueError("cannot initialize block cache without follow distance")
        self.follow_distance = int(follow_distance)

        self._spec_lock = threading.Lock()
        self._specs: ChainSpec | None = None
        self._genesis_lock = threading.Lock()
        self._genesis: Genesis | None = None
        self._wallclock_lock = threading.Lock()
        self._wallclock: Wallclock | None = None
        self._finalized_lock = threading.Lock()
        self._finalized_epoch = 0
        self._finalized_root = _ZERO_ROOT
        self._cache_lock = threading.Lock()
        self._slot_map: dict[int, list[Block]] = {}
        self._root_map: dict[bytes, Block] = {}
        self._max_slot = 0

        self._block_dispatcher: Dispatcher[Block] = Dispatcher()
        self._checkpoint_dispatcher: Dispatcher[FinalizedCheckpoint] = Dispatcher()
        self._epoch_dispatcher: Dispatcher[WallclockEpoch] = Dispatcher()
        self._slot_dispatcher: Dispatcher[WallclockSlot] = Dispatcher()

        self._stop = threading.Event()
        self._cleanup_thread = threading.Thread(
            target=self._run_cache_cleanup, name="blockcache-cleanup", daemon=True
        )
        self._cleanup_thread.start()

    def close(self) -> None:
        """Stop the background cleanup and the wallclock."""
        self._stop.set()
        with self._wallclock_lock:
            if self._wallclock is not None:
                self._wallclock.stop()

    def subscribe_block_event(self, capacity: int) -> Subscription[Block]:
        return self._block_dispatcher.subscribe(capacity)

    def subscribe_finalized_event(self, capacity: int) -> Subscription[FinalizedCheckpoint]:
        return self._checkpoint_dispatcher.subscribe(capacity)

    def subscribe_wallclock_epoch_event(self, capacity: int) -> Subscription[WallclockEpoch]:
        return self._epoch_dispatcher.subscribe(capacity)

    def subscribe_wallclock_slot_event(self, capacity: int) -> Subscription[WallclockSlot]:
        return self._slot_dispatcher.subscribe(capacity)

    def notify_block_ready(self, block: Block) -> None:
        self._block_dispatcher.fire(block)

    def set_min_follow_distance(self, follow_distance: int) -> None:
        if follow_distance > self.follow_distance:
            self.follow_distance = follow_distance

    def set_genesis(self, genesis: Genesis) -> None:
        """Store the genesis; ValueError if it differs from the one already known."""
        with self._genesis_lock:
            if self._genesis is None:
                self._genesis = genesis
                return
            if self._genesis.genesis_time != genesis.genesis_time:
                raise ValueError("genesis mismatch: GenesisTime")
            if self._genesis.genesis_validators_root != genesis.genesis_validators_root:
                raise ValueError("genesis mismatch: GenesisValidatorsRoot")

    @property
    def genesis(self) -> Genesis | None:
        return self._genesis

    def set_client_specs(self, spec_values: Mapping[str, Any]) -> None:
        """Store the chain spec; ValueError if it differs from the one already known."""
        with self._spec_lock:
            specs = ChainSpec.from_spec_values(spec_values)
            if self._specs is not None:
                mismatches = self._specs.check_mismatch(specs)
                if mismatches:
                    raise ValueError(f"spec mismatch: {', '.join(mismatches)}")
            self._specs = specs

    @property
    def specs(self) -> ChainSpec | None:
        with self._spec_lock:
            return self._specs

    def init_wallclock(self) -> None:
        """Create the wallclock once both genesis and specs are known."""
        with self._wallclock_lock:
            if self._wallclock is not None:
                return
            specs = self.specs
            if specs is None or self._genesis is None:
                return
            wallclock = Wallclock(self._genesis.genesis_time, specs.seconds_per_slot, specs.slots_per_epoch)
            self._wallclock = wallclock
        wallclock.on_epoch_changed(self._epoch_dispatcher.fire)
        wallclock.on_slot_changed(self._slot_dispatcher.fire)

    @property
    def wallclock(self) -> Wallclock | None:
        with self._wallclock_lock:
            return self._wallclock

    def set_finalized_checkpoint(self, epoch: int, root: bytes) -> None:
        """Record a newer finalized checkpoint and notify subscribers."""
        with self._finalized_lock:
            if epoch <= self._finalized_epoch:
                return
            self._finalized_epoch = epoch
            self._finalized_root = root
        self._checkpoint_dispatcher.fire(FinalizedCheckpoint(epoch=epoch, root=root))

    def get_finalized_checkpoint(self) -> tuple[int, bytes]:
        with self._finalized_lock:
            return self._finalized_epoch, self._finalized_root

    def add_block(self, root: bytes, slot: int) -> tuple[Block | None, bool]:
        """Return the cached block for ``root`` and whether it was newly added.

        Blocks older than the follow distance are not cached: ``(None, False)``.
        """
        with self._cache_lock:
            existing = self._root_map.get(root)
            if existing is not None:
                return existing, False
            if slot < self._max_slot - self.follow_distance:
                return None, False

            block = Block(root, slot)
            self._root_map[root] = block
            self._slot_map.setdefault(slot, []).append(block)
            if slot > self._max_slot:
                self._max_slot = slot
            return block, True

    def get_cached_block_by_root(self, root: bytes) -> Block | None:
        with self._cache_lock:
            return self._root_map.get(root)

    def get_cached_blocks_by_slot(self, slot: int) -> list[Block]:
        with self._cache_lock:
            return list(self._slot_map.get(slot, ()))

    def get_cached_blocks(self) -> list[Block]:
        """Return all cached blocks, highest slot first."""
        with self._cache_lock:
            return [block for slot in sorted(self._slot_map, reverse=True) for block in self._slot_map[slot]]

    def _run_cache_cleanup(self) -> None:
        while not self._stop.wait(_CLEANUP_INTERVAL):
            self.cleanup_cache()

    def cleanup_cache(self) -> None:
        """Drop blocks that fell behind the follow distance."""
        with self._cache_lock:
            min_slot = self._max_slot - self.follow_distance
            if min_slot <= 0:
                return
            for slot in [slot for slot in self._slot_map if slot < min_slot]:
                for block in self._slot_map.pop(slot):
                    self._root_map.pop(block.root, None)

    def is_canonical_block(self, block_root: bytes, head_root: bytes) -> bool:
        return self.get_block_distance(block_root, head_root)[0]

    def get_block_distance(self, block_root: bytes, head_root: bytes) -> tuple[bool, int]:
        """Return whether ``block_root`` is an ancestor of ``head_root`` and how far back."""
        if head_root == block_root:
            return True, 0

        block = self.get_cached_block_by_root(block_root)
        if block is None:
            return False, 0

        head = self.get_cached_block_by_root(head_root)
        distance = 0
        while head is not None:
            if head.slot < block.slot:
                return False, 0
            parent_root = head.get_parent_root()
            if parent_root is None:
                return False, 0
            distance += 1
            if parent_root == block_root:
                return True, distance
            head = self.get_cached_block_by_root(parent_root)
        return False, 0