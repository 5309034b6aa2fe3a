"""Cache of recent execution blocks and the execution chain parameters."""

from __future__ import annotations

import logging
import threading

from assertoor.execution.block import Block
from assertoor.execution.chainspec import ChainSpec
from assertoor.subscriptions import Dispatcher, Subscription

_log = logging.getLogger(__name__)

_CLEANUP_INTERVAL = 30.0


class BlockCache:
    """Recent execution blocks by hash and number, plus the shared chain spec."""

    def __init__(self, follow_distance: int) -> None:
        if not follow_distance:
            raise ValueError("cannot initialize block cache without follow distance")
        self.follow_distance = int(follow_distance)

        self._spec_lock = threading.Lock()
        self._specs: ChainSpec | None = None
        self._cache_lock = threading.Lock()
        self._number_map: dict[int, list[Block]] = {}
        self._hash_map: dict[bytes, Block] = {}
        self._max_number = 0
        self._block_dispatcher: Dispatcher[Block] = Dispatcher()

        self._stop = threading.Event()
        self._cleanup_thread = threading.Thread(
            target=self._run_cache_cleanup, name="el-blockcache-cleanup", daemon=True
        )
        self._cleanup_thread.start()

    def close(self) -> None:
        """Stop the background cleanup."""
        self._stop.set()

    def subscribe_block_event(self, capacity: int) -> Subscription[Block]:
        return self._block_dispatcher.subscribe(capacity)

    def unsubscribe_block_event(self, subscription: Subscription[Block]) -> None:
        self._block_dispatcher.unsubscribe(subscription)

    def notify_block_ready(self, block: Block) -> None:
        self._block_dispatcher.fire(block)

    def set_min_follow_distance(self, follow_distance: int) -> None:
        if follow_distance > self.follow_distance:
            self.follow_distance = follow_distance

    def set_client_specs(self, specs: ChainSpec) -> None:
        """Store the chain spec; ValueError if it differs from the one already known."""
        with self._spec_lock:
            if self._specs is not None:
                mismatches = self._specs.check_mismatch(specs)
                if mismatches:
                    raise ValueError(f"spec mismatch: {', '.join(mismatches)}")
            self._specs = specs

    @property
    def specs(self) -> ChainSpec | None:
        with self._spec_lock:
            return self._specs

    def get_chain_id(self) -> int | None:
        """Return the chain id as an integer, or None if unknown or unparsable."""
        with self._spec_lock:
            if self._specs is None:
                return None
            text = str(self._specs.chain_id).strip()
        if not text or "_" in text:
            return None
        try:
            return int(text, 10)
        except ValueError:
            return None

    def add_block(self, block_hash: bytes, number: int) -> tuple[Block | None, bool]:
        """Return the cached block for ``block_hash`` and whether it was newly added.

        Blocks older than the follow distance are not cached: ``(None, False)``.
        """
        with self._cache_lock:
            existing = self._hash_map.get(block_hash)
            if existing is not None:
                return existing, False
            if number < self._max_number - self.follow_distance:
                return None, False

            block = Block(block_hash, number)
            self._hash_map[block_hash] = block
            self._number_map.setdefault(number, []).append(block)
            if number > self._max_number:
                self._max_number = number
            return block, True

    def get_cached_block_by_hash(self, block_hash: bytes) -> Block | None:
        with self._cache_lock:
            return self._hash_map.get(block_hash)

    def get_cached_blocks(self) -> list[Block]:
        """Return all cached blocks, highest number first."""
        with self._cache_lock:
            return [
                block
                for number in sorted(self._number_map, reverse=True)
                for block in self._number_map[number]
            ]

    def _run_cache_cleanup(self) -> None:
        while not self._stop.wait(_CLEANUP_INTERVAL):
            try:
                self.cleanup_cache()
            except Exception:  # keep the cleanup running
                _log.exception("block cache cleanup failed")

    def cleanup_cache(self) -> None:
        """Drop blocks that fell behind the follow distance."""
        with self._cache_lock:
            min_number = self._max_number - self.follow_distance
            if min_number <= 0:
                return
            for number in [number for number in self._number_map if number < min_number]:
                for block in self._number_map.pop(number):
                    self._hash_map.pop(block.hash, None)

    def is_canonical_block(self, block_hash: bytes, head_hash: bytes) -> bool:
        return self.get_block_distance(block_hash, head_hash)[0]

    def get_block_distance(self, block_hash: bytes, head_hash: bytes) -> tuple[bool, int]:
        """Return whether ``block_hash`` is an ancestor of ``head_hash`` and how far back."""
        if head_hash == block_hash:
            return True, 0

        block = self.get_cached_block_by_hash(block_hash)
        if block is None:
            return False, 0

        head = self.get_cached_block_by_hash(head_hash)
        distance = 0
        while head is not None:
            if head.number < block.number:
                return False, 0
            parent_hash = head.get_parent_hash()
            if parent_hash is None:
                return False, 0
            distance += 1
            if parent_hash == block_hash:
                return True, distance
            head = self.get_cached_block_by_hash(parent_hash)
        return False, 0