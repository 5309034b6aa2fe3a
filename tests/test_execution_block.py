import threading
from types import SimpleNamespace

import pytest

from assertoor.execution.block import Block

HASH = bytes.fromhex("aa" * 32)
PARENT_HEX = "bb" * 32


def _body():
    return {"hash": "0x" + "aa" * 32, "parentHash": "0x" + PARENT_HEX, "number": "0x5"}


def test_ensure_block_loads_once():
    block = Block(HASH, 5)
    calls = []

    def loader():
        calls.append(1)
        return _body()

    assert block.ensure_block(loader) is True
    assert block.ensure_block(loader) is False
    assert len(calls) == 1
    assert block.block == _body()


def test_loader_error_propagates_and_leaves_block_empty():
    block = Block(HASH, 5)

    def loader():
        raise RuntimeError("unavailable")

    with pytest.raises(RuntimeError):
        block.ensure_block(loader)
    assert block.block is None
    assert block.ensure_block(_body) is True


def test_parent_hash_from_body():
    block = Block(HASH, 5)
    assert block.get_parent_hash() is None
    block.ensure_block(_body)
    assert block.get_parent_hash() == bytes.fromhex(PARENT_HEX)


def test_await_block_times_out_without_body():
    assert Block(HASH, 5).await_block(0.01) is None


def test_await_block_returns_loaded_body():
    block = Block(HASH, 5)
    timer = threading.Timer(0.05, lambda: block.ensure_block(_body))
    timer.start()
    try:
        assert block.await_block(5) == _body()
    finally:
        timer.join()


def test_seen_by_sorted_and_deduplicated():
    block = Block(HASH, 5)
    first = SimpleNamespace(index=2, name="b")
    second = SimpleNamespace(index=0, name="a")
    block.set_seen_by(first)
    block.set_seen_by(second)
    block.set_seen_by(first)
    assert block.get_seen_by() == [second, first]


def test_fields_kept():
    block = Block(HASH, 7)
    assert (block.hash, block.number) == (HASH, 7)