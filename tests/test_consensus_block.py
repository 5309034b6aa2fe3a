import threading
import time
from types import SimpleNamespace

import pytest

from assertoor.consensus.block import Block

ROOT = bytes([1]) * 32
PARENT = bytes([2]) * 32


def make_header():
    return {"message": {"slot": "5", "parent_root": "0x" + PARENT.hex()}, "signature": "0x00"}


def test_parent_root_absent_before_header():
    assert Block(ROOT, 5).get_parent_root() is None


def test_set_header_gives_parent_root():
    block = Block(ROOT, 5)
    block.set_header(make_header())
    assert block.get_parent_root() == PARENT
    assert block.await_header(0) == make_header()


def test_ensure_header_loads_once():
    block = Block(ROOT, 5)
    calls = []

    def loader():
        calls.append(1)
        return make_header()

    block.ensure_header(loader)
    block.ensure_header(loader)
    assert len(calls) == 1
    assert block.header == make_header()


def test_ensure_header_error_propagates():
    block = Block(ROOT, 5)

    def loader():
        raise RuntimeError("offline")

    with pytest.raises(RuntimeError):
        block.ensure_header(loader)
    assert block.header is None


def test_ensure_block_returns_true_only_first_time():
    block = Block(ROOT, 5)
    body = {"version": "deneb", "data": {}}
    assert block.ensure_block(lambda: body) is True
    assert block.ensure_block(lambda: {"other": 1}) is False
    assert block.block is body


def test_ensure_block_none_leaves_unloaded():
    block = Block(ROOT, 5)
    assert block.ensure_block(lambda: None) is False
    assert block.block is None


def test_await_block_times_out():
    block = Block(ROOT, 5)
    start = time.monotonic()
    assert block.await_block(0.05) is None
    assert time.monotonic() - start >= 0.04


def test_await_block_wakes_up_when_loaded():
    block = Block(ROOT, 5)
    body = {"data": {}}
    result = []
    waiter = threading.Thread(target=lambda: result.append(block.await_block(5)))
    waiter.start()
    time.sleep(0.05)
    block.ensure_block(lambda: body)
    waiter.join(5)
    assert result == [body]


def test_seen_by_sorted_and_deduplicated():
    block = Block(ROOT, 5)
    first = SimpleNamespace(index=3)
    second = SimpleNamespace(index=1)
    block.set_seen_by(first)
    block.set_seen_by(second)
    block.set_seen_by(first)
    assert block.get_seen_by() == [second, first]