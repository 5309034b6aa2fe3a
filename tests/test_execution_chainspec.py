import math

from assertoor.execution.chainspec import ChainSpec, SyncStatus


def test_same_chain_no_mismatch():
    assert ChainSpec(chain_id="1").check_mismatch(ChainSpec(chain_id="1")) == []


def test_different_chain_mismatch():
    assert ChainSpec(chain_id="1").check_mismatch(ChainSpec(chain_id="5")) == ["chain_id"]


def test_not_syncing_is_complete():
    assert SyncStatus(is_syncing=False, current_block=3, highest_block=10).percent() == 100.0


def test_syncing_progress():
    status = SyncStatus(is_syncing=True, starting_block=0, current_block=25, highest_block=100)
    assert status.percent() == 25.0


def test_syncing_progress_bounded_by_highest():
    status = SyncStatus(is_syncing=True, current_block=100, highest_block=100)
    assert status.percent() == 100.0


def test_syncing_without_highest_block():
    assert str(SyncStatus(is_syncing=True).percent()) == "nan"
    assert SyncStatus(is_syncing=True, current_block=5).percent() == math.inf