import queue
import threading
import time

import pytest

from assertoor.subscriptions import Dispatcher


def test_delivers_in_order_and_drops_when_full():
    dispatcher = Dispatcher()
    sub = dispatcher.subscribe(2)
    for value in (1, 2, 3):
        dispatcher.fire(value)
    assert sub.get_nowait() == 1
    assert sub.get_nowait() == 2
    with pytest.raises(queue.Empty):
        sub.get_nowait()


def test_all_subscribers_receive():
    dispatcher = Dispatcher()
    first = dispatcher.subscribe(5)
    second = dispatcher.subscribe(5)
    dispatcher.fire("event")
    assert first.get_nowait() == "event"
    assert second.get_nowait() == "event"


def test_unsubscribe_stops_delivery():
    dispatcher = Dispatcher()
    sub = dispatcher.subscribe(5)
    sub.unsubscribe()
    dispatcher.fire("late")
    with pytest.raises(queue.Empty):
        sub.get_nowait()
    sub.unsubscribe()
    dispatcher.unsubscribe(sub)
    with pytest.raises(queue.Empty):
        sub.get_nowait()


def test_context_manager_unsubscribes():
    dispatcher = Dispatcher()
    with dispatcher.subscribe(5) as sub:
        dispatcher.fire("inside")
        assert sub.get_nowait() == "inside"
    dispatcher.fire("outside")
    with pytest.raises(queue.Empty):
        sub.get_nowait()


def test_get_timeout_raises_empty():
    dispatcher = Dispatcher()
    sub = dispatcher.subscribe(1)
    with pytest.raises(queue.Empty):
        sub.get(timeout=0.01)


def test_get_waits_for_event():
    dispatcher = Dispatcher()
    sub = dispatcher.subscribe(1)
    timer = threading.Timer(0.05, dispatcher.fire, args=("ready",))
    timer.start()
    try:
        assert sub.get(timeout=2) == "ready"
    finally:
        timer.cancel()


def test_zero_capacity_drops_without_reader():
    dispatcher = Dispatcher()
    sub = dispatcher.subscribe(0)
    dispatcher.fire("dropped")
    with pytest.raises(queue.Empty):
        sub.get_nowait()


def test_zero_capacity_delivers_to_waiting_reader():
    dispatcher = Dispatcher()
    sub = dispatcher.subscribe(0)
    results = []

    def reader():
        results.append(sub.get(timeout=5))

    thread = threading.Thread(target=reader)
    thread.start()
    fired = []
    for value in range(500):
        if not thread.is_alive():
            break
        fired.append(value)
        dispatcher.fire(value)
        time.sleep(0.01)
    thread.join(timeout=5)
    assert len(results) == 1
    assert results[0] in fired
    with pytest.raises(queue.Empty):
        sub.get_nowait()