"""Event dispatching to bounded subscriber queues."""

from __future__ import annotations

import queue
import threading
from collections import deque
from typing import Generic, TypeVar

T = TypeVar("T")


class Subscription(Generic[T]):
    """A bounded queue of events delivered by a Dispatcher.

    Events that arrive while the queue is full are dropped. A capacity of
    zero only accepts an event while a reader is waiting in ``get``.
    """

    def __init__(self, dispatcher: Dispatcher[T], capacity: int) -> None:
        self._dispatcher: Dispatcher[T] | None = dispatcher
        self._capacity = max(int(capacity), 0)
        self._items: deque[T] = deque()
        self._cond = threading.Condition()
        self._waiters = 0

    def _offer(self, data: T) -> bool:
        with self._cond:
            if len(self._items) < self._capacity or self._waiters > len(self._items):
                self._items.append(data)
                self._cond.notify()
                return True
            return False

    def unsubscribe(self) -> None:
        """Stop receiving events."""
        dispatcher = self._dispatcher
        if dispatcher is None:
            return
        dispatcher.unsubscribe(self)

    def get(self, timeout: float | None = None) -> T:
        """Wait for the next event; raise queue.Empty on timeout."""
        with self._cond:
            if not self._items:
                self._waiters += 1
                try:
                    self._cond.wait_for(lambda: bool(self._items), timeout)
                finally:
                    self._waiters -= 1
            if not self._items:
                raise queue.Empty
            return self._items.popleft()

    def get_nowait(self) -> T:
        """Return the next event or raise queue.Empty."""
        with self._cond:
            if not self._items:
                raise queue.Empty
            return self._items.popleft()

    def __enter__(self) -> Subscription[T]:
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class Dispatcher(Generic[T]):
    """Fans out events to all current subscriptions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription[T]] = []

    def subscribe(self, capacity: int) -> Subscription[T]:
        subscription: Subscription[T] = Subscription(self, capacity)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription[T]) -> None:
        with self._lock:
            if subscription._dispatcher is not self:
                return
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                pass
            subscription._dispatcher = None

    def fire(self, data: T) -> None:
        """Deliver ``data`` to every subscription that has room for it."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription._offer(data)