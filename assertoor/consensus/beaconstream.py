"""Beacon node event stream for block, head and finality events."""

from __future__ import annotations

import enum
import json
import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import requests

from assertoor.eventstream import READY, Stream, StreamEvent, SubscriptionError
from assertoor.names import redacted_url

_log = logging.getLogger(__name__)

_SUBSCRIBE_RETRY = 10.0
_POLL_INTERVAL = 0.2
_QUEUE_SIZE = 10


class StreamEventType(enum.IntFlag):
    """Beacon event topics that a stream can subscribe to."""

    BLOCK = 0x01
    HEAD = 0x02
    FINALIZED = 0x04


_TOPICS = (
    (StreamEventType.BLOCK, "block"),
    (StreamEventType.HEAD, "head"),
    (StreamEventType.FINALIZED, "finalized_checkpoint"),
)


@dataclass(frozen=True)
class BeaconStreamEvent:
    """A decoded beacon event."""

    event: StreamEventType
    data: dict


def event_topics(events: int) -> str:
    """Return the comma separated topic list for the ``events`` flags."""
    return ",".join(name for flag, name in _TOPICS if events & flag)


def _uint(value: Any) -> int:
    text = str(value)
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"invalid unsigned integer: {value!r}")
    return int(text)


def _root(value: Any) -> bytes:
    text = str(value)
    if text.startswith(("0x", "0X")):
        text = text[2:]
    raw = bytes.fromhex(text)
    if len(raw) != 32:
        raise ValueError(f"invalid root length: {value!r}")
    return raw


def _parse_block(data: Mapping[str, Any]) -> dict:
    return {
        "slot": _uint(data["slot"]),
        "block": _root(data["block"]),
        "execution_optimistic": bool(data.get("execution_optimistic", False)),
    }


def _parse_head(data: Mapping[str, Any]) -> dict:
    parsed = {
        "slot": _uint(data["slot"]),
        "block": _root(data["block"]),
        "state": _root(data["state"]),
        "epoch_transition": bool(data.get("epoch_transition", False)),
        "execution_optimistic": bool(data.get("execution_optimistic", False)),
    }
    for key in ("previous_duty_dependent_root", "current_duty_dependent_root"):
        if key in data:
            parsed[key] = _root(data[key])
    return parsed


def _parse_finalized(data: Mapping[str, Any]) -> dict:
    return {
        "block": _root(data["block"]),
        "state": _root(data["state"]),
        "epoch": _uint(data["epoch"]),
        "execution_optimistic": bool(data.get("execution_optimistic", False)),
    }


_PARSERS: dict[str, tuple[StreamEventType, Callable[[Mapping[str, Any]], dict]]] = {
    "block": (StreamEventType.BLOCK, _parse_block),
    "head": (StreamEventType.HEAD, _parse_head),
    "finalized_checkpoint": (StreamEventType.FINALIZED, _parse_finalized),
}


class BeaconStream:
    """Subscribes to a beacon node's event stream in a background thread.

    Decoded events are put on ``event_queue``; ``ready_queue`` receives True
    when the stream connects and False when it reports an error.
    """

    def __init__(
        self,
        endpoint: str,
        name: str = "",
        headers: Mapping[str, str] | None = None,
        events: int = StreamEventType.BLOCK,
    ) -> None:
        self.endpoint = endpoint
        self.name = name
        self.headers = dict(headers or {})
        self.events = StreamEventType(events)
        self.ready_queue: queue.Queue[bool] = queue.Queue(maxsize=_QUEUE_SIZE)
        self.event_queue: queue.Queue[BeaconStreamEvent] = queue.Queue(maxsize=_QUEUE_SIZE)
        self.last_head_seen: float | None = None
        self._closed = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"beaconstream-{name}", daemon=True)
        self._thread.start()

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def close(self) -> None:
        """Stop the stream."""
        self._closed.set()

    def __enter__(self) -> BeaconStream:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _put(self, target: queue.Queue, item: Any) -> bool:
        while not self._closed.is_set():
            try:
                target.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _subscribe(self) -> Stream | None:
        topics = event_topics(self.events)
        if not topics:
            return None

        url = f"{self.endpoint}/eth/v1/events?topics={topics}"
        while not self._closed.is_set():
            try:
                return Stream(url, self.headers)
            except (requests.RequestException, SubscriptionError) as exc:
                _log.warning(
                    "[%s] Error while subscribing beacon event stream %s: %s",
                    self.name,
                    redacted_url(url),
                    exc,
                )
                if self._closed.wait(_SUBSCRIBE_RETRY):
                    return None
        return None

    def _run(self) -> None:
        stream = self._subscribe()
        if stream is None:
            return
        try:
            while not self._closed.is_set():
                try:
                    message = stream.messages.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                if isinstance(message, StreamEvent):
                    self._process_event(message)
                elif message is READY:
                    self._put(self.ready_queue, True)
                else:
                    _log.warning("[%s] beacon block stream error: %s", self.name, message)
                    self._put(self.ready_queue, False)
        finally:
            stream.close()

    def _process_event(self, event: StreamEvent) -> None:
        parser = _PARSERS.get(event.event)
        if parser is None:
            return
        event_type, parse = parser
        try:
            payload = json.loads(event.data)
            if not isinstance(payload, dict):
                raise ValueError("event data is not an object")
            data = parse(payload)
        except (ValueError, KeyError, TypeError) as exc:
            _log.warning(
                "[%s] beacon block stream failed to decode %s event: %s", self.name, event.event, exc
            )
            return

        if event_type is StreamEventType.HEAD:
            self.last_head_seen = time.time()
        self._put(self.event_queue, BeaconStreamEvent(event=event_type, data=data))