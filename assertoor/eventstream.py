"""Server-sent events client that reconnects when the connection drops."""

from __future__ import annotations

import enum
import logging
import queue
import re
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping

import requests

_log = logging.getLogger(__name__)

_EOL = re.compile(rb"\r\n|\r|\n")
_DEFAULT_RETRY = 3.0
_RECONNECT_BACKOFF = 10.0
_MAX_REDIRECTS = 10


class _Marker(enum.Enum):
    READY = "ready"


READY = _Marker.READY
"""Put on ``Stream.messages`` each time a connection has been established."""


@dataclass(frozen=True)
class StreamEvent:
    """One server-sent event."""

    id: str = ""
    event: str = ""
    data: str = ""
    retry: int = 0


class SubscriptionError(Exception):
    """The server answered the subscription with a non-200 status."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


def parse_events(lines: Iterable[str]) -> Iterator[StreamEvent]:
    """Decode server-sent events from lines without their line terminators."""
    event_id = ""
    name = ""
    data: list[str] = []
    retry = 0
    seen = False

    for line in lines:
        if not line:
            if seen:
                yield StreamEvent(id=event_id, event=name, data="\n".join(data), retry=retry)
            event_id, name, data, retry, seen = "", "", [], 0, False
            continue
        if line.startswith(":"):
            continue

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            name = value
            seen = True
        elif field == "data":
            data.append(value)
            seen = True
        elif field == "id":
            event_id = value
            seen = True
        elif field == "retry":
            if value and value.isascii() and value.isdigit():
                retry = int(value)
                seen = True


def _iter_lines(chunks: Iterable[bytes]) -> Iterator[str]:
    pending = b""
    for chunk in chunks:
        if not chunk:
            continue
        pending += chunk
        start = 0
        for match in _EOL.finditer(pending):
            if match.group() == b"\r" and match.end() == len(pending):
                # a following "\n" may still arrive in the next chunk
                break
            yield pending[start:match.start()].decode("utf-8", "replace")
            start = match.end()
        pending = pending[start:]
    if pending.endswith(b"\r"):
        yield pending[:-1].decode("utf-8", "replace")


def _new_session() -> requests.Session:
    session = requests.Session()
    session.max_redirects = _MAX_REDIRECTS
    return session


class Stream:
    """A server-sent event subscription.

    Everything the stream produces is put on ``messages``: ``READY`` after
    each (re)connect, ``StreamEvent`` objects, and exceptions for read or
    reconnect failures. The stream keeps reconnecting until closed.
    """

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        last_event_id: str = "",
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.headers = dict(headers or {})
        self.last_event_id = last_event_id or ""
        self.retry = _DEFAULT_RETRY
        self.messages: queue.Queue = queue.Queue()
        self._session = session if session is not None else _new_session()
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._response: requests.Response | None = None

        response = self._connect()
        self._thread = threading.Thread(
            target=self._run, args=(response,), name="eventstream", daemon=True
        )
        self._thread.start()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        """Stop the stream; safe to call repeatedly and from any thread."""
        self._closed.set()
        with self._lock:
            response = self._response
        if response is not None:
            response.close()

    def __enter__(self) -> Stream:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _connect(self) -> requests.Response:
        headers = dict(self.headers)
        headers["Cache-Control"] = "no-cache"
        headers["Accept"] = "text/event-stream"
        if self.last_event_id:
            headers["Last-Event-ID"] = self.last_event_id

        response = self._session.get(self.url, headers=headers, stream=True)
        if response.status_code != 200:
            try:
                message = response.text
            finally:
                response.close()
            raise SubscriptionError(response.status_code, message)

        with self._lock:
            self._response = response
        return response

    def _run(self, response: requests.Response) -> None:
        while True:
            self._receive(response)
            next_response = self._reconnect()
            if next_response is None:
                return
            response = next_response

    def _receive(self, response: requests.Response) -> None:
        self.messages.put(READY)
        error: Exception
        try:
            lines = _iter_lines(response.iter_content(chunk_size=None))
            for event in parse_events(lines):
                if self._closed.is_set():
                    return
                if event.retry > 0:
                    self.retry = event.retry / 1000
                if event.id:
                    self.last_event_id = event.id
                self.messages.put(event)
            error = EOFError("EOF")
        except Exception as exc:  # read failures are reported to the consumer
            error = exc
        finally:
            response.close()

        if not self._closed.is_set():
            self.messages.put(error)

    def _reconnect(self) -> requests.Response | None:
        backoff = self.retry
        while True:
            _log.debug("Reconnecting in %.4f secs", backoff)
            if self._closed.wait(backoff):
                return None
            try:
                response = self._connect()
            except (requests.RequestException, SubscriptionError) as exc:
                if self._closed.is_set():
                    return None
                self.messages.put(exc)
            else:
                if self._closed.is_set():
                    response.close()
                    return None
                return response
            backoff = _RECONNECT_BACKOFF


def subscribe(url: str, headers: Mapping[str, str] | None = None, last_event_id: str = "") -> Stream:
    """Open an event stream on ``url``."""
    return Stream(url, headers, last_event_id)