"""A logger scope that keeps a bounded history and forwards to a parent."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class LogEntry:
    """One recorded log message."""

    time_ns: int
    level: int
    message: str
    logger_name: str


class _HistoryHandler(logging.Handler):
    def __init__(self, scope: LogScope) -> None:
        super().__init__(logging.NOTSET)
        self._scope = scope

    def emit(self, record: logging.LogRecord) -> None:
        entry = LogEntry(
            time_ns=time.time_ns(),
            level=record.levelno,
            message=record.getMessage(),
            logger_name=record.name,
        )
        self._scope._record(entry)


class _ForwardHandler(logging.Handler):
    def __init__(self, parent) -> None:
        super().__init__(logging.NOTSET)
        self._parent = parent

    def emit(self, record: logging.LogRecord) -> None:
        self._parent.log(record.levelno, record.getMessage())


class LogScope:
    """A private logger whose messages are kept in a ring buffer.

    Messages are forwarded to ``parent`` (a logger or logger adapter) if one
    is given, and the last ``history_size`` messages are kept.
    """

    def __init__(self, parent=None, history_size: int = 0) -> None:
        self._parent = parent
        self._history_size = max(int(history_size), 0)
        self._lock = threading.Lock()
        self._history: deque[LogEntry] | None = (
            deque(maxlen=self._history_size) if self._history_size > 0 else None
        )
        self._logger = logging.Logger(f"logscope.{id(self):x}", logging.DEBUG)
        self._logger.propagate = False
        if parent is not None:
            self._logger.addHandler(_ForwardHandler(parent))
        if self._history is not None:
            self._logger.addHandler(_HistoryHandler(self))

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def history_size(self) -> int:
        return self._history_size

    def _record(self, entry: LogEntry) -> None:
        with self._lock:
            if self._history is not None:
                self._history.append(entry)

    def get_log_entries(self) -> list[LogEntry]:
        """Return the kept entries, oldest first."""
        with self._lock:
            return list(self._history) if self._history is not None else []

    def get_log_entries_since(self, since: int) -> list[LogEntry]:
        """Return entries logged after ``since`` (nanoseconds since the epoch)."""
        entries = self.get_log_entries()
        for idx, entry in enumerate(entries):
            if entry.time_ns > since:
                return entries[idx:]
        return []