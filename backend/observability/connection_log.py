"""
Append-only connection log surfaced to the control surface.

Every lifecycle event of the link (open, message, error, close, reconnect
attempt, dropped command) becomes one human-readable LogEntry.

Rules:
- Entries are immutable and only ever appended.
- No eviction: the sequence grows for the lifetime of the manager.
- Each entry is mirrored to the JSONL logger as a CONNECTION_LOG event.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from observability.logger import log_event


@dataclass(frozen=True)
class LogEntry:
    """One human-readable log line."""
    text: str
    ts_ms: int


LogListener = Callable[[LogEntry], None]


class ConnectionLog:
    """
    Ordered, unbounded sequence of LogEntry records.

    Listeners registered with subscribe() are called synchronously with
    every new entry, in append order. A listener that raises is logged as
    LOG_LISTENER_ERROR and never interrupts the append.
    """

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []
        self._listeners: list[LogListener] = []

    def append(self, text: str) -> LogEntry:
        entry = LogEntry(text=text, ts_ms=time.time_ns() // 1_000_000)
        self._entries.append(entry)

        log_event({
            "ts_ms": entry.ts_ms,
            "event_type": "CONNECTION_LOG",
            "index": len(self._entries) - 1,
            "text": entry.text,
        })

        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": entry.ts_ms,
                    "event_type": "LOG_LISTENER_ERROR",
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })
        return entry

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def since(self, index: int) -> tuple[LogEntry, ...]:
        """Entries appended at or after position `index`."""
        return tuple(self._entries[max(index, 0):])

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    @property
    def texts(self) -> list[str]:
        return [e.text for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
