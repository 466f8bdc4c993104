"""
Transport capabilities required by the runtime.

Provides the narrow seam between ConnectionManager and whatever carries
frames to the controller (a real WebSocket client, or a fake in tests).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- The callback bundle a transport reports through
- Zero connection policy
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, runtime_checkable


# ---------------------------------------------------------------------
# Callbacks
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class TransportCallbacks:
    """
    Callbacks bound to one transport attempt.

    Contract for transports:
    - on_open at most once, before any on_message
    - on_error any number of times, always before on_close
    - on_close exactly once per opened transport unless the transport
      was cancelled mid-handshake by close()
    """

    on_open: Callable[[], Awaitable[None]]
    on_message: Callable[[str], Awaitable[None]]
    on_error: Callable[[str], Awaitable[None]]
    on_close: Callable[[int, str], Awaitable[None]]


# ---------------------------------------------------------------------
# Transport Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class TransportProtocol(Protocol):
    def open(self) -> None:
        """
        Begin the handshake and return immediately.

        The outcome is reported through the callbacks.
        """

    async def send(self, payload: str) -> None:
        """
        Send one text frame. Fire-and-forget: a failed send is only logged,
        never raised; the dead socket then surfaces through on_error and
        on_close from the receive side.
        """

    async def close(self) -> None:
        """Close (or abandon a pending handshake). Idempotent."""


TransportFactory = Callable[[str, TransportCallbacks], TransportProtocol]
