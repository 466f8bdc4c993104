"""
Unified event definitions for the link reducer.

Rules:
- Events describe facts that have occurred (or requests that were made).
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Transport events carry the attempt id of the transport that produced them,
so the reducer can ignore callbacks from superseded connections.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Manager requests
    # ------------------------------------------------------------------
    CONNECT_REQUESTED = "CONNECT_REQUESTED"
    SEND_REQUESTED = "SEND_REQUESTED"
    SHUTDOWN_REQUESTED = "SHUTDOWN_REQUESTED"

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------
    TRANSPORT_OPENED = "TRANSPORT_OPENED"
    TRANSPORT_MESSAGE = "TRANSPORT_MESSAGE"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    TRANSPORT_CLOSED = "TRANSPORT_CLOSED"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    RECONNECT_TICK = "RECONNECT_TICK"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Transport-Scoped Events
# =============================================================================

@dataclass(frozen=True)
class TransportEvent(Event):
    """
    Base class for events raised by a specific transport instance.

    The reducer MUST ignore events whose attempt does not match the
    currently active attempt.
    """

    attempt: int


@dataclass(frozen=True)
class TransportOpened(TransportEvent):
    """Handshake completed; the transport can carry frames."""


@dataclass(frozen=True)
class TransportMessage(TransportEvent):
    """One inbound text frame. Payload is opaque."""
    data: str


@dataclass(frozen=True)
class TransportError(TransportEvent):
    """
    Transport reported an error (failed open, send failure, abnormal drop).

    A close event is expected to follow; reconnection is decided there.
    """
    reason: str


@dataclass(frozen=True)
class TransportClosed(TransportEvent):
    """Transport closed with a WebSocket close code and reason."""
    code: int
    reason: str = ""


# =============================================================================
# Manager Requests
# =============================================================================

@dataclass(frozen=True)
class ConnectRequested(Event):
    """connect() was called (manually or by the reconnect timer)."""


@dataclass(frozen=True)
class SendRequested(Event):
    """A command string should go out as one text frame if connected."""
    command: str


@dataclass(frozen=True)
class ShutdownRequested(Event):
    """Owner is tearing the manager down."""


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class ReconnectTick(Event):
    """
    Periodic reconnect timer fired.

    Injected by the runtime every reconnect interval while the timer is active.
    """
