"""
Side-effect command definitions for the link.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Transport
    OPEN_TRANSPORT = "OPEN_TRANSPORT"
    CLOSE_TRANSPORT = "CLOSE_TRANSPORT"
    TRANSMIT_FRAME = "TRANSMIT_FRAME"

    # Timers
    START_RECONNECT_TIMER = "START_RECONNECT_TIMER"
    CANCEL_RECONNECT_TIMER = "CANCEL_RECONNECT_TIMER"

    # Observability
    APPEND_LOG = "APPEND_LOG"
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Transport Commands
# =============================================================================

@dataclass(frozen=True)
class OpenTransport(Command):
    """
    Request to open a new transport to the controller.

    Non-blocking: the outcome arrives later as TransportOpened,
    or TransportError followed by TransportClosed.
    """
    attempt: int
    url: str
    command_type: CommandType = CommandType.OPEN_TRANSPORT


@dataclass(frozen=True)
class CloseTransport(Command):
    """Request to close the transport opened for `attempt`."""
    attempt: int
    command_type: CommandType = CommandType.CLOSE_TRANSPORT


@dataclass(frozen=True)
class TransmitFrame(Command):
    """Send `payload` verbatim as a single text frame. Fire-and-forget."""
    attempt: int
    payload: str
    command_type: CommandType = CommandType.TRANSMIT_FRAME


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartReconnectTimer(Command):
    """
    Request to start the periodic reconnect timer.

    On every tick the runtime must inject a ReconnectTick event.
    """
    interval_ms: int
    command_type: CommandType = CommandType.START_RECONNECT_TIMER


@dataclass(frozen=True)
class CancelReconnectTimer(Command):
    """Request to cancel the reconnect timer. Idempotent."""
    command_type: CommandType = CommandType.CANCEL_RECONNECT_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class AppendLog(Command):
    """Append one human-readable line to the connection log."""
    text: str
    command_type: CommandType = CommandType.APPEND_LOG


@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
