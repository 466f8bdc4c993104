"""
Pure link reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

# Reducer owns timer semantics; runtime must not cancel timers implicitly.

from __future__ import annotations

from dataclasses import replace
from typing import Any

from constants import ABNORMAL_CLOSURE_CODE
from orchestrator.commands import (
    AppendLog,
    CancelReconnectTimer,
    CloseTransport,
    Command,
    LogEvent,
    OpenTransport,
    StartReconnectTimer,
    TransmitFrame,
)
from orchestrator.enums.connection_state import ConnectionState
from orchestrator.events import (
    ConnectRequested,
    Event,
    ReconnectTick,
    SendRequested,
    ShutdownRequested,
    TransportClosed,
    TransportError,
    TransportEvent,
    TransportMessage,
    TransportOpened,
)
from orchestrator.state_dataclass import LinkState


# =============================================================================
# Connection log lines
# =============================================================================

MSG_CONNECTED = "WebSocket Connected"
MSG_ALREADY_CONNECTED = "WebSocket is already connected."
MSG_TIMER_CLEARED_ACTIVE = "Reconnection attempts cleared due to active connection."
MSG_TIMER_CLEARED_OPEN = "Reconnection attempts cleared after successful connection."
MSG_RESET = "Connection was reset. Attempting to reconnect..."
MSG_RECONNECT_ATTEMPT = "Attempting to reconnect..."


def msg_received(data: str) -> str:
    return f"Received: {data}"


def msg_error(reason: str) -> str:
    return f"WebSocket Error: {reason}"


def msg_closed(code: int, reason: str) -> str:
    return f"WebSocket Closed: {code}, {reason}"


def msg_not_open(connection: ConnectionState) -> str:
    return f"WebSocket is not open. Ready state: {connection.value}"


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: LinkState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "connection_state": state.connection.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "attempt": state.attempt,
            "reconnect_timer_active": state.reconnect_timer_active,
            "details": details or {},
        }
    )


def _state_changed(
    old: LinkState,
    new: LinkState,
    event: Event,
    source: str,
) -> tuple[Command, ...]:
    if old.connection is new.connection:
        return ()
    return (
        _log(
            new,
            event,
            "state_changed",
            {
                "from_state": old.connection.value,
                "to_state": new.connection.value,
                "source": source,
            },
        ),
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    """Side effects first, then decision logs, then state_changed logs."""
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: LinkState, event: Event, reason: str
) -> tuple[LinkState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _stale_reason(state: LinkState, event: TransportEvent) -> str | None:
    if state.shut_down:
        return "shut_down"
    if event.attempt != state.attempt:
        return "stale_attempt"
    return None


# =============================================================================
# Connect (manual or timer driven)
# =============================================================================

def _connect(
    state: LinkState,
    event: Event,
    source: str,
) -> tuple[LinkState, tuple[Command, ...]]:
    """
    Idempotent connect.

    - CONNECTED: no new transport; reconnect timer is always cancelled.
    - Otherwise: open a fresh transport, closing a still-pending one first
      so two live connections never coexist.
    """
    if state.connection is ConnectionState.CONNECTED:
        cmds: list[Command] = [AppendLog(MSG_ALREADY_CONNECTED), CancelReconnectTimer()]
        if state.reconnect_timer_active:
            cmds.append(AppendLog(MSG_TIMER_CLEARED_ACTIVE))
        new_state = replace(state, reconnect_timer_active=False, reconnect_ticks=0)
        cmds.append(
            _log(
                new_state,
                event,
                "already_connected",
                {
                    "source": source,
                    "timer_cleared": state.reconnect_timer_active,
                },
            )
        )
        return new_state, _logs_last(tuple(cmds))

    cmds = []
    superseded: int | None = None
    if state.transport_live:
        superseded = state.attempt
        cmds.append(CloseTransport(attempt=state.attempt))

    new_attempt = state.attempt + 1
    new_state = replace(
        state,
        connection=ConnectionState.CONNECTING,
        attempt=new_attempt,
        transport_live=True,
    )
    cmds.append(OpenTransport(attempt=new_attempt, url=state.policy.url))
    cmds.append(
        _log(
            new_state,
            event,
            "open_transport",
            {
                "source": source,
                "url": state.policy.url,
                "superseded_attempt": superseded,
            },
        )
    )
    return new_state, _logs_last(
        tuple(cmds) + _state_changed(state, new_state, event, source)
    )


def _on_connect_requested(
    state: LinkState, event: ConnectRequested
) -> tuple[LinkState, tuple[Command, ...]]:
    if state.shut_down:
        return _ignore(state, event, "shut_down")
    return _connect(state, event, "connect")


def _on_reconnect_tick(
    state: LinkState, event: ReconnectTick
) -> tuple[LinkState, tuple[Command, ...]]:
    if state.shut_down:
        return _ignore(state, event, "shut_down")
    if not state.reconnect_timer_active:
        return _ignore(state, event, "timer_inactive")

    ticked = replace(state, reconnect_ticks=state.reconnect_ticks + 1)
    new_state, cmds = _connect(ticked, event, "reconnect_tick")
    return new_state, (AppendLog(MSG_RECONNECT_ATTEMPT),) + cmds


# =============================================================================
# Transport callbacks
# =============================================================================

def _on_transport_opened(
    state: LinkState, event: TransportOpened
) -> tuple[LinkState, tuple[Command, ...]]:
    stale = _stale_reason(state, event)
    if stale is not None:
        return _ignore(state, event, stale)

    if state.connection is not ConnectionState.CONNECTING:
        # Open after this attempt already failed: drop it, the close decides.
        return state, (
            CloseTransport(attempt=event.attempt),
            _log(state, event, "ignore", {"reason": "not_connecting"}),
        )

    cmds: list[Command] = [AppendLog(MSG_CONNECTED)]
    if state.reconnect_timer_active:
        cmds.append(CancelReconnectTimer())
        cmds.append(AppendLog(MSG_TIMER_CLEARED_OPEN))

    new_state = replace(
        state,
        connection=ConnectionState.CONNECTED,
        reconnect_timer_active=False,
        reconnect_ticks=0,
    )
    cmds.append(
        _log(
            new_state,
            event,
            "connected",
            {
                "timer_cleared": state.reconnect_timer_active,
                "reconnect_ticks": state.reconnect_ticks,
            },
        )
    )
    return new_state, _logs_last(
        tuple(cmds) + _state_changed(state, new_state, event, "transport_opened")
    )


def _on_transport_message(
    state: LinkState, event: TransportMessage
) -> tuple[LinkState, tuple[Command, ...]]:
    stale = _stale_reason(state, event)
    if stale is not None:
        return _ignore(state, event, stale)

    return state, (
        AppendLog(msg_received(event.data)),
        _log(state, event, "message_received", {"length": len(event.data)}),
    )


def _on_transport_error(
    state: LinkState, event: TransportError
) -> tuple[LinkState, tuple[Command, ...]]:
    """
    Error flips the link to DISCONNECTED but never schedules reconnection;
    the close that follows is authoritative for that decision.
    """
    stale = _stale_reason(state, event)
    if stale is not None:
        return _ignore(state, event, stale)

    new_state = replace(state, connection=ConnectionState.DISCONNECTED)
    return new_state, _logs_last((
        AppendLog(msg_error(event.reason)),
        _log(new_state, event, "transport_error", {"reason": event.reason}),
    ) + _state_changed(state, new_state, event, "transport_error"))


def _on_transport_closed(
    state: LinkState, event: TransportClosed
) -> tuple[LinkState, tuple[Command, ...]]:
    """
    Close policy:
    - code 1006 (abnormal) always reconnects
    - otherwise reconnect when the link was not CONNECTED before this close,
      unless the policy narrows reconnection to abnormal closures only
    - a clean close while CONNECTED is terminal (no reconnect)
    """
    stale = _stale_reason(state, event)
    if stale is not None:
        return _ignore(state, event, stale)

    prior = state.connection
    abnormal = event.code == ABNORMAL_CLOSURE_CODE
    not_connected = (
        prior is not ConnectionState.CONNECTED
        and not state.policy.reconnect_on_abnormal_close_only
    )

    new_state = replace(
        state,
        connection=ConnectionState.DISCONNECTED,
        transport_live=False,
        last_close_code=event.code,
    )
    cmds: list[Command] = [AppendLog(msg_closed(event.code, event.reason))]

    if abnormal or not_connected:
        cmds.append(AppendLog(MSG_RESET))
        if state.reconnect_timer_active:
            decision = "reconnect_already_scheduled"
        else:
            cmds.append(
                StartReconnectTimer(interval_ms=state.policy.reconnect_interval_ms)
            )
            new_state = replace(new_state, reconnect_timer_active=True)
            decision = "schedule_reconnect"
    else:
        decision = "close_terminal"

    cmds.append(
        _log(
            new_state,
            event,
            decision,
            {
                "code": event.code,
                "reason": event.reason,
                "prior_state": prior.value,
                "abnormal": abnormal,
            },
        )
    )
    return new_state, _logs_last(
        tuple(cmds) + _state_changed(state, new_state, event, "transport_closed")
    )


# =============================================================================
# Sending
# =============================================================================

def _on_send_requested(
    state: LinkState, event: SendRequested
) -> tuple[LinkState, tuple[Command, ...]]:
    """Connected or drop: never queued, never replayed."""
    if state.connection is ConnectionState.CONNECTED:
        return state, (
            TransmitFrame(attempt=state.attempt, payload=event.command),
            _log(state, event, "transmit", {"command": event.command}),
        )

    return state, (
        AppendLog(msg_not_open(state.connection)),
        _log(state, event, "drop_command", {"command": event.command}),
    )


# =============================================================================
# Teardown
# =============================================================================

def _on_shutdown_requested(
    state: LinkState, event: ShutdownRequested
) -> tuple[LinkState, tuple[Command, ...]]:
    if state.shut_down:
        return _ignore(state, event, "already_shut_down")

    cmds: list[Command] = [CancelReconnectTimer()]
    if state.transport_live:
        cmds.append(CloseTransport(attempt=state.attempt))

    new_state = replace(
        state,
        connection=ConnectionState.DISCONNECTED,
        transport_live=False,
        reconnect_timer_active=False,
        shut_down=True,
    )
    cmds.append(
        _log(
            new_state,
            event,
            "shutdown",
            {"closed_attempt": state.attempt if state.transport_live else None},
        )
    )
    return new_state, _logs_last(
        tuple(cmds) + _state_changed(state, new_state, event, "shutdown")
    )


# =============================================================================
# Entry point
# =============================================================================

def reduce(state: LinkState, event: Event) -> tuple[LinkState, tuple[Command, ...]]:
    """
    Compute the next link state and the side effects to execute.

    The returned command tuple is executed by the runtime in order.
    """
    if isinstance(event, ConnectRequested):
        return _on_connect_requested(state, event)
    if isinstance(event, ReconnectTick):
        return _on_reconnect_tick(state, event)
    if isinstance(event, TransportOpened):
        return _on_transport_opened(state, event)
    if isinstance(event, TransportMessage):
        return _on_transport_message(state, event)
    if isinstance(event, TransportError):
        return _on_transport_error(state, event)
    if isinstance(event, TransportClosed):
        return _on_transport_closed(state, event)
    if isinstance(event, SendRequested):
        return _on_send_requested(state, event)
    if isinstance(event, ShutdownRequested):
        return _on_shutdown_requested(state, event)

    return _ignore(state, event, "unhandled_event")
