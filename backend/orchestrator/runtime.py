"""
Runtime execution shell for the controller link.

Responsibilities:
- Own the authoritative link state
- Call the pure reducer
- Execute commands with side effects (transport, timer, logs)
- Schedule and cancel the reconnect timer
- Convert transport callbacks and timer ticks into events

Non-responsibilities:
- Connection policy (reducer)
- Frame encoding or socket handling (transport adapters)
"""

from __future__ import annotations

import asyncio
import functools
import time
from types import TracebackType
from typing import TYPE_CHECKING, Callable

from orchestrator.reducer import reduce
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
    EventType,
    ReconnectTick,
    ShutdownRequested,
    TransportClosed,
    TransportError,
    TransportMessage,
    TransportOpened,
)
from orchestrator.runtime_context import (
    TransportCallbacks,
    TransportFactory,
    TransportProtocol,
)
from orchestrator.state_dataclass import LinkPolicy, LinkState

from observability.connection_log import ConnectionLog
from observability.logger import log_event
from observability.metrics import discard_timer, start_timer, stop_timer

if TYPE_CHECKING:
    from config import AppConfig


StatusListener = Callable[[bool], None]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class ConnectionManager:
    """
    Runtime execution boundary for the single controller link.

    Responsibilities:
    - Own the authoritative LinkState
    - Act as the universal event sink for the link
      (manual connect, transport callbacks, timer ticks, sends, shutdown)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is called exactly once per incoming event
    - Event processing is serialized by an asyncio.Lock (single actor)
    - All side effects occur *after* state has been updated
    - At most one transport handle and one reconnect timer exist at a time
    - shutdown() releases both on every exit path

    Transport callbacks are bound to the attempt id that opened the
    transport; the reducer drops callbacks from superseded attempts.
    """

    def __init__(
        self,
        *,
        transport_factory: TransportFactory,
        policy: LinkPolicy | None = None,
        connection_log: ConnectionLog | None = None,
    ) -> None:
        self._state = LinkState(policy=policy or LinkPolicy())
        self._transport_factory = transport_factory
        self._log = connection_log if connection_log is not None else ConnectionLog()

        self._lock = asyncio.Lock()

        # Single-slot handles, owned exclusively by this manager
        self._transport: TransportProtocol | None = None
        self._transport_attempt: int = 0
        self._reconnect_task: asyncio.Task[None] | None = None

        self._handshake_timer_id: str | None = None
        self._status_listeners: list[StatusListener] = []

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        transport_factory: TransportFactory | None = None,
        connection_log: ConnectionLog | None = None,
    ) -> ConnectionManager:
        """Build a manager for the configured endpoint (WebSocket by default)."""
        if transport_factory is None:
            # pylint: disable-next=import-outside-toplevel
            from adapters.transport.websocket_transport import websocket_transport_factory

            transport_factory = websocket_transport_factory(
                open_timeout_s=config.open_timeout_s,
            )

        policy = LinkPolicy(
            url=config.controller_url,
            reconnect_interval_ms=config.reconnect_interval_ms,
            reconnect_on_abnormal_close_only=config.reconnect_on_abnormal_close_only,
        )
        return cls(
            transport_factory=transport_factory,
            policy=policy,
            connection_log=connection_log,
        )

    # ------------------------------------------------------------------
    # Observable state (read-only)
    # ------------------------------------------------------------------

    @property
    def state(self) -> LinkState:
        """
        Return the current immutable link state.

        State is only replaced internally via the reducer; consumers
        must treat it as read-only.
        """
        return self._state

    @property
    def connection_state(self) -> ConnectionState:
        return self._state.connection

    @property
    def is_connected(self) -> bool:
        return self._state.connection is ConnectionState.CONNECTED

    @property
    def reconnect_timer_running(self) -> bool:
        task = self._reconnect_task
        return task is not None and not task.done()

    @property
    def log(self) -> ConnectionLog:
        return self._log

    @property
    def url(self) -> str:
        return self._state.policy.url

    def subscribe_status(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a listener for the live connected/disconnected signal.

        The listener receives the new boolean on every change.
        Returns a callable that unregisters it.
        """
        self._status_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._status_listeners:
                self._status_listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Idempotent connect.

        Opens a transport unless one is already CONNECTED. Returns as soon
        as the handshake has been started; the outcome arrives through the
        transport callbacks.
        """
        await self.handle_event(
            ConnectRequested(event_type=EventType.CONNECT_REQUESTED, ts_ms=_now_ms())
        )

    async def shutdown(self) -> None:
        """
        Scoped teardown.

        Closes the active transport, cancels the reconnect timer and waits for
        the timer task to finish. Safe to call more than once; events arriving
        afterwards are ignored.
        """
        task = self._reconnect_task

        await self.handle_event(
            ShutdownRequested(event_type=EventType.SHUTDOWN_REQUESTED, ts_ms=_now_ms())
        )

        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

        if self._handshake_timer_id is not None:
            discard_timer(self._handshake_timer_id)
            self._handshake_timer_id = None

    async def __aenter__(self) -> ConnectionManager:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Transport callbacks (bound per attempt)
    # ------------------------------------------------------------------

    async def on_open(self, attempt: int) -> None:
        await self.handle_event(
            TransportOpened(
                event_type=EventType.TRANSPORT_OPENED,
                ts_ms=_now_ms(),
                attempt=attempt,
            )
        )

    async def on_message(self, attempt: int, data: str) -> None:
        await self.handle_event(
            TransportMessage(
                event_type=EventType.TRANSPORT_MESSAGE,
                ts_ms=_now_ms(),
                attempt=attempt,
                data=data,
            )
        )

    async def on_error(self, attempt: int, error: str) -> None:
        await self.handle_event(
            TransportError(
                event_type=EventType.TRANSPORT_ERROR,
                ts_ms=_now_ms(),
                attempt=attempt,
                reason=error,
            )
        )

    async def on_close(self, attempt: int, code: int, reason: str) -> None:
        await self.handle_event(
            TransportClosed(
                event_type=EventType.TRANSPORT_CLOSED,
                ts_ms=_now_ms(),
                attempt=attempt,
                code=code,
                reason=reason,
            )
        )

    # ------------------------------------------------------------------
    # Event pipeline
    # ------------------------------------------------------------------

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the link pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new link state
        3. Execute all emitted commands sequentially
        4. Notify status listeners if the connected flag flipped

        This method is the *only* entry point for events affecting link
        state. Concurrent callers are serialized by the manager lock, so
        callbacks, timer ticks and sends are processed one at a time in
        arrival order.
        """
        async with self._lock:
            prev_state = self._state
            new_state, commands = reduce(prev_state, event)
            self._state = new_state

            for cmd in commands:
                await self._execute_command(cmd)

            self._record_handshake(prev_state, new_state)

        if (prev_state.connection is ConnectionState.CONNECTED) != self.is_connected:
            self._notify_status(self.is_connected)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "url": self._state.policy.url,
            })

        elif isinstance(cmd, AppendLog):
            self._log.append(cmd.text)

        elif isinstance(cmd, OpenTransport):
            self._open_transport(attempt=cmd.attempt, url=cmd.url)

        elif isinstance(cmd, CloseTransport):
            await self._close_transport(cmd.attempt)

        elif isinstance(cmd, TransmitFrame):
            transport = self._transport
            if transport is None or self._transport_attempt != cmd.attempt:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "TRANSMIT_SKIPPED",
                    "attempt": cmd.attempt,
                    "reason": "no_transport_for_attempt",
                })
                return
            await transport.send(cmd.payload)

        elif isinstance(cmd, StartReconnectTimer):
            self._schedule_reconnect(cmd.interval_ms)

        elif isinstance(cmd, CancelReconnectTimer):
            self._cancel_reconnect_timer()

        else:
            raise ValueError(f"Unknown command: {cmd!r}")

    # ------------------------------------------------------------------
    # Transport management
    # ------------------------------------------------------------------

    def _open_transport(self, *, attempt: int, url: str) -> None:
        callbacks = TransportCallbacks(
            on_open=functools.partial(self.on_open, attempt),
            on_message=functools.partial(self.on_message, attempt),
            on_error=functools.partial(self.on_error, attempt),
            on_close=functools.partial(self.on_close, attempt),
        )
        transport = self._transport_factory(url, callbacks)
        self._transport = transport
        self._transport_attempt = attempt

        if self._handshake_timer_id is not None:
            discard_timer(self._handshake_timer_id)
        self._handshake_timer_id = start_timer("transport_handshake")

        transport.open()

    async def _close_transport(self, attempt: int) -> None:
        """
        Close the transport for `attempt` if it is the one we hold.

        Idempotent: closing an unknown or already closed attempt is a no-op.
        """
        if self._transport is None or self._transport_attempt != attempt:
            return

        transport = self._transport
        self._transport = None
        await transport.close()

    def _record_handshake(self, prev: LinkState, new: LinkState) -> None:
        if self._handshake_timer_id is None:
            return
        if prev.connection is not ConnectionState.CONNECTING:
            return

        if new.connection is ConnectionState.CONNECTED:
            outcome = "open"
        elif new.connection is ConnectionState.DISCONNECTED:
            outcome = "failed"
        else:
            return

        stop_timer(
            self._handshake_timer_id,
            attempt=new.attempt,
            connection_state=new.connection.value,
            details={"outcome": outcome},
        )
        self._handshake_timer_id = None

    # ------------------------------------------------------------------
    # Reconnect timer
    # ------------------------------------------------------------------

    def _schedule_reconnect(self, interval_ms: int) -> None:
        """
        Start the periodic reconnect timer unless one is already running.

        Every tick re-enters handle_event() with a ReconnectTick, keeping
        the single event entry point invariant.
        """
        if self.reconnect_timer_running:
            return

        self._reconnect_task = asyncio.create_task(self._reconnect_loop(interval_ms))

    async def _reconnect_loop(self, interval_ms: int) -> None:
        me = asyncio.current_task()
        try:
            while self._reconnect_task is me:
                await asyncio.sleep(interval_ms / 1000.0)
                if self._reconnect_task is not me:
                    return
                await self.handle_event(
                    ReconnectTick(event_type=EventType.RECONNECT_TICK, ts_ms=_now_ms())
                )
        except asyncio.CancelledError:
            # Timer was cancelled - this is normal
            return

    def _cancel_reconnect_timer(self) -> None:
        """
        Cancel the reconnect timer if it exists.

        Idempotent: safe to call when no timer exists or it already finished.
        A tick that cancels its own timer just releases the slot; the loop
        sees it on its next check and exits.
        """
        task = self._reconnect_task
        self._reconnect_task = None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()

    # ------------------------------------------------------------------
    # Status signal
    # ------------------------------------------------------------------

    def _notify_status(self, connected: bool) -> None:
        for listener in list(self._status_listeners):
            try:
                listener(connected)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "STATUS_LISTENER_ERROR",
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })
