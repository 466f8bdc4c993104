"""
WebSocket transport adapter for the controller link.

Role in the system:
- Carries UTF-8 text frames to and from the controller at ws://<host>:<port>.
- Reports lifecycle facts through TransportCallbacks; never decides policy.

Callback contract (mirrors browser WebSocket behavior):
- Successful handshake     -> on_open
- Each inbound frame       -> on_message(text)
- Failed handshake         -> on_error(reason), then on_close(1006, "")
- Abnormal drop            -> on_error(reason), then on_close(code, reason)
- Clean close              -> on_close(code, reason)

Design constraints:
- open() never blocks; the handshake runs in a background task.
- send() never raises; a dead socket is detected and reported by the
  receive loop, so send failures are only logged here.
- Adapter must not call the reducer or touch link state.
"""

from __future__ import annotations

import asyncio
import time

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from constants import ABNORMAL_CLOSURE_CODE, TRANSPORT_OPEN_TIMEOUT_S
from observability.logger import log_event
from orchestrator.runtime_context import TransportCallbacks, TransportFactory


def _now_ms() -> int:
    return int(time.time() * 1000)


class WebSocketTransport:
    """
    One WebSocket connection attempt.

    Lifecycle:
    1. open() starts the background task (handshake + receive loop)
    2. Callbacks report open / messages / error / close
    3. close() closes the socket, or abandons a pending handshake

    Instances are single-use: a new attempt means a new transport.
    """

    def __init__(
        self,
        *,
        url: str,
        callbacks: TransportCallbacks,
        open_timeout_s: float = TRANSPORT_OPEN_TIMEOUT_S,
    ) -> None:
        self._url = url
        self._callbacks = callbacks
        self._open_timeout_s = open_timeout_s

        self._ws: ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._closing: bool = False

    @property
    def url(self) -> str:
        return self._url

    # -------------------------------------------------------------------------
    # Public interface
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """Start the handshake in the background. Idempotent."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run())

    async def send(self, payload: str) -> None:
        """
        Send one text frame, fire-and-forget.

        If the socket is down the frame is dropped; the receive loop reports
        the failure through on_error/on_close.
        """
        ws = self._ws
        if ws is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "TRANSPORT_SEND_DROPPED",
                "url": self._url,
                "reason": "not_open",
            })
            return

        try:
            await ws.send(payload)
        except ConnectionClosed as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "TRANSPORT_SEND_FAILED",
                "url": self._url,
                "reason": f"{e!r}",
            })

    async def close(self) -> None:
        """
        Close the connection or abandon a pending handshake.

        Idempotent. Does not wait for the receive loop to finish.
        """
        if self._closing:
            return
        self._closing = True

        ws = self._ws
        task = self._task

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "TRANSPORT_CLOSE_FAILED",
                    "url": self._url,
                    "reason": f"{e!r}",
                })
        elif task is not None and not task.done() and task is not asyncio.current_task():
            # Still handshaking: nobody is listening for this attempt anymore.
            task.cancel()

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            ws = await ws_connect(
                self._url,
                open_timeout=self._open_timeout_s,
                ping_interval=None,
            )
        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            # DNS failure, refused connection, timeout, rejected handshake...
            await self._callbacks.on_error(f"{e!r}")
            await self._callbacks.on_close(ABNORMAL_CLOSURE_CODE, "")
            return

        self._ws = ws
        if self._closing:
            # close() raced the handshake; finish the close ourselves.
            try:
                await ws.close()
            finally:
                ws.transport.abort()
            return

        await self._callbacks.on_open()
        await self._recv_loop(ws)

    async def _recv_loop(self, ws: ClientConnection) -> None:
        code = ABNORMAL_CLOSURE_CODE
        reason = ""
        try:
            while True:
                raw = await ws.recv()
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8", errors="replace")
                await self._callbacks.on_message(raw)
        except ConnectionClosed as e:
            if e.rcvd is not None:
                code = e.rcvd.code
                reason = e.rcvd.reason
            if isinstance(e, ConnectionClosedError):
                await self._callbacks.on_error(f"{e}")

        await self._callbacks.on_close(code, reason)


def websocket_transport_factory(
    *,
    open_timeout_s: float = TRANSPORT_OPEN_TIMEOUT_S,
) -> TransportFactory:
    """Build a TransportFactory producing WebSocketTransport instances."""

    def _factory(url: str, callbacks: TransportCallbacks) -> WebSocketTransport:
        return WebSocketTransport(
            url=url,
            callbacks=callbacks,
            open_timeout_s=open_timeout_s,
        )

    return _factory
