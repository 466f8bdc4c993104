"""
Route registration for the control-surface API.

Responsibilities:
- Define HTTP endpoints a control surface drives
- Forward commands to the CommandChannel
- Expose the status signal and connection log read-only
- Pull dependencies from app.state
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Query, Request, status

from constants import MotionCommand
from orchestrator.runtime import ConnectionManager
from session.command_channel import CommandChannel


def _manager(request: Request) -> ConnectionManager:
    return request.app.state.manager


def _channel(request: Request) -> CommandChannel:
    return request.app.state.channel


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/status")
    async def link_status(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        manager = _manager(request)
        return {
            "connection_state": manager.connection_state.value,
            "connected": manager.is_connected,
            "reconnecting": manager.state.reconnect_timer_active,
            "attempt": manager.state.attempt,
            "url": manager.url,
        }

    @app.get("/logs")
    async def logs( # pyright: ignore[reportUnusedFunction]
        request: Request,
        since: int = Query(0, ge=0),
    ) -> dict[str, Any]:
        log = _manager(request).log
        entries = log.since(since)
        return {
            "entries": [
                {"index": since + i, "text": e.text, "ts_ms": e.ts_ms}
                for i, e in enumerate(entries)
            ],
            "next": len(log),
        }

    @app.post("/connect", status_code=status.HTTP_202_ACCEPTED)
    async def connect(request: Request) -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        manager = _manager(request)
        await manager.connect()
        return {"connection_state": manager.connection_state.value}

    @app.post("/commands/{command}", status_code=status.HTTP_202_ACCEPTED)
    async def send_command( # pyright: ignore[reportUnusedFunction]
        request: Request,
        command: MotionCommand,
    ) -> dict[str, Any]:
        # Fire-and-forget: 202 whether the frame went out or was dropped.
        manager = _manager(request)
        await _channel(request).send(command.value)
        return {
            "command": command.value,
            "connected": manager.is_connected,
        }
