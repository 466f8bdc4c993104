"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Own the ConnectionManager for the process lifetime (lifespan)
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability import logger
from orchestrator.runtime import ConnectionManager
from orchestrator.runtime_context import TransportFactory
from session.command_channel import CommandChannel

from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    *,
    transport_factory: TransportFactory | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations and fake transports
    - Environment-specific setup
    - ASGI server compatibility

    The manager connects on startup and is shut down on teardown, so no
    transport or reconnect timer outlives the app.
    """
    if config is None:
        config = AppConfig.load_from_env()

    logger.set_enabled(config.enable_json_logs)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        manager = ConnectionManager.from_config(
            config,
            transport_factory=transport_factory,
        )
        app.state.manager = manager
        app.state.channel = CommandChannel(manager)

        async with manager:
            await manager.connect()
            yield

    app = FastAPI(title="Rover Remote", lifespan=lifespan)

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app
