"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No connection logic
- No protocol constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    CONTROLLER_URL_SCHEME,
    DEFAULT_CONTROLLER_HOST,
    DEFAULT_CONTROLLER_PORT,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    RECONNECT_INTERVAL_MS,
    TRANSPORT_OPEN_TIMEOUT_S,
)


_TRUTHY = ("1", "true", "True", "yes", "YES")


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the connection manager and the HTTP layer.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Controller link
    # ------------------------------------------------------------------

    controller_host: str = DEFAULT_CONTROLLER_HOST
    controller_port: int = DEFAULT_CONTROLLER_PORT
    reconnect_interval_ms: int = RECONNECT_INTERVAL_MS
    open_timeout_s: float = TRANSPORT_OPEN_TIMEOUT_S

    # False keeps the "reconnect on any close while not connected" policy.
    reconnect_on_abnormal_close_only: bool = False

    # ------------------------------------------------------------------
    # HTTP control surface
    # ------------------------------------------------------------------

    server_host: str = DEFAULT_SERVER_HOST
    server_port: int = DEFAULT_SERVER_PORT

    @property
    def controller_url(self) -> str:
        return f"{CONTROLLER_URL_SCHEME}://{self.controller_host}:{self.controller_port}"

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is malformed or out of range.
        """
        config = AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            controller_host=os.environ.get("ROVER_HOST", DEFAULT_CONTROLLER_HOST),
            controller_port=_int_env("ROVER_PORT", DEFAULT_CONTROLLER_PORT),
            reconnect_interval_ms=_int_env(
                "ROVER_RECONNECT_INTERVAL_MS", RECONNECT_INTERVAL_MS
            ),
            open_timeout_s=_float_env("ROVER_OPEN_TIMEOUT_S", TRANSPORT_OPEN_TIMEOUT_S),
            reconnect_on_abnormal_close_only=(
                os.environ.get("ROVER_RECONNECT_ABNORMAL_ONLY", "0") in _TRUTHY
            ),

            server_host=os.environ.get("SERVER_HOST", DEFAULT_SERVER_HOST),
            server_port=_int_env("SERVER_PORT", DEFAULT_SERVER_PORT),
        )

        if config.reconnect_interval_ms <= 0:
            raise ValueError(
                f"ROVER_RECONNECT_INTERVAL_MS must be positive, "
                f"got {config.reconnect_interval_ms}"
            )
        if config.open_timeout_s <= 0:
            raise ValueError(
                f"ROVER_OPEN_TIMEOUT_S must be positive, got {config.open_timeout_s}"
            )
        return config


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
