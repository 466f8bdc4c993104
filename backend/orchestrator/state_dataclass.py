"""
Authoritative link state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import (
    DEFAULT_CONTROLLER_HOST,
    DEFAULT_CONTROLLER_PORT,
    RECONNECT_INTERVAL_MS,
)
from orchestrator.enums.connection_state import ConnectionState


# =============================================================================
# Link Policy
# =============================================================================

@dataclass(frozen=True)
class LinkPolicy:
    """
    Fixed per-process parameters the reducer needs to make decisions.

    Endpoint and interval never change after construction.
    """
    url: str = f"ws://{DEFAULT_CONTROLLER_HOST}:{DEFAULT_CONTROLLER_PORT}"
    reconnect_interval_ms: int = RECONNECT_INTERVAL_MS

    # When True, only abnormal closures (1006) start the reconnect loop.
    reconnect_on_abnormal_close_only: bool = False


# =============================================================================
# Link State
# =============================================================================

@dataclass(frozen=True)
class LinkState:
    """Immutable snapshot of all link-owned state."""

    policy: LinkPolicy = LinkPolicy()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    connection: ConnectionState = ConnectionState.DISCONNECTED

    # ------------------------------------------------------------------
    # Transport tracking
    # ------------------------------------------------------------------
    # Monotonic id of the most recently opened transport.
    # 0 means "no transport has been opened yet"; ids are never reused.
    attempt: int = 0

    # True while a transport handle for `attempt` exists and has not closed.
    transport_live: bool = False

    # ------------------------------------------------------------------
    # Reconnect timer
    # ------------------------------------------------------------------
    reconnect_timer_active: bool = False

    # Ticks since the last successful open (reset on open).
    reconnect_ticks: int = 0

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    last_close_code: int | None = None

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    shut_down: bool = False
