"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for the link's behavioral constants.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific overrides live in config.AppConfig, which defaults to these.
"""

from __future__ import annotations

from enum import Enum
from typing import Final

# =============================================================================
# Controller endpoint
# =============================================================================

DEFAULT_CONTROLLER_HOST: Final[str] = "192.168.4.1"
DEFAULT_CONTROLLER_PORT: Final[int] = 81
CONTROLLER_URL_SCHEME: Final[str] = "ws"

# =============================================================================
# Reconnection policy
# =============================================================================

# Fixed interval, no backoff, no retry limit.
RECONNECT_INTERVAL_MS: Final[int] = 5_000

# Handshake budget per attempt; a timed out handshake is an open failure.
TRANSPORT_OPEN_TIMEOUT_S: Final[float] = 10.0

# =============================================================================
# WebSocket close codes (RFC 6455 §7.4.1)
# =============================================================================

NORMAL_CLOSURE_CODE: Final[int] = 1000
ABNORMAL_CLOSURE_CODE: Final[int] = 1006

# =============================================================================
# Command vocabulary
# =============================================================================


class MotionCommand(str, Enum):
    """
    Motion directives produced by the control surface.

    The link transmits any string verbatim; only these are ever produced
    by a press/release control.
    """

    FORWARD = "forward"
    BACKWARD = "backward"
    LEFT = "left"
    RIGHT = "right"
    STOP = "stop"


STOP_COMMAND: Final[str] = MotionCommand.STOP.value

# =============================================================================
# HTTP control surface
# =============================================================================

DEFAULT_SERVER_HOST: Final[str] = "0.0.0.0"
DEFAULT_SERVER_PORT: Final[int] = 8000
