"""
Authoritative connection lifecycle enumeration.

Rules:
- This enum defines ONLY the lifecycle states of the controller link.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """
    Lifecycle of the single transport connection to the controller.

    Allowed transitions:
        DISCONNECTED -> CONNECTING -> CONNECTED
        CONNECTED    -> DISCONNECTED
        CONNECTING   -> DISCONNECTED
    Never DISCONNECTED -> CONNECTED directly.
    """

    DISCONNECTED = "DISCONNECTED"  # No usable connection
    CONNECTING = "CONNECTING"      # Handshake in flight
    CONNECTED = "CONNECTED"        # Transport reported open
