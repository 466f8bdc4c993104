"""
Command channel: the send API layered on ConnectionManager.

Responsibilities:
- Turn a logical command string into one outbound text frame
- Apply the "connected or drop" policy (decided by the reducer)

Still NOT responsible for:
- Validating the command vocabulary (any string is sent verbatim)
- Acknowledgment, sequencing, buffering or retry of commands
- Any connection lifecycle logic
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from constants import STOP_COMMAND
from orchestrator.events import EventType, SendRequested

if TYPE_CHECKING:
    from orchestrator.runtime import ConnectionManager


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class CommandChannel:
    """
    Fire-and-forget command sender.

    While CONNECTED each send() transmits exactly one frame, in call order.
    Otherwise the command is dropped and one diagnostic line is appended to
    the connection log. Dropped commands are never replayed.
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager

    async def send(self, command: str) -> None:
        await self._manager.handle_event(
            SendRequested(
                event_type=EventType.SEND_REQUESTED,
                ts_ms=_now_ms(),
                command=command,
            )
        )

    # ------------------------------------------------------------------
    # Press/release helpers for momentary controls
    # ------------------------------------------------------------------

    async def press(self, command: str) -> None:
        """Control pressed: send its command."""
        await self.send(command)

    async def release(self) -> None:
        """Control released: always send stop."""
        await self.send(STOP_COMMAND)
