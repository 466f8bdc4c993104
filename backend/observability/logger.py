"""
Structured JSONL logging for the controller link.

Every reducer decision, metric and connection-log line ends up here as a
single JSON object on its own line. Nothing is buffered or batched, so a
tail of stdout is always a faithful timeline of the link.

Output can be switched off process-wide (ENABLE_JSON_LOGS=0); the
human-readable ConnectionLog is unaffected by that switch.
"""

from __future__ import annotations

import json
import sys
from typing import Any, Mapping, Callable


# ------------------------------------------------------------------
# Output sink (tests replace _print)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_enabled: bool = True


def set_enabled(enabled: bool) -> None:
    """Turn JSONL output on or off for the whole process."""
    global _enabled  # pylint: disable=global-statement
    _enabled = enabled


def log_event(event: Mapping[str, Any]) -> None:
    """
    Emit one event as one compact JSON line.

    Callers pass a complete event (ts_ms, event_type and whatever context
    applies: attempt, connection_state, url). Values that cannot be
    serialized are replaced by a LOGGER_SERIALIZATION_ERROR record carrying
    the repr, so this never raises.
    """
    if not _enabled:
        return

    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Logging must never take the link down
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
