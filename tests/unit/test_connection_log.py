# pylint: disable=missing-module-docstring,missing-function-docstring
from typing import Any

from observability.connection_log import ConnectionLog, LogEntry


def test_append_preserves_order_and_returns_entry():
    log = ConnectionLog()

    first = log.append("WebSocket Connected")
    log.append("Received: ok")

    assert isinstance(first, LogEntry)
    assert first.text == "WebSocket Connected"
    assert log.texts == ["WebSocket Connected", "Received: ok"]
    assert len(log) == 2


def test_since_returns_tail():
    log = ConnectionLog()
    for text in ("a", "b", "c"):
        log.append(text)

    assert [e.text for e in log.since(1)] == ["b", "c"]
    assert log.since(3) == ()
    assert [e.text for e in log.since(-5)] == ["a", "b", "c"]


def test_entries_are_mirrored_to_jsonl(captured_logs: list[dict[str, Any]]):
    log = ConnectionLog()

    log.append("hello")

    mirrored = [e for e in captured_logs if e["event_type"] == "CONNECTION_LOG"]
    assert mirrored == [
        {
            "ts_ms": log.entries[0].ts_ms,
            "event_type": "CONNECTION_LOG",
            "index": 0,
            "text": "hello",
        }
    ]


def test_listener_receives_new_entries_until_unsubscribed():
    log = ConnectionLog()
    seen: list[str] = []

    unsubscribe = log.subscribe(lambda entry: seen.append(entry.text))
    log.append("one")
    unsubscribe()
    unsubscribe()
    log.append("two")

    assert seen == ["one"]
    assert log.texts == ["one", "two"]


def test_raising_listener_is_logged_and_others_still_called(
    captured_logs: list[dict[str, Any]],
):
    log = ConnectionLog()
    seen: list[str] = []

    def broken(_: LogEntry) -> None:
        raise RuntimeError("ui gone")

    log.subscribe(broken)
    log.subscribe(lambda entry: seen.append(entry.text))

    log.append("one")

    assert seen == ["one"]
    assert log.texts == ["one"]
    errors = [e for e in captured_logs if e["event_type"] == "LOG_LISTENER_ERROR"]
    assert errors[0]["exception"] == "RuntimeError"
    assert errors[0]["message"] == "ui gone"
