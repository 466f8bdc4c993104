# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
from typing import Any, Callable

import pytest

from orchestrator.runtime import ConnectionManager
from orchestrator.state_dataclass import LinkPolicy
from orchestrator.enums.connection_state import ConnectionState
from orchestrator.reducer import (
    MSG_ALREADY_CONNECTED,
    MSG_CONNECTED,
    MSG_RECONNECT_ATTEMPT,
    MSG_RESET,
    MSG_TIMER_CLEARED_OPEN,
    msg_closed,
    msg_error,
    msg_received,
)
from config import AppConfig
from constants import NORMAL_CLOSURE_CODE
from observability.metrics import active_timer_count

from fakes import FakeTransportFactory


FAST = LinkPolicy(url="ws://rover.test:81", reconnect_interval_ms=20)


async def wait_until(predicate: Callable[[], bool], timeout_s: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout_s
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def decisions(captured: list[dict[str, Any]], name: str) -> list[dict[str, Any]]:
    return [e for e in captured if e.get("decision") == name]


def make_manager(factory: FakeTransportFactory, policy: LinkPolicy = FAST) -> ConnectionManager:
    return ConnectionManager(transport_factory=factory, policy=policy)


# ---------------------------------------------------------------------
# Connect
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_connect_opens_one_transport_to_configured_url(fake_factory: FakeTransportFactory):
    manager = make_manager(fake_factory)

    await manager.connect()

    assert len(fake_factory.transports) == 1
    assert fake_factory.latest.url == "ws://rover.test:81"
    assert fake_factory.latest.opened is True
    assert manager.connection_state is ConnectionState.CONNECTING

    await fake_factory.latest.succeed()

    assert manager.is_connected
    assert manager.log.texts == [MSG_CONNECTED]
    await manager.shutdown()


@pytest.mark.asyncio
async def test_connect_while_connected_is_idempotent(fake_factory: FakeTransportFactory):
    manager = make_manager(fake_factory)
    await manager.connect()
    await fake_factory.latest.succeed()

    await manager.connect()
    await manager.connect()

    assert len(fake_factory.transports) == 1
    assert manager.is_connected
    assert manager.log.texts == [MSG_CONNECTED, MSG_ALREADY_CONNECTED, MSG_ALREADY_CONNECTED]
    await manager.shutdown()


@pytest.mark.asyncio
async def test_superseded_transport_is_closed_and_its_callbacks_ignored(
    fake_factory: FakeTransportFactory,
):
    manager = make_manager(fake_factory)
    await manager.connect()
    first = fake_factory.latest

    await manager.connect()
    second = fake_factory.latest

    assert first is not second
    assert first.close_calls == 1
    assert fake_factory.live == [second]

    await first.succeed()
    assert manager.connection_state is ConnectionState.CONNECTING

    await second.succeed()
    assert manager.is_connected
    await manager.shutdown()


@pytest.mark.asyncio
async def test_from_config_uses_controller_url(fake_factory: FakeTransportFactory):
    config = AppConfig(controller_host="10.0.0.7", controller_port=8181, reconnect_interval_ms=50)

    manager = ConnectionManager.from_config(config, transport_factory=fake_factory)

    assert manager.url == "ws://10.0.0.7:8181"
    assert manager.state.policy.reconnect_interval_ms == 50
    await manager.connect()
    assert fake_factory.latest.url == "ws://10.0.0.7:8181"
    await manager.shutdown()


# ---------------------------------------------------------------------
# Reconnection
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_controller_unreachable_at_start_then_recovers(fake_factory: FakeTransportFactory):
    manager = make_manager(fake_factory)

    await manager.connect()
    await fake_factory.latest.fail("refused")

    assert manager.connection_state is ConnectionState.DISCONNECTED
    assert manager.reconnect_timer_running
    assert manager.log.texts == [msg_error("refused"), msg_closed(1006, ""), MSG_RESET]

    await wait_until(lambda: len(fake_factory.transports) == 2)
    assert MSG_RECONNECT_ATTEMPT in manager.log.texts

    await fake_factory.latest.succeed()

    assert manager.is_connected
    assert not manager.reconnect_timer_running
    assert manager.log.texts[-2:] == [MSG_CONNECTED, MSG_TIMER_CLEARED_OPEN]

    # No further attempts once connected.
    await asyncio.sleep(0.08)
    assert len(fake_factory.transports) == 2
    await manager.shutdown()


@pytest.mark.asyncio
async def test_abnormal_drop_while_connected_reconnects(fake_factory: FakeTransportFactory):
    manager = make_manager(fake_factory)
    await manager.connect()
    await fake_factory.latest.succeed()

    await fake_factory.latest.drop(1006, "")

    assert not manager.is_connected
    assert manager.reconnect_timer_running
    assert manager.log.texts[-2:] == [msg_closed(1006, ""), MSG_RESET]

    await wait_until(lambda: len(fake_factory.transports) == 2)
    await fake_factory.latest.succeed()

    assert manager.is_connected
    assert not manager.reconnect_timer_running
    await manager.shutdown()


@pytest.mark.asyncio
async def test_clean_close_while_connected_does_not_reconnect(fake_factory: FakeTransportFactory):
    manager = make_manager(fake_factory)
    await manager.connect()
    await fake_factory.latest.succeed()

    await fake_factory.latest.drop(NORMAL_CLOSURE_CODE, "bye")

    assert manager.connection_state is ConnectionState.DISCONNECTED
    assert not manager.reconnect_timer_running
    await asyncio.sleep(0.08)
    assert len(fake_factory.transports) == 1

    # A manual connect still works afterwards.
    await manager.connect()
    assert len(fake_factory.transports) == 2
    await manager.shutdown()


@pytest.mark.asyncio
async def test_repeated_failures_keep_one_timer_and_one_transport(
    captured_logs: list[dict[str, Any]],
):
    factory = FakeTransportFactory(auto="fail")
    manager = make_manager(factory, LinkPolicy(reconnect_interval_ms=5))

    await manager.connect()
    await wait_until(lambda: len(factory.transports) >= 8)

    assert len(decisions(captured_logs, "schedule_reconnect")) == 1
    assert manager.reconnect_timer_running
    assert len(factory.live) <= 1

    await manager.shutdown()
    count = len(factory.transports)
    await asyncio.sleep(0.05)
    assert len(factory.transports) == count


@pytest.mark.asyncio
async def test_many_manual_failures_never_start_a_second_timer(
    fake_factory: FakeTransportFactory,
    captured_logs: list[dict[str, Any]],
):
    # Long interval: retries below come from manual connect() calls.
    manager = make_manager(fake_factory, LinkPolicy(reconnect_interval_ms=60_000))
    await manager.connect()
    await fake_factory.latest.fail()

    for _ in range(100):
        await manager.connect()
        await fake_factory.latest.fail()
        assert len(fake_factory.live) == 0

    assert len(decisions(captured_logs, "schedule_reconnect")) == 1
    assert len(decisions(captured_logs, "reconnect_already_scheduled")) == 100
    assert manager.reconnect_timer_running
    await manager.shutdown()


# ---------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_inbound_messages_are_logged_in_order(fake_factory: FakeTransportFactory):
    manager = make_manager(fake_factory)
    await manager.connect()
    await fake_factory.latest.succeed()

    await fake_factory.latest.receive("ok")
    await fake_factory.latest.receive("battery:87")

    assert manager.log.texts[-2:] == [msg_received("ok"), msg_received("battery:87")]
    await manager.shutdown()


# ---------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_shutdown_releases_timer_and_transport(fake_factory: FakeTransportFactory):
    manager = make_manager(fake_factory)
    await manager.connect()
    await fake_factory.latest.fail()
    await wait_until(lambda: len(fake_factory.transports) == 2)
    pending = fake_factory.latest

    await manager.shutdown()

    assert not manager.reconnect_timer_running
    assert pending.close_calls == 1
    assert fake_factory.live == []
    assert manager.state.shut_down is True

    others = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
    assert others == []


@pytest.mark.asyncio
async def test_callbacks_after_shutdown_are_ignored(fake_factory: FakeTransportFactory):
    manager = make_manager(fake_factory)
    await manager.connect()
    await fake_factory.latest.succeed()

    await manager.shutdown()
    await fake_factory.latest.drop(1006, "")

    assert not manager.reconnect_timer_running
    assert manager.log.texts == [MSG_CONNECTED]


@pytest.mark.asyncio
async def test_shutdown_twice_and_context_manager(fake_factory: FakeTransportFactory):
    async with make_manager(fake_factory) as manager:
        await manager.connect()
        await fake_factory.latest.succeed()

    assert fake_factory.latest.close_calls == 1
    await manager.shutdown()
    assert fake_factory.latest.close_calls == 1


@pytest.mark.asyncio
async def test_pending_handshake_timer_is_discarded_on_shutdown(
    fake_factory: FakeTransportFactory,
):
    before = active_timer_count()
    manager = make_manager(fake_factory)
    await manager.connect()
    assert active_timer_count() == before + 1

    await manager.shutdown()

    assert active_timer_count() == before


@pytest.mark.asyncio
async def test_handshake_metric_emitted_on_open(
    fake_factory: FakeTransportFactory,
    captured_logs: list[dict[str, Any]],
):
    manager = make_manager(fake_factory)
    await manager.connect()
    await fake_factory.latest.succeed()

    metrics = [e for e in captured_logs if e.get("event_type") == "METRIC_TIMER"]
    assert len(metrics) == 1
    assert metrics[0]["metric"] == "transport_handshake"
    assert metrics[0]["details"] == {"outcome": "open"}
    await manager.shutdown()


# ---------------------------------------------------------------------
# Status signal
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_status_listener_sees_every_flip(fake_factory: FakeTransportFactory):
    manager = make_manager(fake_factory)
    seen: list[bool] = []
    unsubscribe = manager.subscribe_status(seen.append)

    await manager.connect()
    await fake_factory.latest.succeed()
    await fake_factory.latest.drop(1006, "")

    assert seen == [True, False]

    unsubscribe()
    await wait_until(lambda: len(fake_factory.transports) == 2)
    await fake_factory.latest.succeed()
    assert seen == [True, False]
    await manager.shutdown()


@pytest.mark.asyncio
async def test_failing_status_listener_is_logged_not_raised(
    fake_factory: FakeTransportFactory,
    captured_logs: list[dict[str, Any]],
):
    manager = make_manager(fake_factory)

    def broken(_: bool) -> None:
        raise RuntimeError("ui gone")

    manager.subscribe_status(broken)
    await manager.connect()
    await fake_factory.latest.succeed()

    assert manager.is_connected
    errors = [e for e in captured_logs if e.get("event_type") == "STATUS_LISTENER_ERROR"]
    assert errors[0]["message"] == "ui gone"
    await manager.shutdown()


@pytest.mark.asyncio
async def test_failing_log_listener_does_not_stop_reconnection(
    fake_factory: FakeTransportFactory,
    captured_logs: list[dict[str, Any]],
):
    manager = make_manager(fake_factory)

    def broken(entry: Any) -> None:
        if entry.text.startswith("WebSocket Closed"):
            raise RuntimeError("ui gone")

    manager.log.subscribe(broken)
    await manager.connect()
    await fake_factory.latest.succeed()

    await fake_factory.latest.drop(1006, "reset")

    assert manager.log.texts[-1] == MSG_RESET
    assert manager.reconnect_timer_running
    await wait_until(lambda: len(fake_factory.transports) == 2)
    errors = [e for e in captured_logs if e.get("event_type") == "LOG_LISTENER_ERROR"]
    assert errors[0]["message"] == "ui gone"
    await manager.shutdown()
