"""Shared fixtures: in-memory transport and captured JSONL output."""

from __future__ import annotations

import json
from typing import Any

import pytest

from observability import logger

from fakes import FakeTransportFactory


@pytest.fixture
def fake_factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture(autouse=True)
def captured_logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Route JSONL output into a list instead of stdout."""
    captured: list[dict[str, Any]] = []

    def fake_print(line: str) -> None:
        captured.append(json.loads(line))

    monkeypatch.setattr(logger, "_print", fake_print)
    monkeypatch.setattr(logger, "_enabled", True)
    return captured
