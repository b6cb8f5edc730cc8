from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import pytest

from wordmon.mock_server import MockBackend, MockDevice, RequestDropped, load_config
from wordmon.mock_server.backend import TIM_AWAIT_ENV
from wordmon.mock_server.config import MockServerConfig


def test_load_config_parses_words_and_faults(tmp_path: Path) -> None:
    cfg_path = tmp_path / "mock.json"
    payload = {
        "words": {"d": {"0": 10, "0x10": 70000}},
        "faults": {"latency_ms": 10, "enabled": True},
        "events_enabled": False,
        "monitor_count": 8,
        "random_seed": 3,
    }
    cfg_path.write_text(json.dumps(payload), encoding="utf-8")

    cfg = load_config(cfg_path)

    assert cfg.initial_words == {"D": {0: 10, 16: 70000 & 0xFFFF}}
    assert cfg.fault_profile["latency_ms"] == 10
    assert cfg.events_enabled is False
    assert cfg.monitor_count == 8
    assert cfg.random_seed == 3


def test_load_config_yaml(tmp_path: Path) -> None:
    cfg_path = tmp_path / "mock.yaml"
    cfg_path.write_text("words:\n  W:\n    1: 5\n", encoding="utf-8")
    assert load_config(cfg_path).initial_words == {"W": {1: 5}}


def test_load_config_rejects_bad_words(tmp_path: Path) -> None:
    cfg_path = tmp_path / "mock.json"
    cfg_path.write_text(json.dumps({"words": [1, 2]}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg_path)


@pytest.mark.asyncio
async def test_device_reads_zero_for_unwritten() -> None:
    device = MockDevice(MockServerConfig(initial_words={"D": {1: 5}}))
    assert await device.read("d", 0, 3) == [0, 5, 0]
    await device.write("D", 2, [0x1FFFF])
    assert device.peek("D", 2) == 0xFFFF
    assert device.snapshot() == {"D": {1: 5, 2: 0xFFFF}}


@pytest.mark.asyncio
async def test_drop_faults_raise() -> None:
    device = MockDevice(MockServerConfig(fault_profile={"enabled": True, "drop_rate_pct": 100}))
    with pytest.raises(RequestDropped):
        await device.read("D", 0, 1)
    event = await asyncio.wait_for(device.diagnostics.next_event(), timeout=1)
    assert event.operation == "read"


@pytest.mark.asyncio
async def test_backend_status_and_env() -> None:
    backend = MockBackend()
    statuses = []
    await backend.listen("server-status", statuses.append)
    await backend.start_mock("127.0.0.1", 5000, 5001, 1234)
    await backend.start_mock("127.0.0.1", 5000, 5001, 1234)
    assert backend.running
    assert os.environ[TIM_AWAIT_ENV] == "1234"
    await backend.stop_mock()
    assert statuses == ["running", "running", "stopped"]
    assert not backend.running


@pytest.mark.asyncio
async def test_backend_pushes_monitor_events() -> None:
    backend = MockBackend(MockServerConfig(initial_words={"D": {0: 1}}, monitor_count=2))
    payloads = []
    await backend.listen("monitor", payloads.append)
    await backend.start_monitor("D0", 10)
    try:
        await asyncio.sleep(0.05)
    finally:
        await backend.stop_monitor()
    assert payloads
    assert payloads[0] == {"key": "D", "addr": 0, "vals": [1, 0]}


@pytest.mark.asyncio
async def test_backend_refuses_listen_when_events_disabled() -> None:
    backend = MockBackend(MockServerConfig(events_enabled=False))
    with pytest.raises(PermissionError):
        await backend.listen("monitor", lambda payload: None)


@pytest.mark.asyncio
async def test_backend_rejects_bad_monitor_target() -> None:
    backend = MockBackend()
    with pytest.raises(ValueError):
        await backend.start_monitor("123", 500)


@pytest.mark.asyncio
async def test_latency_is_recorded() -> None:
    device = MockDevice(MockServerConfig(fault_profile={"enabled": True, "latency_ms": 5, "bogus": 1}))
    assert await device.read("D", 0, 1) == [0]
    event = await asyncio.wait_for(device.diagnostics.next_event(), timeout=1)
    assert event.operation == "latency"
    assert event.target == "D0"
    assert device.diagnostics.snapshot()["faults"] == {"latency": 1}
