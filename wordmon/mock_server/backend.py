"""In-process backend implementing both external contracts.

Stands in for the real controller service: it stores words in a
``MockDevice``, pushes ``monitor`` notifications while a monitor is
configured and reports ``server-status`` changes.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from wordmon.core.address import parse_device_address
from wordmon.transports.base import (
    MONITOR_EVENT,
    STATUS_EVENT,
    CommandSink,
    EventCallback,
    EventSource,
    ServerStatus,
)

from .config import MockServerConfig
from .core import MockDevice

logger = logging.getLogger("wordmon.mock_server")

TIM_AWAIT_ENV = "WORDMON_MOCK_TIM_AWAIT_MS"


@dataclass(slots=True)
class MonitorTarget:
    key: str
    addr: int
    count: int
    interval_ms: int


class MockBackend(CommandSink, EventSource):
    def __init__(self, config: Optional[MockServerConfig] = None, device: Optional[MockDevice] = None) -> None:
        self.config = config or MockServerConfig()
        self.device = device or MockDevice(self.config)
        self.running = False
        self.bind: Optional[Dict[str, Any]] = None
        self.monitor: Optional[MonitorTarget] = None
        self._monitor_task: Optional[asyncio.Task] = None
        self._listeners: Dict[str, List[EventCallback]] = {}

    # EventSource

    async def listen(self, event: str, callback: EventCallback) -> None:
        if not self.config.events_enabled:
            raise PermissionError(f"event.listen not allowed for {event!r}")
        self._listeners.setdefault(event, []).append(callback)

    def emit(self, event: str, payload: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(payload)
            except Exception:
                logger.exception("listener for %s failed", event)

    # CommandSink

    async def start_mock(self, ip: str, tcp_port: int, udp_port: int, tim_await_ms: int) -> None:
        if tim_await_ms is not None:
            os.environ[TIM_AWAIT_ENV] = str(tim_await_ms)
        if not self.running:
            self.bind = {"ip": ip, "tcp_port": tcp_port, "udp_port": udp_port}
            self.running = True
            logger.info("mock started ip=%s tcp=%s udp=%s tim=%s", ip, tcp_port, udp_port, tim_await_ms)
        self.emit(STATUS_EVENT, ServerStatus.RUNNING.value)

    async def stop_mock(self) -> None:
        await self.stop_monitor()
        self.running = False
        self.bind = None
        self.emit(STATUS_EVENT, ServerStatus.STOPPED.value)

    async def start_monitor(self, target: str, interval_ms: int) -> None:
        address = parse_device_address(target)
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        await self.stop_monitor()
        self.monitor = MonitorTarget(address.key, address.addr, self.config.monitor_count, interval_ms)
        self._monitor_task = asyncio.create_task(self._monitor_loop(self.monitor))

    async def stop_monitor(self) -> None:
        task = self._monitor_task
        self._monitor_task = None
        self.monitor = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def get_words(self, key: str, addr: int, count: int) -> List[int]:
        return await self.device.read(key, addr, count)

    async def set_words(self, key: str, addr: int, words: Sequence[int]) -> None:
        await self.device.write(key, addr, words)
        logger.debug("set_words key=%s addr=%s words=%s", key, addr, list(words))
        if self.monitor is not None:
            await self._push(self.monitor)

    async def _push(self, target: MonitorTarget) -> None:
        vals = await self.device.read(target.key, target.addr, target.count)
        self.emit(MONITOR_EVENT, {"key": target.key, "addr": target.addr, "vals": vals})

    async def _monitor_loop(self, target: MonitorTarget) -> None:
        while True:
            await asyncio.sleep(target.interval_ms / 1000.0)
            try:
                await self._push(target)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.debug("monitor push skipped: %s", exc)
