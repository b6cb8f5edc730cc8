"""Test doubles for the backend contracts and the view sink."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from wordmon.core.address import DeviceAddress
from wordmon.core.view import ViewSink
from wordmon.transports.base import CommandSink
from wordmon.utils.decoding import RowState


class FakeSink(CommandSink):
    """Records every command; ``fail`` names the commands that should raise."""

    def __init__(self, words: Optional[List[int]] = None, fail: Sequence[str] = ()) -> None:
        self.words = list(words or [])
        self.fail = set(fail)
        self.calls: List[Tuple] = []

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise ConnectionError(f"{name} failed")

    async def start_mock(self, ip: str, tcp_port: int, udp_port: int, tim_await_ms: int) -> None:
        self.calls.append(("start_mock", ip, tcp_port, udp_port, tim_await_ms))
        self._check("start_mock")

    async def stop_mock(self) -> None:
        self.calls.append(("stop_mock",))
        self._check("stop_mock")

    async def start_monitor(self, target: str, interval_ms: int) -> None:
        self.calls.append(("start_monitor", target, interval_ms))
        self._check("start_monitor")

    async def stop_monitor(self) -> None:
        self.calls.append(("stop_monitor",))
        self._check("stop_monitor")

    async def get_words(self, key: str, addr: int, count: int) -> List[int]:
        self.calls.append(("get_words", key, addr, count))
        self._check("get_words")
        return self.words[:count]

    async def set_words(self, key: str, addr: int, words: Sequence[int]) -> None:
        self.calls.append(("set_words", key, addr, list(words)))
        self._check("set_words")

    def named(self, name: str) -> List[Tuple]:
        return [c for c in self.calls if c[0] == name]


class RecordingViewSink(ViewSink):
    def __init__(self) -> None:
        self.applied: List[RowState] = []
        self.rows: Dict[str, RowState] = {}
        self.selected: Optional[DeviceAddress] = None
        self.cleared = 0

    def apply(self, state: RowState) -> None:
        self.applied.append(state)
        self.rows[state.address.cache_key] = state

    def clear(self) -> None:
        self.cleared += 1
        self.rows.clear()

    def select(self, address: Optional[DeviceAddress]) -> None:
        self.selected = address


def D(addr: int) -> DeviceAddress:
    return DeviceAddress("D", addr)
