from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List

from .config import MockServerConfig
from .diagnostics import DiagnosticsManager


class RequestDropped(Exception):
    """Raised when diagnostics suppresses a request entirely."""
    pass


class MockDevice:
    """Sparse in-memory word store keyed by device key and address.

    Unwritten addresses read as zero, like a freshly powered controller.
    """

    def __init__(self, config: MockServerConfig) -> None:
        self._config = config
        self._lock = asyncio.Lock()
        self._words: Dict[str, Dict[int, int]] = {
            key.upper(): dict(entries) for key, entries in config.initial_words.items()
        }
        self.diagnostics = DiagnosticsManager()
        profile = dict(config.fault_profile)
        if config.random_seed is not None:
            profile.setdefault("random_seed", config.random_seed)
        if profile:
            self.diagnostics.configure(profile)

    async def _gate(self, operation: str, key: str, addr: int) -> None:
        delay = await self.diagnostics.apply_latency()
        if delay:
            self.diagnostics.record("latency", f"{key}{addr}", f"Delayed {operation} by {delay * 1000:.0f} ms", request=operation)
        if self.diagnostics.should_drop():
            self.diagnostics.record(operation, f"{key}{addr}", f"Dropped {operation} request")
            raise RequestDropped(f"{operation} {key}{addr} dropped")

    async def read(self, key: str, addr: int, count: int) -> List[int]:
        await self._gate("read", key, addr)
        async with self._lock:
            store = self._words.get(key.upper(), {})
            return [store.get(addr + i, 0) for i in range(count)]

    async def write(self, key: str, addr: int, words: Iterable[int]) -> None:
        await self._gate("write", key, addr)
        async with self._lock:
            store = self._words.setdefault(key.upper(), {})
            for offset, value in enumerate(words):
                store[addr + offset] = int(value) & 0xFFFF

    def peek(self, key: str, addr: int) -> int:
        return self._words.get(key.upper(), {}).get(addr, 0)

    def snapshot(self) -> Dict[str, Dict[int, int]]:
        return {key: dict(sorted(store.items())) for key, store in self._words.items()}
