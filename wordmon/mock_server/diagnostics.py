from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
import random
from typing import Any, Dict, Optional


@dataclass(slots=True)
class FaultInjectionSettings:
    """Knobs applied to every mock read and write."""

    latency_ms: int = 0
    latency_jitter_pct: float = 0.0
    drop_rate_pct: float = 0.0
    enabled: bool = False
    random_seed: Optional[int] = None


@dataclass(slots=True)
class FaultEvent:
    timestamp: datetime
    operation: str
    target: str
    description: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class DiagnosticsManager:
    """Decides which word requests get delayed or dropped and records it."""

    def __init__(self, settings: Optional[FaultInjectionSettings] = None) -> None:
        self._settings = settings or FaultInjectionSettings()
        self._events: asyncio.Queue[FaultEvent] = asyncio.Queue()
        self._random = random.Random(self._settings.random_seed)
        self.counters: Counter[str] = Counter()

    @property
    def settings(self) -> FaultInjectionSettings:
        return self._settings

    def configure(self, profile: Dict[str, Any]) -> None:
        """Apply a fault profile; unknown keys are ignored."""
        for key, value in profile.items():
            if key in FaultInjectionSettings.__slots__:
                setattr(self._settings, key, value)
        if profile.get("random_seed") is not None:
            self._random.seed(int(profile["random_seed"]))

    def record(self, operation: str, target: str, description: str, **metadata: Any) -> None:
        self.counters[operation] += 1
        self._events.put_nowait(
            FaultEvent(
                timestamp=datetime.now(timezone.utc),
                operation=operation,
                target=target,
                description=description,
                metadata=metadata,
            )
        )

    async def next_event(self) -> FaultEvent:
        return await self._events.get()

    def snapshot(self) -> Dict[str, Any]:
        s = self._settings
        return {
            "enabled": s.enabled,
            "latency_ms": s.latency_ms,
            "latency_jitter_pct": s.latency_jitter_pct,
            "drop_rate_pct": s.drop_rate_pct,
            "faults": dict(self.counters),
        }

    async def apply_latency(self) -> float:
        """Sleep for the configured latency (with jitter); returns seconds slept."""
        s = self._settings
        if not s.enabled or s.latency_ms <= 0:
            return 0.0
        jitter = s.latency_ms * (s.latency_jitter_pct / 100.0)
        delay = max(0.0, (s.latency_ms + (self._random.random() - 0.5) * 2 * jitter) / 1000.0)
        await asyncio.sleep(delay)
        return delay

    def should_drop(self) -> bool:
        s = self._settings
        if not s.enabled or s.drop_rate_pct <= 0:
            return False
        return self._random.random() < (s.drop_rate_pct / 100.0)
