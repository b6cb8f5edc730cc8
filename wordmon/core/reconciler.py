"""Dual-channel update reconciliation.

Push events and the polling fallback both land in ``apply_words`` so the
cache (and therefore the view) never cares which channel delivered a word.
The channel is chosen once, when ``attach`` runs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Sequence

from wordmon.core.address import DeviceAddress
from wordmon.core.cache import WordCache
from wordmon.core.session_log import SessionLog
from wordmon.transports.base import MONITOR_EVENT, STATUS_EVENT, CommandSink, EventSource

logger = logging.getLogger("wordmon.reconciler")

DEFAULT_POLL_INTERVAL_MS = 500
POLL_COUNT = 30


class ChannelMode(str, Enum):
    UNDECIDED = "undecided"
    EVENT = "event"
    POLLING = "polling"


@dataclass(slots=True)
class MonitorPayload:
    """Decoded ``monitor`` notification."""

    key: str
    addr: int
    vals: List[int] = field(default_factory=list)

    @classmethod
    def from_event(cls, payload: Any) -> "MonitorPayload":
        if not isinstance(payload, Mapping):
            raise ValueError(f"monitor payload must be a mapping, got {type(payload).__name__}")
        key = payload.get("key")
        addr = payload.get("addr")
        vals = payload.get("vals") or []
        if not isinstance(key, str) or not key:
            raise ValueError("monitor payload missing key")
        if isinstance(addr, bool) or not isinstance(addr, int):
            raise ValueError("monitor payload missing addr")
        return cls(key=key, addr=addr, vals=[int(v) for v in vals])


class UpdateReconciler:
    def __init__(self, cache: WordCache, sink: CommandSink, log: Optional[SessionLog] = None) -> None:
        self.cache = cache
        self.sink = sink
        self.log = log or SessionLog()
        self.mode = ChannelMode.UNDECIDED
        self.status_callbacks: List[Callable[[str], None]] = []
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def event_channel_available(self) -> bool:
        return self.mode == ChannelMode.EVENT

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def add_status_callback(self, callback: Callable[[str], None]) -> None:
        self.status_callbacks.append(callback)

    async def attach(self, events: Optional[EventSource]) -> ChannelMode:
        """Subscribe to push notifications or settle on polling.

        Only the first call decides; later calls return the stored mode.
        """
        if self.mode != ChannelMode.UNDECIDED:
            return self.mode
        if events is None:
            self.log.log("event API not available")
            self.mode = ChannelMode.POLLING
            return self.mode
        try:
            self.log.log("event API available, registering listeners")
            await events.listen(MONITOR_EVENT, self._guarded_monitor_event)
            await events.listen(STATUS_EVENT, self._guarded_status_event)
        except Exception as exc:
            logger.warning("event listen not allowed, falling back to polling: %s", exc)
            self.log.log(f"event listen not allowed, falling back to polling: {exc}", logging.WARNING)
            self.mode = ChannelMode.POLLING
            return self.mode
        self.mode = ChannelMode.EVENT
        return self.mode

    # Listeners left registered by a partial attach stay silent outside EVENT mode

    def _guarded_monitor_event(self, payload: Any) -> None:
        if self.mode is ChannelMode.EVENT:
            self.on_monitor_event(payload)

    def _guarded_status_event(self, payload: Any) -> None:
        if self.mode is ChannelMode.EVENT:
            self.on_status_event(payload)

    def apply_words(self, start: DeviceAddress, vals: Sequence[int]) -> None:
        """Write ``vals`` into consecutive cache slots, index 0 first.

        An empty array still creates the start row (with value 0).
        """
        if not vals:
            self.cache.set(start, 0)
            return
        for i, value in enumerate(vals):
            self.cache.set(start.offset(i), int(value) & 0xFFFF)

    def on_monitor_event(self, payload: Any) -> None:
        try:
            msg = MonitorPayload.from_event(payload)
            first = msg.vals[0] if msg.vals else "<empty>"
            self.log.log(f"monitor event received key={msg.key} addr={msg.addr} vals0={first} len={len(msg.vals)}", logging.DEBUG)
            self.apply_words(DeviceAddress(msg.key, msg.addr), msg.vals)
        except Exception as exc:
            logger.debug("dropping malformed monitor payload %r: %s", payload, exc)

    def on_status_event(self, payload: Any) -> None:
        status = str(payload)
        self.log.log(f"server-status event: {status}")
        for callback in self.status_callbacks:
            try:
                callback(status)
            except Exception:
                logger.exception("status callback failed")

    # Polling fallback

    def start_polling(self, start: DeviceAddress, interval_ms: int = DEFAULT_POLL_INTERVAL_MS, count: int = POLL_COUNT) -> None:
        """Start the fallback poll loop, replacing any running one."""
        self.stop_polling()
        self.log.log(f"startFallbackPolling {start.label} interval={interval_ms}")
        self._poll_task = asyncio.create_task(self._poll_loop(start, interval_ms / 1000.0, count))

    def stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
            self.log.log("stopFallbackPolling")

    async def poll_once(self, start: DeviceAddress, count: int = POLL_COUNT) -> bool:
        """Run a single poll; failures are logged and reported as False."""
        try:
            vals = await self.sink.get_words(start.key, start.addr, count)
            words = [int(v) & 0xFFFF for v in vals or []]
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("fallback get_words failed: %s", exc)
            self.log.log(f"fallback get_words failed: {exc}", logging.WARNING)
            return False
        for i, word in enumerate(words):
            self.cache.set(start.offset(i), word)
        return True

    async def _poll_loop(self, start: DeviceAddress, interval_sec: float, count: int) -> None:
        while True:
            await asyncio.sleep(interval_sec)
            await self.poll_once(start, count)
