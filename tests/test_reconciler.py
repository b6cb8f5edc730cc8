"""Tests for the event/polling update reconciler."""

import asyncio

import pytest

from wordmon.core.cache import WordCache
from wordmon.core.reconciler import ChannelMode, MonitorPayload, UpdateReconciler
from wordmon.mock_server import MockBackend, MockServerConfig
from wordmon.transports.base import EventSource

from helpers import D, FakeSink


class RefusingEvents(EventSource):
    async def listen(self, event, callback):
        raise PermissionError("not allowed")


class TestPayload:
    def test_valid(self):
        msg = MonitorPayload.from_event({"key": "D", "addr": 3, "vals": [1, 2]})
        assert (msg.key, msg.addr, msg.vals) == ("D", 3, [1, 2])

    @pytest.mark.parametrize(
        "payload",
        [None, "D0", {"addr": 1}, {"key": "", "addr": 1}, {"key": "D"}, {"key": "D", "addr": "1"}, {"key": "D", "addr": True}],
    )
    def test_malformed(self, payload):
        with pytest.raises(ValueError):
            MonitorPayload.from_event(payload)


class TestAttach:
    @pytest.mark.asyncio
    async def test_no_event_source_means_polling(self):
        rec = UpdateReconciler(WordCache(), FakeSink())
        assert await rec.attach(None) is ChannelMode.POLLING
        assert not rec.event_channel_available

    @pytest.mark.asyncio
    async def test_listen_failure_means_polling(self):
        rec = UpdateReconciler(WordCache(), FakeSink())
        assert await rec.attach(RefusingEvents()) is ChannelMode.POLLING
        assert any("falling back to polling" in m for m in rec.log.messages())

    @pytest.mark.asyncio
    async def test_event_channel(self):
        backend = MockBackend()
        rec = UpdateReconciler(WordCache(), backend)
        assert await rec.attach(backend) is ChannelMode.EVENT
        assert rec.event_channel_available

    @pytest.mark.asyncio
    async def test_decided_once(self):
        backend = MockBackend()
        rec = UpdateReconciler(WordCache(), backend)
        await rec.attach(None)
        assert await rec.attach(backend) is ChannelMode.POLLING


class TestEvents:
    def test_monitor_event_updates_cache(self):
        cache = WordCache()
        rec = UpdateReconciler(cache, FakeSink())
        rec.on_monitor_event({"key": "D", "addr": 0, "vals": [10, 20, 0x1FFFF]})
        assert cache.snapshot() == {"D:0": 10, "D:1": 20, "D:2": 0xFFFF}

    def test_empty_vals_creates_start_row(self):
        cache = WordCache()
        rec = UpdateReconciler(cache, FakeSink())
        rec.on_monitor_event({"key": "D", "addr": 4, "vals": []})
        assert cache.get(D(4)) == 0

    def test_malformed_event_is_dropped(self):
        cache = WordCache()
        rec = UpdateReconciler(cache, FakeSink())
        rec.on_monitor_event({"key": 5})
        rec.on_monitor_event("garbage")
        rec.on_monitor_event({"key": "D", "addr": 0, "vals": ["x"]})
        assert len(cache) == 0

    def test_status_event_reaches_callbacks(self):
        rec = UpdateReconciler(WordCache(), FakeSink())
        seen = []
        rec.add_status_callback(seen.append)
        rec.on_status_event("running")
        assert seen == ["running"]


class TestPolling:
    @pytest.mark.asyncio
    async def test_poll_once(self):
        cache = WordCache()
        sink = FakeSink(words=[10, 20, 30])
        rec = UpdateReconciler(cache, sink)
        assert await rec.poll_once(D(0))
        assert [cache.get(D(i)) for i in range(3)] == [10, 20, 30]
        assert sink.named("get_words") == [("get_words", "D", 0, 30)]

    @pytest.mark.asyncio
    async def test_failed_poll_is_swallowed(self):
        cache = WordCache()
        rec = UpdateReconciler(cache, FakeSink(fail=["get_words"]))
        assert await rec.poll_once(D(0)) is False
        assert len(cache) == 0
        assert any("fallback get_words failed" in m for m in rec.log.messages())

    @pytest.mark.asyncio
    async def test_poll_loop_end_to_end(self):
        backend = MockBackend(MockServerConfig(events_enabled=False, initial_words={"D": {0: 10, 1: 20, 2: 30}}))
        cache = WordCache()
        rec = UpdateReconciler(cache, backend)
        assert await rec.attach(backend) is ChannelMode.POLLING
        rec.start_polling(D(0), interval_ms=10, count=3)
        try:
            await asyncio.sleep(0.1)
        finally:
            rec.stop_polling()
        assert [cache.get(D(i)) for i in range(3)] == [10, 20, 30]
        assert not rec.is_polling

    @pytest.mark.asyncio
    async def test_loop_survives_failures(self):
        sink = FakeSink(words=[5], fail=["get_words"])
        cache = WordCache()
        rec = UpdateReconciler(cache, sink)
        rec.start_polling(D(0), interval_ms=5, count=1)
        try:
            await asyncio.sleep(0.05)
            assert rec.is_polling
            sink.fail.clear()
            await asyncio.sleep(0.05)
        finally:
            rec.stop_polling()
        assert cache.get(D(0)) == 5

    @pytest.mark.asyncio
    async def test_restart_replaces_task(self):
        rec = UpdateReconciler(WordCache(), FakeSink())
        rec.start_polling(D(0), interval_ms=1000)
        first = rec._poll_task
        rec.start_polling(D(0), interval_ms=1000)
        await asyncio.gather(first, return_exceptions=True)
        assert first.cancelled()
        assert rec._poll_task is not first
        rec.stop_polling()
        assert "stopFallbackPolling" in rec.log.messages()


class StatusRefusingEvents(EventSource):
    """Accepts the monitor subscription, refuses the status one."""

    def __init__(self):
        self.callbacks = {}

    async def listen(self, event, callback):
        if event == "server-status":
            raise PermissionError("status not allowed")
        self.callbacks[event] = callback


class TestPartialAttach:
    @pytest.mark.asyncio
    async def test_registered_monitor_listener_stays_silent(self):
        cache = WordCache()
        events = StatusRefusingEvents()
        rec = UpdateReconciler(cache, FakeSink())
        assert await rec.attach(events) is ChannelMode.POLLING
        events.callbacks["monitor"]({"key": "D", "addr": 0, "vals": [42]})
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_event_mode_listener_applies(self):
        cache = WordCache()
        backend = MockBackend()
        rec = UpdateReconciler(cache, backend)
        await rec.attach(backend)
        backend.emit("monitor", {"key": "D", "addr": 1, "vals": [9]})
        assert cache.get(D(1)) == 9
