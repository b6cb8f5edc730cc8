"""End-to-end tests for MonitorSession against fakes and the mock backend."""

import asyncio
from pathlib import Path

import pytest

from wordmon.core.config import MonitorConfig
from wordmon.core.formats import DisplayFormat
from wordmon.core.preferences import Preferences
from wordmon.core.reconciler import ChannelMode
from wordmon.core.session import MonitorSession
from wordmon.mock_server import MockBackend, MockServerConfig

from helpers import D, FakeSink, RecordingViewSink


def labels(session):
    return [r.label for r in session.view.rows()]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_failure(self):
        sink = FakeSink(fail=["start_mock"])
        session = MonitorSession(sink)
        statuses = []
        session.add_status_callback(statuses.append)
        assert await session.start() is False
        assert not session.running
        assert session.status == "start-failed"
        assert statuses == ["start-failed"]
        assert sink.named("start_monitor") == []

    @pytest.mark.asyncio
    async def test_start_with_events(self):
        backend = MockBackend()
        session = MonitorSession(backend, events=backend)
        try:
            assert await session.initialize() is ChannelMode.EVENT
            assert await session.start()
            assert session.status == "running"
            assert labels(session) == [f"D{i}" for i in range(30)]
            assert session.workflow.selected == D(0)
            assert not session.reconciler.is_polling
        finally:
            await session.stop()
        assert session.status == "stopped"

    @pytest.mark.asyncio
    async def test_pushed_write_reaches_cache(self):
        backend = MockBackend()
        session = MonitorSession(backend, events=backend)
        await session.initialize()
        await session.start()
        try:
            await backend.set_words("D", 3, [7])
            assert session.cache.get(D(3)) == 7
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_polling_fallback(self):
        backend = MockBackend(MockServerConfig(events_enabled=False, initial_words={"D": {0: 10, 1: 20, 2: 30}}))
        session = MonitorSession(backend, events=backend, config=MonitorConfig(interval_ms=10))
        assert await session.initialize() is ChannelMode.POLLING
        # prefetch already populated the rows
        assert [session.cache.get(D(i)) for i in range(3)] == [10, 20, 30]
        await session.start()
        try:
            assert session.reconciler.is_polling
            await backend.device.write("D", 0, [99])
            await asyncio.sleep(0.1)
            assert session.cache.get(D(0)) == 99
        finally:
            await session.stop()
        assert not session.reconciler.is_polling

    @pytest.mark.asyncio
    async def test_toggle(self, fake_sink):
        session = MonitorSession(fake_sink)
        await session.reconciler.attach(None)
        assert await session.toggle() is True
        assert await session.toggle() is False
        assert [c[0] for c in fake_sink.calls][-2:] == ["stop_monitor", "stop_mock"]

    @pytest.mark.asyncio
    async def test_stop_errors_are_logged(self):
        sink = FakeSink(fail=["stop_monitor", "stop_mock"])
        session = MonitorSession(sink)
        await session.stop()
        assert session.status == "stopped"
        assert any("stop_mock error" in m for m in session.log.messages())

    @pytest.mark.asyncio
    async def test_running_status_marker_selects_target(self, fake_sink):
        session = MonitorSession(fake_sink)
        session.view.create_initial_rows(D(0), 3)
        session.reconciler.on_status_event("起動中")
        assert session.status == "起動中"
        assert session.workflow.selected == D(0)


class TestPrefetch:
    @pytest.mark.asyncio
    async def test_failure_zero_fills(self):
        session = MonitorSession(FakeSink(fail=["get_words"]))
        assert await session.prefetch() == 0
        assert labels(session) == [f"D{i}" for i in range(30)]

    @pytest.mark.asyncio
    async def test_short_result_is_padded(self):
        session = MonitorSession(FakeSink(words=[1, 2]), config=MonitorConfig(row_count=5))
        assert await session.prefetch() == 2
        assert [session.cache.get(D(i)) for i in range(5)] == [1, 2, 0, 0, 0]


class TestTargetAndFormat:
    @pytest.mark.asyncio
    async def test_change_target_restarts_monitor(self, fake_sink):
        session = MonitorSession(fake_sink, config=MonitorConfig(row_count=4))
        await session.reconciler.attach(None)
        await session.start()
        try:
            target = await session.change_target("wff")
            assert target.label == "W255"
            assert fake_sink.named("start_monitor")[-1] == ("start_monitor", "W255", 500)
            assert "W258" in labels(session)
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_bad_target_falls_back_to_zero(self, fake_sink):
        session = MonitorSession(fake_sink)
        target = await session.change_target("D-")
        assert target == D(0)

    def test_write_format_follows_display_format(self, fake_sink):
        session = MonitorSession(fake_sink)
        session.set_display_format(DisplayFormat.F32)
        assert session.workflow.write_format is DisplayFormat.F32
        session.choose_write_format(DisplayFormat.HEX)
        assert session.format is DisplayFormat.HEX

    def test_format_switch_reaches_sink(self, fake_sink):
        session = MonitorSession(fake_sink)
        sink = RecordingViewSink()
        session.add_sink(sink)
        session.cache.set(D(0), 0xFFFF)
        session.set_display_format(DisplayFormat.I16)
        assert sink.rows["D:0"].formatted == "-1"


class TestRawWrite:
    @pytest.mark.asyncio
    async def test_write_raw(self):
        backend = MockBackend()
        session = MonitorSession(backend, events=backend)
        words = await session.write_raw("d", 5, "1,2,0x10")
        assert words == [1, 2, 16]
        assert [session.cache.get(D(i)) for i in (5, 6, 7)] == [1, 2, 16]
        assert backend.device.peek("D", 7) == 16

    @pytest.mark.asyncio
    async def test_write_raw_failure_leaves_cache(self):
        session = MonitorSession(FakeSink(fail=["set_words"]))
        assert await session.write_raw("D", 0, "5") == [5]
        assert session.cache.get(D(0)) is None

    @pytest.mark.asyncio
    async def test_write_raw_bad_key(self, fake_sink):
        session = MonitorSession(fake_sink)
        assert await session.write_raw("1", 0, "5") == []
        assert fake_sink.named("set_words") == []


class TestPreferences:
    @pytest.mark.asyncio
    async def test_format_and_auto_start_persist(self, tmp_path: Path):
        prefs_path = tmp_path / "prefs.json"
        cfg = MonitorConfig(prefs_path=prefs_path)
        backend = MockBackend()
        session = MonitorSession(backend, events=backend, config=cfg)
        await session.initialize()
        session.set_display_format(DisplayFormat.HEX)
        await session.start(auto_start_next=True)
        await session.stop()

        again = MonitorSession(backend, events=backend, config=MonitorConfig(prefs_path=prefs_path))
        try:
            await again.initialize()
            assert again.format is DisplayFormat.HEX
            assert again.running
        finally:
            await again.stop()

    def test_dismiss_saves_popup_position(self, fake_sink):
        prefs = Preferences()
        session = MonitorSession(fake_sink, prefs=prefs)
        session.view.create_initial_rows(D(0), 2)
        session.workflow.open_editor(D(1))
        session.dismiss_editor((-5, 40))
        assert prefs.edit_popup_pos == (0, 40)
        assert not session.workflow.editing


class SlowStopSink(FakeSink):
    async def stop_mock(self) -> None:
        await super().stop_mock()
        await asyncio.sleep(0.2)


@pytest.mark.asyncio
async def test_stop_cancels_polling_before_backend_stop():
    sink = SlowStopSink(words=[1])
    session = MonitorSession(sink, config=MonitorConfig(interval_ms=10))
    await session.reconciler.attach(None)
    await session.start()
    await asyncio.sleep(0.05)
    assert session.reconciler.is_polling
    before = len(sink.named("get_words"))
    await session.stop()
    assert len(sink.named("get_words")) == before
    assert not session.reconciler.is_polling
