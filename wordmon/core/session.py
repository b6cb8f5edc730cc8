"""One monitoring session against a single backend connection."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from wordmon.core.address import AddressError, DeviceAddress, parse_target_or_default
from wordmon.core.cache import WordCache
from wordmon.core.config import MonitorConfig
from wordmon.core.formats import DisplayFormat
from wordmon.core.preferences import Preferences
from wordmon.core.reconciler import ChannelMode, UpdateReconciler
from wordmon.core.selection import SelectionWorkflow
from wordmon.core.session_log import SessionLog
from wordmon.core.view import MonitorView, ViewSink
from wordmon.transports.base import CommandSink, EventSource, ServerStatus, is_running_status
from wordmon.utils.encoding import parse_word_list

logger = logging.getLogger("wordmon.session")


class MonitorSession:
    """Owns the cache and wires the view, reconciler and edit workflow.

    Usage:
        session = MonitorSession(backend, events=backend)
        await session.initialize()
        await session.start()
        ...
        await session.stop()
    """

    def __init__(
        self,
        sink: CommandSink,
        events: Optional[EventSource] = None,
        config: Optional[MonitorConfig] = None,
        prefs: Optional[Preferences] = None,
    ) -> None:
        self.config = config or MonitorConfig()
        self.config.validate()
        self.sink = sink
        self.events = events
        self.prefs = prefs or Preferences(self.config.prefs_path)
        self.log = SessionLog()
        self.cache = WordCache()
        self.view = MonitorView(self.cache)
        self.reconciler = UpdateReconciler(self.cache, sink, self.log)
        self.workflow = SelectionWorkflow(
            self.view,
            sink,
            self.log,
            retries=self.config.select_retries,
            backoff_ms=self.config.select_backoff_ms,
        )
        self.target: DeviceAddress = parse_target_or_default(self.config.target)
        self.running = False
        self.status: str = ServerStatus.STOPPED.value
        self.status_callbacks: List[Callable[[str], None]] = []
        self.reconciler.add_status_callback(self._on_server_status)
        self.view.add_format_callback(self._on_format_changed)

    def add_sink(self, sink: ViewSink) -> None:
        self.view.add_sink(sink)

    def add_status_callback(self, callback: Callable[[str], None]) -> None:
        self.status_callbacks.append(callback)

    def _set_status(self, status: str) -> None:
        self.status = status
        for callback in self.status_callbacks:
            try:
                callback(status)
            except Exception:
                logger.exception("status callback failed")

    @property
    def format(self) -> DisplayFormat:
        return self.view.format

    @property
    def channel(self) -> ChannelMode:
        return self.reconciler.mode

    # Lifecycle

    async def initialize(self) -> ChannelMode:
        """Restore preferences, prefetch the target rows, pick the channel.

        Starts the backend right away when the auto-start flag is saved.
        """
        saved = self.prefs.display_format
        if saved is not None:
            self.view.set_format(saved)
        await self.prefetch()
        mode = await self.reconciler.attach(self.events)
        if self.prefs.auto_start_next and not self.running:
            await self.start()
        return mode

    async def prefetch(self) -> int:
        """Populate the initial rows from the backend, zero-filling gaps."""
        count = self.config.row_count
        target = self.target
        try:
            vals = await self.sink.get_words(target.key, target.addr, count)
        except Exception as exc:
            self.view.create_initial_rows(target, count)
            self.log.log(f"initial get_words failed; created {count} empty rows for {target.label}: {exc}", logging.WARNING)
            return 0
        vals = list(vals or [])[:count]
        if not vals:
            self.view.create_initial_rows(target, count)
            self.log.log(f"initial get_words returned empty; created {count} empty rows for {target.label}")
            return 0
        self.reconciler.apply_words(target, vals)
        if len(vals) < count:
            self.view.create_initial_rows(target.offset(len(vals)), count - len(vals))
        self.log.log(f"initial get_words populated {len(vals)} rows for {target.label}")
        return len(vals)

    async def start(self, auto_start_next: Optional[bool] = None) -> bool:
        """Start the backend and monitor the current target.

        Returns False (and leaves the session stopped) if the backend
        refuses to start.
        """
        cfg = self.config
        try:
            await self.sink.start_mock(cfg.ip, cfg.tcp_port, cfg.udp_port, cfg.tim_await_ms)
            self.log.log(f"start_mock invoked ip={cfg.ip} tcp={cfg.tcp_port} udp={cfg.udp_port} tim={cfg.tim_await_ms}")
        except Exception as exc:
            self.log.log(f"start_mock error: {exc}", logging.ERROR)
            self.running = False
            self._set_status(ServerStatus.START_FAILED.value)
            return False

        self.running = True
        self._set_status(ServerStatus.RUNNING.value)
        if auto_start_next is not None:
            self.prefs.auto_start_next = auto_start_next
        self.view.create_initial_rows(self.target, cfg.row_count)
        await self._start_monitor()
        self.workflow.select(self.target)
        return True

    async def stop(self) -> None:
        self.reconciler.stop_polling()
        try:
            await self.sink.stop_monitor()
            self.log.log("stop_monitor invoked")
        except Exception as exc:
            self.log.log(f"stop_monitor error: {exc}", logging.ERROR)
        try:
            await self.sink.stop_mock()
        except Exception as exc:
            self.log.log(f"stop_mock error: {exc}", logging.ERROR)
        self.running = False
        self._set_status(ServerStatus.STOPPED.value)

    async def toggle(self, auto_start_next: Optional[bool] = None) -> bool:
        if self.running:
            await self.stop()
        else:
            await self.start(auto_start_next)
        return self.running

    async def _start_monitor(self) -> None:
        target = self.target
        interval = self.config.interval_ms
        try:
            await self.sink.start_monitor(target.label, interval)
            self.log.log(f"start_monitor {target.label} interval={interval}")
        except Exception as exc:
            self.log.log(f"start_monitor error: {exc}", logging.ERROR)
        if self.reconciler.mode != ChannelMode.EVENT:
            self.reconciler.start_polling(target, interval, self.config.row_count)

    async def change_target(self, token: str) -> DeviceAddress:
        """Switch the monitored range; restarts the monitor when running."""
        self.target = parse_target_or_default(token)
        self.view.create_initial_rows(self.target, self.config.row_count)
        if self.running:
            try:
                await self.sink.stop_monitor()
            except Exception as exc:
                self.log.log(f"stop_monitor error: {exc}", logging.ERROR)
            await self._start_monitor()
        return self.target

    # Format and writes

    def set_display_format(self, fmt: DisplayFormat) -> None:
        self.view.set_format(fmt)
        self.prefs.display_format = fmt

    def choose_write_format(self, fmt: DisplayFormat) -> None:
        """Pick the edit-surface format; the table follows it."""
        self.workflow.choose_write_format(fmt)
        self.set_display_format(fmt)

    def _on_format_changed(self, fmt: DisplayFormat) -> None:
        self.workflow.write_format = fmt

    async def write_raw(self, key: str, addr: int, raw: str) -> List[int]:
        """Write a comma-separated list of words at ``key``/``addr``."""
        words = parse_word_list(raw or "0")
        try:
            start = DeviceAddress(key.strip().upper() or "D", addr)
        except AddressError as exc:
            self.log.log(f"set_words rejected: {exc}", logging.WARNING)
            return []
        try:
            await self.sink.set_words(start.key, start.addr, words)
            self.log.log(f"set_words invoked key={start.key} addr={start.addr} words={words}")
        except Exception as exc:
            self.log.log(f"set_words error: {exc}", logging.ERROR)
            return words
        for i, word in enumerate(words):
            self.cache.set(start.offset(i), word)
        return words

    def dismiss_editor(self, popup_pos: Optional[tuple] = None) -> None:
        if popup_pos is not None:
            self.prefs.edit_popup_pos = popup_pos
        self.workflow.dismiss()

    def _on_server_status(self, status: str) -> None:
        self._set_status(status)
        if is_running_status(status):
            self.workflow.select(self.target)

    def reset_view(self) -> None:
        self.workflow.dismiss()
        self.workflow.clear_selection()
        self.cache.clear()
