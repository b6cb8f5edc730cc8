"""Row selection and the edit/write workflow."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional

from wordmon.core.address import DeviceAddress
from wordmon.core.cache import WordCache
from wordmon.core.formats import DisplayFormat, default_display_format
from wordmon.core.session_log import SessionLog
from wordmon.core.view import MonitorView
from wordmon.transports.base import CommandSink
from wordmon.utils.encoding import EncodingError, WritePlan, encode_literal

logger = logging.getLogger("wordmon.selection")

SELECT_RETRIES = 6
SELECT_BACKOFF_MS = 60


class WorkflowState(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"
    EDITING = "editing"


class SelectionWorkflow:
    """Tracks the selected row and the edit surface that follows it.

    The edit surface stays open across commits and keeps targeting
    whatever row is selected, so arrow keys move the write target too.
    """

    def __init__(
        self,
        view: MonitorView,
        sink: CommandSink,
        log: Optional[SessionLog] = None,
        *,
        retries: int = SELECT_RETRIES,
        backoff_ms: int = SELECT_BACKOFF_MS,
    ) -> None:
        self.view = view
        self.cache: WordCache = view.cache
        self.sink = sink
        self.log = log or SessionLog()
        self.retries = retries
        self.backoff_ms = backoff_ms
        self.selected: Optional[DeviceAddress] = None
        self.editing = False
        self.edit_target: Optional[DeviceAddress] = None
        self.write_format: DisplayFormat = default_display_format()
        self.literal = ""
        self.listeners: List[Callable[["SelectionWorkflow"], None]] = []
        self._pending: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> WorkflowState:
        if self.editing:
            return WorkflowState.EDITING
        if self.selected is not None:
            return WorkflowState.SELECTED
        return WorkflowState.IDLE

    def add_listener(self, callback: Callable[["SelectionWorkflow"], None]) -> None:
        self.listeners.append(callback)

    def _changed(self) -> None:
        for callback in self.listeners:
            try:
                callback(self)
            except Exception:
                logger.exception("selection listener failed")

    # Selection

    def select(self, address: DeviceAddress, retries: Optional[int] = None) -> bool:
        """Select ``address``, retrying briefly if its row is not there yet.

        Returns True when the row was selected immediately. A row that never
        appears is given up on without error; the previous selection stays.
        """
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        remaining = self.retries if retries is None else retries
        if not self.view.has_row(address):
            if remaining > 0:
                self._schedule_retry(address, remaining - 1)
            else:
                logger.debug("row %s never appeared, selection abandoned", address.label)
            return False

        self.selected = address
        if self.editing:
            self.edit_target = address
            self.literal = ""
        self.view.notify_selection(address)
        self._changed()
        return True

    def _schedule_retry(self, address: DeviceAddress, remaining: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("no running loop, cannot retry selection of %s", address.label)
            return
        self._pending = loop.call_later(self.backoff_ms / 1000.0, self.select, address, remaining)

    def move(self, delta: int) -> Optional[DeviceAddress]:
        """Move the selection ``delta`` rows, clamped to the table.

        With nothing selected the first row is chosen.
        """
        rows = [r.address for r in self.view.rows()]
        if not rows:
            return None
        if self.selected is None or self.selected not in rows:
            idx = 0
        else:
            idx = max(0, min(len(rows) - 1, rows.index(self.selected) + delta))
        target = rows[idx]
        self.select(target)
        return target

    def clear_selection(self) -> None:
        self.selected = None
        self.view.notify_selection(None)
        self._changed()

    # Edit surface

    def open_editor(self, address: Optional[DeviceAddress] = None) -> bool:
        """Show the edit surface for ``address`` or the current selection."""
        if address is not None and address != self.selected:
            self.select(address)
        target = address or self.selected
        if target is None:
            return False
        self.editing = True
        self.edit_target = target
        self.literal = ""
        self.write_format = self.view.format
        self._changed()
        return True

    def dismiss(self) -> None:
        if not self.editing:
            return
        self.editing = False
        self.edit_target = None
        self.literal = ""
        self._changed()

    def choose_write_format(self, fmt: DisplayFormat) -> None:
        self.write_format = fmt
        self._changed()

    async def commit(self, literal: Optional[str] = None) -> Optional[WritePlan]:
        """Encode the literal, write it, and update the cache optimistically.

        Returns the plan that was written, or None when nothing was sent
        (no edit target or a literal that does not parse). A rejected write
        is only logged; the next poll or event corrects the cache.
        """
        target = self.edit_target
        if not self.editing or target is None:
            return None
        raw = self.literal if literal is None else literal
        try:
            plan = encode_literal(raw, self.write_format, target)
        except EncodingError as exc:
            self.log.log(f"write rejected: {exc}", logging.WARNING)
            return None

        words = list(plan.words)
        self.log.log(f"invoking set_words key={plan.address.key} addr={plan.address.addr} words={words}")
        try:
            await self.sink.set_words(plan.address.key, plan.address.addr, words)
        except Exception as exc:
            logger.warning("set_words failed: %s", exc)
            self.log.log(f"set_words error: {exc}", logging.ERROR)
        for address, word in plan.targets():
            self.cache.set(address, word)
        return plan
