"""Row rendering coordinator between the word cache and view sinks."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from wordmon.core.address import DeviceAddress
from wordmon.core.cache import WordCache
from wordmon.core.formats import DisplayFormat, default_display_format, is_combined
from wordmon.utils.decoding import RowState, partner_of, render_row

logger = logging.getLogger("wordmon.view")


class ViewSink(ABC):
    """Applies computed row state to a concrete view technology."""

    @abstractmethod
    def apply(self, state: RowState) -> None:
        pass

    def clear(self) -> None:
        pass

    def select(self, address: Optional[DeviceAddress]) -> None:
        pass


class MonitorView:
    """Keeps one ``RowState`` per known address in sync with the cache.

    Rows are created the first time their address is written. A write
    re-renders the row and, under a 32-bit format, its pair partner so the
    combined value at the even address stays current.
    """

    def __init__(self, cache: WordCache, fmt: Optional[DisplayFormat] = None) -> None:
        self.cache = cache
        self._format = fmt or default_display_format()
        self._rows: Dict[str, RowState] = {}
        self._sinks: List[ViewSink] = []
        self.format_callbacks: List[Callable[[DisplayFormat], None]] = []
        cache.add_observer(self._on_word)
        cache.add_clear_observer(self._on_clear)

    @property
    def format(self) -> DisplayFormat:
        return self._format

    def add_sink(self, sink: ViewSink) -> None:
        self._sinks.append(sink)
        for state in self._rows.values():
            sink.apply(state)

    def add_format_callback(self, callback: Callable[[DisplayFormat], None]) -> None:
        self.format_callbacks.append(callback)

    def set_format(self, fmt: DisplayFormat) -> None:
        """Switch the global format and re-render every known row."""
        self._format = fmt
        self.refresh_all()
        for callback in self.format_callbacks:
            try:
                callback(fmt)
            except Exception:
                logger.exception("format callback failed")

    def refresh_all(self) -> None:
        for address in self.cache.addresses():
            self._render(address)

    def has_row(self, address: DeviceAddress) -> bool:
        return address.cache_key in self._rows

    def row(self, address: DeviceAddress) -> Optional[RowState]:
        return self._rows.get(address.cache_key)

    def rows(self) -> List[RowState]:
        """Rows ordered by device key then address."""
        return sorted(self._rows.values(), key=lambda s: (s.address.key, s.address.addr))

    def create_initial_rows(self, start: DeviceAddress, count: int) -> None:
        for i in range(count):
            self.cache.set(start.offset(i), 0)

    def _on_word(self, address: DeviceAddress, word: int) -> None:
        self._render(address)
        if is_combined(self._format):
            partner = partner_of(address)
            if partner in self.cache:
                self._render(partner)

    def _on_clear(self) -> None:
        self._rows.clear()
        for sink in self._sinks:
            sink.clear()

    def _render(self, address: DeviceAddress) -> None:
        state = render_row(address, self.cache, self._format)
        self._rows[address.cache_key] = state
        for sink in self._sinks:
            try:
                sink.apply(state)
            except Exception:
                logger.exception("view sink failed for %s", address.label)

    def notify_selection(self, address: Optional[DeviceAddress]) -> None:
        for sink in self._sinks:
            try:
                sink.select(address)
            except Exception:
                logger.exception("view sink selection failed")
