"""In-memory word cache shared by the monitor components."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Optional

from wordmon.core.address import DeviceAddress

logger = logging.getLogger("wordmon.cache")

WordObserver = Callable[[DeviceAddress, int], None]


class WordCache:
    """Last known 16-bit value per device address.

    Entries appear on first observation and stay until ``clear()``. Each
    ``set`` notifies observers (the view uses this to re-render rows).
    """

    def __init__(self) -> None:
        self._words: Dict[str, int] = {}
        self.observers: List[WordObserver] = []
        self.clear_observers: List[Callable[[], None]] = []

    def add_observer(self, callback: WordObserver) -> None:
        self.observers.append(callback)

    def add_clear_observer(self, callback: Callable[[], None]) -> None:
        self.clear_observers.append(callback)

    def get(self, address: DeviceAddress) -> Optional[int]:
        return self._words.get(address.cache_key)

    def set(self, address: DeviceAddress, value: int) -> None:
        word = int(value) & 0xFFFF
        self._words[address.cache_key] = word
        for observer in self.observers:
            try:
                observer(address, word)
            except Exception:
                logger.exception("word observer failed for %s", address.label)

    def clear(self) -> None:
        self._words.clear()
        for observer in self.clear_observers:
            try:
                observer()
            except Exception:
                logger.exception("clear observer failed")

    def addresses(self) -> List[DeviceAddress]:
        return [DeviceAddress.from_cache_key(k) for k in self._words]

    def snapshot(self) -> Dict[str, int]:
        return dict(self._words)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, DeviceAddress) and address.cache_key in self._words

    def __len__(self) -> int:
        return len(self._words)

    def __iter__(self) -> Iterator[DeviceAddress]:
        return iter(self.addresses())
