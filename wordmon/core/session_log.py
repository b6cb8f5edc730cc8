from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Deque, List

logger = logging.getLogger("wordmon.session")


@dataclass(slots=True)
class LogEntry:
    timestamp: datetime
    message: str

    def __str__(self) -> str:
        return f"{self.timestamp.isoformat()} {self.message}"


class SessionLog:
    """User-visible monitor log, newest entry first."""

    def __init__(self, max_entries: int = 500) -> None:
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self.observers: List[Callable[[LogEntry], None]] = []

    def add_observer(self, callback: Callable[[LogEntry], None]) -> None:
        self.observers.append(callback)

    def log(self, message: str, level: int = logging.INFO) -> None:
        entry = LogEntry(timestamp=datetime.now(timezone.utc), message=message)
        self._entries.appendleft(entry)
        logger.log(level, message)
        for observer in self.observers:
            try:
                observer(entry)
            except Exception:
                logger.exception("session log observer failed")

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def messages(self) -> List[str]:
        return [e.message for e in self._entries]

    def text(self) -> str:
        return "\n".join(str(e) for e in self._entries)
