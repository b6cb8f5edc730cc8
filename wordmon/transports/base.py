from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, List, Sequence

EventCallback = Callable[[Any], None]

MONITOR_EVENT = "monitor"
STATUS_EVENT = "server-status"


class ServerStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    START_FAILED = "start-failed"


# MC protocol mock servers report the running state as 起動中
RUNNING_MARKERS = frozenset({ServerStatus.RUNNING.value, "起動中"})


def is_running_status(status: str) -> bool:
    return status in RUNNING_MARKERS


class CommandSink(ABC):
    """Outbound requests to the backend. Any exception is a transport error."""

    @abstractmethod
    async def start_mock(self, ip: str, tcp_port: int, udp_port: int, tim_await_ms: int) -> None:
        pass

    @abstractmethod
    async def stop_mock(self) -> None:
        pass

    @abstractmethod
    async def start_monitor(self, target: str, interval_ms: int) -> None:
        pass

    @abstractmethod
    async def stop_monitor(self) -> None:
        pass

    @abstractmethod
    async def get_words(self, key: str, addr: int, count: int) -> List[int]:
        pass

    @abstractmethod
    async def set_words(self, key: str, addr: int, words: Sequence[int]) -> None:
        pass


class EventSource(ABC):
    """Inbound backend notifications.

    ``listen`` raising means the push channel is not available.
    """

    @abstractmethod
    async def listen(self, event: str, callback: EventCallback) -> None:
        pass
