"""In-process mock controller backend."""

from .backend import MockBackend
from .config import MockServerConfig, load_config
from .core import MockDevice, RequestDropped
from .diagnostics import DiagnosticsManager

__all__ = [
    "DiagnosticsManager",
    "MockBackend",
    "MockDevice",
    "MockServerConfig",
    "RequestDropped",
    "load_config",
]
