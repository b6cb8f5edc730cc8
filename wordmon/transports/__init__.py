from .base import CommandSink, EventSource, ServerStatus, is_running_status

__all__ = ["CommandSink", "EventSource", "ServerStatus", "is_running_status"]
