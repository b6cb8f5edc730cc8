from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import json

import yaml


@dataclass(slots=True)
class MonitorConfig:
    """Settings for one monitoring session."""

    ip: str = "0.0.0.0"
    tcp_port: int = 5000
    udp_port: int = 5001
    tim_await_ms: int = 5000
    target: str = "D"
    interval_ms: int = 500
    row_count: int = 30
    select_retries: int = 6
    select_backoff_ms: int = 60
    prefs_path: Optional[Path] = None

    def validate(self) -> None:
        for name in ("tcp_port", "udp_port"):
            port = getattr(self, name)
            if not 0 < port < 65536:
                raise ValueError(f"{name} must be 1..65535, got {port}")
        if self.interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        if self.row_count <= 0:
            raise ValueError("row_count must be positive")
        if self.tim_await_ms < 0:
            raise ValueError("tim_await_ms must be non-negative")
        if self.select_retries < 0 or self.select_backoff_ms < 0:
            raise ValueError("selection retry settings must be non-negative")


def read_mapping(path: Path) -> Dict[str, Any]:
    """Read a JSON or YAML file that must contain an object."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text) or {}
    else:
        raw = json.loads(text or "{}")
    if not isinstance(raw, dict):
        raise ValueError("Configuration must be an object/dict")
    return raw


def load_config(path: str | Path) -> MonitorConfig:
    """Parse a YAML/JSON config file into a ``MonitorConfig``."""

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(file_path)
    raw = read_mapping(file_path)

    defaults = MonitorConfig()
    prefs = raw.get("prefs_path")
    cfg = MonitorConfig(
        ip=str(raw.get("ip", defaults.ip)),
        tcp_port=int(raw.get("tcp_port", defaults.tcp_port)),
        udp_port=int(raw.get("udp_port", defaults.udp_port)),
        tim_await_ms=int(raw.get("tim_await_ms", defaults.tim_await_ms)),
        target=str(raw.get("target", defaults.target)),
        interval_ms=int(raw.get("interval_ms", defaults.interval_ms)),
        row_count=int(raw.get("row_count", defaults.row_count)),
        select_retries=int(raw.get("select_retries", defaults.select_retries)),
        select_backoff_ms=int(raw.get("select_backoff_ms", defaults.select_backoff_ms)),
        prefs_path=Path(prefs) if prefs else None,
    )
    cfg.validate()
    return cfg
