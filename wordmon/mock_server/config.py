from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from wordmon.core.config import read_mapping


@dataclass(slots=True)
class MockServerConfig:
    """Configuration for the in-process mock backend."""

    initial_words: Dict[str, Dict[int, int]] = field(default_factory=dict)
    fault_profile: Dict[str, Any] = field(default_factory=dict)
    events_enabled: bool = True
    monitor_count: int = 30
    random_seed: Optional[int] = None


def _to_words(raw: Any) -> Dict[str, Dict[int, int]]:
    if not isinstance(raw, dict):
        raise ValueError("'words' must map device keys to {address: value}")
    words: Dict[str, Dict[int, int]] = {}
    for key, entries in raw.items():
        if not isinstance(entries, dict):
            raise ValueError(f"words for {key!r} must be a mapping")
        words[str(key).upper()] = {int(a, 0) if isinstance(a, str) else int(a): int(v) & 0xFFFF for a, v in entries.items()}
    return words


def load_config(path: str | Path) -> MockServerConfig:
    """Parse a YAML/JSON mock backend config file."""

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(file_path)
    raw = read_mapping(file_path)

    random_seed = raw.get("random_seed")
    return MockServerConfig(
        initial_words=_to_words(raw.get("words", {}) or {}),
        fault_profile=dict(raw.get("faults", {}) or {}),
        events_enabled=bool(raw.get("events_enabled", True)),
        monitor_count=int(raw.get("monitor_count", 30)),
        random_seed=int(random_seed) if random_seed is not None else None,
    )
