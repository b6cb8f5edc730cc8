"""Persisted UI preferences.

Only three keys are stored: the display format, the auto-start flag and
the edit surface position. The backing file is plain JSON; without a path
the store lives in memory.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from wordmon.core.formats import DisplayFormat, parse_display_format

logger = logging.getLogger("wordmon.preferences")

DISPLAY_FORMAT_KEY = "displayFormat"
AUTO_START_KEY = "autoStartNext"
EDIT_POPUP_POS_KEY = "editPopupPos"


class Preferences:
    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else None
        self._data: Dict[str, Any] = {}
        if self.path is not None and self.path.exists():
            try:
                loaded = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            except (OSError, ValueError) as exc:
                logger.warning("ignoring unreadable preferences %s: %s", self.path, exc)
                loaded = {}
            if isinstance(loaded, dict):
                self._data = loaded

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._data, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            logger.warning("could not save preferences to %s: %s", self.path, exc)

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._save()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save()

    @property
    def display_format(self) -> Optional[DisplayFormat]:
        saved = self.get(DISPLAY_FORMAT_KEY)
        if not saved:
            return None
        try:
            return parse_display_format(str(saved))
        except ValueError:
            logger.warning("ignoring unknown saved display format %r", saved)
            return None

    @display_format.setter
    def display_format(self, fmt: DisplayFormat) -> None:
        self.set(DISPLAY_FORMAT_KEY, fmt.value)

    @property
    def auto_start_next(self) -> bool:
        return self.get(AUTO_START_KEY) == "1"

    @auto_start_next.setter
    def auto_start_next(self, enabled: bool) -> None:
        if enabled:
            self.set(AUTO_START_KEY, "1")
        else:
            self.remove(AUTO_START_KEY)

    @property
    def edit_popup_pos(self) -> Optional[Tuple[int, int]]:
        pos = self.get(EDIT_POPUP_POS_KEY)
        if not isinstance(pos, dict):
            return None
        try:
            return max(0, int(pos["left"])), max(0, int(pos["top"]))
        except (KeyError, TypeError, ValueError):
            return None

    @edit_popup_pos.setter
    def edit_popup_pos(self, pos: Tuple[int, int]) -> None:
        left, top = pos
        self.set(EDIT_POPUP_POS_KEY, {"left": max(0, int(round(left))), "top": max(0, int(round(top)))})
