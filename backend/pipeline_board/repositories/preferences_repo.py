from __future__ import annotations

import threading

from .base_repository import PreferenceStore

BUILT_IN_VIEW_KEY = "board.builtInView"
SHOW_ALL_QUARTERS_KEY = "board.showAllQuarters"


class InMemoryPreferenceStore(PreferenceStore):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str | None) -> None:
        with self._lock:
            if value is None:
                self._values.pop(key, None)
            else:
                self._values[key] = str(value)


def parse_flag(raw: str | None) -> bool | None:
    v = str(raw or "").strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return None
