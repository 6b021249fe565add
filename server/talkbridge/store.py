"""
store.py — Session-scoped flag store.

Cross-screen signalling between function-call handlers (e.g. the current
security score read by one tool and written by another). Lives exactly as
long as the client WebSocket session; nothing is written to disk.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[str, Any], None]


class SessionFlags:
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = dict(initial or {})
        self._listeners: List[Listener] = []

    def get(self, key: str, default: Any = None) -> Any:
        # Copies keep callers from mutating stored lists/dicts in place.
        return copy.deepcopy(self._values.get(key, default))

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._values.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("[SessionFlags] %s is not an int (%r), using %d", key, value, default)
            return default

    def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)
        for listener in list(self._listeners):
            try:
                listener(key, value)
            except Exception as exc:
                logger.error(f"[SessionFlags] listener failed for {key}: {exc}")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values
