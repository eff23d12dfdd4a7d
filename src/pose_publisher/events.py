"""
Simple event system for replica change callbacks.
"""

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class EventHandler:
    """Simple event handler that manages callbacks."""

    def __init__(self):
        self._callbacks: list[Callable] = []

    def add_listener(self, callback: Callable) -> Callable[[], None]:
        """Add a callback listener. Returns unsubscribe function."""
        self._callbacks.append(callback)

        def unsubscribe():
            self.remove_listener(callback)

        return unsubscribe

    def remove_listener(self, callback: Callable) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def invoke(self, *args: Any, **kwargs: Any) -> None:
        """Invoke all registered callbacks.

        A failing callback is logged and the remaining ones still run.
        """
        for callback in self._callbacks[:]:
            try:
                callback(*args, **kwargs)
            except Exception:
                logger.exception(f"Event callback {callback!r} failed")

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)
