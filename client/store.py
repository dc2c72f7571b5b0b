from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List

from .state import AppState, reduce

logger = logging.getLogger("Store")

Subscriber = Callable[[AppState, Any], None]


class Store:
    """
    Owner of the current AppState.

    Actions may arrive from several threads (network callbacks); `dispatch`
    applies them one at a time under a lock and notifies subscribers with the
    new snapshot before the next action is applied.
    """

    def __init__(self, state: AppState | None = None):
        self._state = state or AppState()
        self._lock = threading.RLock()
        self._subscribers: List[Subscriber] = []

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Any) -> AppState:
        with self._lock:
            self._state = reduce(self._state, action)
            for subscriber in list(self._subscribers):
                try:
                    subscriber(self._state, action)
                except Exception:
                    logger.exception(f"Subscriber failed on {type(action).__name__}")
            return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register `callback(state, action)`; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe
