"""Subscriber list notified when the session is declared expired."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List

ExpirationListener = Callable[[], None]

_log = logging.getLogger(__name__)


class ExpirationListenerRegistry:
    """Subscribe/unsubscribe list of no-argument callbacks.

    Owned by the auth lifecycle and passed by reference to whatever needs to
    declare expiration. Registering the same callback twice subscribes it
    twice. Safe for concurrent add/remove/notify from multiple threads.
    """

    def __init__(self) -> None:
        self._listeners: List[ExpirationListener] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: ExpirationListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: ExpirationListener) -> None:
        """Remove one registration of ``listener``; no-op when absent."""
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def notify_all(self) -> None:
        """Invoke every registered listener synchronously.

        A listener that raises is logged and skipped; the others still run
        and nothing propagates to the caller. Listeners may add or remove
        registrations while being notified.
        """
        with self._lock:
            snapshot = list(self._listeners)
        for listener in snapshot:
            try:
                listener()
            except Exception:
                _log.exception("Error in session expiration listener %r", listener)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


__all__ = ["ExpirationListener", "ExpirationListenerRegistry"]
