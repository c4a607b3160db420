"""Cooperative cancellation for waits inside retry and recovery loops."""

from __future__ import annotations

import threading
from typing import Optional

from .errors import OperationCancelled


class CancellationToken:
    """Thread-safe cancel flag whose ``wait`` doubles as the backoff sleep.

    Waiting blocks only the calling worker thread; ``cancel()`` from any other
    thread wakes it immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True when cancelled meanwhile."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def raise_if_cancelled(self, context: Optional[str] = None) -> None:
        if self._event.is_set():
            raise OperationCancelled(context)


__all__ = ["CancellationToken"]
