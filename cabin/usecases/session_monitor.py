"""Recurring background check that tears down sessions nearing expiry.

The monitor owns its own daemon thread and stop event, so repeated
``start()`` calls never stack timers and ``stop()`` reliably ends the loop.
Each tick asks the auth port for the current session; a missing session or
one expiring inside the warning window is treated as expired, which signs
out and notifies the expiration listener registry.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from cabin.domain.errors import ErrorKind
from cabin.domain.ports import AuthPort
from cabin.domain.session import DEFAULT_WARNING_WINDOW_S, SessionState, session_state
from cabin.usecases.error_mapping import create_app_error, log_app_error, process_error
from cabin.usecases.expiration_listeners import ExpirationListenerRegistry

DEFAULT_CHECK_INTERVAL_S = 5 * 60

_log = logging.getLogger(__name__)


class SessionMonitor:
    """Drive ``Active -> ExpiringSoon -> Expired`` checks on a fixed interval."""

    def __init__(
        self,
        auth_port: AuthPort,
        registry: ExpirationListenerRegistry,
        *,
        check_interval_s: float = DEFAULT_CHECK_INTERVAL_S,
        warning_window_s: float = DEFAULT_WARNING_WINDOW_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Store collaborators; the background thread starts with ``start()``.

        Args:
            auth_port: Source of the current session and the sign-out call.
            registry: Listeners notified after a forced sign-out.
            check_interval_s: Seconds between background checks.
            warning_window_s: Sessions expiring sooner than this count as expired.
            clock: Wall clock in epoch seconds (sessions carry epoch expiries).
        """
        if check_interval_s <= 0:
            raise ValueError("check_interval_s must be positive.")
        self.auth_port = auth_port
        self.registry = registry
        self.check_interval_s = check_interval_s
        self.warning_window_s = warning_window_s
        self._clock = clock
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------
    def check_state(self) -> SessionState:
        """Return the current session's state; lookup failures count as expired."""
        try:
            session = self.auth_port.get_session()
        except Exception as exc:
            log_app_error(process_error(exc, "isSessionExpired"))
            return SessionState.EXPIRED
        return session_state(session, self._clock(), self.warning_window_s)

    def is_session_expired(self) -> bool:
        return self.check_state() != SessionState.ACTIVE

    def handle_session_expiration(self) -> None:
        """Sign out and notify every registered expiration listener.

        Listener notification completes before this returns. A failing
        sign-out is logged; listeners are notified regardless so the UI
        still resets.
        """
        log_app_error(
            create_app_error(
                ErrorKind.SESSION_EXPIRED,
                "User session has expired",
                None,
                "Your session has expired. Please sign in again.",
            ),
            "handleSessionExpiration",
        )
        try:
            self.auth_port.sign_out()
        except Exception as exc:
            log_app_error(process_error(exc, "handleSessionExpiration"))
        self.registry.notify_all()

    def tick(self) -> bool:
        """Run one check; return True when the teardown path ran. Never raises."""
        try:
            if self.is_session_expired():
                self.handle_session_expiration()
                return True
        except Exception as exc:
            log_app_error(process_error(exc, "sessionMonitoring"))
        return False

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        """Start the background loop; a no-op when it is already running."""
        with self._lock:
            if self.running:
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name="session-monitor",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()
        _log.debug("Session monitor started (interval=%ss)", self.check_interval_s)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the background loop and wait for the thread to finish."""
        with self._lock:
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = None
            self._thread = None
        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            _log.debug("Session monitor stopped")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.check_interval_s):
            self.tick()


__all__ = ["DEFAULT_CHECK_INTERVAL_S", "SessionMonitor"]
