from __future__ import annotations

import threading
from typing import List, Optional

import pytest

from cabin.adapters.api_errors import BackendUnreachableError
from cabin.domain.session import Session, SessionState
from cabin.usecases.expiration_listeners import ExpirationListenerRegistry
from cabin.usecases.session_monitor import SessionMonitor

NOW = 1_000_000.0


class _AuthStub:
    def __init__(self, session: Optional[Session], *, fail_get: bool = False, fail_sign_out: bool = False) -> None:
        self.session = session
        self.fail_get = fail_get
        self.fail_sign_out = fail_sign_out
        self.sign_out_calls = 0

    def get_session(self) -> Optional[Session]:
        if self.fail_get:
            raise BackendUnreachableError("down")
        return self.session

    def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.fail_sign_out:
            raise BackendUnreachableError("down")
        self.session = None


def _session(expires_in: Optional[float]) -> Session:
    expires_at = None if expires_in is None else int(NOW + expires_in)
    return Session(access_token="at", user_id="u1", expires_at=expires_at)


def _monitor(auth: _AuthStub, calls: List[int], **kwargs) -> SessionMonitor:
    registry = ExpirationListenerRegistry()
    registry.add_listener(lambda: calls.append(1))
    return SessionMonitor(auth, registry, clock=lambda: NOW, **kwargs)


def test_session_inside_warning_window_is_torn_down() -> None:
    auth = _AuthStub(_session(200))
    calls: List[int] = []
    monitor = _monitor(auth, calls)

    assert monitor.check_state() == SessionState.EXPIRING_SOON
    assert monitor.tick() is True
    assert auth.sign_out_calls == 1
    assert calls == [1]


def test_healthy_session_is_left_alone() -> None:
    auth = _AuthStub(_session(600))
    calls: List[int] = []
    monitor = _monitor(auth, calls)

    assert monitor.tick() is False
    assert auth.sign_out_calls == 0
    assert calls == []


def test_session_without_expiry_is_active() -> None:
    monitor = _monitor(_AuthStub(_session(None)), [])
    assert monitor.is_session_expired() is False


def test_missing_session_counts_as_expired() -> None:
    auth = _AuthStub(None)
    calls: List[int] = []
    monitor = _monitor(auth, calls)

    assert monitor.is_session_expired() is True
    assert monitor.tick() is True
    assert calls == [1]


def test_session_lookup_failure_counts_as_expired() -> None:
    auth = _AuthStub(_session(3600), fail_get=True)
    monitor = _monitor(auth, [])

    assert monitor.check_state() == SessionState.EXPIRED


def test_failed_sign_out_still_notifies_listeners() -> None:
    auth = _AuthStub(_session(10), fail_sign_out=True)
    calls: List[int] = []
    monitor = _monitor(auth, calls)

    monitor.handle_session_expiration()

    assert auth.sign_out_calls == 1
    assert calls == [1]


def test_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        SessionMonitor(_AuthStub(None), ExpirationListenerRegistry(), check_interval_s=0)


def test_start_is_idempotent_and_stop_ends_thread() -> None:
    monitor = _monitor(_AuthStub(_session(3600)), [], check_interval_s=3600)

    monitor.start()
    first = monitor._thread
    monitor.start()

    assert monitor.running
    assert monitor._thread is first

    monitor.stop(timeout=2)
    assert not monitor.running
    assert first is not None and not first.is_alive()
    monitor.stop()


def test_background_loop_runs_checks() -> None:
    auth = _AuthStub(_session(60))
    fired = threading.Event()
    registry = ExpirationListenerRegistry()
    registry.add_listener(fired.set)
    monitor = SessionMonitor(auth, registry, check_interval_s=0.01, clock=lambda: NOW)

    monitor.start()
    try:
        assert fired.wait(2)
    finally:
        monitor.stop(timeout=2)
    assert auth.sign_out_calls >= 1
