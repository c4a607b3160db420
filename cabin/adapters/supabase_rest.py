from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from cabin.domain.ports import (
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    AuthCallback,
    AuthEvent,
    AuthPort,
    ProfilePort,
    UserId,
)
from cabin.domain.session import Session

from .api_errors import BackendError
from .http_client import BackendSession, HttpConfig, PerThreadSession

_log = logging.getLogger(__name__)


class _Subscription:
    def __init__(self, owner: "SupabaseAuthAdapter", callback: AuthCallback) -> None:
        self._owner = owner
        self._callback = callback

    def unsubscribe(self) -> None:
        self._owner._remove_subscriber(self._callback)


class SupabaseAuthAdapter(AuthPort):
    """REST adapter for the GoTrue auth service (``/auth/v1``).

    The current session lives in memory only; every state change is fanned
    out to ``on_auth_state_change`` subscribers.
    """

    def __init__(
        self,
        project_url: str,
        anon_key: str,
        *,
        request_timeout_s: float = 10,
        session: Optional[requests.Session] = None,
        sessions: Optional[PerThreadSession] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not project_url:
            raise ValueError("SupabaseAuthAdapter requires a project URL")
        self.http = BackendSession(
            f"{project_url.rstrip('/')}/auth/v1",
            anon_key,
            HttpConfig(request_timeout_s=request_timeout_s),
            session=session,
            sessions=sessions,
        )
        self._clock = clock
        self._session: Optional[Session] = None
        self._subscribers: List[AuthCallback] = []
        self._lock = threading.Lock()

    # ---- Session ----
    def get_session(self) -> Optional[Session]:
        return self._session

    def get_user(self) -> Optional[Dict[str, Any]]:
        current = self._session
        if current is None:
            return None
        data = self.http.get("user", access_token=current.access_token)
        return data if isinstance(data, dict) else None

    def sign_in(self, email: str, password: str) -> Session:
        payload = self.http.post(
            "token",
            params={"grant_type": "password"},
            json_body={"email": email, "password": password},
        )
        session = self._store(payload)
        self._emit(SIGNED_IN, session)
        return session

    def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        payload = self.http.post("signup", json_body={"email": email, "password": password})
        payload = payload if isinstance(payload, dict) else {}
        session: Optional[Session] = None
        if payload.get("access_token"):
            # Auto-confirm projects return a full session instead of a bare user.
            session = self._store(payload)
            self._emit(SIGNED_IN, session)
        user = payload.get("user") if "user" in payload else payload
        return {"user": user or None, "session": session}

    def sign_out(self) -> None:
        current = self._session
        try:
            if current is not None:
                self.http.post("logout", access_token=current.access_token)
        finally:
            self._session = None
            self._emit(SIGNED_OUT, None)

    def refresh_session(self) -> Optional[Session]:
        current = self._session
        if current is None or not current.refresh_token:
            raise BackendError(
                "Invalid Refresh Token: refresh_token_not_found",
                code="refresh_token_not_found",
            )
        payload = self.http.post(
            "token",
            params={"grant_type": "refresh_token"},
            json_body={"refresh_token": current.refresh_token},
        )
        session = self._store(payload)
        self._emit(TOKEN_REFRESHED, session)
        return session

    # ---- Events ----
    def on_auth_state_change(self, callback: AuthCallback) -> _Subscription:
        with self._lock:
            self._subscribers.append(callback)
        return _Subscription(self, callback)

    def _remove_subscriber(self, callback: AuthCallback) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def _emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event, session)
            except Exception:
                _log.exception("Auth state subscriber failed for %s", event)

    # ---- Helpers ----
    def _store(self, payload: Any) -> Session:
        if not isinstance(payload, dict):
            raise BackendError("token: expected object response")
        try:
            session = Session.from_payload(payload, now=self._clock())
        except ValueError as exc:
            raise BackendError(f"token: {exc}", payload=payload) from exc
        self._session = session
        return session


class SupabaseProfileAdapter(ProfilePort):
    """PostgREST adapter for the ``profiles`` table (``/rest/v1``).

    Errors carry SQLSTATE codes and messages but no status, matching how the
    relational API reports failures.
    """

    def __init__(
        self,
        project_url: str,
        anon_key: str,
        *,
        auth: Optional[AuthPort] = None,
        request_timeout_s: float = 10,
        session: Optional[requests.Session] = None,
        sessions: Optional[PerThreadSession] = None,
    ) -> None:
        if not project_url:
            raise ValueError("SupabaseProfileAdapter requires a project URL")
        self.http = BackendSession(
            f"{project_url.rstrip('/')}/rest/v1",
            anon_key,
            HttpConfig(request_timeout_s=request_timeout_s, report_status=False),
            session=session,
            sessions=sessions,
        )
        self.auth = auth

    def get_profile(self, user_id: UserId) -> Dict[str, Any]:
        rows = self.http.get(
            "profiles",
            params={"select": "*", "id": f"eq.{user_id}"},
            access_token=self._token(),
        )
        return self._single(rows, "profiles")

    def insert_profile(self, profile: Dict[str, Any]) -> None:
        self.http.post(
            "profiles",
            json_body=dict(profile),
            access_token=self._token(),
            prefer="return=minimal",
        )

    def update_profile(self, user_id: UserId, fields: Dict[str, Any]) -> Dict[str, Any]:
        rows = self.http.patch(
            "profiles",
            params={"select": "*", "id": f"eq.{user_id}"},
            json_body=dict(fields),
            access_token=self._token(),
            prefer="return=representation",
        )
        return self._single(rows, "profiles")

    def ping(self) -> List[Dict[str, Any]]:
        rows = self.http.get(
            "profiles",
            params={"select": "id", "limit": 1},
            access_token=self._token(),
        )
        return [row for row in rows or [] if isinstance(row, dict)]

    def _token(self) -> Optional[str]:
        if self.auth is None:
            return None
        current = self.auth.get_session()
        return current.access_token if current is not None else None

    @staticmethod
    def _single(rows: Any, ctx: str) -> Dict[str, Any]:
        if not isinstance(rows, list) or len(rows) != 1 or not isinstance(rows[0], dict):
            count = len(rows) if isinstance(rows, list) else 0
            raise BackendError(
                f"{ctx}: JSON object requested, multiple (or no) rows returned ({count})",
                code="PGRST116",
                payload=rows,
            )
        return rows[0]


__all__ = ["SupabaseAuthAdapter", "SupabaseProfileAdapter"]
