"""Authenticated session value object and expiry state evaluation."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

DEFAULT_WARNING_WINDOW_S = 300


class SessionState(str, Enum):
    """Lifecycle of a session as seen by the monitor."""

    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Session:
    """Backend session tokens plus the identity they belong to."""

    access_token: str
    """Bearer token sent with every authenticated request."""
    user_id: str
    """Backend identifier of the signed-in user."""
    refresh_token: Optional[str] = None
    """Token used to obtain a fresh access token."""
    expires_at: Optional[int] = None
    """Expiry instant in epoch seconds; ``None`` when the backend did not report one."""
    email: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.access_token, str) or not self.access_token.strip():
            raise ValueError("Session requires a non-empty access token.")
        if not isinstance(self.user_id, str) or not self.user_id.strip():
            raise ValueError("Session requires a non-empty user id.")

    def seconds_remaining(self, now: float) -> Optional[float]:
        if self.expires_at is None:
            return None
        return self.expires_at - now

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, now: Optional[float] = None) -> "Session":
        """Build a session from a token response (``expires_at`` or ``expires_in``)."""
        user = payload.get("user") or {}
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in") is not None:
            issued = time.time() if now is None else now
            expires_at = int(issued) + int(payload["expires_in"])
        return cls(
            access_token=str(payload.get("access_token") or ""),
            refresh_token=payload.get("refresh_token"),
            expires_at=int(expires_at) if expires_at is not None else None,
            user_id=str(user.get("id") or ""),
            email=user.get("email"),
        )


def session_state(
    session: Optional[Session],
    now: float,
    warning_window_s: float = DEFAULT_WARNING_WINDOW_S,
) -> SessionState:
    """Classify ``session`` relative to ``now``.

    A missing session counts as expired. A session without an expiry never
    enters the warning window.
    """
    if session is None:
        return SessionState.EXPIRED
    remaining = session.seconds_remaining(now)
    if remaining is None:
        return SessionState.ACTIVE
    if remaining <= 0:
        return SessionState.EXPIRED
    if remaining < warning_window_s:
        return SessionState.EXPIRING_SOON
    return SessionState.ACTIVE


__all__ = ["DEFAULT_WARNING_WINDOW_S", "Session", "SessionState", "session_state"]
