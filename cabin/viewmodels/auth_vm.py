from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..domain.errors import AppError, ErrorKind, is_network_kind
from ..domain.session import Session


@dataclass
class AuthVM:
    """Observable auth state consumed by the UI (user, profile, connectivity)."""

    on_change: Optional[Callable[["AuthVM"], None]] = None

    user: Optional[Dict[str, Any]] = None
    profile: Optional[Dict[str, Any]] = None
    session: Optional[Session] = None
    loading: bool = True
    error: Optional[str] = None
    is_connected: bool = True
    last_error: Optional[AppError] = field(default=None, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    def apply_session(self, session: Optional[Session]) -> None:
        """Mirror the session and derive the user; profile is dropped on sign-out."""
        self.session = session
        if session is None:
            self.user = None
            self.profile = None
        else:
            self.user = {"id": session.user_id, "email": session.email}
        self._notify()

    def apply_profile(self, profile: Optional[Dict[str, Any]]) -> None:
        self.profile = profile
        self._notify()

    def apply_error(self, err: AppError) -> None:
        """Surface ``err`` to the user and derive connectivity/auth state from its kind."""
        self.last_error = err
        self.error = err.user_message
        if is_network_kind(err.kind):
            self.is_connected = False
        if err.kind == ErrorKind.SESSION_EXPIRED:
            self.user = None
            self.profile = None
            self.session = None
        self._notify()

    def set_loading(self, loading: bool) -> None:
        self.loading = loading
        self._notify()

    def mark_connected(self, connected: bool = True) -> None:
        self.is_connected = connected
        self._notify()

    def clear_error(self) -> None:
        self.error = None
        self.last_error = None
        self._notify()

    def reset(self) -> None:
        """Return to the signed-out state."""
        self.user = None
        self.profile = None
        self.session = None
        self.error = None
        self.last_error = None
        self.loading = False
        self._notify()

    def _notify(self) -> None:
        if self.on_change:
            self.on_change(self)
