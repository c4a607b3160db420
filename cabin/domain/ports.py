from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, Protocol

from .session import Session

UserId = str
AuthEvent = str
AuthCallback = Callable[[AuthEvent, Optional[Session]], None]

SIGNED_IN: AuthEvent = "SIGNED_IN"
SIGNED_OUT: AuthEvent = "SIGNED_OUT"
TOKEN_REFRESHED: AuthEvent = "TOKEN_REFRESHED"


# ---- Ports (Hexagonal boundaries) ----
class AuthSubscription(Protocol):
    """Handle returned by ``AuthPort.on_auth_state_change``."""

    def unsubscribe(self) -> None: ...


class AuthPort(Protocol):
    """Session and credential operations against the backend auth service."""

    def get_session(self) -> Optional[Session]: ...
    def get_user(self) -> Optional[Dict[str, Any]]: ...
    def sign_in(self, email: str, password: str) -> Session: ...
    def sign_up(self, email: str, password: str) -> Dict[str, Any]: ...
    def sign_out(self) -> None: ...
    def refresh_session(self) -> Optional[Session]: ...
    def on_auth_state_change(self, callback: AuthCallback) -> AuthSubscription: ...


class ProfilePort(Protocol):
    """Row-level access to the ``profiles`` table."""

    def get_profile(self, user_id: UserId) -> Dict[str, Any]: ...
    def insert_profile(self, profile: Dict[str, Any]) -> None: ...
    def update_profile(self, user_id: UserId, fields: Dict[str, Any]) -> Dict[str, Any]: ...
    def ping(self) -> List[Dict[str, Any]]: ...  # cheapest possible round-trip


class ConnectivityPort(Protocol):
    """Answers 'is the network reachable right now?' without raising."""

    def check(self) -> bool: ...
