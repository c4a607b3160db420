"""Domain-level error types shared by adapters, use cases, and view models.

``AppError`` is the only failure shape that crosses the resilience layer:
adapters raise transport-specific exceptions, use cases normalize them into
an ``AppError`` carrying a stable ``ErrorKind`` and a user-safe message.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed taxonomy of failures observed at the backend boundary."""

    NETWORK_ERROR = "NetworkError"
    SERVICE_CONNECTION_ERROR = "ServiceConnectionError"
    SESSION_EXPIRED = "SessionExpired"
    AUTHENTICATION_ERROR = "AuthenticationError"
    VALIDATION_ERROR = "ValidationError"
    PERMISSION_ERROR = "PermissionError"
    UNKNOWN_ERROR = "UnknownError"


_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.NETWORK_ERROR,
        ErrorKind.SERVICE_CONNECTION_ERROR,
        ErrorKind.SESSION_EXPIRED,
    }
)

NETWORK_KINDS = frozenset({ErrorKind.NETWORK_ERROR, ErrorKind.SERVICE_CONNECTION_ERROR})


def is_retryable(kind: ErrorKind) -> bool:
    """Return whether failures of ``kind`` may be re-attempted."""
    return kind in _RETRYABLE_KINDS


def is_network_kind(kind: ErrorKind) -> bool:
    """Return whether ``kind`` denotes lost connectivity."""
    return kind in NETWORK_KINDS


class AppError(Exception):
    """Normalized, classified failure (user-presentable via ``user_message``).

    Attributes are read-only; ``retryable`` is always derived from ``kind``.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        user_message: str,
        *,
        original_error: Any = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        if not user_message or not user_message.strip():
            raise ValueError("AppError requires a non-empty user message.")
        super().__init__(message)
        self._kind = ErrorKind(kind)
        self._message = message
        self._user_message = user_message
        self._original_error = original_error
        self._timestamp = timestamp or datetime.now(timezone.utc)

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        """Internal message, may include calling context. Never render it to users."""
        return self._message

    @property
    def user_message(self) -> str:
        return self._user_message

    @property
    def retryable(self) -> bool:
        return is_retryable(self._kind)

    @property
    def timestamp(self) -> datetime:
        return self._timestamp

    @property
    def original_error(self) -> Any:
        return self._original_error

    def to_dict(self) -> Dict[str, Any]:
        """Diagnostic snapshot for development-only views."""
        return {
            "kind": self._kind.value,
            "message": self._message,
            "user_message": self._user_message,
            "retryable": self.retryable,
            "timestamp": self._timestamp.isoformat(),
            "original_error": repr(self._original_error) if self._original_error is not None else None,
        }

    def __repr__(self) -> str:
        return f"AppError(kind={self._kind.value!r}, message={self._message!r})"


class OperationCancelled(Exception):
    """Raised when a cancellation token fires during a backoff or recovery wait."""

    def __init__(self, context: Optional[str] = None) -> None:
        label = f"{context}: operation cancelled" if context else "Operation cancelled"
        super().__init__(label)
        self.context = context


__all__ = [
    "AppError",
    "ErrorKind",
    "NETWORK_KINDS",
    "OperationCancelled",
    "is_network_kind",
    "is_retryable",
]
