"""Domain package exports for value objects and error types."""

from .cancellation import CancellationToken
from .errors import (
    AppError,
    ErrorKind,
    OperationCancelled,
    is_network_kind,
    is_retryable,
)
from .session import Session, SessionState, session_state

__all__ = [
    "AppError",
    "CancellationToken",
    "ErrorKind",
    "OperationCancelled",
    "Session",
    "SessionState",
    "is_network_kind",
    "is_retryable",
    "session_state",
]
