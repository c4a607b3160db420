"""Translate classified failures into user-facing AppError instances."""

from __future__ import annotations

import logging
from typing import Any, Optional

from cabin.domain.errors import AppError, ErrorKind
from cabin.usecases.classify_error import FailureRecord, classify_error
from cabin.utils.logging import is_development

_log = logging.getLogger(__name__)

UNKNOWN_FAILURE_MESSAGE = "Unknown error occurred"

_FIXED_MESSAGES = {
    ErrorKind.NETWORK_ERROR: (
        "Unable to connect to the server. Please check your internet connection and try again."
    ),
    ErrorKind.SERVICE_CONNECTION_ERROR: (
        "Connection to our services is temporarily unavailable. Please try again in a moment."
    ),
    ErrorKind.SESSION_EXPIRED: "Your session has expired. Please sign in again to continue.",
    ErrorKind.PERMISSION_ERROR: "You do not have permission to perform this action.",
    ErrorKind.UNKNOWN_ERROR: (
        "An unexpected error occurred. Please try again or contact support if the problem persists."
    ),
}

_AUTH_MESSAGES = (
    (
        "invalid login credentials",
        "Invalid email or password. Please check your credentials and try again.",
    ),
    (
        "email not confirmed",
        "Please check your email and click the confirmation link before signing in.",
    ),
    (
        "user not found",
        "No account found with this email address. "
        "Please check your email or register for a new account.",
    ),
)
_AUTH_FALLBACK = "Authentication failed. Please check your credentials and try again."
_VALIDATION_FALLBACK = "Some of the information provided is invalid. Please review it and try again."

_LEVELS = {
    ErrorKind.NETWORK_ERROR: logging.WARNING,
    ErrorKind.SERVICE_CONNECTION_ERROR: logging.WARNING,
    ErrorKind.SESSION_EXPIRED: logging.INFO,
    ErrorKind.AUTHENTICATION_ERROR: logging.WARNING,
    ErrorKind.VALIDATION_ERROR: logging.WARNING,
    ErrorKind.PERMISSION_ERROR: logging.ERROR,
    ErrorKind.UNKNOWN_ERROR: logging.ERROR,
}


def user_message_for(kind: ErrorKind, message: str) -> str:
    """Return the pre-approved user-facing message for ``kind``.

    Authentication wording depends on the backend message; validation
    messages are already human-readable and pass through verbatim.
    """
    if kind == ErrorKind.AUTHENTICATION_ERROR:
        lowered = (message or "").lower()
        for needle, text in _AUTH_MESSAGES:
            if needle in lowered:
                return text
        return _AUTH_FALLBACK
    if kind == ErrorKind.VALIDATION_ERROR:
        return message if message and message.strip() else _VALIDATION_FALLBACK
    return _FIXED_MESSAGES.get(kind, _FIXED_MESSAGES[ErrorKind.UNKNOWN_ERROR])


def create_app_error(
    kind: ErrorKind,
    message: str,
    original_error: Any = None,
    user_message: Optional[str] = None,
) -> AppError:
    """Wrap a classified failure into an AppError."""
    return AppError(
        kind,
        message,
        user_message or user_message_for(kind, message),
        original_error=original_error,
    )


def process_error(failure: Any, context: Optional[str] = None) -> AppError:
    """Classify ``failure`` and build the matching AppError.

    Args:
        failure: Anything raised or returned by a backend call.
        context: Optional calling context prefixed to the internal message.

    Returns:
        AppError: ``failure`` itself when it already is one and no context is
        added; otherwise a fresh error of the classified kind.
    """
    if isinstance(failure, AppError):
        if not context:
            return failure
        return create_app_error(
            failure.kind,
            f"{context}: {failure.message}",
            failure.original_error,
            failure.user_message,
        )

    kind = classify_error(failure)
    message = FailureRecord.from_failure(failure).message or UNKNOWN_FAILURE_MESSAGE
    if context:
        message = f"{context}: {message}"
    return create_app_error(kind, message, failure)


def log_app_error(
    error: AppError,
    context: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Emit ``error`` at the severity its kind calls for.

    Development builds add a DEBUG record with the user message, the retryable
    flag, the timestamp, and the original failure.
    """
    log = logger or _log
    prefix = f"[{context}] " if context else ""
    log.log(
        _LEVELS.get(error.kind, logging.ERROR),
        "%s%s: %s",
        prefix,
        error.kind.value,
        error.message,
    )
    if is_development():
        log.debug(
            "Error details - %s: timestamp=%s user_message=%r retryable=%s original=%r",
            error.kind.value,
            error.timestamp.isoformat(),
            error.user_message,
            error.retryable,
            error.original_error,
        )


__all__ = [
    "UNKNOWN_FAILURE_MESSAGE",
    "create_app_error",
    "log_app_error",
    "process_error",
    "user_message_for",
]
