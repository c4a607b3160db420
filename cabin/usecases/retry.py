"""Bounded retry with linear backoff for backend operations.

Every failure is normalized through :func:`process_error`; only retryable
kinds are re-attempted. Backoff waits run on a :class:`CancellationToken`, so
they block only the calling worker thread and a torn-down caller can abort
them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from cabin.domain.cancellation import CancellationToken
from cabin.domain.errors import AppError, ErrorKind, OperationCancelled
from cabin.usecases.error_mapping import create_app_error, log_app_error, process_error

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 1000

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and linear backoff step."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or int(self.max_attempts) < 1:
            raise ValueError("max_attempts must be at least 1.")
        if int(self.base_delay_ms) < 0:
            raise ValueError("base_delay_ms must be non-negative.")

    def delay_before(self, attempt: int) -> int:
        """Delay in milliseconds inserted before attempt ``attempt`` (1-based)."""
        if attempt <= 1:
            return 0
        return self.base_delay_ms * (attempt - 1)


def with_retry(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    context: Optional[str] = None,
    *,
    cancel_token: Optional[CancellationToken] = None,
    logger: Optional[logging.Logger] = None,
) -> T:
    """Invoke ``operation`` until it succeeds or the attempt budget is spent.

    Args:
        operation: Zero-argument callable performing one backend call.
        max_attempts: Total invocations allowed (>= 1).
        base_delay_ms: Backoff step; the wait after attempt ``n`` is
            ``base_delay_ms * n``.
        context: Label prefixed to error messages.
        cancel_token: Optional token; cancelling it aborts a pending backoff.
        logger: Logger receiving per-attempt records.

    Returns:
        The first successful result.

    Raises:
        AppError: Immediately for non-retryable kinds, otherwise the error of
            the last attempt once all attempts failed.
        OperationCancelled: When ``cancel_token`` fires during a backoff wait.
    """
    policy = RetryPolicy(max_attempts=max_attempts, base_delay_ms=base_delay_ms)
    token = cancel_token or CancellationToken()
    log = logger or _log
    last_error: Optional[AppError] = None

    for attempt in range(1, policy.max_attempts + 1):
        token.raise_if_cancelled(context)
        try:
            return operation()
        except OperationCancelled:
            raise
        except Exception as exc:
            app_error = process_error(exc, context)
            last_error = app_error
            log_app_error(app_error, f"Attempt {attempt}/{policy.max_attempts}", logger=log)

            if not app_error.retryable:
                raise app_error from exc

            if attempt < policy.max_attempts:
                delay_ms = policy.delay_before(attempt + 1)
                if token.wait(delay_ms / 1000.0):
                    raise OperationCancelled(context) from exc

    if last_error is not None:
        log_app_error(last_error, f"All {policy.max_attempts} attempts failed", logger=log)
        raise last_error
    raise create_app_error(ErrorKind.UNKNOWN_ERROR, "Retry mechanism failed unexpectedly")


__all__ = ["DEFAULT_BASE_DELAY_MS", "DEFAULT_MAX_ATTEMPTS", "RetryPolicy", "with_retry"]
