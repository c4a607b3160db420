"""Uniform error handling around backend calls plus a cached health check."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from cabin.domain.cancellation import CancellationToken
from cabin.domain.errors import AppError, OperationCancelled
from cabin.domain.ports import ProfilePort
from cabin.usecases.error_mapping import log_app_error, process_error
from cabin.usecases.retry import RetryPolicy, with_retry

T = TypeVar("T")

HEALTH_CACHE_TTL_S = 60.0

_log = logging.getLogger(__name__)


def call_backend(
    operation: Callable[[], T],
    context: str,
    *,
    retryable: bool = True,
    policy: Optional[RetryPolicy] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> T:
    """Run one backend operation, normalizing every failure to AppError.

    Credential operations (sign-in, sign-up, refresh) pass ``retryable=False``
    and get exactly one attempt.

    Raises:
        AppError: Logged with ``context`` before being raised.
    """
    retry_policy = policy or RetryPolicy()
    try:
        if retryable:
            return with_retry(
                operation,
                retry_policy.max_attempts,
                retry_policy.base_delay_ms,
                context,
                cancel_token=cancel_token,
            )
        return operation()
    except OperationCancelled:
        raise
    except AppError as exc:
        log_app_error(exc, context)
        raise
    except Exception as exc:
        app_error = process_error(exc, context)
        log_app_error(app_error, context)
        raise app_error from exc


class CheckBackendHealth:
    """Use-case callable answering 'is the backend usable right now?'.

    Attributes:
        profile_port: Adapter whose ``ping`` issues the cheapest query.
        placeholder: True when credentials are missing/placeholder values;
            the check then always reports unhealthy without touching the network.
    """

    def __init__(
        self,
        profile_port: ProfilePort,
        *,
        placeholder: bool = False,
        cache_ttl_s: float = HEALTH_CACHE_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.profile_port = profile_port
        self.placeholder = placeholder
        self.cache_ttl_s = cache_ttl_s
        self._clock = clock
        self._last_check: Optional[float] = None
        self._healthy = True

    def __call__(self) -> bool:
        """Return backend health; healthy results are cached for ``cache_ttl_s``.

        Never raises: failures are processed, logged, and reported as False.
        """
        if self.placeholder:
            _log.warning("Skipping backend health check - using placeholder credentials")
            self._healthy = False
            return False

        now = self._clock()
        if (
            self._healthy
            and self._last_check is not None
            and now - self._last_check < self.cache_ttl_s
        ):
            return True

        try:
            self.profile_port.ping()
            self._healthy = True
        except Exception as exc:
            self._healthy = False
            log_app_error(process_error(exc, "Backend health check"))
        self._last_check = now
        return self._healthy

    def reset(self) -> None:
        """Forget the cached result (called on sign-out)."""
        self._healthy = True
        self._last_check = None


__all__ = ["CheckBackendHealth", "HEALTH_CACHE_TTL_S", "call_backend"]
