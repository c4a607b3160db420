"""Wait for connectivity to come back and retry a failed call once.

``wait_for_recovery`` polls a :class:`ConnectivityPort` on a fixed interval
within an overall time budget. ``with_network_recovery`` wraps one backend
call: a network-class failure triggers the wait, and a successful wait
earns the operation exactly one more invocation.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from cabin.domain.cancellation import CancellationToken
from cabin.domain.errors import ErrorKind, OperationCancelled, is_network_kind
from cabin.domain.ports import ConnectivityPort
from cabin.usecases.error_mapping import create_app_error, log_app_error, process_error

T = TypeVar("T")

DEFAULT_MAX_WAIT_S = 30.0
DEFAULT_POLL_INTERVAL_S = 2.0
WRAPPER_MAX_WAIT_S = 10.0

_log = logging.getLogger(__name__)


def wait_for_recovery(
    probe: ConnectivityPort,
    max_wait_s: float = DEFAULT_MAX_WAIT_S,
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
    *,
    cancel_token: Optional[CancellationToken] = None,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll ``probe`` until it reports connectivity or ``max_wait_s`` elapses.

    Returns:
        bool: True as soon as one poll succeeds, False on timeout.

    Raises:
        OperationCancelled: When ``cancel_token`` fires between polls.
    """
    if poll_interval_s <= 0:
        raise ValueError("poll_interval_s must be positive.")
    token = cancel_token or CancellationToken()
    started = clock()
    polls = 0
    while clock() - started < max_wait_s:
        token.raise_if_cancelled("waitForRecovery")
        polls += 1
        if probe.check():
            _log.info("Connectivity restored after %d poll(s)", polls)
            return True
        if token.wait(poll_interval_s):
            raise OperationCancelled("waitForRecovery")
    _log.warning("Connectivity not restored within %.1fs (%d poll(s))", max_wait_s, polls)
    return False


def with_network_recovery(
    operation: Callable[[], T],
    context: str,
    probe: ConnectivityPort,
    *,
    max_wait_s: float = WRAPPER_MAX_WAIT_S,
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
    cancel_token: Optional[CancellationToken] = None,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Run ``operation``; on a network-class failure wait for recovery and retry once.

    ``operation`` is invoked at most twice.

    Raises:
        AppError: The original failure when it is not network-class or the
            network did not come back, else the retry's own failure.
        OperationCancelled: When ``cancel_token`` fires during the wait.
    """
    try:
        return operation()
    except OperationCancelled:
        raise
    except Exception as exc:
        app_error = process_error(exc, context)
        if not is_network_kind(app_error.kind):
            raise app_error from exc

        log_app_error(app_error, f"{context} - attempting network recovery")
        recovered = wait_for_recovery(
            probe,
            max_wait_s,
            poll_interval_s,
            cancel_token=cancel_token,
            clock=clock,
        )
        if not recovered:
            raise app_error from exc

    log_app_error(
        create_app_error(
            ErrorKind.NETWORK_ERROR,
            "Network recovered, retrying operation",
            None,
            "Connection restored, retrying...",
        ),
        context,
    )
    try:
        return operation()
    except OperationCancelled:
        raise
    except Exception as exc:
        raise process_error(exc, context) from exc


__all__ = [
    "DEFAULT_MAX_WAIT_S",
    "DEFAULT_POLL_INTERVAL_S",
    "WRAPPER_MAX_WAIT_S",
    "wait_for_recovery",
    "with_network_recovery",
]
