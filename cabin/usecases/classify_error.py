"""Classify arbitrary backend failures into the closed ``ErrorKind`` taxonomy.

Classification is a first-match-wins walk over an ordered rule table. Each
rule is a predicate over a :class:`FailureRecord`, the normalized view of the
three signals backends actually send (message, status, code) plus the
failure's type. New backend wordings are added to the table, not to control
flow.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Tuple

from requests import exceptions as req_exc

from cabin.adapters.api_errors import BackendUnreachableError
from cabin.domain.errors import AppError, ErrorKind

_TRANSPORT_TYPES: Tuple[type, ...] = (
    BackendUnreachableError,
    req_exc.ConnectionError,
    req_exc.Timeout,
    ConnectionError,
    TimeoutError,
)


@dataclass(frozen=True)
class FailureRecord:
    """Normalized failure signals consumed by classification rules."""

    message: str = ""
    """Failure message as reported (may be empty)."""
    status: Optional[int] = None
    """Status-like numeric field (HTTP status for auth failures)."""
    code: Optional[str] = None
    """Short code such as a SQLSTATE (``23505``) or ``NETWORK_ERROR``."""
    type_name: str = ""
    """Class name of the failure object."""
    transport: bool = False
    """Whether the failure is a transport-level (connect/timeout) exception."""

    @property
    def lowered(self) -> str:
        return self.message.lower()

    def mentions(self, *needles: str) -> bool:
        text = self.lowered
        return any(needle in text for needle in needles)

    @classmethod
    def from_failure(cls, failure: Any) -> "FailureRecord":
        """Build a record from any failure value; missing fields become empty."""
        if failure is None:
            return cls()
        message = _read_field(failure, "message")
        if not isinstance(message, str) or not message:
            message = str(failure) if isinstance(failure, BaseException) else ""
        status = _coerce_status(_read_field(failure, "status"))
        if status is None:
            status = _coerce_status(_read_field(failure, "status_code"))
        code = _read_field(failure, "code")
        if isinstance(failure, Mapping):
            type_name = str(failure.get("name") or "")
        else:
            type_name = str(_read_field(failure, "name") or type(failure).__name__)
        return cls(
            message=message or "",
            status=status,
            code=str(code).strip() if code is not None and str(code).strip() else None,
            type_name=type_name,
            transport=isinstance(failure, _TRANSPORT_TYPES),
        )


@dataclass(frozen=True)
class ClassificationRule:
    """One row of the classification table."""

    kind: ErrorKind
    name: str
    predicate: Callable[[FailureRecord], bool]

    def matches(self, record: FailureRecord) -> bool:
        return bool(self.predicate(record))


def _read_field(failure: Any, name: str) -> Any:
    if isinstance(failure, Mapping):
        return failure.get(name)
    return getattr(failure, name, None)


def _coerce_status(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _is_transport_failure(record: FailureRecord) -> bool:
    return record.transport or record.type_name == "NetworkError" or record.code == "NETWORK_ERROR"


def _is_unreachable(record: FailureRecord) -> bool:
    return record.mentions(
        "failed to fetch",
        "networkerror",
        "network error",
        "err_network",
        "err_internet_disconnected",
    )


def _is_session_expired(record: FailureRecord) -> bool:
    return record.status == 401 or record.mentions(
        "jwt expired",
        "refresh_token_not_found",
        "invalid_token",
    )


def _is_authentication(record: FailureRecord) -> bool:
    return record.status == 400 or record.mentions(
        "invalid login credentials",
        "email not confirmed",
        "user not found",
        "signup not allowed",
    )


def _is_permission(record: FailureRecord) -> bool:
    return (
        record.status == 403
        or record.code == "42501"
        or record.mentions("insufficient_privilege", "permission denied")
    )


_VALIDATION_CODES = frozenset({"23505", "23502", "23514"})  # unique, not-null, check


def _is_validation(record: FailureRecord) -> bool:
    return record.code in _VALIDATION_CODES or record.mentions("violates")


DEFAULT_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(ErrorKind.NETWORK_ERROR, "transport", _is_transport_failure),
    ClassificationRule(ErrorKind.SERVICE_CONNECTION_ERROR, "unreachable", _is_unreachable),
    ClassificationRule(ErrorKind.SESSION_EXPIRED, "session-expired", _is_session_expired),
    ClassificationRule(ErrorKind.AUTHENTICATION_ERROR, "authentication", _is_authentication),
    ClassificationRule(ErrorKind.PERMISSION_ERROR, "permission", _is_permission),
    ClassificationRule(ErrorKind.VALIDATION_ERROR, "validation", _is_validation),
)


def classify_error(
    failure: Any,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> ErrorKind:
    """Return the first matching kind for ``failure`` (``UNKNOWN_ERROR`` if none).

    Pure and total: never raises, whatever ``failure`` is.
    """
    if isinstance(failure, AppError):
        return failure.kind
    try:
        record = FailureRecord.from_failure(failure)
    except Exception:  # pragma: no cover - hostile __str__/__getattr__
        return ErrorKind.UNKNOWN_ERROR
    return match_rules(record, rules)


def match_rules(record: FailureRecord, rules: Iterable[ClassificationRule]) -> ErrorKind:
    for rule in rules:
        if rule.matches(record):
            return rule.kind
    return ErrorKind.UNKNOWN_ERROR


__all__ = [
    "ClassificationRule",
    "DEFAULT_RULES",
    "FailureRecord",
    "classify_error",
    "match_rules",
]
