from __future__ import annotations

from typing import Any, Optional


class BackendError(RuntimeError):
    """Base class for backend adapter failures.

    ``status`` and ``code`` mirror what the auth/REST services report so the
    error classifier can read them without knowing about HTTP.
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
        payload: Any = None,
        context: Optional[str] = None,
        http_status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.http_status = http_status if http_status is not None else status
        self.code = code
        self.hint = hint
        self.payload = payload
        self.context = context


class BackendUnreachableError(BackendError):
    """Transport level timeout or connectivity failure."""

    def __init__(
        self,
        message: str,
        *,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message, context=context)


def parse_error_payload(resp: Any) -> Any:
    """Best-effort extraction of error payload without raising."""
    try:
        return resp.json()
    except Exception:
        snippet = getattr(resp, "text", "")
        if not snippet:
            return None
        return snippet[:400]


def detail_message(payload: Any, status: int) -> str:
    """Return the backend's own wording, which the classifier matches on."""
    return first_string(payload) or f"HTTP {status}"


def extract_error_code(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        # GoTrue puts the HTTP status in a numeric "code"; prefer string codes.
        for key in ("code", "error_code", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        value = payload.get("code")
        if value is not None:
            return str(value)
    return None


def extract_error_hint(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("hint", "details"):
            if key not in payload:
                continue
            text = stringify(payload[key])
            if text:
                return text
    return None


def first_string(payload: Any) -> Optional[str]:
    # GoTrue uses msg/error_description, PostgREST uses message.
    if isinstance(payload, str):
        text = payload.strip()
        return text or None
    if isinstance(payload, dict):
        for key in ("message", "msg", "error_description", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if isinstance(value, dict):
                candidate = first_string(value)
                if candidate:
                    return candidate
    if isinstance(payload, list):
        for item in payload:
            candidate = first_string(item)
            if candidate:
                return candidate
    return None


def stringify(data: Any, *, limit: int = 200) -> Optional[str]:
    if data is None:
        return None
    if isinstance(data, str):
        cleaned = data.strip()
        return cleaned[:limit] if cleaned else None
    if isinstance(data, list):
        parts = []
        for item in data:
            text = stringify(item, limit=limit)
            if text:
                parts.append(text)
            if len(parts) >= 3:
                break
        if not parts:
            return None
        joined = "; ".join(parts)
        return joined[:limit]
    if isinstance(data, dict):
        pairs = []
        for key, value in list(data.items())[:4]:
            value_text = stringify(value, limit=limit)
            if value_text:
                pairs.append(f"{key}={value_text}")
        if not pairs:
            return None
        joined = ", ".join(pairs)
        return joined[:limit]
    text = str(data).strip()
    return text[:limit] if text else None
