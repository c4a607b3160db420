"""Shared HTTP transport utilities for backend adapters.

This module provides a thin wrapper around ``requests.Session`` so adapter
implementations can share timeout policy, API-key headers, and the mapping of
non-2xx responses into typed ``BackendError`` values.

Dependencies:
    - ``requests`` for network I/O.
    - ``cabin.adapters.api_errors`` for typed transport failures.

Call context:
    - Constructed by ``cabin/adapters/supabase_rest.py``.
    - Used only inside adapter layer methods; use cases interact through ports.
    - No transport retries here; the retry engine in
      ``cabin.usecases.retry`` owns attempt counting and backoff.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
from requests import exceptions as req_exc

from cabin.adapters.api_errors import (
    BackendError,
    BackendUnreachableError,
    detail_message,
    extract_error_code,
    extract_error_hint,
    parse_error_payload,
)


@dataclass
class HttpConfig:
    """Timeout configuration for adapter HTTP calls.

    Attributes:
        request_timeout_s: Default timeout in seconds for JSON API calls.
        report_status: Whether HTTP status codes are exposed as ``status`` on
            raised errors. The relational API reports failures through SQLSTATE
            codes instead, so its adapter turns this off.
    """
    request_timeout_s: float = 10
    report_status: bool = True


class PerThreadSession:
    """Hand each calling thread its own ``requests.Session``.

    ``requests`` does not document ``Session`` as thread-safe, and the session
    monitor runs on its own daemon thread next to caller threads.
    """

    def __init__(self, factory: Callable[[], requests.Session] = requests.Session) -> None:
        self._factory = factory
        self._local = threading.local()

    def get(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._factory()
            self._local.session = session
        return session


class BackendSession:
    """Shared requests wrapper with ``apikey``/bearer headers and error mapping.

    This class is intentionally transport-only. Callers provide endpoint paths
    and receive decoded JSON or a typed ``BackendError``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        cfg: Optional[HttpConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        sessions: Optional[PerThreadSession] = None,
    ) -> None:
        """Create a backend session.

        Args:
            base_url: Service root, e.g. ``https://xyz.supabase.co/auth/v1``.
            api_key: Public anon key sent as ``apikey`` header, or ``None``.
            cfg: Shared timeout settings.
            session: Optional pre-built ``requests.Session`` used from every
                thread (tests inject stubs).
            sessions: Per-thread session pool used when ``session`` is omitted.

        Side Effects:
            Creates one persistent ``requests.Session`` per calling thread when
            no fixed session is given.
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.cfg = cfg or HttpConfig()
        self._session = session
        self._sessions = sessions or PerThreadSession()

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        return self._sessions.get()

    def _headers(
        self,
        *,
        access_token: Optional[str] = None,
        json_body: bool = False,
        prefer: Optional[str] = None,
    ) -> Dict[str, str]:
        """Build request headers for adapter calls.

        Args:
            access_token: User bearer token; falls back to the anon key.
            json_body: Whether to add ``Content-Type: application/json``.
            prefer: Optional ``Prefer`` header value (PostgREST representation hints).

        Returns:
            Dictionary of request headers.
        """
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        bearer = access_token or self.api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        if json_body:
            headers["Content-Type"] = "application/json"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def make_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        access_token: Optional[str] = None,
        prefer: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send one request and decode the JSON response.

        Returns:
            Decoded JSON payload, or ``None`` for empty bodies.

        Raises:
            BackendUnreachableError: On timeout or connection failure.
            BackendError: On any non-2xx response.

        Call Chain:
            Adapter methods -> ``BackendSession.request`` -> ``requests.Session.request``.
        """
        url = self.make_url(path)
        context = f"{method.upper()} {url}"
        data = None if json_body is None else json.dumps(json_body)
        try:
            resp = self.session.request(
                method.upper(),
                url,
                params=params,
                data=data,
                headers=self._headers(
                    access_token=access_token,
                    json_body=json_body is not None,
                    prefer=prefer,
                ),
                timeout=timeout or self.cfg.request_timeout_s,
            )
        except (req_exc.Timeout, req_exc.ConnectionError) as exc:
            raise BackendUnreachableError(
                f"Network request failed contacting {url}", context=context
            ) from exc

        if not 200 <= resp.status_code < 300:
            payload = parse_error_payload(resp)
            raise BackendError(
                detail_message(payload, resp.status_code),
                status=resp.status_code if self.cfg.report_status else None,
                http_status=resp.status_code,
                code=extract_error_code(payload),
                hint=extract_error_hint(payload),
                payload=payload,
                context=context,
            )

        if resp.status_code == 204 or not (getattr(resp, "text", "") or "").strip():
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise BackendError(
                f"{context}: invalid JSON response", http_status=resp.status_code, context=context
            ) from exc

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Any:
        return self.request("POST", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Any:
        return self.request("PATCH", path, **kwargs)


__all__ = ["BackendSession", "HttpConfig", "PerThreadSession"]
