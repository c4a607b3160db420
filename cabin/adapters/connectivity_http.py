"""HTTP implementation of :class:`cabin.domain.ports.ConnectivityPort`.

The probe issues a single request against a small resource that is known to
be reachable whenever the network is up: a configured static file (``HEAD``)
or the auth service health endpoint (``GET`` with the ``apikey`` header).
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from cabin.adapters.http_client import PerThreadSession
from cabin.domain.ports import ConnectivityPort

DEFAULT_PROBE_TIMEOUT_S = 5.0

_log = logging.getLogger(__name__)


class HttpConnectivityProbe(ConnectivityPort):
    """Answer 'is connectivity available?' with one bounded round-trip."""

    def __init__(
        self,
        probe_url: str,
        *,
        timeout_s: float = DEFAULT_PROBE_TIMEOUT_S,
        method: str = "HEAD",
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
        sessions: Optional[PerThreadSession] = None,
    ) -> None:
        if not probe_url:
            raise ValueError("HttpConnectivityProbe requires a probe URL")
        self.probe_url = probe_url
        self.timeout_s = timeout_s
        self.method = method.upper()
        self.headers = dict(headers or {})
        self._session = session
        self._sessions = sessions or PerThreadSession()

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        return self._sessions.get()

    def check(self) -> bool:
        """Return True only when the probe request completes with a 2xx status.

        Never raises: timeouts, DNS failures and refused connections all count
        as 'no connectivity'.
        """
        headers = {"Cache-Control": "no-cache", "Pragma": "no-cache", **self.headers}
        try:
            resp = self.session.request(
                self.method,
                self.probe_url,
                headers=headers,
                timeout=self.timeout_s,
                allow_redirects=True,
            )
        except Exception as exc:
            _log.debug("Connectivity probe to %s failed: %s", self.probe_url, exc)
            return False
        status = getattr(resp, "status_code", None)
        return isinstance(status, int) and 200 <= status < 300


__all__ = ["DEFAULT_PROBE_TIMEOUT_S", "HttpConnectivityProbe"]
