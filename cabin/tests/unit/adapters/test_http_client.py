from __future__ import annotations

import json
import threading
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest
import requests

from cabin.adapters.api_errors import BackendError, BackendUnreachableError
from cabin.adapters.http_client import BackendSession, HttpConfig, PerThreadSession


class _ResponseStub:
    def __init__(self, payload: Any = None, status_code: int = 200, text: Optional[str] = None) -> None:
        self._payload = payload
        self.status_code = status_code
        if text is not None:
            self.text = text
        else:
            self.text = "" if payload is None else json.dumps(payload)

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class _SessionStub:
    def __init__(self, responses: Sequence[Union[_ResponseStub, Exception]]) -> None:
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _ResponseStub:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self._responses:
            raise RuntimeError("No stub response configured")
        resp = self._responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


def _client(responses, **cfg) -> BackendSession:
    return BackendSession(
        "https://proj.supabase.co/rest/v1/",
        "anon-key",
        HttpConfig(**cfg),
        session=_SessionStub(responses),  # type: ignore[arg-type]
    )


def test_get_sends_api_key_and_decodes_json() -> None:
    client = _client([_ResponseStub([{"id": "u1"}])])

    data = client.get("profiles", params={"select": "id"})

    call = client.session.calls[0]
    assert data == [{"id": "u1"}]
    assert call["method"] == "GET"
    assert call["url"] == "https://proj.supabase.co/rest/v1/profiles"
    assert call["headers"]["apikey"] == "anon-key"
    assert call["headers"]["Authorization"] == "Bearer anon-key"
    assert call["timeout"] == 10
    assert call["data"] is None


def test_user_token_and_json_body() -> None:
    client = _client([_ResponseStub(None, status_code=201)], request_timeout_s=3)

    result = client.post(
        "profiles",
        json_body={"id": "u1", "first_name": "Anna"},
        access_token="user-token",
        prefer="return=minimal",
    )

    call = client.session.calls[0]
    assert result is None
    assert call["headers"]["Authorization"] == "Bearer user-token"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["headers"]["Prefer"] == "return=minimal"
    assert json.loads(call["data"]) == {"id": "u1", "first_name": "Anna"}
    assert call["timeout"] == 3


def test_auth_error_keeps_status_and_string_code() -> None:
    payload = {"code": 400, "error_code": "invalid_credentials", "msg": "Invalid login credentials"}
    client = _client([_ResponseStub(payload, status_code=400)])

    with pytest.raises(BackendError) as excinfo:
        client.post("token", json_body={})

    err = excinfo.value
    assert err.message == "Invalid login credentials"
    assert err.status == 400
    assert err.code == "invalid_credentials"


def test_relational_error_hides_status() -> None:
    payload = {
        "code": "23502",
        "message": 'null value in column "first_name" violates not-null constraint',
        "details": "Failing row contains (u1, null).",
        "hint": None,
    }
    client = _client([_ResponseStub(payload, status_code=400)], report_status=False)

    with pytest.raises(BackendError) as excinfo:
        client.post("profiles", json_body={"id": "u1"})

    err = excinfo.value
    assert err.status is None
    assert err.http_status == 400
    assert err.code == "23502"
    assert err.hint == "Failing row contains (u1, null)."


def test_connection_failure_becomes_unreachable() -> None:
    client = _client([requests.ConnectionError("refused")])

    with pytest.raises(BackendUnreachableError) as excinfo:
        client.get("profiles")

    assert "proj.supabase.co" in str(excinfo.value)
    assert excinfo.value.context == "GET https://proj.supabase.co/rest/v1/profiles"


def test_timeout_becomes_unreachable() -> None:
    client = _client([requests.Timeout("slow")])

    with pytest.raises(BackendUnreachableError):
        client.get("profiles")


def test_non_json_error_body_uses_text() -> None:
    client = _client([_ResponseStub(None, status_code=502, text="Bad gateway")])

    with pytest.raises(BackendError) as excinfo:
        client.get("profiles")

    assert excinfo.value.message == "Bad gateway"
    assert excinfo.value.status == 502


def test_invalid_json_success_body() -> None:
    client = _client([_ResponseStub(None, status_code=200, text="<html>")])

    with pytest.raises(BackendError) as excinfo:
        client.get("profiles")

    assert "invalid JSON" in excinfo.value.message


def test_each_thread_gets_its_own_session() -> None:
    created: List[object] = []

    def factory() -> object:
        created.append(object())
        return created[-1]

    pool = PerThreadSession(factory)  # type: ignore[arg-type]
    client = BackendSession("https://proj.supabase.co/auth/v1", "anon-key", sessions=pool)
    seen: List[object] = []

    first = client.session
    assert client.session is first
    worker = threading.Thread(target=lambda: seen.append(client.session))
    worker.start()
    worker.join()

    assert len(created) == 2
    assert seen[0] is not first
