from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest
import requests

from cabin.adapters.api_errors import BackendError, BackendUnreachableError
from cabin.adapters.supabase_rest import SupabaseAuthAdapter, SupabaseProfileAdapter
from cabin.domain.errors import ErrorKind
from cabin.usecases.classify_error import classify_error

PROJECT = "https://proj.supabase.co"

TOKEN_PAYLOAD = {
    "access_token": "at",
    "refresh_token": "rt",
    "expires_in": 3600,
    "user": {"id": "u1", "email": "anna@example.test"},
}


class _ResponseStub:
    def __init__(self, payload: Any = None, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = "" if payload is None else json.dumps(payload)

    def json(self) -> Any:
        return self._payload


class _SessionStub:
    def __init__(self, responses: Sequence[Union[_ResponseStub, Exception]] = ()) -> None:
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *responses: Union[_ResponseStub, Exception]) -> None:
        self._responses.extend(responses)

    def request(self, method: str, url: str, **kwargs: Any) -> _ResponseStub:
        self.calls.append({"method": method, "url": url, **kwargs})
        resp = self._responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


def _auth(stub: _SessionStub) -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter(PROJECT, "anon", session=stub, clock=lambda: 1000)  # type: ignore[arg-type]


def _record_events(adapter: SupabaseAuthAdapter) -> List[tuple]:
    events: List[tuple] = []
    adapter.on_auth_state_change(lambda event, session: events.append((event, session)))
    return events


def test_sign_in_stores_session_and_emits_event() -> None:
    stub = _SessionStub([_ResponseStub(TOKEN_PAYLOAD)])
    adapter = _auth(stub)
    events = _record_events(adapter)

    session = adapter.sign_in("anna@example.test", "secret")

    call = stub.calls[0]
    assert call["url"] == f"{PROJECT}/auth/v1/token"
    assert call["params"] == {"grant_type": "password"}
    assert json.loads(call["data"]) == {"email": "anna@example.test", "password": "secret"}
    assert session.expires_at == 4600
    assert adapter.get_session() is session
    assert events == [("SIGNED_IN", session)]


def test_sign_in_rejection_is_authentication_error() -> None:
    payload = {"code": 400, "error_code": "invalid_credentials", "msg": "Invalid login credentials"}
    stub = _SessionStub([_ResponseStub(payload, status_code=400)])
    adapter = _auth(stub)

    with pytest.raises(BackendError) as excinfo:
        adapter.sign_in("anna@example.test", "wrong")

    assert classify_error(excinfo.value) == ErrorKind.AUTHENTICATION_ERROR
    assert adapter.get_session() is None


def test_sign_up_without_confirmation_returns_user_only() -> None:
    stub = _SessionStub([_ResponseStub({"id": "u2", "email": "new@example.test"})])
    adapter = _auth(stub)
    events = _record_events(adapter)

    result = adapter.sign_up("new@example.test", "secret")

    assert result == {"user": {"id": "u2", "email": "new@example.test"}, "session": None}
    assert events == []


def test_sign_up_with_auto_confirm_signs_in() -> None:
    stub = _SessionStub([_ResponseStub(TOKEN_PAYLOAD)])
    adapter = _auth(stub)
    events = _record_events(adapter)

    result = adapter.sign_up("anna@example.test", "secret")

    assert result["session"] is adapter.get_session()
    assert result["user"]["id"] == "u1"
    assert [event for event, _ in events] == ["SIGNED_IN"]


def test_sign_out_clears_session_even_when_logout_fails() -> None:
    stub = _SessionStub([_ResponseStub(TOKEN_PAYLOAD), requests.ConnectionError("offline")])
    adapter = _auth(stub)
    adapter.sign_in("anna@example.test", "secret")
    events = _record_events(adapter)

    with pytest.raises(BackendUnreachableError):
        adapter.sign_out()

    assert adapter.get_session() is None
    assert events == [("SIGNED_OUT", None)]
    assert stub.calls[-1]["headers"]["Authorization"] == "Bearer at"


def test_refresh_without_session_is_session_expired() -> None:
    adapter = _auth(_SessionStub())

    with pytest.raises(BackendError) as excinfo:
        adapter.refresh_session()

    assert classify_error(excinfo.value) == ErrorKind.SESSION_EXPIRED


def test_refresh_uses_refresh_token() -> None:
    refreshed = dict(TOKEN_PAYLOAD, access_token="at2", refresh_token="rt2")
    stub = _SessionStub([_ResponseStub(TOKEN_PAYLOAD), _ResponseStub(refreshed)])
    adapter = _auth(stub)
    adapter.sign_in("anna@example.test", "secret")
    events = _record_events(adapter)

    session = adapter.refresh_session()

    assert stub.calls[-1]["params"] == {"grant_type": "refresh_token"}
    assert json.loads(stub.calls[-1]["data"]) == {"refresh_token": "rt"}
    assert session.access_token == "at2"
    assert events == [("TOKEN_REFRESHED", session)]


def test_unsubscribe_and_failing_subscriber() -> None:
    stub = _SessionStub([_ResponseStub(TOKEN_PAYLOAD)])
    adapter = _auth(stub)
    events: List[str] = []

    def broken(event: str, session: Any) -> None:
        raise RuntimeError("subscriber failed")

    adapter.on_auth_state_change(broken)
    subscription = adapter.on_auth_state_change(lambda event, session: events.append(event))
    subscription.unsubscribe()

    adapter.sign_in("anna@example.test", "secret")

    assert events == []
    assert adapter.get_session() is not None


def _profiles(stub: _SessionStub, auth: Optional[SupabaseAuthAdapter] = None) -> SupabaseProfileAdapter:
    return SupabaseProfileAdapter(PROJECT, "anon", auth=auth, session=stub)  # type: ignore[arg-type]


def test_get_profile_uses_user_token() -> None:
    stub = _SessionStub([_ResponseStub(TOKEN_PAYLOAD), _ResponseStub([{"id": "u1", "first_name": "Anna"}])])
    auth = _auth(stub)
    auth.sign_in("anna@example.test", "secret")
    profiles = _profiles(stub, auth)

    row = profiles.get_profile("u1")

    call = stub.calls[-1]
    assert row == {"id": "u1", "first_name": "Anna"}
    assert call["url"] == f"{PROJECT}/rest/v1/profiles"
    assert call["params"] == {"select": "*", "id": "eq.u1"}
    assert call["headers"]["Authorization"] == "Bearer at"


def test_get_profile_requires_exactly_one_row() -> None:
    profiles = _profiles(_SessionStub([_ResponseStub([])]))

    with pytest.raises(BackendError) as excinfo:
        profiles.get_profile("missing")

    assert excinfo.value.code == "PGRST116"


def test_insert_violation_classifies_as_validation() -> None:
    payload = {"code": "23505", "message": 'duplicate key value violates unique constraint "profiles_pkey"'}
    profiles = _profiles(_SessionStub([_ResponseStub(payload, status_code=409)]))

    with pytest.raises(BackendError) as excinfo:
        profiles.insert_profile({"id": "u1"})

    assert excinfo.value.status is None
    assert classify_error(excinfo.value) == ErrorKind.VALIDATION_ERROR


def test_update_profile_patches_and_returns_row() -> None:
    stub = _SessionStub([_ResponseStub([{"id": "u1", "phone_number": "123"}])])
    profiles = _profiles(stub)

    row = profiles.update_profile("u1", {"phone_number": "123"})

    call = stub.calls[0]
    assert call["method"] == "PATCH"
    assert call["headers"]["Prefer"] == "return=representation"
    assert row["phone_number"] == "123"


def test_ping_selects_a_single_id() -> None:
    stub = _SessionStub([_ResponseStub([{"id": "u1"}])])

    assert _profiles(stub).ping() == [{"id": "u1"}]
    assert stub.calls[0]["params"] == {"select": "id", "limit": 1}
