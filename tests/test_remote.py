import json

import pytest
import requests

from navhub.errors import AuthorizationError, CredentialExpired, NotInitialized, SyncError, ValidationError
from navhub.models import AppData, Category
from navhub.remote import AUTH_HEADER, RemoteStore


def _response(status, body=None, headers=None, method="GET", url="http://nav.test/api/data"):
    resp = requests.Response()
    resp.status_code = status
    resp._content = body.encode("utf-8") if isinstance(body, str) else json.dumps(body).encode("utf-8")
    resp.headers.update(headers or {})
    resp.url = url
    resp.request = requests.Request(method, url).prepare()
    return resp


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _store(*responses):
    session = FakeSession(*responses)
    return RemoteStore("http://nav.test/", session=session), session


def test_login_sends_password_header():
    store, session = _store(_response(200, {"success": True, "issuedAt": 123}, method="POST"))

    assert store.login("hunter22") == 123

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://nav.test/api/auth")
    assert kwargs["headers"][AUTH_HEADER] == "hunter22"
    assert kwargs["timeout"] == 5.0


def test_fetch_data_parses_document():
    body = {"links": [], "categories": [{"id": "c", "name": "C", "uri": "c"}]}
    store, _ = _store(_response(200, body))

    assert store.fetch_data() == AppData(categories=[Category(id="c", name="C", uri="c")])


@pytest.mark.parametrize(
    "code, expected",
    [("expired", CredentialExpired), ("needs_init", NotInitialized), ("invalid", AuthorizationError)],
)
def test_unauthorized_maps_auth_error_code(code, expected):
    store, _ = _store(_response(401, {"detail": "nope"}, headers={"x-auth-error": code}, method="POST"))

    with pytest.raises(expected) as info:
        store.save_data("pw", AppData())
    assert str(info.value) == "nope"


def test_wrong_password_is_not_reported_as_expired():
    store, _ = _store(_response(401, {"detail": "Incorrect password"}, headers={"x-auth-error": "invalid"}))

    with pytest.raises(AuthorizationError) as info:
        store.login("wrong")
    assert not isinstance(info.value, CredentialExpired)


def test_bad_request_is_validation_error():
    store, _ = _store(_response(400, {"detail": "Invalid document"}, method="POST"))

    with pytest.raises(ValidationError):
        store.save_data("pw", AppData())


def test_server_error_is_sync_error():
    store, _ = _store(_response(500, "boom"))

    with pytest.raises(SyncError) as info:
        store.fetch_data()
    assert "boom" in str(info.value)


def test_connection_failure_is_sync_error():
    store, _ = _store(requests.ConnectionError("refused"))

    with pytest.raises(SyncError):
        store.fetch_data()


def test_malformed_document_is_sync_error():
    store, _ = _store(_response(200, {"links": [{"id": "1"}]}))

    with pytest.raises(SyncError):
        store.fetch_data()


def test_non_json_body_is_sync_error():
    store, _ = _store(_response(200, "<html>"))

    with pytest.raises(SyncError):
        store.get_config("website")
