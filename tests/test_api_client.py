import json

import pytest
import requests

from client.api_client import ForumApiClient
from forumcore.errors import ApiError, ConflictError, NotFoundError, TransportError, ValidationError


def make_response(status, body=None, reason="OK"):
    r = requests.Response()
    r.status_code = status
    r.reason = reason
    if body is not None:
        r._content = json.dumps(body).encode("utf-8")
        r.headers["Content-Type"] = "application/json"
    else:
        r._content = b""
    return r


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def request(self, method, url, json=None, timeout=None):
        self.requests.append((method, url, json, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def client_with(session):
    return ForumApiClient("http://forum.test/api/", timeout=5, session=session)


def test_success_returns_json_and_builds_url():
    session = StubSession(make_response(200, {"rating": 4.0, "rating_count": 3}))
    result = client_with(session).rate_media("m1", "u1", 4)

    assert result == {"rating": 4.0, "rating_count": 3}
    assert session.requests == [
        ("POST", "http://forum.test/api/media/m1/ratings", {"user_id": "u1", "rating": 4}, 5)
    ]


def test_empty_body_returns_none():
    session = StubSession(make_response(204))
    assert client_with(session).remove_list_entry("u1", "m1") is None
    assert session.requests[0][:2] == ("DELETE", "http://forum.test/api/users/u1/list/m1")


@pytest.mark.parametrize(
    "status,error_cls",
    [(400, ValidationError), (404, NotFoundError), (409, ConflictError)],
)
def test_error_status_maps_to_taxonomy(status, error_cls):
    session = StubSession(make_response(status, {"ok": False, "error": "nope"}, reason="Bad"))
    with pytest.raises(error_cls) as excinfo:
        client_with(session).add_list_entry("u1", {"media_id": "m1"})
    assert excinfo.value.message == "nope"


def test_unmapped_status_is_api_error():
    session = StubSession(make_response(500, {"ok": False, "error": "Internal server error"}))
    with pytest.raises(ApiError) as excinfo:
        client_with(session).list_posts()
    assert excinfo.value.status_code == 500


def test_non_json_error_uses_reason():
    session = StubSession(make_response(502, reason="Bad Gateway"))
    with pytest.raises(ApiError) as excinfo:
        client_with(session).list_media()
    assert excinfo.value.message == "Bad Gateway"


def test_network_failure_is_transport_error():
    session = StubSession(error=requests.ConnectionError("refused"))
    with pytest.raises(TransportError) as excinfo:
        client_with(session).health()
    assert excinfo.value.status_code is None


def test_from_config():
    api = ForumApiClient.from_config({"api": {"base_url": "http://example.test/api", "timeout": 3}})
    assert api.base_url == "http://example.test/api"
    assert api.timeout == 3
