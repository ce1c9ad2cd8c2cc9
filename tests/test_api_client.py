"""HTTP client error mapping."""

import pytest
import requests

from alfa.api_client import APIError, ProtocolClient


class FakeResponse:
    def __init__(self, status_code=200, body=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} {self.reason}")


@pytest.fixture
def api():
    return ProtocolClient("http://devnet:8080/")


def replay(monkeypatch, api, response):
    calls = []

    def request(method, url, json=None, timeout=None):
        calls.append((method, url, json))
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(api.session, "request", request)
    return calls


def test_buy_posts_payload(monkeypatch, api):
    calls = replay(monkeypatch, api, FakeResponse(body={"token_ids": [4, 5], "block": 9}))

    assert api.buy("0xabc", 2, count=2, value=10) == [4, 5]
    method, url, payload = calls[0]
    assert (method, url) == ("POST", "http://devnet:8080/api/store/buy")
    assert payload["count"] == 2 and payload["referral_parents"] == []


def test_protocol_error_becomes_api_error(monkeypatch, api):
    body = {"error": "insufficient_value", "message": "Insufficient value", "required": 3, "actual": 1}
    replay(monkeypatch, api, FakeResponse(400, body, "BAD REQUEST"))

    with pytest.raises(APIError) as info:
        api.open_lootbox("0xabc", 1)
    assert info.value.code == "insufficient_value"
    assert info.value.payload["required"] == 3


def test_connection_failure(monkeypatch, api):
    replay(monkeypatch, api, requests.exceptions.ConnectionError("refused"))
    with pytest.raises(APIError) as info:
        api.status()
    assert info.value.code == "connection_failed"


def test_non_json_responses(monkeypatch, api):
    replay(monkeypatch, api, FakeResponse(502, None, "Bad Gateway"))
    with pytest.raises(requests.exceptions.HTTPError):
        api.status()

    replay(monkeypatch, api, FakeResponse(200, None))
    with pytest.raises(APIError, match="invalid_response"):
        api.status()
