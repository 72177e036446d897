from http.client import IncompleteRead
from urllib.error import URLError
from urllib.parse import parse_qs
from urllib.request import Request

import pytest

from src.taskmemo.core.proxy_client import ProxyClient, ProxyConnectionError, ProxyResponseError


class _FakeOpen:
    def __init__(self, status: int = 200, text: str = "{}", exc: Exception | None = None) -> None:
        self.status = status
        self.text = text
        self.exc = exc
        self.requests: list[Request] = []
        self.timeouts: list[float | None] = []

    def __call__(self, req: Request, timeout_sec=None):
        self.requests.append(req)
        self.timeouts.append(timeout_sec)
        if self.exc is not None:
            raise self.exc
        return self.status, self.text


@pytest.fixture
def fake_open(monkeypatch: pytest.MonkeyPatch) -> _FakeOpen:
    fake = _FakeOpen()
    monkeypatch.setattr("src.taskmemo.core.proxy_client._open", fake)
    return fake


def test_get_rooms_sends_token_header(fake_open: _FakeOpen):
    fake_open.text = '[{"room_id": 1, "name": "General"}]'
    client = ProxyClient("http://127.0.0.1:8000/", timeout_sec=3.0)
    response = client.get_rooms("tok")

    assert response.ok
    assert response.payload == [{"room_id": 1, "name": "General"}]
    req = fake_open.requests[0]
    assert req.full_url == "http://127.0.0.1:8000/rooms"
    assert req.get_header("X-chatworktoken") == "tok"
    assert fake_open.timeouts == [3.0]


def test_get_identity_returns_non_2xx_without_raising(fake_open: _FakeOpen):
    fake_open.status = 401
    fake_open.text = '{"error": "Chatwork API token is missing."}'
    response = ProxyClient("http://proxy.test").get_identity("")
    assert not response.ok
    assert response.status_code == 401
    assert fake_open.requests[0].full_url == "http://proxy.test/identity"


def test_create_task_posts_form_fields(fake_open: _FakeOpen):
    ProxyClient("http://proxy.test").create_task("tok", "77", body="hi there", to_ids="42", limit="123")

    req = fake_open.requests[0]
    assert req.get_method() == "POST"
    assert req.full_url == "http://proxy.test/rooms/77/tasks"
    assert req.get_header("Content-type") == "application/x-www-form-urlencoded"
    assert parse_qs(req.data.decode("utf-8")) == {"body": ["hi there"], "to_ids": ["42"], "limit": ["123"]}


def test_connection_failure_raises_proxy_connection_error(fake_open: _FakeOpen):
    fake_open.exc = URLError("connection refused")
    with pytest.raises(ProxyConnectionError, match="Could not reach"):
        ProxyClient("http://proxy.test").get_rooms("tok")


def test_truncated_response_raises_proxy_connection_error(fake_open: _FakeOpen):
    fake_open.exc = IncompleteRead(b"{\"acc", 89)
    with pytest.raises(ProxyConnectionError):
        ProxyClient("http://proxy.test").get_identity("tok")


def test_non_json_body_raises_proxy_response_error(fake_open: _FakeOpen):
    fake_open.status = 502
    fake_open.text = "<html>Bad Gateway</html>"
    with pytest.raises(ProxyResponseError) as excinfo:
        ProxyClient("http://proxy.test").get_rooms("tok")
    assert excinfo.value.status_code == 502


def test_non_json_error_message_uses_shared_excerpt_rule(fake_open: _FakeOpen):
    fake_open.status = 502
    fake_open.text = "x" * 250
    with pytest.raises(ProxyResponseError) as excinfo:
        ProxyClient("http://proxy.test").get_rooms("tok")
    assert str(excinfo.value) == f"HTTP 502: non-JSON response: {'x' * 200}..."
    assert excinfo.value.text == "x" * 250
