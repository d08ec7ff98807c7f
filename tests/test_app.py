"""End-to-end tests through the FastAPI route."""

import base64
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from api.handlers import handle_proxy
from app import create_app
from core.config import BackendSettings, Config, GatewaySettings
from core.encoding import decode_response
from services.gateway import GatewayHandler
from ui.log_utils import LogObserver

BASE = "http://backend.internal:8000/"


def _client(handler, log_file, base_url=BASE, environment="production") -> TestClient:
    config = Config(
        backend=BackendSettings(base_url=base_url),
        gateway=GatewaySettings(environment=environment),
    )
    app = create_app(config, LogObserver(log_file), transport=httpx.MockTransport(handler))
    return TestClient(app)


def test_unset_base_url_returns_configuration_error(log_file):
    calls = []

    with _client(lambda r: calls.append(r), log_file, base_url="") as client:
        response = client.get("/proxy/users/dashboard")

    assert response.status_code == 500
    assert response.json() == {"error": "API base URL not configured or not HTTP"}
    assert calls == []


def test_https_base_url_is_rejected(log_file):
    with _client(lambda r: httpx.Response(200), log_file, base_url="https://backend") as client:
        response = client.get("/proxy/anything")

    assert response.status_code == 500
    assert response.json()["error"] == "API base URL not configured or not HTTP"


def test_small_json_is_enveloped(log_file):
    def handler(request):
        return httpx.Response(200, content=b'{"a":1234}', headers={"content-type": "application/json"})

    with _client(handler, log_file) as client:
        response = client.get("/proxy/users/dashboard")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json; charset=utf-8"
    assert response.headers["x-response-encoding"] == "base64"
    assert base64.b64decode(response.json()["encoded"]) == b'{"a":1234}'


def test_unauthorized_keeps_backend_message(log_file):
    def handler(request):
        return httpx.Response(401, content=b'{"message":"invalid token"}', headers={"content-type": "application/json"})

    with _client(handler, log_file) as client:
        response = client.get("/proxy/users/me", headers={"Authorization": "Bearer expired"})

    assert response.status_code == 401
    assert response.json()["message"] == "invalid token"


def test_plain_text_passes_through(log_file):
    def handler(request):
        return httpx.Response(200, content=b"ok", headers={"content-type": "text/plain"})

    with _client(handler, log_file) as client:
        response = client.get("/proxy/health")

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/plain"
    assert response.text == "ok"
    assert "x-response-encoding" not in response.headers


def test_connect_failure_returns_500(log_file):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler, log_file) as client:
        response = client.get("/proxy/users")

    body = response.json()
    assert response.status_code == 500
    assert body["error"] == "Failed to proxy request"
    assert body["kind"] == "UpstreamUnreachable"
    assert "details" not in body


def test_connect_failure_details_in_development(log_file):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler, log_file, environment="development") as client:
        response = client.get("/proxy/users")

    assert "connection refused" in response.json()["details"]


@pytest.mark.parametrize("method", ["POST", "PUT"])
def test_body_and_query_forwarded(log_file, method):
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(200, json=[1, 2, 3])

    with _client(handler, log_file) as client:
        response = client.request(
            method,
            "/proxy/quests/42/progress?tag=a&tag=b&page=2",
            content=b'{"done":true}',
            headers={"AUTHORIZATION": "Bearer live"},
        )

    sent = captured[0]
    assert sent.method == method
    assert str(sent.url) == f"{BASE}quests/42/progress?tag=a&tag=b&page=2"
    assert sent.content == b'{"done":true}'
    assert sent.headers["authorization"] == "Bearer live"
    assert sent.headers["content-type"] == "application/json"
    assert decode_response(response.headers, response.json()) == [1, 2, 3]


def test_delete_sends_no_body(log_file):
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(204)

    with _client(handler, log_file) as client:
        response = client.delete("/proxy/quests/42")

    assert response.status_code == 204
    assert captured[0].content == b""


def test_upstream_framing_and_cors_headers_not_copied(log_file):
    def handler(request):
        return httpx.Response(
            200,
            content=b"hello world",
            headers={
                "content-type": "text/plain",
                "access-control-allow-origin": "*",
                "x-backend-version": "3",
            },
        )

    with _client(handler, log_file) as client:
        response = client.get("/proxy/greeting")

    assert "access-control-allow-origin" not in response.headers
    assert response.headers["x-backend-version"] == "3"
    assert response.headers["content-length"] == str(len(b"hello world"))


def test_large_json_round_trip(log_file):
    payload = {"items": [{"id": i, "label": "é" * 40} for i in range(2000)]}

    def handler(request):
        return httpx.Response(200, content=json.dumps(payload).encode(), headers={"content-type": "application/json"})

    with _client(handler, log_file) as client:
        response = client.get("/proxy/items")

    assert decode_response(response.headers, response.json()) == payload


def test_unsupported_method(log_file):
    with _client(lambda r: httpx.Response(200), log_file) as client:
        response = client.patch("/proxy/items")

    assert response.status_code == 405


def test_requests_are_logged(log_file):
    with _client(lambda r: httpx.Response(200, text="ok"), log_file) as client:
        client.get("/proxy/items", headers={"Authorization": "Bearer secret-token-value"})

    log = log_file.read_text()
    assert "GET /items" in log
    assert "secret-token-value" not in log


def test_repeated_set_cookie_headers_reach_caller(log_file):
    def handler(request):
        return httpx.Response(
            200,
            headers=[("content-type", "text/plain"), ("set-cookie", "a=1"), ("set-cookie", "b=2")],
            content=b"ok",
        )

    with _client(handler, log_file) as client:
        response = client.get("/proxy/session")

    assert response.headers.get_list("set-cookie") == ["a=1", "b=2"]


def test_lone_surrogate_json_is_enveloped(log_file):
    def handler(request):
        return httpx.Response(200, content=b'{"a":"\\ud800"}', headers={"content-type": "application/json"})

    with _client(handler, log_file) as client:
        response = client.get("/proxy/x")

    assert response.status_code == 200
    assert response.headers["x-response-encoding"] == "base64"
    assert decode_response(response.headers, response.json()) == {"a": "\ud800"}


def test_lone_surrogate_in_unauthorized_body(log_file):
    def handler(request):
        return httpx.Response(401, content=b'{"message":"\\ud800"}', headers={"content-type": "application/json"})

    with _client(handler, log_file) as client:
        response = client.get("/proxy/users/me")

    assert response.status_code == 401
    assert response.json() == {"message": "\ud800"}


def test_non_finite_json_literal_passes_through_raw(log_file):
    def handler(request):
        return httpx.Response(200, content=b'{"a":NaN}', headers={"content-type": "application/json"})

    with _client(handler, log_file) as client:
        response = client.get("/proxy/x")

    assert response.status_code == 200
    assert "x-response-encoding" not in response.headers
    assert response.content == b'{"a":NaN}'


@pytest.mark.asyncio
async def test_unreadable_request_is_observed_before_failure():
    observer = MagicMock()
    request = MagicMock()
    request.method = "post"
    request.body = AsyncMock(side_effect=ValueError("malformed body"))
    request.app.state.gateway = GatewayHandler(MagicMock(), observer)

    response = await handle_proxy(request, "users/me")

    assert response.status_code == 500
    assert json.loads(response.body)["kind"] == "InternalError"
    assert [call[0] for call in observer.mock_calls] == [
        "request_received",
        "error_classified",
        "response_classified",
    ]
    received = observer.request_received.call_args.args[0]
    assert received.method == "POST"
    assert received.path_segments == ("users", "me")
