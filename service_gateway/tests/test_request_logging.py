"""
Tests for the Gateway request logging middleware.
"""

import asyncio

import pytest
from unittest.mock import MagicMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient

from service_gateway.app.middleware.request_logging import RequestLoggingMiddleware
from service_gateway.app.routing import RouteDefinition, RouteTable
from shared.metrics import MetricsCollector


@pytest.fixture
def metrics():
    return MetricsCollector("gateway")


@pytest.fixture
def logger():
    """Logger handed to the middleware when Starlette builds it."""
    mock_logger = MagicMock()
    with patch("service_gateway.app.middleware.request_logging.get_logger", return_value=mock_logger):
        yield mock_logger


@pytest.fixture
def app(metrics, logger):
    app = FastAPI()

    @app.get("/api/invoices/{invoice_id}")
    async def invoice(invoice_id: str):
        return {"id": invoice_id}

    @app.get("/boom")
    async def boom():
        raise RuntimeError("downstream exploded")

    app.add_middleware(RequestLoggingMiddleware, metrics=metrics)
    return app


def _events(logger):
    return {call.args[0]: call.kwargs for call in logger.info.call_args_list}


def test_logs_start_and_completion(app, logger):
    client = TestClient(app)

    response = client.get(
        "/api/invoices/42?expand=lines",
        headers={"X-Forwarded-For": "1.2.3.4", "X-User-Id": "user-7"},
    )

    assert response.status_code == 200
    events = _events(logger)
    started = events["request.started"]
    assert started["method"] == "GET"
    assert started["uri"].endswith("/api/invoices/42?expand=lines")
    assert started["client_id"] == "1.2.3.4"
    assert started["user_id"] == "user-7"

    completed = events["request.completed"]
    assert completed["status_code"] == 200
    assert completed["duration_ms"] >= 0


def test_anonymous_user_when_header_missing(app, logger):
    TestClient(app).get("/api/invoices/1")

    assert _events(logger)["request.started"]["user_id"] == "anonymous"


def test_non_success_status_recorded(app, logger):
    TestClient(app).get("/api/unknown")

    assert _events(logger)["request.completed"]["status_code"] == 404


def test_completion_logged_when_downstream_raises(app, logger):
    client = TestClient(app)

    with pytest.raises(RuntimeError):
        client.get("/boom")

    completed = _events(logger)["request.completed"]
    assert completed["status_code"] == 500


@pytest.mark.asyncio
async def test_completion_logged_when_client_disconnects(app, logger):
    entered = asyncio.Event()

    @app.get("/slow")
    async def slow():
        entered.set()
        await asyncio.Event().wait()

    request_sent = False

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await asyncio.Event().wait()

    async def send(message):
        pass

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/slow",
        "raw_path": b"/slow",
        "query_string": b"",
        "root_path": "",
        "headers": [(b"host", b"gateway")],
        "client": ("10.0.0.5", 5000),
        "server": ("gateway", 80),
    }

    in_flight = asyncio.create_task(app(scope, receive, send))
    await asyncio.wait_for(entered.wait(), timeout=5)
    in_flight.cancel()

    with pytest.raises(asyncio.CancelledError):
        await in_flight

    completed = _events(logger)["request.completed"]
    assert completed["status_code"] == 499
    assert completed["uri"].endswith("/slow")


def test_request_id_echoed(app):
    client = TestClient(app)

    response = client.get("/api/invoices/1", headers={"X-Request-ID": "req-abc-123"})
    assert response.headers["X-Request-ID"] == "req-abc-123"

    generated = client.get("/api/invoices/1").headers["X-Request-ID"]
    assert generated and generated != "req-abc-123"


def test_http_metrics_recorded(app, metrics):
    TestClient(app).get("/api/invoices/9")

    value = metrics.registry.get_sample_value(
        "http_requests_total",
        {"method": "GET", "endpoint": "/api/invoices/9", "status_code": "200"},
    )
    assert value == 1


def test_endpoint_label_uses_route_prefix(metrics, logger):
    table = RouteTable([RouteDefinition("invoice-service", "/api/invoices", "http://invoices:8082")])
    middleware = RequestLoggingMiddleware(FastAPI(), metrics=metrics, route_table=table)

    assert middleware.endpoint_label("/api/invoices/9", 200) == "/api/invoices"
    assert middleware.endpoint_label("/api/unknown/9", 404) == "unmatched"
    assert middleware.endpoint_label("/health", 200) == "/health"
