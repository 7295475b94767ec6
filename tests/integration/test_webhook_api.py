"""
End-to-end tests of the webhook HTTP surface with the Kite endpoint mocked.
"""

import json
import time
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from api.main import create_app
from app.containers import AppContainer
from services.webhook.security import build_signature_headers

pytestmark = pytest.mark.integration

KITE_OK = {"status": "success", "data": {"order_id": "151220000000000"}}


class KiteStub:
    """Mock Kite endpoint; per-symbol responses, records every call."""

    def __init__(self):
        self.requests = []
        self.failures = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        form = dict(pair.split("=", 1) for pair in request.content.decode().split("&"))
        symbol = form.get("tradingsymbol")
        if symbol in self.failures:
            return httpx.Response(400, json={
                "status": "error",
                "message": self.failures[symbol],
                "error_type": "InputException",
            })
        return httpx.Response(200, json=KITE_OK)


@pytest.fixture
def kite():
    return KiteStub()


@pytest.fixture
def container(test_settings, kite):
    container = AppContainer()
    container.settings.override(providers.Object(test_settings))
    container.http_client.override(providers.Object(
        httpx.AsyncClient(transport=httpx.MockTransport(kite))
    ))
    yield container
    container.unwire()
    container.reset_override()


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as test_client:
        yield test_client


@pytest.fixture
def signed_post(client, webhook_secret):
    def _post(path, body, secret=None, timestamp=None, headers=None):
        raw = body if isinstance(body, bytes) else json.dumps(body).encode()
        signed = build_signature_headers(secret or webhook_secret, raw, timestamp=timestamp)
        signed.update(headers or {})
        return client.post(path, content=raw, headers=signed)
    return _post


@pytest.fixture
def todays_credential(write_credential):
    return write_credential(date.today())


def test_valid_batch_places_orders(signed_post, kite, todays_credential):
    response = signed_post("/webhook/etf", [{"symbol": "NIFTYBEES", "quantity": 10.4}])

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Order placement process completed."
    assert body["results"] == [{
        "symbol": "NIFTYBEES",
        "status": "success",
        "data": KITE_OK,
    }]
    assert "data" not in signed_post("/webhook/etf", [{"symbol": "X"}]).json()["results"][0]

    assert len(kite.requests) == 1
    request = kite.requests[0]
    assert request.url.path == "/orders/regular"
    assert request.headers["Authorization"] == "token kite_api_key_123:kite_access_token_abc"
    assert b"quantity=10" in request.content
    assert b"transaction_type=BUY" in request.content
    assert "X-Correlation-ID" in response.headers
    assert "X-Request-ID" in response.headers


def test_one_upstream_failure_still_returns_200(signed_post, kite, todays_credential):
    kite.failures["GOLDBEES"] = "Insufficient funds"

    response = signed_post("/webhook/etf", [
        {"symbol": "NIFTYBEES", "quantity": 5},
        {"symbol": "GOLDBEES", "quantity": 3},
    ])

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["status"] for r in results] == ["success", "error"]
    assert results[1]["symbol"] == "GOLDBEES"
    assert results[1]["message"] == "Kite API error: Insufficient funds"
    assert len(kite.requests) == 2


def test_invalid_items_reported_without_upstream_calls(signed_post, kite, todays_credential):
    response = signed_post("/webhook/etf", [{"symbol": "NIFTYBEES"}, {"quantity": 2}])

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["message"] for r in results] == ["Missing symbol or quantity"] * 2
    assert [r["symbol"] for r in results] == ["NIFTYBEES", "unknown"]
    assert kite.requests == []


def test_tampered_body_rejected_with_401(client, webhook_secret, kite, todays_credential):
    raw = json.dumps([{"symbol": "NIFTYBEES", "quantity": 10}]).encode()
    headers = build_signature_headers(webhook_secret, raw)
    response = client.post("/webhook/etf", content=raw.replace(b"10", b"99"), headers=headers)

    assert response.status_code == 401
    assert response.json()["error"] == "signature_mismatch"
    assert kite.requests == []


def test_stale_timestamp_rejected_with_403(signed_post, kite, todays_credential):
    response = signed_post(
        "/webhook/etf",
        [{"symbol": "NIFTYBEES", "quantity": 10}],
        timestamp=int(time.time()) - 301,
    )
    assert response.status_code == 403
    assert kite.requests == []


def test_missing_headers_rejected_with_400(client, kite):
    response = client.post("/webhook/etf", content=b'[{"symbol":"NIFTYBEES","quantity":1}]')
    assert response.status_code == 400
    assert response.json()["error"] == "malformed_request"
    assert kite.requests == []


def test_unsupported_signature_scheme_rejected_with_400(client, webhook_secret):
    raw = b"[]"
    headers = build_signature_headers(webhook_secret, raw)
    headers["X-DipSip-Signature"] = headers["X-DipSip-Signature"].replace("v1=", "v2=")
    response = client.post("/webhook/etf", content=raw, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "unsupported_signature_version"


@pytest.mark.parametrize("body", [[], {"symbol": "NIFTYBEES", "quantity": 1}])
def test_empty_or_non_list_payload_rejected_with_400(signed_post, kite, todays_credential, body):
    response = signed_post("/webhook/etf", body)
    assert response.status_code == 400
    assert response.json()["message"] == "Payload must be a non-empty JSON array of instruments."
    assert kite.requests == []


def test_non_json_body_rejected_with_400(signed_post, kite):
    response = signed_post("/webhook/etf", b"not json at all")
    assert response.status_code == 400
    assert response.json()["error"] == "malformed_request"
    assert kite.requests == []


def test_missing_credential_returns_500_without_upstream_calls(signed_post, kite):
    response = signed_post("/webhook/etf", [{"symbol": "NIFTYBEES", "quantity": 10}])

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to retrieve customer's Zerodha access token."
    assert kite.requests == []


def test_yesterdays_credential_is_not_used(signed_post, kite, write_credential):
    write_credential(date.today() - timedelta(days=1))
    response = signed_post("/webhook/etf", [{"symbol": "NIFTYBEES", "quantity": 10}])
    assert response.status_code == 500
    assert kite.requests == []


def test_ping(signed_post, client):
    response = signed_post("/webhook/ping", b"{}")
    assert response.status_code == 200
    assert response.json() == {"message": "Pong from DipSipClient"}

    assert client.post("/webhook/ping", content=b"{}").status_code == 400


def test_health_reports_credential_presence(client, write_credential):
    assert client.get("/health").json()["credential_available"] is False
    write_credential(date.today())
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["credential_available"] is True


def test_health_treats_undecodable_record_as_unavailable(client, write_credential):
    write_credential(date.today()).write_bytes(b'{"data": "\xff\xfe"}')
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["credential_available"] is False


def test_metrics_exposes_relay_counters(signed_post, client, todays_credential):
    signed_post("/webhook/etf", [{"symbol": "NIFTYBEES", "quantity": 1}])
    response = client.get("/metrics")
    assert response.status_code == 200
    registry = client.app.state.prom_registry
    assert registry.get_sample_value(
        "webhook_requests_total", {"route": "etf", "outcome": "accepted"}
    ) == 1.0
    assert "orders_dispatched_total" in response.text


def test_unexpected_failure_becomes_generic_500(test_settings, webhook_secret):
    container = AppContainer()
    container.settings.override(providers.Object(test_settings))
    broken = MagicMock()
    broken.process_etf_batch = AsyncMock(side_effect=RuntimeError("boom"))
    container.relay_service.override(providers.Object(broken))
    try:
        with TestClient(create_app(container)) as client:
            raw = b'[{"symbol":"NIFTYBEES","quantity":1}]'
            response = client.post(
                "/webhook/etf", content=raw, headers=build_signature_headers(webhook_secret, raw)
            )
    finally:
        container.unwire()
        container.reset_override()

    assert response.status_code == 500
    assert response.json()["error"] == "internal_error"
