"""
Unit tests for the Kite order adapter against a mocked transport.
"""

from urllib.parse import parse_qs

import httpx
import pytest

from core.utils.exceptions import (
    BrokerAPIError,
    BrokerConnectionError,
    BrokerRateLimitError,
    BrokerTimeoutError,
)
from services.zerodha_trading.components.order_executor import KiteOrderClient

ORDER = {
    "tradingsymbol": "NIFTYBEES",
    "quantity": 10,
    "exchange": "NSE",
    "transaction_type": "BUY",
    "order_type": "MARKET",
    "product": "CNC",
    "validity": "DAY",
}
SUCCESS_BODY = {"status": "success", "data": {"order_id": "151220000000000"}}


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def _client(handler, test_settings, sleep=None):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return KiteOrderClient(http, test_settings.zerodha, sleep=sleep or RecordingSleep())


@pytest.mark.asyncio
async def test_places_form_encoded_order_with_session_headers(test_settings, session_credential):
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json=SUCCESS_BODY)

    client = _client(handler, test_settings)
    result = await client.place_order(ORDER, session_credential)

    assert result == SUCCESS_BODY
    assert len(seen) == 1
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://kite.test/orders/regular"
    assert request.headers["X-Kite-Version"] == "3"
    assert request.headers["Authorization"] == "token kite_api_key_123:kite_access_token_abc"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    form = parse_qs(request.content.decode())
    assert form["tradingsymbol"] == ["NIFTYBEES"]
    assert form["quantity"] == ["10"]
    assert form["product"] == ["CNC"]


@pytest.mark.asyncio
async def test_error_status_raises_api_error_with_kite_message(test_settings, session_credential):
    def handler(request):
        return httpx.Response(400, json={
            "status": "error",
            "message": "Insufficient funds",
            "error_type": "InputException",
        })

    client = _client(handler, test_settings)
    with pytest.raises(BrokerAPIError) as exc_info:
        await client.place_order(ORDER, session_credential)

    error = exc_info.value
    assert error.message == "Insufficient funds"
    assert error.status_code == 400
    assert error.api_error_code == "InputException"
    assert not isinstance(error, BrokerRateLimitError)


@pytest.mark.asyncio
async def test_error_without_json_body_uses_status(test_settings, session_credential):
    client = _client(lambda request: httpx.Response(503, text="upstream down"), test_settings)
    with pytest.raises(BrokerAPIError) as exc_info:
        await client.place_order(ORDER, session_credential)
    assert exc_info.value.message == "HTTP 503"


@pytest.mark.asyncio
async def test_rate_limited_then_succeeds(test_settings, session_credential):
    responses = iter([
        httpx.Response(429, json={"status": "error", "message": "Too many requests"}),
        httpx.Response(429, headers={"Retry-After": "1.5"}),
        httpx.Response(200, json=SUCCESS_BODY),
    ])
    sleep = RecordingSleep()
    client = _client(lambda request: next(responses), test_settings, sleep=sleep)

    result = await client.place_order(ORDER, session_credential)

    assert result == SUCCESS_BODY
    # First backoff from the policy, second from Retry-After
    assert sleep.delays == [0.5, 1.5]


@pytest.mark.asyncio
async def test_rate_limit_retries_exhausted(test_settings, session_credential):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, headers={"Retry-After": "60"},
                              json={"status": "error", "message": "Too many requests"})

    sleep = RecordingSleep()
    client = _client(handler, test_settings, sleep=sleep)
    with pytest.raises(BrokerRateLimitError) as exc_info:
        await client.place_order(ORDER, session_credential)

    assert len(calls) == 3
    # Retry-After is capped by max_delay_seconds
    assert sleep.delays == [5.0, 5.0]
    assert exc_info.value.status_code == 429
    assert exc_info.value.message == "Too many requests"


@pytest.mark.asyncio
async def test_timeout_is_distinguished(test_settings, session_credential):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler, test_settings)
    with pytest.raises(BrokerTimeoutError):
        await client.place_order(ORDER, session_credential)


@pytest.mark.asyncio
async def test_connection_failure_is_network_error(test_settings, session_credential):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler, test_settings)
    with pytest.raises(BrokerConnectionError) as exc_info:
        await client.place_order(ORDER, session_credential)
    assert not isinstance(exc_info.value, BrokerTimeoutError)
    assert "connection refused" in exc_info.value.message


@pytest.mark.asyncio
async def test_unparseable_success_body(test_settings, session_credential):
    client = _client(lambda request: httpx.Response(200, text="<html>"), test_settings)
    with pytest.raises(BrokerAPIError) as exc_info:
        await client.place_order(ORDER, session_credential)
    assert exc_info.value.message == "Unparseable response body"
