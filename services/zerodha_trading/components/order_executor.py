"""
Zerodha (Kite Connect) order execution adapter.

Places a single order through the Kite REST endpoint
(``POST /orders/<variety>``, form-encoded) and turns every failure into a
``BrokerError`` subclass so callers can classify it without touching httpx.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from core.config.settings import ZerodhaSettings
from core.logging import get_trading_logger_safe
from core.trading.interfaces import BrokerOrderClient
from core.utils.exceptions import (
    BrokerAPIError,
    BrokerConnectionError,
    BrokerRateLimitError,
    BrokerTimeoutError,
    get_retry_delay,
)
from services.auth.models import SessionCredential

BROKER = "zerodha"
RATE_LIMIT_STATUS = 429

logger = get_trading_logger_safe("order_executor", broker=BROKER)


def create_http_client(settings: ZerodhaSettings) -> httpx.AsyncClient:
    """Shared client for all order calls; the timeout applies per request."""
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout_seconds))


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _error_details(response: httpx.Response) -> Dict[str, Any]:
    """Kite error bodies look like ``{"status": "error", "message": ..., "error_type": ...}``."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class KiteOrderClient(BrokerOrderClient):
    """Adapter for placing orders via the Kite Connect REST API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: ZerodhaSettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._http = http_client
        self.settings = settings
        self._sleep = sleep

    def _headers(self, credential: SessionCredential) -> Dict[str, str]:
        return {
            "X-Kite-Version": self.settings.api_version,
            "Authorization": credential.authorization_header(),
            "Content-Type": "application/x-www-form-urlencoded",
        }

    async def place_order(self, order: Dict[str, Any], credential: SessionCredential) -> Dict[str, Any]:
        """Place one order, retrying only on HTTP 429.

        Returns:
            The decoded JSON body of the successful response.

        Raises:
            BrokerRateLimitError: still rate limited after the retry budget
            BrokerAPIError: any other non-2xx response
            BrokerTimeoutError: the request timed out
            BrokerConnectionError: the request failed before a response
        """
        retry = self.settings.rate_limit_retry
        symbol = order.get("tradingsymbol")
        attempt = 0

        while True:
            attempt += 1
            response = await self._send(order, credential)

            if response.status_code != RATE_LIMIT_STATUS:
                break

            if attempt >= retry.max_attempts:
                body = _error_details(response)
                raise BrokerRateLimitError(
                    body.get("message") or f"HTTP {RATE_LIMIT_STATUS}",
                    BROKER,
                    status_code=RATE_LIMIT_STATUS,
                    api_error_code=body.get("error_type"),
                    api_response=body,
                    retry_count=attempt - 1,
                    max_retries=retry.max_attempts - 1,
                )

            delay = _parse_retry_after(response)
            if delay is None:
                delay = get_retry_delay(
                    attempt - 1,
                    base_delay=retry.base_delay_seconds,
                    multiplier=retry.backoff_multiplier,
                )
            delay = min(delay, retry.max_delay_seconds)
            logger.warning(
                "Rate limited by Kite, retrying",
                symbol=symbol,
                attempt=attempt,
                max_attempts=retry.max_attempts,
                delay_seconds=delay,
            )
            await self._sleep(delay)

        if response.is_error:
            body = _error_details(response)
            raise BrokerAPIError(
                body.get("message") or f"HTTP {response.status_code}",
                BROKER,
                status_code=response.status_code,
                api_error_code=body.get("error_type"),
                api_response=body,
            )

        try:
            return response.json()
        except ValueError:
            raise BrokerAPIError(
                "Unparseable response body",
                BROKER,
                status_code=response.status_code,
            ) from None

    async def _send(self, order: Dict[str, Any], credential: SessionCredential) -> httpx.Response:
        try:
            return await self._http.post(
                self.settings.orders_url,
                data=order,
                headers=self._headers(credential),
            )
        except httpx.TimeoutException as e:
            raise BrokerTimeoutError(
                f"Request timed out after {self.settings.request_timeout_seconds}s ({type(e).__name__})",
                BROKER,
            ) from e
        except httpx.RequestError as e:
            raise BrokerConnectionError(str(e) or type(e).__name__, BROKER) from e
