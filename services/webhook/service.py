"""Webhook relay orchestration: verify, validate, load credential, dispatch."""

import json
from typing import Any, List, Optional

from core.logging import get_api_logger_safe, get_audit_logger_safe, get_error_logger_safe
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from core.utils.exceptions import (
    EmptyOrInvalidPayloadError,
    MalformedRequestError,
    RequestRejectedError,
)
from services.auth.credential_cache import CredentialCache
from services.auth.exceptions import CredentialUnavailableError
from services.zerodha_trading.dispatcher import OrderDispatcher
from .models import BatchResponse, WebhookEnvelope
from .security import SignatureVerifier

EMPTY_PAYLOAD_MESSAGE = "Payload must be a non-empty JSON array of instruments."
CREDENTIAL_UNAVAILABLE_MESSAGE = "Failed to retrieve customer's Zerodha access token."


class WebhookRelayService:
    """Composes SignatureVerifier, CredentialCache and OrderDispatcher.

    Verification and payload-shape failures abort before anything is
    dispatched. A missing credential aborts the whole batch. Per-item
    failures are handled inside the dispatcher and never surface here.
    """

    def __init__(
        self,
        verifier: SignatureVerifier,
        credential_cache: CredentialCache,
        dispatcher: OrderDispatcher,
        prometheus_metrics: Optional[PrometheusMetricsCollector] = None,
    ):
        self.verifier = verifier
        self.credential_cache = credential_cache
        self.dispatcher = dispatcher
        self.prom_metrics = prometheus_metrics
        self.api_logger = get_api_logger_safe("webhook_relay")
        self.audit_logger = get_audit_logger_safe("webhook_audit")
        self.error_logger = get_error_logger_safe("webhook_relay_errors")

    def authenticate(self, envelope: WebhookEnvelope, route: str) -> None:
        """Verify signature and freshness, logging the decision."""
        try:
            self.verifier.verify(
                envelope.signature_header,
                envelope.timestamp_header,
                envelope.raw_body,
            )
        except RequestRejectedError as e:
            self.audit_logger.warning(
                "Webhook rejected",
                route=route,
                reason=e.error_code,
                detail=e.message,
                status_code=e.status_code,
            )
            self._record(route, e.error_code)
            raise
        self.audit_logger.info("Webhook signature verified", route=route)

    async def verify_ping(self, envelope: WebhookEnvelope) -> None:
        """Authenticated liveness probe."""
        self.authenticate(envelope, "ping")
        self._record("ping", "accepted")

    async def process_etf_batch(self, envelope: WebhookEnvelope) -> BatchResponse:
        """Handle one signed batch of ETF buy instructions."""
        route = "etf"
        self.authenticate(envelope, route)

        try:
            orders = self._parse_orders(envelope.raw_body)
            credential = self._load_credential()
        except RequestRejectedError as e:
            self._record(route, e.error_code)
            raise

        self.api_logger.info("Dispatching order batch", route=route, items=len(orders))
        results = await self.dispatcher.dispatch(orders, credential)
        self._record(route, "accepted")
        return BatchResponse(results=results)

    def _parse_orders(self, raw_body: bytes) -> List[Any]:
        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError):
            self.error_logger.error("Valid signature, but body is not JSON")
            raise MalformedRequestError("Request body is not valid JSON") from None

        if not isinstance(payload, list) or not payload:
            self.error_logger.error(
                "Valid signature, but payload is empty or invalid",
                payload_type=type(payload).__name__,
            )
            raise EmptyOrInvalidPayloadError(EMPTY_PAYLOAD_MESSAGE)
        return payload

    def _load_credential(self):
        try:
            return self.credential_cache.load()
        except CredentialUnavailableError as e:
            self.error_logger.error(
                "Failed to retrieve a valid Zerodha access token",
                reason=type(e).__name__,
                detail=e.message,
            )
            raise CredentialUnavailableError(
                CREDENTIAL_UNAVAILABLE_MESSAGE,
                details=e.details,
            ) from e

    def _record(self, route: str, outcome: str) -> None:
        if self.prom_metrics:
            self.prom_metrics.record_webhook(route, outcome)
