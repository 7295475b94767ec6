"""Signed webhook intake for ETF order batches."""

from .models import BatchResponse, WebhookEnvelope
from .security import (
    SignatureVerifier,
    build_signature_headers,
    compute_signature,
    verify_signature,
)
from .service import WebhookRelayService

__all__ = [
    "BatchResponse",
    "WebhookEnvelope",
    "SignatureVerifier",
    "build_signature_headers",
    "compute_signature",
    "verify_signature",
    "WebhookRelayService",
]
