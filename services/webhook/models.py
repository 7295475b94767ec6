"""Webhook envelope and batch response models."""

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, Field

from core.trading.models import OrderResult

BATCH_COMPLETED_MESSAGE = "Order placement process completed."


@dataclass(frozen=True)
class WebhookEnvelope:
    """Authentication-relevant parts of an inbound call.

    ``raw_body`` holds the bytes exactly as received; parsing happens only
    after the signature over them has been verified.
    """
    signature_header: Optional[str]
    timestamp_header: Optional[str]
    raw_body: Optional[bytes]


class BatchResponse(BaseModel):
    """Aggregate outcome of a processed batch (always HTTP 200)."""
    message: str = BATCH_COMPLETED_MESSAGE
    results: List[OrderResult] = Field(default_factory=list)
