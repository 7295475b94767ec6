from pydantic import BaseModel, Field
from typing import Optional, Any, Dict
from datetime import datetime, timezone

from services.webhook.models import BatchResponse

PONG_MESSAGE = "Pong from DipSipClient"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class PingResponse(BaseModel):
    message: str = PONG_MESSAGE


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: datetime = Field(default_factory=_utcnow)
    # Whether a credential for today is present and parseable
    credential_available: bool


__all__ = ["BatchResponse", "ErrorResponse", "PingResponse", "HealthResponse", "PONG_MESSAGE"]
