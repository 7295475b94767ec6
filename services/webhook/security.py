"""Webhook signature verification.

Scheme ``v1``: the sender computes
``hex(HMAC-SHA256(secret, "v1:" + <timestamp header> + "." + <raw body>))`` and
sends it as ``<prefix>-Signature: v1=<hex>`` next to
``<prefix>-Timestamp: <unix seconds>``. Timestamps older than the replay
window are refused; future timestamps are accepted.
"""

import hashlib
import hmac
import time
from typing import Callable, Dict, Optional, Union

from core.utils.exceptions import (
    MalformedRequestError,
    SignatureMismatchError,
    StaleTimestampError,
    UnsupportedSignatureVersionError,
)

SIGNATURE_VERSION = "v1"
DEFAULT_MAX_SKEW_SECONDS = 300

BytesLike = Union[bytes, str]


def _to_bytes(value: BytesLike) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def compute_signature(secret: BytesLike, timestamp: str, raw_body: BytesLike) -> str:
    """Hex HMAC-SHA256 over ``v1:<timestamp>.<raw body>``."""
    signed_payload = (
        f"{SIGNATURE_VERSION}:{timestamp}.".encode("utf-8") + _to_bytes(raw_body)
    )
    return hmac.new(_to_bytes(secret), signed_payload, hashlib.sha256).hexdigest()


def build_signature_headers(
    secret: BytesLike,
    raw_body: BytesLike,
    timestamp: Optional[int] = None,
    header_prefix: str = "X-DipSip",
) -> Dict[str, str]:
    """Headers a sender attaches to a webhook call."""
    ts = str(int(time.time()) if timestamp is None else timestamp)
    digest = compute_signature(secret, ts, raw_body)
    return {
        f"{header_prefix}-Signature": f"{SIGNATURE_VERSION}={digest}",
        f"{header_prefix}-Timestamp": ts,
    }


class SignatureVerifier:
    """Validates authenticity and freshness of inbound webhook calls."""

    def __init__(
        self,
        secret: BytesLike,
        max_skew_seconds: int = DEFAULT_MAX_SKEW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._secret = _to_bytes(secret)
        self.max_skew_seconds = max_skew_seconds
        self._clock = clock

    def verify(
        self,
        signature_header: Optional[str],
        timestamp_header: Optional[str],
        raw_body: Optional[BytesLike],
    ) -> None:
        """Raise a ``WebhookVerificationError`` subclass unless the call is authentic.

        Checks run in order and stop at the first failure, so no HMAC is
        computed for a malformed or stale request.
        """
        if not signature_header or not timestamp_header or raw_body is None:
            raise MalformedRequestError("Missing required webhook headers or body")

        version, sep, supplied_digest = signature_header.partition("=")
        if not sep or version != SIGNATURE_VERSION or not supplied_digest:
            raise UnsupportedSignatureVersionError(
                "Invalid signature format",
                details={"version": version or None},
            )

        try:
            timestamp = int(timestamp_header.strip(), 10)
        except ValueError:
            raise StaleTimestampError("Timestamp is invalid") from None

        oldest_allowed = int(self._clock()) - self.max_skew_seconds
        if timestamp < oldest_allowed:
            raise StaleTimestampError(
                "Timestamp is too old",
                details={"timestamp": timestamp, "oldest_allowed": oldest_allowed},
            )

        expected = compute_signature(self._secret, timestamp_header, raw_body)
        if not hmac.compare_digest(expected.encode("ascii"), supplied_digest.encode("utf-8")):
            raise SignatureMismatchError("Invalid signature")


def verify_signature(
    signature_header: Optional[str],
    timestamp_header: Optional[str],
    raw_body: Optional[BytesLike],
    shared_secret: BytesLike,
    max_skew_seconds: int = DEFAULT_MAX_SKEW_SECONDS,
) -> None:
    """Functional form of :meth:`SignatureVerifier.verify`."""
    SignatureVerifier(shared_secret, max_skew_seconds).verify(
        signature_header, timestamp_header, raw_body
    )
