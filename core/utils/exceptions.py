# Structured exception hierarchy for the DipSip order relay

from typing import Dict, Any, Optional
from datetime import datetime, timezone


class DipSipException(Exception):
    """Base exception for all relay specific errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 correlation_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.correlation_id = correlation_id
        self.timestamp = datetime.now(timezone.utc)


class TransientError(DipSipException):
    """Base class for transient errors that may succeed when retried"""

    def __init__(self, message: str, retry_count: int = 0, max_retries: int = 3,
                 details: Optional[Dict[str, Any]] = None, correlation_id: Optional[str] = None):
        super().__init__(message, details, correlation_id)
        self.retry_count = retry_count
        self.max_retries = max_retries
        self.retryable = retry_count < max_retries


class PermanentError(DipSipException):
    """Base class for permanent errors that must not be retried"""
    pass


class RequestRejectedError(PermanentError):
    """An inbound request rejected before any order is dispatched.

    ``status_code`` is the HTTP status the API layer answers with and
    ``error_code`` a stable machine-readable label.
    """

    status_code: int = 400
    error_code: str = "bad_request"


# Webhook Authentication Errors
class WebhookVerificationError(RequestRejectedError):
    """Base class for webhook signature/freshness failures"""
    pass


class MalformedRequestError(WebhookVerificationError):
    """Missing or ill-formed webhook headers or body"""
    status_code = 400
    error_code = "malformed_request"


class UnsupportedSignatureVersionError(WebhookVerificationError):
    """Signature header does not use a known scheme (``v1=<hex>``)"""
    status_code = 400
    error_code = "unsupported_signature_version"


class StaleTimestampError(WebhookVerificationError):
    """Timestamp unparseable or older than the replay window"""
    status_code = 403
    error_code = "stale_or_invalid_timestamp"


class SignatureMismatchError(WebhookVerificationError):
    """HMAC digest does not match - request not authentic or tampered"""
    status_code = 401
    error_code = "signature_mismatch"


# Payload Errors
class EmptyOrInvalidPayloadError(RequestRejectedError):
    """Verified request carrying no orders to process"""
    status_code = 400
    error_code = "empty_or_invalid_payload"


class InvalidInstructionError(PermanentError):
    """A single batch item cannot be turned into an order"""

    def __init__(self, message: str, symbol: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.symbol = symbol


# Broker Integration Errors
class BrokerError(TransientError):
    """Base class for broker integration errors"""

    def __init__(self, message: str, broker: str, **kwargs):
        super().__init__(message, **kwargs)
        self.broker = broker


class BrokerConnectionError(BrokerError):
    """The outbound call failed before a response was received"""
    pass


class BrokerTimeoutError(BrokerConnectionError):
    """The outbound call exceeded its timeout"""
    pass


class BrokerAPIError(BrokerError):
    """Broker answered with an error response"""

    def __init__(self, message: str, broker: str, status_code: Optional[int] = None,
                 api_error_code: Optional[str] = None,
                 api_response: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, broker, **kwargs)
        self.status_code = status_code
        self.api_error_code = api_error_code
        self.api_response = api_response or {}


class BrokerRateLimitError(BrokerAPIError):
    """Broker kept answering HTTP 429 after the retry budget was spent"""
    pass


# Configuration Errors
class ConfigurationError(PermanentError):
    """Configuration validation errors"""

    def __init__(self, message: str, config_field: str, config_value: Any = None,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.config_field = config_field
        self.config_value = config_value


def is_retryable_error(error: Exception) -> bool:
    """
    Determine if an error should be retried

    Returns:
        True if error is transient and retryable, False otherwise
    """
    if isinstance(error, TransientError):
        return error.retryable
    return False


def get_retry_delay(retry_count: int, base_delay: float = 1.0, multiplier: float = 2.0,
                    max_delay: Optional[float] = None) -> float:
    """
    Calculate exponential backoff delay for the given retry attempt

    Args:
        retry_count: Number of retries already performed (0 for the first retry)
        base_delay: Base delay in seconds
        multiplier: Growth factor per attempt
        max_delay: Optional cap on the returned delay

    Returns:
        Delay in seconds before retry
    """
    delay = base_delay * (multiplier ** retry_count)
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


def create_error_context(error: Exception, operation: str,
                         additional_context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Create structured error context for logging and monitoring

    Args:
        error: The exception that occurred
        operation: The operation that failed
        additional_context: Additional context information

    Returns:
        Structured error context dictionary
    """
    context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "operation": operation,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "retryable": is_retryable_error(error)
    }

    if isinstance(error, DipSipException):
        if error.correlation_id:
            context["correlation_id"] = error.correlation_id
        if error.details:
            context["error_details"] = error.details

        if isinstance(error, TransientError):
            context["retry_count"] = error.retry_count
            context["max_retries"] = error.max_retries

        if isinstance(error, BrokerError):
            context["broker"] = error.broker

        if isinstance(error, BrokerAPIError):
            context["status_code"] = error.status_code
            if error.api_error_code:
                context["api_error_code"] = error.api_error_code

    if additional_context:
        context.update(additional_context)

    return context
