from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
from uuid import uuid4

from core.logging.correlation import CorrelationIdManager

CORRELATION_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Give every request a request_id and a correlation_id.

    A caller-supplied ``X-Correlation-ID`` is reused so one signal can be
    traced across retries. Both IDs are echoed on the response and merged
    into every log event emitted while the request is handled.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id

        CorrelationIdManager.clear_correlation()
        incoming = request.headers.get(CORRELATION_HEADER)
        if incoming:
            corr_id = CorrelationIdManager.set_correlation_id(incoming)
        else:
            corr_id = CorrelationIdManager.ensure_correlation_id()
        CorrelationIdManager.set_correlation_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        finally:
            CorrelationIdManager.clear_correlation()

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[CORRELATION_HEADER] = corr_id
        return response
