from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from dependency_injector.wiring import inject, Provide
import time

from app.containers import AppContainer
from core.config.settings import Settings
from core.utils.exceptions import RequestRejectedError
from services.webhook.models import BatchResponse, WebhookEnvelope
from services.webhook.service import WebhookRelayService
from api.schemas.responses import ErrorResponse, PingResponse
from core.logging.enhanced_logging import get_api_logger

router = APIRouter(prefix="/webhook", tags=["Webhook"])

api_logger = get_api_logger("webhook_api")

REJECTION_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Malformed request or empty payload"},
    401: {"model": ErrorResponse, "description": "Signature mismatch"},
    403: {"model": ErrorResponse, "description": "Stale or invalid timestamp"},
    500: {"model": ErrorResponse, "description": "Credential unavailable"},
}


async def _read_envelope(request: Request, settings: Settings) -> WebhookEnvelope:
    """Capture headers and the raw body bytes before anything parses them."""
    return WebhookEnvelope(
        signature_header=request.headers.get(settings.webhook.signature_header),
        timestamp_header=request.headers.get(settings.webhook.timestamp_header),
        raw_body=await request.body(),
    )


def _rejection_response(error: RequestRejectedError) -> JSONResponse:
    body = ErrorResponse(error=error.error_code, message=error.message)
    return JSONResponse(status_code=error.status_code, content=body.model_dump(mode="json"))


@router.post(
    "/etf",
    response_model=BatchResponse,
    response_model_exclude_none=True,
    responses=REJECTION_RESPONSES,
)
@inject
async def place_etf_orders(
    request: Request,
    relay_service: WebhookRelayService = Depends(Provide[AppContainer.relay_service]),
    settings: Settings = Depends(Provide[AppContainer.settings]),
):
    """
    Verify a signed batch of ETF buy instructions and place one order per item.

    Item failures are reported inside ``results``; the call itself still
    answers 200.
    """
    start_time = time.time()
    client_ip = request.client.host if request.client else "unknown"
    envelope = await _read_envelope(request, settings)

    try:
        response = await relay_service.process_etf_batch(envelope)
    except RequestRejectedError as e:
        api_logger.warning("Webhook batch rejected",
                           client_ip=client_ip,
                           error_code=e.error_code,
                           response_code=e.status_code,
                           processing_time_ms=(time.time() - start_time) * 1000)
        return _rejection_response(e)

    api_logger.info("Webhook batch processed",
                    client_ip=client_ip,
                    items=len(response.results),
                    response_code=200,
                    processing_time_ms=(time.time() - start_time) * 1000)
    return response


@router.post("/ping", response_model=PingResponse, responses=REJECTION_RESPONSES)
@inject
async def ping(
    request: Request,
    relay_service: WebhookRelayService = Depends(Provide[AppContainer.relay_service]),
    settings: Settings = Depends(Provide[AppContainer.settings]),
):
    """Signed liveness probe for the signal provider."""
    envelope = await _read_envelope(request, settings)
    try:
        await relay_service.verify_ping(envelope)
    except RequestRejectedError as e:
        return _rejection_response(e)
    return PingResponse()
