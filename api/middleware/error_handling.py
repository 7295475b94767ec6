from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.schemas.responses import ErrorResponse
from core.logging import get_error_logger_safe

logger = get_error_logger_safe("api.middleware.error_handling")


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns any exception escaping a route into a generic 500 JSON body."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(
                "Unhandled API exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
                exc_info=True
            )
            body = ErrorResponse(
                error="internal_error",
                message="An unexpected error occurred",
                details={"path": request.url.path},
            )
            return JSONResponse(status_code=500, content=body.model_dump(mode="json"))
