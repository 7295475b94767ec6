import uvicorn
from typing import Optional
from fastapi import FastAPI
from fastapi.responses import Response
from contextlib import asynccontextmanager
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.containers import AppContainer
from api.middleware.request_ids import RequestIdMiddleware
from api.middleware.error_handling import ErrorHandlingMiddleware
from api.routers import webhook
from api.schemas.responses import HealthResponse
from core.logging import get_api_logger_safe, configure_logging
from services.auth.exceptions import CredentialUnavailableError

logger = get_api_logger_safe("api.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    container = app.state.container
    settings = container.settings()
    logger.info("Starting DipSip relay API server",
                environment=settings.environment.value,
                max_concurrency=settings.zerodha.max_concurrency)

    services = container.lifespan_services()
    for service in services:
        await service.start()

    yield

    logger.info("Shutting down DipSip relay API server")
    for service in reversed(services):
        try:
            await service.stop()
        except Exception as e:
            logger.error("Error stopping service", service=type(service).__name__, error=str(e))
    await container.http_client().aclose()


def _build_uvicorn_log_config() -> dict:
    """Levels only; handlers stay as wired by the structlog setup."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "loggers": {
            "uvicorn": {"level": "INFO", "propagate": False},
            "uvicorn.error": {"level": "INFO", "propagate": False},
            "uvicorn.access": {"level": "INFO", "propagate": False},
            "fastapi": {"level": "INFO", "propagate": False},
        },
    }


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    """Creates and configures the FastAPI application"""
    container = container or AppContainer()
    settings = container.settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="Receives signed ETF buy signals and places them as Zerodha Kite orders.",
        lifespan=lifespan,
    )
    app.state.container = container

    configure_logging(settings)

    app.state.prom_registry = container.prometheus_registry()
    # Instantiate the collector so its metrics are registered before the first scrape
    container.prometheus_metrics()

    container.wire(modules=["api.routers.webhook"])

    # Last added runs outermost: request IDs wrap error handling
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(webhook.router)

    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    def health_check():
        try:
            container.credential_cache().load()
            credential_available = True
        except CredentialUnavailableError:
            credential_available = False
        return HealthResponse(
            status="healthy",
            service="dipsip-relay",
            version=settings.version,
            credential_available=credential_available,
        )

    if settings.monitoring.metrics_enabled:
        @app.get("/metrics", tags=["Monitoring"])
        def metrics():
            data = generate_latest(app.state.prom_registry)
            return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


def run(container: Optional[AppContainer] = None):
    """Main function to run the API server"""
    app = create_app(container)
    settings = app.state.container.settings()
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.effective_port(),
        log_level=settings.logging.level.lower(),
        access_log=True,
        log_config=_build_uvicorn_log_config(),
    )


if __name__ == "__main__":
    run()
