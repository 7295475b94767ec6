# DI container for the DipSip relay
from dependency_injector import containers, providers
from prometheus_client import CollectorRegistry

from core.config.settings import Settings
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from services.auth.credential_cache import CredentialCache, FileCredentialStore
from services.auth.sweeper import CredentialSweeper
from services.webhook.security import SignatureVerifier
from services.webhook.service import WebhookRelayService
from services.zerodha_trading.components.order_executor import KiteOrderClient, create_http_client
from services.zerodha_trading.dispatcher import OrderDispatcher


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    # --- Observability: Prometheus ---
    # Shared registry used by the /metrics endpoint and the collector
    prometheus_registry = providers.Singleton(CollectorRegistry)
    prometheus_metrics = providers.Singleton(
        PrometheusMetricsCollector,
        registry=prometheus_registry,
        settings=settings,
    )

    # Inbound authentication
    signature_verifier = providers.Singleton(
        SignatureVerifier,
        secret=settings.provided.effective_webhook_secret.call(),
        max_skew_seconds=settings.provided.webhook.max_skew_seconds,
    )

    # Date-scoped credential lookup
    credential_store = providers.Singleton(
        FileCredentialStore,
        root=settings.provided.effective_data_root.call(),
        subdirectory=settings.provided.credential_store.subdirectory,
        extension=settings.provided.credential_store.file_extension,
    )
    credential_cache = providers.Singleton(
        CredentialCache,
        store=credential_store,
        timezone=settings.provided.credential_store.timezone,
    )
    credential_sweeper = providers.Singleton(
        CredentialSweeper,
        credential_cache=credential_cache,
        interval_seconds=settings.provided.credential_store.sweep_interval_seconds,
        prometheus_metrics=prometheus_metrics,
    )

    # Outbound order placement
    http_client = providers.Singleton(
        create_http_client,
        settings=settings.provided.zerodha,
    )
    order_client = providers.Singleton(
        KiteOrderClient,
        http_client=http_client,
        settings=settings.provided.zerodha,
    )
    order_dispatcher = providers.Singleton(
        OrderDispatcher,
        order_client=order_client,
        max_concurrency=settings.provided.zerodha.max_concurrency,
        order_defaults=settings.provided.zerodha.order_defaults,
        prometheus_metrics=prometheus_metrics,
    )

    # Webhook orchestration
    relay_service = providers.Singleton(
        WebhookRelayService,
        verifier=signature_verifier,
        credential_cache=credential_cache,
        dispatcher=order_dispatcher,
        prometheus_metrics=prometheus_metrics,
    )

    # Started and stopped with the API lifespan
    lifespan_services = providers.List(
        credential_sweeper,
    )
