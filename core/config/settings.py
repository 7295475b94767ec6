# Complete settings with ALL required sections
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from pydantic import AliasChoices
from enum import Enum
from typing import Dict, List, Optional
from pathlib import Path


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class WebhookSettings(BaseModel):
    # Shared HMAC secret agreed with the signal provider
    secret: str = ""
    # One-sided replay window: only stale timestamps are rejected
    max_skew_seconds: int = 300
    # Produces X-DipSip-Signature / X-DipSip-Timestamp
    header_prefix: str = "X-DipSip"

    @property
    def signature_header(self) -> str:
        return f"{self.header_prefix}-Signature"

    @property
    def timestamp_header(self) -> str:
        return f"{self.header_prefix}-Timestamp"


class CredentialStoreSettings(BaseModel):
    data_root_folder: str = ""
    subdirectory: str = "kite_access_token"
    file_extension: str = "json"
    # pytz zone name used to decide "today"; None means the process's local zone
    timezone: Optional[str] = None
    # Periodic sweep of credential files for other dates (0 disables)
    sweep_interval_seconds: int = 0


class RateLimitRetrySettings(BaseModel):
    """Retry policy for HTTP 429 responses from the order endpoint"""
    max_attempts: int = 3
    base_delay_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay_seconds: float = 5.0


class ZerodhaSettings(BaseModel):
    api_base_url: str = "https://api.kite.trade"
    api_version: str = "3"
    order_variety: str = "regular"
    request_timeout_seconds: float = 10.0
    # Upper bound on in-flight order calls per batch; 1 keeps placement sequential
    max_concurrency: int = 1
    order_defaults: Dict[str, str] = Field(
        default_factory=lambda: {
            "exchange": "NSE",
            "transaction_type": "BUY",
            "order_type": "MARKET",
            "product": "CNC",
            "validity": "DAY",
        },
        description="Fixed fields merged into every outbound order",
    )
    rate_limit_retry: RateLimitRetrySettings = RateLimitRetrySettings()

    @field_validator("max_concurrency")
    @classmethod
    def validate_max_concurrency(cls, v):
        if v < 1:
            raise ValueError("max_concurrency must be at least 1")
        return v

    @property
    def orders_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/orders/{self.order_variety}"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    console_json_format: bool = False  # Plain text for console by default
    # Redaction
    redact_keys: list[str] = [
        "authorization", "access_token", "api_key", "api_secret",
        "password", "secret", "token", "signature",
    ]


class MonitoringSettings(BaseModel):
    metrics_enabled: bool = True

    class PrometheusBuckets(BaseModel):
        order_latency_seconds: list[float] = [
            0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0
        ]
        batch_size: list[float] = [1, 2, 5, 10, 20, 50, 100]

    prometheus_buckets: PrometheusBuckets = PrometheusBuckets()


class APISettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 4000


class Settings(BaseSettings):
    """Main application settings, loaded from environment variables"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore"
    )

    app_name: str = "DipSip Relay"
    version: str = "1.0.0"
    environment: Environment = Environment.DEVELOPMENT

    webhook: WebhookSettings = WebhookSettings()
    credential_store: CredentialStoreSettings = CredentialStoreSettings()
    zerodha: ZerodhaSettings = ZerodhaSettings()
    logging: LoggingSettings = LoggingSettings()
    monitoring: MonitoringSettings = MonitoringSettings()
    api: APISettings = APISettings()

    # Flat variables used by existing deployments; they take precedence over
    # the nested forms when set.
    webhook_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("WEBHOOK_SECRET"),
    )
    data_root_folder: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DATA_ROOT_FOLDER"),
    )
    port: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("PORT"),
    )

    def effective_webhook_secret(self) -> str:
        if self.webhook_secret:
            return self.webhook_secret
        return self.webhook.secret

    def effective_data_root(self) -> str:
        if self.data_root_folder:
            return self.data_root_folder
        return self.credential_store.data_root_folder

    def effective_port(self) -> int:
        if self.port is not None:
            return self.port
        return self.api.port

    @property
    def credential_dir(self) -> Path:
        """Directory holding the date-scoped credential files"""
        return Path(self.effective_data_root()) / self.credential_store.subdirectory


# No global settings instance - use dependency injection instead
