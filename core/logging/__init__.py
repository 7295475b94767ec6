# Structured logging with channel support
import structlog

from core.config.settings import Settings
from .channels import LogChannel
from .correlation import CorrelationIdManager
from .enhanced_logging import (
    configure_enhanced_logging,
    get_channel_logger,
    get_trading_logger,
    get_api_logger,
    get_audit_logger,
    get_error_logger,
)


def configure_logging(settings: Settings) -> None:
    """Configure logging system (idempotent)."""
    configure_enhanced_logging(settings)


def get_trading_logger_safe(name: str, **initial_values) -> structlog.BoundLogger:
    """Get a trading logger; extra keyword values are bound to every event."""
    return get_trading_logger(name, **initial_values)


def get_api_logger_safe(name: str, **initial_values) -> structlog.BoundLogger:
    """Get an API logger safely."""
    return get_api_logger(name, **initial_values)


def get_audit_logger_safe(name: str, **initial_values) -> structlog.BoundLogger:
    """Get an audit logger safely."""
    return get_audit_logger(name, **initial_values)


def get_error_logger_safe(name: str, **initial_values) -> structlog.BoundLogger:
    """Get an error logger safely."""
    return get_error_logger(name, **initial_values)


__all__ = [
    "configure_logging",
    "get_trading_logger_safe",
    "get_api_logger_safe",
    "get_audit_logger_safe",
    "get_error_logger_safe",
    "LogChannel",
    "CorrelationIdManager",
    "get_channel_logger",
]
