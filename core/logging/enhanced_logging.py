# Structured logging with channel support and secret redaction
import sys
import logging
from typing import Dict, Iterable, Optional
import structlog

from core.config.settings import Settings
from .channels import LogChannel, get_channel_for_component
from .correlation import CorrelationIdManager

# Global logger manager instance
_logger_manager: Optional['EnhancedLoggerManager'] = None

REDACTED = '[REDACTED]'

DEFAULT_REDACT_KEYS = (
    'authorization', 'access_token', 'api_key', 'api_secret',
    'password', 'secret', 'token', 'signature',
)


def add_correlation_id(logger, name, event_dict):
    """Add correlation ID and request context to log events if available"""
    correlation_id = CorrelationIdManager.get_correlation_id()
    if correlation_id:
        event_dict.setdefault('correlation_id', correlation_id)
        correlation_context = CorrelationIdManager.get_correlation_context()
        request_id = correlation_context.get('request_id')
        if request_id:
            event_dict.setdefault('request_id', request_id)
    return event_dict


def make_redactor(keys: Optional[Iterable[str]] = None):
    """Build a processor that masks sensitive fields recursively."""
    keys_to_redact = {k.lower() for k in (keys or DEFAULT_REDACT_KEYS)}

    def _redact(obj):
        if isinstance(obj, dict):
            out = {}
            for k, v in obj.items():
                if isinstance(k, str) and k.lower() in keys_to_redact:
                    out[k] = REDACTED
                else:
                    out[k] = _redact(v)
            return out
        if isinstance(obj, list):
            return [_redact(v) for v in obj]
        return obj

    def redact_sensitive(logger, name, event_dict):
        return _redact(event_dict)

    return redact_sensitive


def normalize_error(logger, name, event_dict):
    """Map a bare ``error`` field to ``error_message`` for uniform querying."""
    if "error" in event_dict and not event_dict.get("error_message"):
        event_dict["error_message"] = str(event_dict["error"])
    return event_dict


class EnhancedLoggerManager:
    """Logging manager wiring structlog onto the stdlib root logger."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.configured_loggers: Dict[str, structlog.BoundLogger] = {}
        self._setup_console_logging()
        self._configure_structlog()

    def _level(self) -> int:
        return getattr(logging, self.settings.logging.level.upper(), logging.INFO)

    def _setup_console_logging(self) -> None:
        """Setup console logging with configurable format."""
        root_logger = logging.getLogger()
        foreign_chain = [
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
        ]
        console_processor = (
            structlog.processors.JSONRenderer()
            if self.settings.logging.console_json_format
            else structlog.dev.ConsoleRenderer()
        )
        formatter = structlog.stdlib.ProcessorFormatter(
            processor=console_processor,
            foreign_pre_chain=foreign_chain,
        )

        # If a console handler already exists (e.g., set by uvicorn), reconfigure it
        for handler in root_logger.handlers:
            if isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) == sys.stdout:
                handler.setLevel(self._level())
                handler.setFormatter(formatter)
                root_logger.setLevel(self._level())
                return

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self._level())
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
        root_logger.setLevel(self._level())

    def _configure_structlog(self) -> None:
        """Configure structlog with appropriate processors."""

        def add_standard_context(logger, name, event_dict):
            event_dict.setdefault('env', self.settings.environment.value)
            event_dict.setdefault('service', self.settings.app_name)
            event_dict.setdefault('version', self.settings.version)
            return event_dict

        processors = [
            add_correlation_id,
            add_standard_context,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            normalize_error,
            structlog.processors.UnicodeDecoder(),
            make_redactor(self.settings.logging.redact_keys),
            # Defer final rendering to handlers via ProcessorFormatter
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ]

        structlog.configure(
            processors=processors,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def get_logger(self, name: str, component: Optional[str] = None) -> structlog.BoundLogger:
        """Get a structured logger for a component."""
        key = f"{name}:{component}" if component else name
        if key in self.configured_loggers:
            return self.configured_loggers[key]

        logger = structlog.get_logger(name)
        if component:
            logger = logger.bind(
                component=component,
                channel=get_channel_for_component(component).value,
            )
        self.configured_loggers[key] = logger
        return logger


def configure_enhanced_logging(settings: Settings) -> None:
    """Configure the logging system once per process."""
    global _logger_manager
    if _logger_manager is not None:
        return
    _logger_manager = EnhancedLoggerManager(settings)


def get_enhanced_logger(name: str, component: Optional[str] = None, **initial_values) -> structlog.BoundLogger:
    """Get a structured logger instance.

    Before ``configure_enhanced_logging`` runs this returns structlog's lazy
    proxy, which resolves against the processor chain active at first use.
    Module-level loggers therefore pick up redaction and the stdlib handler
    once the application configures logging.
    """
    if _logger_manager is None:
        if component:
            initial_values.setdefault("component", component)
            initial_values.setdefault("channel", get_channel_for_component(component).value)
        return structlog.get_logger(name, **initial_values)
    logger = _logger_manager.get_logger(name, component)
    return logger.bind(**initial_values) if initial_values else logger


def get_channel_logger(name: str, channel: LogChannel, **initial_values) -> structlog.BoundLogger:
    """Get a logger for a specific channel."""
    return get_enhanced_logger(name, channel=channel.value, **initial_values)


def get_trading_logger(name: str, **initial_values) -> structlog.BoundLogger:
    """Get a trading-specific logger."""
    return get_channel_logger(name, LogChannel.TRADING, **initial_values)


def get_api_logger(name: str, **initial_values) -> structlog.BoundLogger:
    """Get an API logger."""
    return get_channel_logger(name, LogChannel.API, **initial_values)


def get_audit_logger(name: str, **initial_values) -> structlog.BoundLogger:
    """Get an audit logger."""
    return get_channel_logger(name, LogChannel.AUDIT, **initial_values)


def get_error_logger(name: str, **initial_values) -> structlog.BoundLogger:
    """Get an error logger."""
    return get_channel_logger(name, LogChannel.ERROR, **initial_values)
