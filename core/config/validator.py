"""
Configuration validation at application startup.

Validates that all critical configuration values are properly set before
the API binds its listener, providing clear error messages for missing or
invalid settings.
"""

import logging
from pathlib import Path
from typing import List, Dict, Any
from dataclasses import dataclass

import pytz

from core.utils.exceptions import ConfigurationError
from .settings import Settings, Environment

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a configuration validation check"""
    is_valid: bool
    component: str
    message: str
    severity: str = "error"  # "error", "warning", "info"


class ConfigurationValidator:
    """
    Configuration validator for startup checks.

    Every check appends a ValidationResult; callers decide what to do with
    the outcome instead of the process exiting mid-import.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.validation_results: List[ValidationResult] = []

    def validate_all(self) -> bool:
        """
        Run all validation checks.

        Returns:
            bool: True if all critical validations pass
        """
        self.validation_results = []
        logger.info("Starting configuration validation")

        self._validate_webhook_settings()
        self._validate_credential_store()
        self._validate_zerodha_settings()
        self._validate_logging_settings()

        errors = [r for r in self.validation_results if r.severity == "error"]
        warnings = [r for r in self.validation_results if r.severity == "warning"]

        if errors:
            logger.error(f"Configuration validation failed: {len(errors)} errors, {len(warnings)} warnings")
            for result in errors:
                logger.error(f"   ERROR [{result.component}]: {result.message}")

        for result in warnings:
            logger.warning(f"   WARNING [{result.component}]: {result.message}")

        if not errors and not warnings:
            logger.info("All configuration validation checks passed")
        elif not errors:
            logger.info(f"Configuration validation passed with {len(warnings)} warnings")

        return len(errors) == 0

    def _validate_webhook_settings(self):
        """Validate the shared webhook secret and replay window"""
        secret = self.settings.effective_webhook_secret()
        if not secret:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Webhook",
                message="WEBHOOK_SECRET is not set",
                severity="error"
            ))
        elif len(secret) < 16:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Webhook",
                message="WEBHOOK_SECRET should be at least 16 characters long",
                severity="error" if self.settings.environment == Environment.PRODUCTION else "warning"
            ))

        if self.settings.webhook.max_skew_seconds <= 0:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Webhook",
                message="webhook.max_skew_seconds must be positive",
                severity="error"
            ))

    def _validate_credential_store(self):
        """Validate that the credential root folder is configured and present"""
        root = self.settings.effective_data_root()
        if not root:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Credential Store",
                message="DATA_ROOT_FOLDER is not set",
                severity="error"
            ))
            return

        if not Path(root).is_dir():
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Credential Store",
                message=f"DATA_ROOT_FOLDER does not exist: {root}",
                severity="error"
            ))
        elif not self.settings.credential_dir.is_dir():
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Credential Store",
                message=f"Credential directory not found yet: {self.settings.credential_dir}",
                severity="warning"
            ))

        tz_name = self.settings.credential_store.timezone
        if tz_name:
            try:
                pytz.timezone(tz_name)
            except pytz.UnknownTimeZoneError:
                self.validation_results.append(ValidationResult(
                    is_valid=False,
                    component="Credential Store",
                    message=f"Unknown timezone: {tz_name}",
                    severity="error"
                ))

    def _validate_zerodha_settings(self):
        """Validate outbound order endpoint settings"""
        zerodha = self.settings.zerodha
        if not zerodha.api_base_url.startswith(("http://", "https://")):
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Zerodha",
                message=f"Invalid api_base_url: {zerodha.api_base_url}",
                severity="error"
            ))

        if zerodha.request_timeout_seconds <= 0:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Zerodha",
                message="request_timeout_seconds must be positive",
                severity="error"
            ))

        if zerodha.rate_limit_retry.max_attempts < 1:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Zerodha",
                message="rate_limit_retry.max_attempts must be at least 1",
                severity="error"
            ))

        # Kite allows roughly 10 order requests per second per API key
        if zerodha.max_concurrency > 10:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Zerodha",
                message="max_concurrency above 10 is likely to hit Kite rate limits",
                severity="warning"
            ))

    def _validate_logging_settings(self):
        """Validate logging configuration"""
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        if self.settings.logging.level.upper() not in valid_log_levels:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Logging",
                message=f"Invalid log level: {self.settings.logging.level}",
                severity="error"
            ))

    def get_validation_summary(self) -> Dict[str, Any]:
        """Get a summary of validation results"""
        errors = [r for r in self.validation_results if r.severity == "error"]
        warnings = [r for r in self.validation_results if r.severity == "warning"]

        return {
            "total_checks": len(self.validation_results),
            "errors": len(errors),
            "warnings": len(warnings),
            "is_valid": len(errors) == 0,
            "error_details": [{"component": r.component, "message": r.message} for r in errors],
            "warning_details": [{"component": r.component, "message": r.message} for r in warnings]
        }


def validate_startup_configuration(settings: Settings) -> Dict[str, Any]:
    """
    Run startup configuration validation.

    Args:
        settings: Application settings to validate

    Returns:
        The validation summary; ``summary["is_valid"]`` is False on any error
    """
    validator = ConfigurationValidator(settings)
    validator.validate_all()
    return validator.get_validation_summary()


def ensure_valid_configuration(settings: Settings) -> Dict[str, Any]:
    """Validate settings and raise when any check fails with severity ``error``.

    The summary is returned on success so callers can still report warnings.

    Raises:
        ConfigurationError: ``details["summary"]`` holds the full summary
    """
    summary = validate_startup_configuration(settings)
    if not summary["is_valid"]:
        first = summary["error_details"][0]
        raise ConfigurationError(
            f"Invalid configuration: {first['message']}",
            config_field=first["component"],
            details={"summary": summary},
        )
    return summary
