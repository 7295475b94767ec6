"""Credential lookup exceptions for the DipSip relay."""

from core.utils.exceptions import RequestRejectedError


class CredentialUnavailableError(RequestRejectedError):
    """No usable session credential for today - nothing can be dispatched."""
    status_code = 500
    error_code = "credential_unavailable"


class CredentialNotFoundError(CredentialUnavailableError):
    """No credential record exists for the requested date."""
    pass


class CredentialMalformedError(CredentialUnavailableError):
    """The record exists but cannot be parsed or lacks required fields."""
    pass
