"""Date-scoped Kite session credential lookup."""

from .credential_cache import CredentialCache, CredentialStore, FileCredentialStore
from .sweeper import CredentialSweeper
from .models import SessionCredential
from .exceptions import (
    CredentialUnavailableError,
    CredentialNotFoundError,
    CredentialMalformedError,
)

__all__ = [
    "CredentialCache",
    "CredentialStore",
    "FileCredentialStore",
    "CredentialSweeper",
    "SessionCredential",
    "CredentialUnavailableError",
    "CredentialNotFoundError",
    "CredentialMalformedError",
]
