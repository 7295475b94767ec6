"""Session credential models for the date-scoped Kite token cache."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict

from .exceptions import CredentialMalformedError


def _mask(value: str) -> str:
    if len(value) <= 4:
        return "****"
    return f"{value[:2]}****{value[-2:]}"


@dataclass(frozen=True)
class SessionCredential:
    """Kite API key and access token, valid only for ``session_date``."""
    api_key: str
    access_token: str = field(repr=False)
    session_date: date

    def authorization_header(self) -> str:
        """Value for the Kite ``Authorization`` header."""
        return f"token {self.api_key}:{self.access_token}"

    def masked(self) -> Dict[str, str]:
        """Loggable view with secrets partially hidden."""
        return {
            "api_key_hint": _mask(self.api_key),
            "session_date": self.session_date.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Any, session_date: date) -> "SessionCredential":
        """Build from the persisted login response ``{"data": {"api_key", "access_token"}}``."""
        if not isinstance(record, dict):
            raise CredentialMalformedError("Credential record is not a JSON object")

        data = record.get("data")
        if not isinstance(data, dict):
            raise CredentialMalformedError("Credential record has no 'data' object")

        api_key = data.get("api_key")
        access_token = data.get("access_token")
        missing = [
            name for name, value in (("api_key", api_key), ("access_token", access_token))
            if not isinstance(value, str) or not value
        ]
        if missing:
            raise CredentialMalformedError(
                f"Credential record missing required fields: {', '.join(missing)}",
                details={"missing_fields": missing},
            )

        return cls(api_key=api_key, access_token=access_token, session_date=session_date)
