"""Date-scoped credential cache backed by the files the Kite login flow writes."""

import json
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol

import pytz

from core.logging import get_audit_logger_safe, get_error_logger_safe
from .exceptions import CredentialMalformedError, CredentialNotFoundError
from .models import SessionCredential

logger = get_audit_logger_safe("credential_cache")
error_logger = get_error_logger_safe("credential_cache_errors")

DATE_FORMAT = "%Y-%m-%d"


class CredentialStore(Protocol):
    """Key-value view of persisted credentials, keyed by ``yyyy-mm-dd``."""

    def read(self, key: str) -> Optional[Any]:
        """Return the parsed record for ``key`` or None when absent."""
        ...


class FileCredentialStore:
    """One JSON file per day: ``<root>/<subdirectory>/access_token_<date>.<ext>``."""

    def __init__(self, root: str, subdirectory: str = "kite_access_token", extension: str = "json"):
        self.directory = Path(root) / subdirectory if subdirectory else Path(root)
        self.extension = extension.lstrip(".")
        self._file_re = re.compile(
            r"^access_token_(\d{4}-\d{2}-\d{2})\." + re.escape(self.extension) + r"$"
        )

    def path_for(self, key: str) -> Path:
        return self.directory / f"access_token_{key}.{self.extension}"

    def read(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        logger.debug("Looking for access token file", path=str(path))
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CredentialMalformedError(
                f"Cannot read credential file {path.name}: {e}",
                details={"path": str(path)},
            ) from e
        except UnicodeDecodeError as e:
            raise CredentialMalformedError(
                f"Credential file {path.name} is not valid UTF-8",
                details={"path": str(path)},
            ) from e

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise CredentialMalformedError(
                f"Credential file {path.name} is not valid JSON",
                details={"path": str(path)},
            ) from e

    def sweep_expired(self, today: str) -> List[Path]:
        """Delete credential files for every date other than ``today``.

        Files not following the ``access_token_<date>`` pattern are left alone.
        A failed delete is logged and the sweep continues.
        """
        if not self.directory.is_dir():
            logger.info("Credential directory does not exist, nothing to sweep",
                        directory=str(self.directory))
            return []

        deleted: List[Path] = []
        for path in sorted(self.directory.iterdir()):
            match = self._file_re.match(path.name)
            if not match or match.group(1) == today:
                continue
            try:
                path.unlink()
            except OSError as e:
                error_logger.error("Error deleting old token file", file=path.name, error=str(e))
                continue
            deleted.append(path)
            logger.info("Deleted old token file", file=path.name)
        return deleted


class CredentialCache:
    """Read-only lookup of today's session credential.

    A credential is valid only on the calendar day it was issued; records for
    other dates are never consulted.
    """

    def __init__(
        self,
        store: CredentialStore,
        timezone: Optional[str] = None,
        clock: Optional[Callable[..., datetime]] = None,
    ):
        self.store = store
        self._tz = pytz.timezone(timezone) if timezone else None
        self._clock = clock or datetime.now

    def today(self) -> date:
        """Current date in the configured zone, or the process's local zone."""
        if self._tz is not None:
            return self._clock(self._tz).date()
        return self._clock().date()

    def load(self, today: Optional[date] = None) -> SessionCredential:
        """Load the credential recorded for ``today``.

        Raises:
            CredentialNotFoundError: no record for the date
            CredentialMalformedError: unreadable record or missing fields
        """
        day = today or self.today()
        key = day.strftime(DATE_FORMAT)

        try:
            record = self.store.read(key)
            if record is None:
                raise CredentialNotFoundError(
                    f"No access token recorded for {key}",
                    details={"date": key},
                )
            credential = SessionCredential.from_record(record, session_date=day)
        except (CredentialNotFoundError, CredentialMalformedError) as e:
            error_logger.error("Failed to read access token", date=key, error=e.message)
            raise

        logger.info("Loaded session credential", **credential.masked())
        return credential

    def sweep_expired(self, today: Optional[date] = None) -> List[Path]:
        """Remove stale records when the backing store supports it."""
        sweep = getattr(self.store, "sweep_expired", None)
        if sweep is None:
            return []
        day = today or self.today()
        return sweep(day.strftime(DATE_FORMAT))
