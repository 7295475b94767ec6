"""
Pytest configuration and shared fixtures for DipSip relay tests.
"""
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

from core.config.settings import (
    Settings,
    WebhookSettings,
    CredentialStoreSettings,
    ZerodhaSettings,
    RateLimitRetrySettings,
)
from services.auth.models import SessionCredential

TEST_SECRET = "test-webhook-secret-0123456789"
TEST_API_KEY = "kite_api_key_123"
TEST_ACCESS_TOKEN = "kite_access_token_abc"
SESSION_DATE = date(2024, 3, 15)


def write_credential_file(
    root: Path,
    day: date,
    api_key: Optional[str] = TEST_API_KEY,
    access_token: Optional[str] = TEST_ACCESS_TOKEN,
    record: Optional[Any] = None,
) -> Path:
    """Persist a record the way the Kite login flow does."""
    directory = root / "kite_access_token"
    directory.mkdir(parents=True, exist_ok=True)
    if record is None:
        data: Dict[str, Any] = {}
        if api_key is not None:
            data["api_key"] = api_key
        if access_token is not None:
            data["access_token"] = access_token
        record = {"status": "success", "data": data}
    path = directory / f"access_token_{day.isoformat()}.json"
    path.write_text(json.dumps(record), encoding="utf-8")
    return path


@pytest.fixture
def data_root(tmp_path) -> Path:
    """Root folder holding the kite_access_token directory."""
    return tmp_path


@pytest.fixture
def test_settings(data_root):
    """Test settings configuration."""
    return Settings(
        environment="testing",
        webhook=WebhookSettings(secret=TEST_SECRET),
        credential_store=CredentialStoreSettings(data_root_folder=str(data_root)),
        zerodha=ZerodhaSettings(
            api_base_url="https://kite.test",
            rate_limit_retry=RateLimitRetrySettings(
                max_attempts=3,
                base_delay_seconds=0.5,
                backoff_multiplier=2.0,
                max_delay_seconds=5.0,
            ),
        ),
    )


@pytest.fixture
def session_credential():
    return SessionCredential(
        api_key=TEST_API_KEY,
        access_token=TEST_ACCESS_TOKEN,
        session_date=SESSION_DATE,
    )


@pytest.fixture
def webhook_secret():
    return TEST_SECRET


@pytest.fixture
def write_credential(data_root):
    """Factory writing a credential file under ``data_root`` for a given day."""
    def _write(day: date, **kwargs) -> Path:
        return write_credential_file(data_root, day, **kwargs)
    return _write
