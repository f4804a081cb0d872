"""
Shared fixtures: a clean environment and a fully configured one
"""

import os
from unittest.mock import Mock

import pytest

from recrelay.agora_client import AgoraClient
from recrelay.config import REQUIRED_SETTINGS, Config

CONFIGURED_ENV = {
    "AGORA_APP_ID": "test_app_id",
    "AGORA_APP_CERTIFICATE": "test_app_certificate",
    "AGORA_CUSTOMER_ID": "test_customer_id",
    "AGORA_CUSTOMER_SECRET": "test_customer_secret",
    "AWS_S3_BUCKET_NAME": "agora-landing",
    "AWS_S3_BUCKET_REGION": "us-east-1",
    "AWS_ACCESS_KEY_ID": "test_access_key",
    "AWS_SECRET_ACCESS_KEY": "test_secret_key",
}

OPTIONAL_ENV = [
    "RECORDINGS_BUCKET_NAME",
    "AGORA_API_BASE_URL",
    "RECRELAY_CHANNEL",
    "RECRELAY_RECORDER_UID",
    "AGORA_WEBHOOK_SECRET",
    "RECRELAY_REGISTRY_PATH",
    "RECRELAY_RELAY_WORKERS",
    "RECRELAY_RELAY_MAX_PENDING",
    "RECRELAY_RELAY_DEADLINE",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Start every test without recrelay settings and with a private registry file"""
    for key in list(REQUIRED_SETTINGS.values()) + OPTIONAL_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("RECRELAY_NO_DOTENV", "1")
    monkeypatch.setenv("RECRELAY_REGISTRY_PATH", str(tmp_path / "sessions.json"))


@pytest.fixture
def configured_env(monkeypatch):
    for key, value in CONFIGURED_ENV.items():
        monkeypatch.setenv(key, value)
    return CONFIGURED_ENV


@pytest.fixture
def config(configured_env) -> Config:
    return Config(env_file=os.devnull)


@pytest.fixture
def mock_client() -> Mock:
    client = Mock(spec=AgoraClient)
    client.acquire.return_value = "H1"
    client.start.return_value = {"sid": "S1", "resourceId": "H1"}
    client.stop.return_value = {"sid": "S1", "serverResponse": {"uploadingStatus": "uploaded"}}
    return client
