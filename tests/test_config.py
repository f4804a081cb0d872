"""
Unit tests for config module
"""

import json
import os

import pytest

from recrelay.config import Config
from recrelay.exceptions import ConfigurationError


def test_config_loads_from_env(configured_env):
    """Test that config loads from environment variables"""
    config = Config()
    assert config.agora_app_id == "test_app_id"
    assert config.agora_customer_secret == "test_customer_secret"
    assert config.aws_s3_bucket_name == "agora-landing"
    assert config.aws_s3_bucket_region == "us-east-1"


def test_config_validation_success(config):
    config.validate()  # Should not raise
    assert config.is_valid()


def test_config_validation_lists_every_missing_variable(monkeypatch):
    """Missing settings are reported by environment variable name"""
    monkeypatch.setenv("AGORA_APP_ID", "app")
    monkeypatch.setenv("AGORA_CUSTOMER_ID", "cust")

    config = Config(env_file=os.devnull)
    with pytest.raises(ConfigurationError) as exc_info:
        config.validate()

    assert exc_info.value.message == "Recording service is not configured on the server."
    assert "Missing required environment variables" in exc_info.value.details
    assert "AGORA_APP_CERTIFICATE" in exc_info.value.details
    assert "AWS_SECRET_ACCESS_KEY" in exc_info.value.details
    assert "AGORA_APP_ID" not in exc_info.value.details
    assert config.missing_settings()[0] == "AGORA_APP_CERTIFICATE"


def test_empty_value_counts_as_missing(configured_env, monkeypatch):
    monkeypatch.setenv("AWS_S3_BUCKET_NAME", "")
    config = Config(env_file=os.devnull)
    assert config.missing_settings() == ["AWS_S3_BUCKET_NAME"]
    assert not config.is_valid()


def test_config_defaults(configured_env):
    config = Config(env_file=os.devnull)
    assert config.channel_name == "the-main-event-stream"
    assert config.recorder_uid == "999999"
    assert config.agora_api_base_url == "https://api.agora.io/v1"
    assert config.recordings_bucket_name == "agora-landing"
    assert config.relay_workers == 2
    assert config.relay_max_pending == 16
    assert config.relay_deadline_seconds == 3600
    assert config.webhook_secret is None
    assert config.log_level == "INFO"


def test_recordings_bucket_override(configured_env, monkeypatch):
    monkeypatch.setenv("RECORDINGS_BUCKET_NAME", "recordings")
    config = Config(env_file=os.devnull)
    assert config.recordings_bucket_name == "recordings"
    assert config.aws_s3_bucket_name == "agora-landing"


class TestRegion:
    def test_aws_region_name_maps_to_agora_code(self, config):
        assert config.agora_region_code == 0
        assert config.aws_region_name == "us-east-1"

    def test_numeric_region_code(self, configured_env, monkeypatch):
        monkeypatch.setenv("AWS_S3_BUCKET_REGION", "7")
        config = Config(env_file=os.devnull)
        assert config.agora_region_code == 7
        assert config.aws_region_name == "eu-central-1"

    def test_unsupported_region_fails_validation(self, configured_env, monkeypatch):
        monkeypatch.setenv("AWS_S3_BUCKET_REGION", "mars-north-1")
        config = Config(env_file=os.devnull)
        with pytest.raises(ConfigurationError, match="Unsupported S3 region"):
            config.validate()

    def test_unknown_region_code(self, configured_env, monkeypatch):
        monkeypatch.setenv("AWS_S3_BUCKET_REGION", "99")
        config = Config(env_file=os.devnull)
        with pytest.raises(ConfigurationError, match="Unknown Agora S3 region code"):
            _ = config.agora_region_code


def test_invalid_relay_setting(configured_env, monkeypatch):
    monkeypatch.setenv("RECRELAY_RELAY_WORKERS", "many")
    with pytest.raises(ConfigurationError, match="relay_workers must be an integer"):
        Config(env_file=os.devnull)


def test_non_positive_relay_setting(configured_env, monkeypatch):
    monkeypatch.setenv("RECRELAY_RELAY_MAX_PENDING", "0")
    with pytest.raises(ConfigurationError, match="must be positive"):
        Config(env_file=os.devnull)


def test_registry_path_from_env(configured_env, tmp_path):
    config = Config(env_file=os.devnull)
    assert config.registry_path == tmp_path / "sessions.json"


class TestConfigFiles:
    def test_missing_config_file_raises_error(self, tmp_path):
        missing = tmp_path / "missing.json"
        with pytest.raises(ConfigurationError) as exc_info:
            Config(env_file=str(missing))
        assert "does not exist" in str(exc_info.value)

    def test_json_config_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "agora_app_id": "file_app",
                    "channel_name": "launch-day",
                    "aws_s3_bucket_region": "eu-west-1",
                }
            )
        )
        config = Config(env_file=str(path))
        assert config.agora_app_id == "file_app"
        assert config.channel_name == "launch-day"
        assert config.aws_region_name == "eu-west-1"

    def test_explicit_file_wins_over_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AGORA_APP_ID", "env_app")
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"agora_app_id": "file_app"}))
        assert Config(env_file=str(path)).agora_app_id == "file_app"

    def test_unknown_keys_rejected(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"agora_app_idd": "typo"}))
        with pytest.raises(ConfigurationError, match="Unknown keys"):
            Config(env_file=str(path))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            Config(env_file=str(path))

    def test_invalid_log_level(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"log_level": "LOUD"}))
        with pytest.raises(ConfigurationError, match="log_level must be one of"):
            Config(env_file=str(path))

    def test_yaml_config_file(self, tmp_path):
        pytest.importorskip("yaml")
        path = tmp_path / "config.yaml"
        path.write_text("agora_customer_id: yaml_customer\nrelay_workers: 4\n")
        config = Config(env_file=str(path))
        assert config.agora_customer_id == "yaml_customer"
        assert config.relay_workers == 4


class TestCredentialProtection:
    def test_repr_excludes_credentials(self, config):
        repr_str = repr(config)
        for secret in ("test_customer_secret", "test_secret_key", "test_app_certificate"):
            assert secret not in repr_str
        assert "credentials=configured" in repr_str

    def test_clear_credentials(self, config):
        config.clear_credentials()
        assert config.agora_customer_secret is None
        assert config.aws_secret_access_key is None
        assert not config.is_valid()
