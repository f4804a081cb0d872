"""
Configuration management for recrelay
"""

import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from platformdirs import user_config_dir, user_data_dir

from recrelay.exceptions import ConfigurationError

# Check YAML availability at module level
try:
    from importlib.util import find_spec

    YAML_AVAILABLE = find_spec("yaml") is not None
except ImportError:
    YAML_AVAILABLE = False

# Agora Cloud Recording region codes for Amazon S3 (storageConfig.vendor == 1)
AGORA_S3_REGIONS: dict[int, str] = {
    0: "us-east-1",
    1: "us-east-2",
    2: "us-west-1",
    3: "us-west-2",
    4: "eu-west-1",
    5: "eu-west-2",
    6: "eu-west-3",
    7: "eu-central-1",
    8: "ap-southeast-1",
    9: "ap-southeast-2",
    10: "ap-northeast-1",
    11: "ap-northeast-2",
    12: "sa-east-1",
    13: "ca-central-1",
    14: "ap-south-1",
    15: "cn-north-1",
    16: "cn-northwest-1",
}

# Config key -> environment variable, in the order they are reported when missing
REQUIRED_SETTINGS: dict[str, str] = {
    "agora_app_id": "AGORA_APP_ID",
    "agora_app_certificate": "AGORA_APP_CERTIFICATE",
    "agora_customer_id": "AGORA_CUSTOMER_ID",
    "agora_customer_secret": "AGORA_CUSTOMER_SECRET",
    "aws_s3_bucket_name": "AWS_S3_BUCKET_NAME",
    "aws_s3_bucket_region": "AWS_S3_BUCKET_REGION",
    "aws_access_key_id": "AWS_ACCESS_KEY_ID",
    "aws_secret_access_key": "AWS_SECRET_ACCESS_KEY",
}


class Config:
    """Configuration loader and credential gate with multi-source support"""

    REQUIRED_FIELDS = list(REQUIRED_SETTINGS)
    OPTIONAL_FIELDS: dict[str, Any] = {
        "recordings_bucket_name": None,
        "agora_api_base_url": "https://api.agora.io/v1",
        "channel_name": "the-main-event-stream",
        "recorder_uid": "999999",
        "webhook_secret": None,
        "registry_path": None,
        "relay_workers": 2,
        "relay_max_pending": 16,
        "relay_deadline_seconds": 3600,
        "log_level": "INFO",
    }

    def __init__(self, env_file: str | None = None):
        # Configuration priority:
        # 1. Explicit config file (JSON/YAML/.env)
        # 2. Environment variables
        # 3. Default config file in the user config directory
        # 4. Defaults

        self.config_dir = Path(user_config_dir("recrelay"))
        self.data_dir = Path(user_data_dir("recrelay"))
        config_data: dict[str, Any] = {}

        if env_file is not None:
            config_data = self._load_config_file(env_file)
        else:
            default_config = self._find_default_config()
            if default_config:
                config_data = self._load_config_file(str(default_config))

        prefer_env_over_file = env_file is None

        def _resolve(config_key: str, env_key: str, default: Any = None) -> Any:
            config_value = config_data.get(config_key)
            env_value = os.getenv(env_key)
            if prefer_env_over_file:
                value = env_value if env_value is not None else config_value
            else:
                value = config_value if config_value is not None else env_value
            return default if value is None else value

        # Required credentials kept private to prevent accidental exposure
        self._agora_app_id = _resolve("agora_app_id", "AGORA_APP_ID")
        self._agora_app_certificate = _resolve("agora_app_certificate", "AGORA_APP_CERTIFICATE")
        self._agora_customer_id = _resolve("agora_customer_id", "AGORA_CUSTOMER_ID")
        self._agora_customer_secret = _resolve("agora_customer_secret", "AGORA_CUSTOMER_SECRET")
        self._aws_access_key_id = _resolve("aws_access_key_id", "AWS_ACCESS_KEY_ID")
        self._aws_secret_access_key = _resolve("aws_secret_access_key", "AWS_SECRET_ACCESS_KEY")
        self._webhook_secret = _resolve("webhook_secret", "AGORA_WEBHOOK_SECRET")

        self.aws_s3_bucket_name = _resolve("aws_s3_bucket_name", "AWS_S3_BUCKET_NAME")
        raw_region = _resolve("aws_s3_bucket_region", "AWS_S3_BUCKET_REGION")
        self.aws_s3_bucket_region = str(raw_region).strip() if raw_region is not None else None
        self.recordings_bucket_name = (
            _resolve("recordings_bucket_name", "RECORDINGS_BUCKET_NAME") or self.aws_s3_bucket_name
        )

        self.agora_api_base_url = str(
            _resolve(
                "agora_api_base_url",
                "AGORA_API_BASE_URL",
                self.OPTIONAL_FIELDS["agora_api_base_url"],
            )
        ).rstrip("/")
        self.channel_name = str(
            _resolve("channel_name", "RECRELAY_CHANNEL", self.OPTIONAL_FIELDS["channel_name"])
        )
        self.recorder_uid = str(
            _resolve("recorder_uid", "RECRELAY_RECORDER_UID", self.OPTIONAL_FIELDS["recorder_uid"])
        )
        self.log_level = str(_resolve("log_level", "LOG_LEVEL", "INFO"))

        configured_registry = _resolve("registry_path", "RECRELAY_REGISTRY_PATH")
        if configured_registry:
            self.registry_path = Path(str(configured_registry)).expanduser()
        else:
            self.registry_path = self.data_dir / "sessions.json"

        self.relay_workers = self._as_int(
            _resolve("relay_workers", "RECRELAY_RELAY_WORKERS", 2), "relay_workers"
        )
        self.relay_max_pending = self._as_int(
            _resolve("relay_max_pending", "RECRELAY_RELAY_MAX_PENDING", 16), "relay_max_pending"
        )
        self.relay_deadline_seconds = self._as_int(
            _resolve("relay_deadline_seconds", "RECRELAY_RELAY_DEADLINE", 3600),
            "relay_deadline_seconds",
        )

    @staticmethod
    def _as_int(value: Any, name: str) -> int:
        try:
            result = int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if result <= 0:
            raise ConfigurationError(f"{name} must be positive, got {result}")
        return result

    @property
    def agora_app_id(self) -> str | None:
        """Agora app ID (read-only property)"""
        return self._agora_app_id

    @property
    def agora_app_certificate(self) -> str | None:
        """Agora app certificate (read-only property)"""
        return self._agora_app_certificate

    @property
    def agora_customer_id(self) -> str | None:
        """Agora RESTful API customer ID (read-only property)"""
        return self._agora_customer_id

    @property
    def agora_customer_secret(self) -> str | None:
        """Agora RESTful API customer secret (read-only property)"""
        return self._agora_customer_secret

    @property
    def aws_access_key_id(self) -> str | None:
        return self._aws_access_key_id

    @property
    def aws_secret_access_key(self) -> str | None:
        return self._aws_secret_access_key

    @property
    def webhook_secret(self) -> str | None:
        """Shared secret for webhook signatures, if configured"""
        return self._webhook_secret or None

    @property
    def agora_region_code(self) -> int:
        """Storage region as the integer code Agora expects in storageConfig"""
        region = self.aws_s3_bucket_region or ""
        if region.isdigit():
            code = int(region)
            if code not in AGORA_S3_REGIONS:
                raise ConfigurationError(f"Unknown Agora S3 region code: {code}")
            return code
        for code, name in AGORA_S3_REGIONS.items():
            if name == region.lower():
                return code
        raise ConfigurationError(f"Unsupported S3 region for Agora Cloud Recording: {region!r}")

    @property
    def aws_region_name(self) -> str:
        """Storage region as an AWS region name usable by boto3"""
        return AGORA_S3_REGIONS[self.agora_region_code]

    def __repr__(self) -> str:
        """
        String representation that excludes credentials

        Prevents accidental credential exposure in logs, tracebacks, and debugging
        """
        return (
            f"Config("
            f"channel_name={self.channel_name!r}, "
            f"bucket={self.aws_s3_bucket_name!r}, "
            f"region={self.aws_s3_bucket_region!r}, "
            f"agora_api_base_url={self.agora_api_base_url!r}, "
            f"credentials={'configured' if self.is_valid() else 'missing'}"
            f")"
        )

    def clear_credentials(self) -> None:
        """
        Clear sensitive credentials from memory.

        Note: Due to Python's memory management and string immutability,
        this provides best-effort cleanup but cannot guarantee complete
        memory erasure.
        """
        self._agora_app_id = None
        self._agora_app_certificate = None
        self._agora_customer_id = None
        self._agora_customer_secret = None
        self._aws_access_key_id = None
        self._aws_secret_access_key = None
        self._webhook_secret = None

    @staticmethod
    def _is_null_device(path_str: str) -> bool:
        """Return True when the provided path represents the OS null device."""
        normalized = path_str.strip().lower().replace("\\", "/")
        null_candidates = {"/dev/null", "nul", "nul:", os.devnull.lower()}
        return normalized in null_candidates

    def _load_config_file(self, config_path: str) -> dict[str, Any]:
        """
        Load configuration from JSON, YAML or .env file

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        if self._is_null_device(config_path):
            # Callers and tests opt out of file loading with /dev/null
            return {}

        path = Path(config_path)

        if not path.exists():
            raise ConfigurationError(
                f"Config file '{config_path}' does not exist. "
                "Provide an existing JSON/YAML/.env file or remove the --config flag."
            )

        if path.suffix.lower() in [".yaml", ".yml"] and not YAML_AVAILABLE:
            raise ConfigurationError(
                f"Cannot load YAML config file '{path.name}': PyYAML not installed. "
                "Install with: pip install pyyaml"
            )

        try:
            with open(path) as f:
                if path.suffix.lower() == ".json":
                    data = json.load(f)
                elif path.suffix.lower() in [".yaml", ".yml"]:
                    data = self._load_yaml(f)
                else:
                    # Assume .env file
                    load_dotenv(config_path)
                    return {}
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {config_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to load config file {config_path}: {e}")

        self._validate_schema(data, path)
        return dict(data)

    def _load_yaml(self, file_obj: Any) -> dict[str, Any]:
        import yaml

        try:
            result = yaml.safe_load(file_obj)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}")
        return dict(result) if result else {}

    def _find_default_config(self) -> Path | None:
        for filename in ("config.json", "config.yaml", "config.yml"):
            candidate = self.config_dir / filename
            if candidate.exists():
                return candidate
        return None

    def _validate_schema(self, data: Any, path: Path) -> None:
        """
        Validate configuration schema

        Raises:
            ConfigurationError: If schema validation fails
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a JSON/YAML object")

        known_keys = set(self.REQUIRED_FIELDS) | set(self.OPTIONAL_FIELDS.keys())
        unknown_keys = set(data.keys()) - known_keys

        if unknown_keys:
            raise ConfigurationError(
                f"Unknown keys in config file {path}: {', '.join(sorted(unknown_keys))}\n"
                f"Valid keys: {', '.join(sorted(known_keys))}"
            )

        if "log_level" in data:
            valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if str(data["log_level"]).upper() not in valid_levels:
                raise ConfigurationError(f"log_level must be one of {valid_levels} in {path}")

    def missing_settings(self) -> list[str]:
        """Environment variable names of required settings that are not set"""
        values = {
            "agora_app_id": self.agora_app_id,
            "agora_app_certificate": self.agora_app_certificate,
            "agora_customer_id": self.agora_customer_id,
            "agora_customer_secret": self.agora_customer_secret,
            "aws_s3_bucket_name": self.aws_s3_bucket_name,
            "aws_s3_bucket_region": self.aws_s3_bucket_region,
            "aws_access_key_id": self.aws_access_key_id,
            "aws_secret_access_key": self.aws_secret_access_key,
        }
        return [env for key, env in REQUIRED_SETTINGS.items() if not values[key]]

    def validate(self) -> None:
        """Validate required configuration before any network call is made"""
        missing = self.missing_settings()
        if missing:
            raise ConfigurationError(
                "Recording service is not configured on the server.",
                details=f"Missing required environment variables: {', '.join(missing)}",
            )
        # Region must map onto both Agora's code and an AWS region name
        _ = self.aws_region_name

    def is_valid(self) -> bool:
        """Check if configuration is valid"""
        try:
            self.validate()
            return True
        except ConfigurationError:
            return False
