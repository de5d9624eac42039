"""Configuration for multipart uploads.

Two kinds of configuration live here:

1. ``UploadConfig``: the typed, validated options of a single upload
   (bucket, key, source, part sizing, concurrency and retry limits).
2. ``StorageSettings`` loading: endpoint and credentials, read from
   environment variables (for CI/CD, takes priority) or from a JSON file
   of named profiles (for local development).

Environment Variable Format:
    S3MPU_ACCESS_KEY=xxx
    S3MPU_SECRET_KEY=xxx
    S3MPU_ENDPOINT_URL=https://s3.us-west-000.backblazeb2.com   (optional)
    S3MPU_REGION=us-west-000                                     (optional)
    S3MPU_BUCKET=my-bucket                                       (optional)
    S3MPU_ADDRESSING_STYLE=virtual                               (optional)

JSON Format:
    {
        "b2": {
            "endpoint_url": "https://s3.us-west-000.backblazeb2.com",
            "aws_access_key_id": "...",
            "aws_secret_access_key": "...",
            "region_name": "us-west-000",
            "bucket_name": "my-bucket"
        }
    }
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from s3mpu.errors import ConfigError
from s3mpu.models import StorageSettings

MiB = 1024 * 1024

# Smallest part the S3 protocol accepts (except for the last part)
MIN_PART_SIZE_FLOOR = 5 * MiB

DEFAULT_CONCURRENCY = 4
DEFAULT_MAX_PART_RETRIES = 2
DEFAULT_MAX_TOTAL_RETRIES = 6
DEFAULT_READ_SIZE = 1 * MiB

ENV_PREFIX = "S3MPU_"

# Required fields for a JSON profile
REQUIRED_FIELDS = [
    "aws_access_key_id",
    "aws_secret_access_key",
]

_SIZE_UNITS = {
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "kib": 1024,
    "m": MiB,
    "mb": MiB,
    "mib": MiB,
    "g": 1024 * MiB,
    "gb": 1024 * MiB,
    "gib": 1024 * MiB,
}


@dataclass(frozen=True)
class UploadConfig:
    """Options for one multipart upload, validated at construction.

    Exactly one of ``stream`` and ``file`` must be given. ``stream`` may be
    a readable binary file object, an iterable of bytes or an async
    iterable of bytes.
    """

    bucket: str
    key: str
    stream: Any = None
    file: Optional[Union[str, Path]] = None
    headers: dict[str, Any] = field(default_factory=dict)
    concurrency: int = DEFAULT_CONCURRENCY
    no_disk: bool = True
    max_part_retries: int = DEFAULT_MAX_PART_RETRIES
    max_total_retries: int = DEFAULT_MAX_TOTAL_RETRIES
    min_part_size: int = MIN_PART_SIZE_FLOOR
    max_part_size: Optional[int] = None
    max_total_size: Optional[int] = None
    read_size: int = DEFAULT_READ_SIZE
    spool_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ConfigError("`key` must be defined")

        if self.stream is None and not self.file:
            raise ConfigError("`stream` or `file` must be passed")

        if self.stream is not None and self.file:
            raise ConfigError("Both `stream` and `file` cannot be passed together")

        if self.min_part_size < MIN_PART_SIZE_FLOOR:
            raise ConfigError(
                f"`min_part_size` must be at least {MIN_PART_SIZE_FLOOR} bytes "
                "per the S3 multipart upload limits"
            )

        if self.max_part_size is not None and self.max_part_size < self.min_part_size:
            raise ConfigError("`max_part_size` must be greater than `min_part_size`")

        if self.concurrency < 1:
            raise ConfigError("`concurrency` must be at least 1")

        if self.max_part_retries < 0 or self.max_total_retries < 0:
            raise ConfigError("Retry limits cannot be negative")

        if self.read_size <= 0:
            raise ConfigError("`read_size` must be positive")

    def create_params(self) -> dict[str, Any]:
        """Parameters for CreateMultipartUpload, headers on top of defaults."""
        params: dict[str, Any] = {"ACL": "private"}
        params.update(self.headers)
        return params


def parse_size(value: Union[int, str]) -> int:
    """Parse a byte quantity such as ``5MiB``, ``64mb`` or ``1048576``.

    Units are binary (``1mb == 1MiB``).

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, int):
        return value

    normalized = str(value).strip().lower().replace(" ", "")
    if normalized.isdigit():
        return int(normalized)

    number = normalized.rstrip("abcdefghijklmnopqrstuvwxyz")
    unit = normalized[len(number):]
    if not number or unit not in _SIZE_UNITS:
        raise ValueError(f"Invalid size: {value!r}")

    try:
        return int(float(number) * _SIZE_UNITS[unit])
    except ValueError as e:
        raise ValueError(f"Invalid size: {value!r}") from e


def load_from_json(config_path: str) -> dict[str, StorageSettings]:
    """Load named storage profiles from a JSON file.

    Args:
        config_path: Path to the config.json file.

    Returns:
        Dictionary mapping profile names to StorageSettings objects.
        Profiles with ``"enabled": false`` are skipped.

    Raises:
        ConfigError: If file doesn't exist, contains invalid JSON,
                    or is missing required fields.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object of profiles")

    profiles: dict[str, StorageSettings] = {}

    for name, profile in data.items():
        if not profile.get("enabled", True):
            continue

        for field_name in REQUIRED_FIELDS:
            if field_name not in profile:
                raise ConfigError(
                    f"Missing required field '{field_name}' for profile '{name}'"
                )

        profiles[name] = StorageSettings(
            name=name,
            aws_access_key_id=profile["aws_access_key_id"],
            aws_secret_access_key=profile["aws_secret_access_key"],
            endpoint_url=profile.get("endpoint_url"),
            region_name=profile.get("region_name"),
            bucket_name=profile.get("bucket_name"),
            addressing_style=profile.get("addressing_style", "path"),
        )

    return profiles


def has_env_settings() -> bool:
    """Check if credentials are provided through the environment."""
    return bool(os.environ.get(f"{ENV_PREFIX}ACCESS_KEY"))


def load_from_env() -> StorageSettings:
    """Load storage settings from S3MPU_* environment variables.

    Raises:
        ConfigError: If the access key or secret key is missing.
    """
    access_key_var = f"{ENV_PREFIX}ACCESS_KEY"
    secret_key_var = f"{ENV_PREFIX}SECRET_KEY"

    access_key = os.environ.get(access_key_var)
    if not access_key:
        raise ConfigError(f"Missing environment variable: {access_key_var}")

    secret_key = os.environ.get(secret_key_var)
    if not secret_key:
        raise ConfigError(f"Missing environment variable: {secret_key_var}")

    return StorageSettings(
        name="env",
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        endpoint_url=os.environ.get(f"{ENV_PREFIX}ENDPOINT_URL") or None,
        region_name=os.environ.get(f"{ENV_PREFIX}REGION") or None,
        bucket_name=os.environ.get(f"{ENV_PREFIX}BUCKET") or None,
        addressing_style=os.environ.get(f"{ENV_PREFIX}ADDRESSING_STYLE", "path"),
    )


def load_settings(
    config_path: str = "config.json",
    profile: Optional[str] = None,
) -> StorageSettings:
    """Load storage settings with environment priority.

    Priority order:
    1. Environment variables (if S3MPU_ACCESS_KEY is set)
    2. The named profile in the JSON file, or its only profile

    Raises:
        ConfigError: If nothing is configured or the profile is unknown.
    """
    if has_env_settings():
        return load_from_env()

    if not Path(config_path).exists():
        raise ConfigError(
            "No storage configured. Set S3MPU_* environment variables "
            "or create a config.json file with at least one enabled profile."
        )

    profiles = load_from_json(config_path)
    if not profiles:
        raise ConfigError(f"No enabled profiles in {config_path}")

    if profile is None:
        if len(profiles) > 1:
            raise ConfigError(
                f"Multiple profiles in {config_path}, choose one of: "
                + ", ".join(sorted(profiles))
            )
        return next(iter(profiles.values()))

    if profile not in profiles:
        raise ConfigError(f"Unknown profile '{profile}' in {config_path}")
    return profiles[profile]
