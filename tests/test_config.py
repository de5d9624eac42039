"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from s3mpu.config import (
    MIN_PART_SIZE_FLOOR,
    MiB,
    UploadConfig,
    load_from_env,
    load_from_json,
    load_settings,
    parse_size,
)
from s3mpu.errors import ConfigError


def profile(**overrides):
    data = {
        "endpoint_url": "https://s3.us-west-000.backblazeb2.com",
        "aws_access_key_id": "test-key",
        "aws_secret_access_key": "test-secret",
        "region_name": "us-west-000",
        "bucket_name": "test-bucket",
    }
    data.update(overrides)
    return data


class TestUploadConfig:
    """Tests for UploadConfig validation."""

    def test_defaults(self):
        config = UploadConfig(bucket="b", key="k", file="data.bin")

        assert config.concurrency == 4
        assert config.no_disk is True
        assert config.min_part_size == MIN_PART_SIZE_FLOOR
        assert config.max_part_retries == 2
        assert config.max_total_retries == 6

    def test_missing_key_raises(self):
        with pytest.raises(ConfigError, match="`key` must be defined"):
            UploadConfig(bucket="b", key="", file="data.bin")

    def test_missing_source_raises(self):
        with pytest.raises(ConfigError, match="`stream` or `file` must be passed"):
            UploadConfig(bucket="b", key="k")

    def test_both_sources_raise(self):
        with pytest.raises(ConfigError, match="cannot be passed together"):
            UploadConfig(bucket="b", key="k", stream=b"abc", file="data.bin")

    def test_min_part_size_below_floor_raises(self):
        with pytest.raises(ConfigError, match="`min_part_size` must be at least"):
            UploadConfig(bucket="b", key="k", file="f", min_part_size=MiB)

    def test_max_part_size_below_min_raises(self):
        with pytest.raises(ConfigError, match="`max_part_size` must be greater"):
            UploadConfig(
                bucket="b",
                key="k",
                file="f",
                min_part_size=10 * MiB,
                max_part_size=6 * MiB,
            )

    def test_zero_concurrency_raises(self):
        with pytest.raises(ConfigError, match="`concurrency`"):
            UploadConfig(bucket="b", key="k", file="f", concurrency=0)

    def test_negative_retries_raise(self):
        with pytest.raises(ConfigError, match="Retry limits"):
            UploadConfig(bucket="b", key="k", file="f", max_part_retries=-1)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            UploadConfig(bucket="b", key="", file="f")

    def test_create_params_default_acl(self):
        config = UploadConfig(bucket="b", key="k", file="f")

        assert config.create_params() == {"ACL": "private"}

    def test_create_params_headers_override_defaults(self):
        config = UploadConfig(
            bucket="b",
            key="k",
            file="f",
            headers={"ACL": "public-read", "ContentType": "text/plain"},
        )

        assert config.create_params() == {
            "ACL": "public-read",
            "ContentType": "text/plain",
        }


class TestParseSize:
    """Tests for human-readable byte sizes."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("1048576", MiB),
            ("5MiB", 5 * MiB),
            ("64mb", 64 * MiB),
            ("512k", 512 * 1024),
            ("1.5 GiB", int(1.5 * 1024 * MiB)),
            ("10b", 10),
            (42, 42),
        ],
    )
    def test_valid_sizes(self, value, expected):
        assert parse_size(value) == expected

    @pytest.mark.parametrize("value", ["", "MiB", "5 parsecs", "1.2.3mb"])
    def test_invalid_sizes(self, value):
        with pytest.raises(ValueError):
            parse_size(value)


class TestLoadFromJson:
    """Tests for load_from_json function."""

    def test_valid_config_with_all_fields(self, tmp_path: Path):
        """Load a valid config file with all fields specified."""
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"b2": profile(addressing_style="virtual")}))

        profiles = load_from_json(str(config_file))

        assert "b2" in profiles
        assert profiles["b2"].name == "b2"
        assert profiles["b2"].endpoint_url == "https://s3.us-west-000.backblazeb2.com"
        assert profiles["b2"].bucket_name == "test-bucket"
        assert profiles["b2"].addressing_style == "virtual"

    def test_missing_file_raises_error(self, tmp_path: Path):
        """Raise ConfigError when config file doesn't exist."""
        with pytest.raises(ConfigError, match="Config file not found"):
            load_from_json(str(tmp_path / "nonexistent.json"))

    def test_malformed_json_raises_error(self, tmp_path: Path):
        """Raise ConfigError when config file contains invalid JSON."""
        config_file = tmp_path / "config.json"
        config_file.write_text("{ invalid json }")

        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_from_json(str(config_file))

    def test_empty_config_returns_empty_dict(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        assert load_from_json(str(config_file)) == {}

    def test_disabled_profile_excluded(self, tmp_path: Path):
        """Exclude profiles with enabled=false."""
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps({"on": profile(), "off": profile(enabled=False)})
        )

        profiles = load_from_json(str(config_file))

        assert "on" in profiles
        assert "off" not in profiles

    def test_default_addressing_style(self, tmp_path: Path):
        """Use 'path' as default addressing_style when not specified."""
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"r2": profile()}))

        assert load_from_json(str(config_file))["r2"].addressing_style == "path"

    def test_missing_required_field_raises(self, tmp_path: Path):
        data = profile()
        del data["aws_secret_access_key"]
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"b2": data}))

        with pytest.raises(ConfigError, match="aws_secret_access_key"):
            load_from_json(str(config_file))


class TestLoadFromEnv:
    """Tests for load_from_env function."""

    def test_loads_all_variables(self):
        env = {
            "S3MPU_ACCESS_KEY": "env-key",
            "S3MPU_SECRET_KEY": "env-secret",
            "S3MPU_ENDPOINT_URL": "https://minio.local:9000",
            "S3MPU_REGION": "us-east-1",
            "S3MPU_BUCKET": "env-bucket",
            "S3MPU_ADDRESSING_STYLE": "virtual",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_from_env()

        assert settings.name == "env"
        assert settings.aws_access_key_id == "env-key"
        assert settings.endpoint_url == "https://minio.local:9000"
        assert settings.bucket_name == "env-bucket"
        assert settings.addressing_style == "virtual"

    def test_optional_variables_default(self):
        env = {"S3MPU_ACCESS_KEY": "k", "S3MPU_SECRET_KEY": "s"}
        with patch.dict(os.environ, env, clear=True):
            settings = load_from_env()

        assert settings.endpoint_url is None
        assert settings.bucket_name is None
        assert settings.addressing_style == "path"

    def test_missing_secret_raises(self):
        with patch.dict(os.environ, {"S3MPU_ACCESS_KEY": "k"}, clear=True):
            with pytest.raises(ConfigError, match="S3MPU_SECRET_KEY"):
                load_from_env()


class TestLoadSettings:
    """Tests for load_settings priority and profile selection."""

    def test_env_takes_priority(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"b2": profile()}))
        env = {"S3MPU_ACCESS_KEY": "env-key", "S3MPU_SECRET_KEY": "env-secret"}

        with patch.dict(os.environ, env, clear=True):
            settings = load_settings(str(config_file))

        assert settings.name == "env"

    def test_single_profile_is_default(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"b2": profile()}))

        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings(str(config_file))

        assert settings.name == "b2"

    def test_named_profile(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps({"b2": profile(), "r2": profile(bucket_name="r2-bucket")})
        )

        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings(str(config_file), profile="r2")

        assert settings.bucket_name == "r2-bucket"

    def test_multiple_profiles_require_choice(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"b2": profile(), "r2": profile()}))

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="choose one of: b2, r2"):
                load_settings(str(config_file))

    def test_unknown_profile_raises(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"b2": profile()}))

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="Unknown profile 'gcs'"):
                load_settings(str(config_file), profile="gcs")

    def test_nothing_configured_raises(self, tmp_path: Path):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="No storage configured"):
                load_settings(str(tmp_path / "missing.json"))

    def test_all_profiles_disabled_raises(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"b2": profile(enabled=False)}))

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="No enabled profiles"):
                load_settings(str(config_file))
