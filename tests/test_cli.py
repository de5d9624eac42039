"""Tests for CLI entry point.

Tests the command-line interface and argument parsing.
"""

import sys
from unittest.mock import Mock, patch

import pytest

from s3mpu.backends import PresignedUrlBackend, S3Backend
from s3mpu.cli import (
    CompositeReporter,
    build_upload_config,
    create_reporters,
    main,
    parse_args,
    parse_headers,
)
from s3mpu.config import MiB
from s3mpu.errors import ConfigError, PartRetriesExhausted
from s3mpu.models import StorageSettings
from s3mpu.reporters import ConsoleReporter, JsonReporter
from s3mpu.reporters.base import Reporter


class TestParseArgs:
    """Tests for argument parsing."""

    def test_default_args(self):
        """Should have sensible defaults."""
        args = parse_args(["data.bin", "-k", "key"])

        assert args.source == "data.bin"
        assert args.key == "key"
        assert args.config == "config.json"
        assert args.profile is None
        assert args.concurrency == 4
        assert args.min_part_size == 5 * MiB
        assert args.quiet is False
        assert args.json_output is None
        assert args.presigned is False

    def test_sizes_accept_units(self):
        args = parse_args([
            "-", "-k", "key",
            "--min-part-size", "8MiB",
            "--max-part-size", "64mb",
            "--max-total-size", "1gib",
        ])

        assert args.min_part_size == 8 * MiB
        assert args.max_part_size == 64 * MiB
        assert args.max_total_size == 1024 * MiB

    def test_invalid_size_is_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["data.bin", "-k", "key", "--min-part-size", "huge"])

    def test_key_is_required(self):
        with pytest.raises(SystemExit):
            parse_args(["data.bin"])

    def test_repeated_headers(self):
        args = parse_args([
            "data.bin", "-k", "key",
            "-H", "ACL=public-read",
            "--header", "CacheControl=max-age=60",
        ])

        assert args.header == ["ACL=public-read", "CacheControl=max-age=60"]

    def test_multiple_args(self):
        """Should handle multiple arguments."""
        args = parse_args([
            "data.bin", "-k", "key",
            "-c", "custom.json",
            "-p", "b2",
            "-q",
            "-j", "output.json",
            "--presigned",
            "--spool",
        ])

        assert args.config == "custom.json"
        assert args.profile == "b2"
        assert args.quiet is True
        assert args.json_output == "output.json"
        assert args.presigned is True
        assert args.spool is True


class TestParseHeaders:
    def test_splits_on_first_equals(self):
        assert parse_headers(["CacheControl=max-age=60"]) == {"CacheControl": "max-age=60"}

    def test_missing_equals_raises(self):
        with pytest.raises(ConfigError, match="expected NAME=VALUE"):
            parse_headers(["ContentType"])


class TestBuildUploadConfig:
    """Tests for turning arguments into an UploadConfig."""

    def test_file_source(self):
        args = parse_args(["data.bin", "-k", "key", "--content-type", "text/csv"])

        config = build_upload_config(args, "bucket")

        assert config.file == "data.bin"
        assert config.stream is None
        assert config.headers == {"ContentType": "text/csv"}
        assert config.no_disk is True

    def test_stdin_source(self):
        args = parse_args(["-", "-k", "key", "--spool"])
        stdin = Mock()

        with patch.object(sys, "stdin", stdin):
            config = build_upload_config(args, "bucket")

        assert config.stream is stdin.buffer
        assert config.file is None
        assert config.no_disk is False


class TestCreateReporters:
    """Tests for reporter creation based on args."""

    def test_creates_console_reporter_by_default(self):
        reporters = create_reporters(parse_args(["data.bin", "-k", "key"]))

        assert len(reporters) == 1
        assert isinstance(reporters[0], ConsoleReporter)

    def test_console_reporter_quiet_mode(self):
        reporters = create_reporters(parse_args(["data.bin", "-k", "key", "-q"]))

        assert reporters[0].quiet is True

    def test_total_bytes_from_file_size(self, tmp_path):
        path = tmp_path / "data.bin"
        path.write_bytes(b"x" * 1234)

        reporters = create_reporters(parse_args([str(path), "-k", "key"]))

        assert reporters[0].total_bytes == 1234

    def test_creates_json_reporter_when_requested(self):
        reporters = create_reporters(parse_args(["data.bin", "-k", "key", "-j", "out.json"]))

        json_reporter = next(r for r in reporters if isinstance(r, JsonReporter))
        assert json_reporter.output_path == "out.json"


class TestCompositeReporter:
    def test_delegates_to_all_reporters(self):
        first = Mock(spec=Reporter)
        second = Mock(spec=Reporter)
        composite = CompositeReporter([first, second])

        composite.on_part_retry(3, 1)
        composite.on_aborted("upload-1", None)

        first.on_part_retry.assert_called_once_with(3, 1)
        second.on_part_retry.assert_called_once_with(3, 1)
        second.on_aborted.assert_called_once_with("upload-1", None)


@patch("s3mpu.cli.configure_logging")
@patch("s3mpu.cli.build_s3_client")
@patch("s3mpu.cli.load_settings")
class TestMain:
    """Tests for main entry point."""

    @pytest.fixture(autouse=True)
    def settings(self):
        self.settings = StorageSettings(
            name="b2",
            aws_access_key_id="key",
            aws_secret_access_key="secret",
            bucket_name="profile-bucket",
        )

    @patch("s3mpu.cli.UploadSession")
    def test_returns_0_on_success(self, mock_session_class, mock_load, mock_build, _):
        mock_load.return_value = self.settings

        result = main(["data.bin", "-k", "key", "-c", "test.json", "-p", "b2"])

        assert result == 0
        mock_load.assert_called_once_with("test.json", "b2")
        mock_session_class.return_value.run.assert_called_once()

    @patch("s3mpu.cli.UploadSession")
    def test_uses_profile_bucket(self, mock_session_class, mock_load, mock_build, _):
        mock_load.return_value = self.settings

        main(["data.bin", "-k", "key"])

        config = mock_session_class.call_args.args[0]
        assert config.bucket == "profile-bucket"

    @patch("s3mpu.cli.UploadSession")
    def test_bucket_flag_overrides_profile(self, mock_session_class, mock_load, mock_build, _):
        mock_load.return_value = self.settings

        main(["data.bin", "-k", "key", "-b", "other"])

        assert mock_session_class.call_args.args[0].bucket == "other"

    @patch("s3mpu.cli.UploadSession")
    def test_s3_backend_by_default(self, mock_session_class, mock_load, mock_build, _):
        mock_load.return_value = self.settings

        main(["data.bin", "-k", "key"])

        backend = mock_session_class.call_args.args[1]
        assert isinstance(backend, S3Backend)
        assert not isinstance(backend, PresignedUrlBackend)

    @patch("s3mpu.cli.UploadSession")
    def test_presigned_backend(self, mock_session_class, mock_load, mock_build, _):
        mock_load.return_value = self.settings

        main(["data.bin", "-k", "key", "--presigned"])

        backend = mock_session_class.call_args.args[1]
        assert isinstance(backend, PresignedUrlBackend)
        assert backend.http_client.is_closed

    @patch("s3mpu.cli.UploadSession")
    def test_uses_composite_reporter(self, mock_session_class, mock_load, mock_build, _):
        mock_load.return_value = self.settings

        main(["data.bin", "-k", "key", "-j", "results.json"])

        reporter = mock_session_class.call_args.kwargs["reporter"]
        assert isinstance(reporter, CompositeReporter)

    @patch("s3mpu.cli.UploadSession")
    def test_returns_1_on_failed_upload(self, mock_session_class, mock_load, mock_build, _):
        mock_load.return_value = self.settings
        mock_session_class.return_value.run.side_effect = PartRetriesExhausted(1, 3)

        assert main(["data.bin", "-k", "key"]) == 1

    @patch("s3mpu.cli.UploadSession")
    def test_returns_1_on_interrupt(self, mock_session_class, mock_load, mock_build, _):
        mock_load.return_value = self.settings
        mock_session_class.return_value.run.side_effect = KeyboardInterrupt

        assert main(["data.bin", "-k", "key"]) == 1

    def test_returns_2_on_config_error(self, mock_load, mock_build, _):
        mock_load.side_effect = ConfigError("No storage configured")

        assert main(["data.bin", "-k", "key"]) == 2
        mock_build.assert_not_called()

    def test_returns_2_without_bucket(self, mock_load, mock_build, _):
        mock_load.return_value = StorageSettings(
            name="env", aws_access_key_id="k", aws_secret_access_key="s"
        )

        assert main(["data.bin", "-k", "key"]) == 2

    def test_returns_2_on_invalid_options(self, mock_load, mock_build, _):
        mock_load.return_value = self.settings

        assert main(["data.bin", "-k", "key", "--concurrency", "0"]) == 2
