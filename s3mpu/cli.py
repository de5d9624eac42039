"""Command-line interface for the multipart uploader.

Provides argument parsing and the main entry point for uploading a file
or standard input to an S3-compatible bucket.
"""

import argparse
import logging
import os
import sys
from typing import Any, Optional

import httpx
from rich.logging import RichHandler

from s3mpu.backends import PresignedUrlBackend, S3Backend
from s3mpu.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_PART_RETRIES,
    DEFAULT_MAX_TOTAL_RETRIES,
    MIN_PART_SIZE_FLOOR,
    UploadConfig,
    load_settings,
    parse_size,
)
from s3mpu.errors import ConfigError
from s3mpu.models import ProgressInfo, UploadResult
from s3mpu.reporters import ConsoleReporter, JsonReporter, Reporter
from s3mpu.s3_client import build_s3_client
from s3mpu.session import UploadSession

logger = logging.getLogger(__name__)

STDIN_SOURCE = "-"


class CompositeReporter(Reporter):
    """Reporter that delegates to multiple reporters.

    Allows using both ConsoleReporter and JsonReporter simultaneously.
    """

    def __init__(self, reporters: list[Reporter]):
        self._reporters = reporters

    def _each(self, hook: str, *args: Any) -> None:
        for reporter in self._reporters:
            getattr(reporter, hook)(*args)

    def on_upload_id(self, upload_id: str) -> None:
        self._each("on_upload_id", upload_id)

    def on_part_start(self, part_number: int) -> None:
        self._each("on_part_start", part_number)

    def on_part_retry(self, part_number: int, attempt: int) -> None:
        self._each("on_part_retry", part_number, attempt)

    def on_part_progress(self, part_number: int, bytes_sent: int, part_size: int) -> None:
        self._each("on_part_progress", part_number, bytes_sent, part_size)

    def on_part_uploaded(self, part_number: int) -> None:
        self._each("on_part_uploaded", part_number)

    def on_progress(self, info: ProgressInfo) -> None:
        self._each("on_progress", info)

    def on_size_exceeded(self, total_size: int) -> None:
        self._each("on_size_exceeded", total_size)

    def on_completing(self, upload_id: str) -> None:
        self._each("on_completing", upload_id)

    def on_complete(self, result: UploadResult) -> None:
        self._each("on_complete", result)

    def on_aborting(self, upload_id: Optional[str]) -> None:
        self._each("on_aborting", upload_id)

    def on_aborted(self, upload_id: Optional[str], error: Optional[Exception]) -> None:
        self._each("on_aborted", upload_id, error)

    def on_error(self, error: Exception) -> None:
        self._each("on_error", error)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="s3mpu",
        description="Upload a file or stdin to S3 with a multipart upload",
    )

    parser.add_argument(
        "source",
        help="File to upload, or '-' to read standard input",
    )

    parser.add_argument(
        "-k", "--key",
        required=True,
        help="Object key to upload to",
    )

    parser.add_argument(
        "-b", "--bucket",
        help="Bucket name (default: bucket of the selected profile)",
    )

    parser.add_argument(
        "-c", "--config",
        default="config.json",
        help="Path to configuration file (default: config.json)",
    )

    parser.add_argument(
        "-p", "--profile",
        help="Profile name in the configuration file",
    )

    parser.add_argument(
        "--concurrency",
        type=int,
        default=DEFAULT_CONCURRENCY,
        help=f"Parts uploaded in parallel (default: {DEFAULT_CONCURRENCY})",
    )

    parser.add_argument(
        "--min-part-size",
        type=parse_size,
        default=MIN_PART_SIZE_FLOOR,
        metavar="SIZE",
        help="Minimum part size, e.g. 8MiB (default: 5MiB)",
    )

    parser.add_argument(
        "--max-part-size",
        type=parse_size,
        metavar="SIZE",
        help="Maximum part size",
    )

    parser.add_argument(
        "--max-total-size",
        type=parse_size,
        metavar="SIZE",
        help="Abort the upload if the source grows past SIZE",
    )

    parser.add_argument(
        "--max-part-retries",
        type=int,
        default=DEFAULT_MAX_PART_RETRIES,
        help=f"Retries per part (default: {DEFAULT_MAX_PART_RETRIES})",
    )

    parser.add_argument(
        "--max-total-retries",
        type=int,
        default=DEFAULT_MAX_TOTAL_RETRIES,
        help=f"Retries across all parts (default: {DEFAULT_MAX_TOTAL_RETRIES})",
    )

    parser.add_argument(
        "-H", "--header",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Extra CreateMultipartUpload parameter, e.g. ACL=public-read (repeatable)",
    )

    parser.add_argument(
        "--content-type",
        help="Content type of the uploaded object",
    )

    parser.add_argument(
        "--presigned",
        action="store_true",
        help="Upload part bodies over presigned URLs",
    )

    parser.add_argument(
        "--spool",
        action="store_true",
        help="Buffer waiting parts on disk instead of in memory",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress the progress bar, show only the summary",
    )

    parser.add_argument(
        "-j", "--json-output",
        metavar="PATH",
        help="Write a JSON event log and summary to file",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Enable log output at this level",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Shortcut for --log-level DEBUG",
    )

    return parser.parse_args(argv)


def configure_logging(log_level: Optional[str] = None, debug: bool = False) -> None:
    """Route log records through Rich. Silent unless a level is requested."""
    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = logging.CRITICAL + 1

    handler = RichHandler(
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def parse_headers(values: list[str]) -> dict[str, str]:
    """Parse NAME=VALUE pairs.

    Raises:
        ConfigError: If a pair has no '=' or an empty name.
    """
    headers: dict[str, str] = {}
    for value in values:
        name, sep, header_value = value.partition("=")
        if not sep or not name.strip():
            raise ConfigError(f"Invalid header '{value}', expected NAME=VALUE")
        headers[name.strip()] = header_value
    return headers


def build_upload_config(args: argparse.Namespace, bucket: str) -> UploadConfig:
    """Create the UploadConfig described by the arguments.

    Raises:
        ConfigError: If the options are invalid.
    """
    headers = parse_headers(args.header)
    if args.content_type:
        headers["ContentType"] = args.content_type

    if args.source == STDIN_SOURCE:
        source: dict[str, Any] = {"stream": sys.stdin.buffer}
    else:
        source = {"file": args.source}

    return UploadConfig(
        bucket=bucket,
        key=args.key,
        headers=headers,
        concurrency=args.concurrency,
        no_disk=not args.spool,
        max_part_retries=args.max_part_retries,
        max_total_retries=args.max_total_retries,
        min_part_size=args.min_part_size,
        max_part_size=args.max_part_size,
        max_total_size=args.max_total_size,
        **source,
    )


def create_reporters(args: argparse.Namespace) -> list[Reporter]:
    """Create reporters based on command-line arguments."""
    total_bytes = None
    if args.source != STDIN_SOURCE and os.path.isfile(args.source):
        total_bytes = os.path.getsize(args.source)

    reporters: list[Reporter] = [
        ConsoleReporter(quiet=args.quiet, total_bytes=total_bytes, label=args.key)
    ]

    if args.json_output:
        reporters.append(JsonReporter(output_path=args.json_output))

    return reporters


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 for success, 1 for a failed upload, 2 for errors
        in the configuration
    """
    args = parse_args(argv)
    configure_logging(args.log_level, args.debug)

    try:
        settings = load_settings(args.config, args.profile)
        bucket = args.bucket or settings.bucket_name
        if not bucket:
            raise ConfigError("No bucket given and the profile has no bucket_name")
        config = build_upload_config(args, bucket)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    reporters = create_reporters(args)
    if len(reporters) == 1:
        reporter = reporters[0]
    else:
        reporter = CompositeReporter(reporters)

    s3_client = build_s3_client(settings, max_pool_connections=max(10, config.concurrency))
    http_client: Optional[httpx.Client] = None
    if args.presigned:
        http_client = httpx.Client(timeout=60.0)
        backend = PresignedUrlBackend(s3_client, http_client)
    else:
        backend = S3Backend(s3_client)

    session = UploadSession(config, backend, reporter=reporter)
    try:
        session.run()
    except KeyboardInterrupt:
        print("Upload interrupted", file=sys.stderr)
        return 1
    except Exception as e:
        logger.debug("Upload failed", exc_info=True)
        print(f"Upload failed: {e}", file=sys.stderr)
        return 1
    finally:
        if http_client is not None:
            http_client.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
