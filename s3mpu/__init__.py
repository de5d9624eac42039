"""Streaming S3 multipart uploader.

Splits a stream or file into parts, uploads them with bounded concurrency
and per-part retry, and completes the upload in part-number order.
"""

__version__ = "1.0.0"

from s3mpu.backends import PresignedUrlBackend, S3Backend, StorageBackend
from s3mpu.config import UploadConfig
from s3mpu.errors import (
    ConfigError,
    MultipartUploadError,
    PartRetriesExhausted,
    SourceError,
    UploadAborted,
    UploadSizeExceeded,
)
from s3mpu.session import UploadSession

__all__ = [
    "ConfigError",
    "MultipartUploadError",
    "PartRetriesExhausted",
    "PresignedUrlBackend",
    "S3Backend",
    "SourceError",
    "StorageBackend",
    "UploadAborted",
    "UploadConfig",
    "UploadSession",
    "UploadSizeExceeded",
    "__version__",
]
