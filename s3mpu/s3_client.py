"""S3 client factory.

Creates boto3 S3 clients configured from explicit StorageSettings, with
the endpoint, credentials, region and addressing style of the provider.
Nothing is configured at process scope: each caller owns its client.

The signature version is set to 's3v4' so that presigned part URLs can
carry a signed Content-Length.
"""

from typing import Optional

import boto3
from botocore.client import Config

from s3mpu.models import StorageSettings

_TIMEOUT_READ = 120
_TIMEOUT_CONNECT = 60


def build_s3_client(settings: StorageSettings, max_pool_connections: Optional[int] = None):
    """Build a boto3 S3 client for the given storage settings.

    Args:
        settings: Endpoint, credentials, region and addressing style.
        max_pool_connections: Size of the HTTP connection pool. Should be at
                              least the upload concurrency.

    Returns:
        A boto3 S3 client.
    """
    boto_config = Config(
        signature_version="s3v4",
        s3={"addressing_style": settings.addressing_style},
        max_pool_connections=max_pool_connections or 10,
        read_timeout=_TIMEOUT_READ,
        connect_timeout=_TIMEOUT_CONNECT,
    )

    return boto3.client(
        "s3",
        endpoint_url=settings.endpoint_url,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.region_name,
        config=boto_config,
    )
