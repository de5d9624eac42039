"""Object-storage backends implementing the four multipart operations.

Backends are synchronous: the upload session calls them from worker
threads so that several part uploads can be in flight at once.

- S3Backend: every call goes through a boto3 S3 client.
- PresignedUrlBackend: create/complete/abort go through boto3; part
  bodies are PUT with httpx to presigned ``upload_part`` URLs that have
  the Content-Length signed in.
"""

import io
import logging
from typing import Any, Callable, Generator, Optional, Protocol

import httpx

from s3mpu.errors import MultipartUploadError
from s3mpu.models import CompletedPart

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

# Presigned URLs only need to outlive a single part upload
DEFAULT_PRESIGNED_EXPIRY = 3600

# Slice size used when streaming a part body through httpx
DEFAULT_STREAM_CHUNK = 256 * 1024


class StorageBackend(Protocol):
    """Operations the upload session depends on."""

    def create_upload(self, bucket: str, key: str, headers: dict[str, Any]) -> str:
        ...

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        payload: bytes,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        ...

    def complete_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: list[CompletedPart],
    ) -> dict:
        ...

    def abort_upload(self, bucket: str, key: str, upload_id: str) -> None:
        ...


class _ProgressBody(io.BytesIO):
    """In-memory body that reports how far it has been read."""

    def __init__(self, payload: bytes, on_progress: Optional[ProgressCallback]):
        super().__init__(payload)
        self._on_progress = on_progress
        self._reported = 0

    def read(self, size: Optional[int] = -1) -> bytes:
        chunk = super().read(size)
        position = self.tell()
        # botocore may rewind the body to compute checksums
        if self._on_progress is not None and position > self._reported:
            self._reported = position
            self._on_progress(position)
        return chunk


class S3Backend:
    """Multipart operations on a boto3 S3 client."""

    def __init__(self, s3_client: Any):
        """Initialize the backend.

        Args:
            s3_client: boto3 S3 client
        """
        self.s3_client = s3_client

    def create_upload(self, bucket: str, key: str, headers: dict[str, Any]) -> str:
        response = self.s3_client.create_multipart_upload(
            Bucket=bucket,
            Key=key,
            **headers,
        )
        return response["UploadId"]

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        payload: bytes,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        response = self.s3_client.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=_ProgressBody(payload, on_progress),
            ContentLength=len(payload),
        )
        return response["ETag"]

    def complete_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: list[CompletedPart],
    ) -> dict:
        return self.s3_client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": [p.to_dict() for p in parts]},
        )

    def abort_upload(self, bucket: str, key: str, upload_id: str) -> None:
        self.s3_client.abort_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
        )


def stream_chunks(
    payload: bytes,
    chunk_size: int,
    on_progress: Optional[ProgressCallback] = None,
) -> Generator[bytes, None, None]:
    """Yield ``payload`` in slices, reporting cumulative bytes handed out."""
    sent = 0
    view = memoryview(payload)
    while sent < len(payload):
        chunk = bytes(view[sent:sent + chunk_size])
        sent += len(chunk)
        yield chunk
        if on_progress is not None:
            on_progress(sent)


class PresignedUrlBackend(S3Backend):
    """Uploads part bodies over httpx using presigned URLs.

    The boto3 client signs each ``upload_part`` URL with the part's
    Content-Length, so the provider rejects bodies of any other size.
    """

    def __init__(
        self,
        s3_client: Any,
        http_client: httpx.Client,
        expires_in: int = DEFAULT_PRESIGNED_EXPIRY,
        stream_chunk_size: int = DEFAULT_STREAM_CHUNK,
    ):
        """Initialize the backend.

        Args:
            s3_client: boto3 S3 client used for signing and control calls
            http_client: httpx client for the part PUT requests
            expires_in: Lifetime of each presigned URL in seconds
            stream_chunk_size: Size of the slices streamed per part
        """
        super().__init__(s3_client)
        self.http_client = http_client
        self.expires_in = expires_in
        self.stream_chunk_size = stream_chunk_size

    def generate_presigned_url(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        content_length: int,
    ) -> str:
        """Generate a presigned URL for uploading one part."""
        return self.s3_client.generate_presigned_url(
            "upload_part",
            Params={
                "Bucket": bucket,
                "Key": key,
                "UploadId": upload_id,
                "PartNumber": part_number,
                "ContentLength": content_length,
            },
            ExpiresIn=self.expires_in,
            HttpMethod="PUT",
        )

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        payload: bytes,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        url = self.generate_presigned_url(
            bucket, key, upload_id, part_number, len(payload)
        )
        response = self.http_client.put(
            url,
            content=stream_chunks(payload, self.stream_chunk_size, on_progress),
            headers={"Content-Length": str(len(payload))},
        )
        response.raise_for_status()

        etag = response.headers.get("ETag")
        if not etag:
            raise MultipartUploadError(
                f"Provider returned no ETag for part {part_number}"
            )
        return etag
