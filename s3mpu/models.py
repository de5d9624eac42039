"""Data models for the multipart uploader."""

import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class SessionState(Enum):
    """Lifecycle state of an upload session."""

    INITIALIZING = "initializing"
    ACTIVE = "active"
    COMPLETING = "completing"
    COMPLETE = "complete"
    ABORTING = "aborting"
    ABORTED = "aborted"

    @property
    def is_aborted(self) -> bool:
        """True for the two sticky abort states."""
        return self in (SessionState.ABORTING, SessionState.ABORTED)


@dataclass
class StorageSettings:
    """Endpoint and credentials for an S3-compatible provider."""

    name: str
    aws_access_key_id: str
    aws_secret_access_key: str
    endpoint_url: Optional[str] = None
    region_name: Optional[str] = None
    bucket_name: Optional[str] = None
    addressing_style: str = "path"


@dataclass
class Part:
    """A numbered slice of the payload waiting to be uploaded.

    The payload lives either in memory (``data``) or in a spool file on
    disk (``path``). Spooled parts remove their file on dispose().
    """

    part_number: int
    size: int
    data: Optional[bytes] = field(default=None, repr=False)
    path: Optional[Path] = None

    @classmethod
    def in_memory(cls, part_number: int, data: bytes) -> "Part":
        return cls(part_number=part_number, size=len(data), data=data)

    @classmethod
    def spooled(
        cls,
        part_number: int,
        data: bytes,
        directory: Optional[str] = None,
    ) -> "Part":
        """Write the payload to a temporary file and keep only its path."""
        fd, file_path = tempfile.mkstemp(
            prefix=f"part-{part_number:05d}-", suffix=".chunk", dir=directory
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except Exception:
            if os.path.exists(file_path):
                os.remove(file_path)
            raise
        return cls(part_number=part_number, size=len(data), path=Path(file_path))

    def read(self) -> bytes:
        """Return the payload bytes, loading them from disk if spooled."""
        if self.data is not None:
            return self.data
        if self.path is not None and self.path.exists():
            return self.path.read_bytes()
        return b""

    def dispose(self) -> None:
        """Release the payload. Safe to call more than once."""
        self.data = None
        if self.path is not None:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            self.path = None


@dataclass(frozen=True)
class CompletedPart:
    """A part accepted by the backend."""

    part_number: int
    etag: str

    def to_dict(self) -> dict[str, Any]:
        """Shape expected by CompleteMultipartUpload."""
        return {"ETag": self.etag, "PartNumber": self.part_number}


@dataclass(frozen=True)
class ProgressInfo:
    """Snapshot emitted after every acknowledged part."""

    part: int
    part_size: int
    total_written: int
    total_size: int
    total_percent: float


@dataclass
class UploadResult:
    """Outcome of a completed upload."""

    upload_id: str
    parts: list[CompletedPart]
    total_written: int
    total_size: int
    retries: int = 0
    response: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "upload_id": self.upload_id,
            "parts": [p.to_dict() for p in self.parts],
            "total_written": self.total_written,
            "total_size": self.total_size,
            "retries": self.retries,
        }
