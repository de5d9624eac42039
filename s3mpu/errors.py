"""Exception hierarchy for multipart uploads."""

from typing import Optional


class MultipartUploadError(Exception):
    """Base class for all upload errors raised by this package."""

    pass


class ConfigError(MultipartUploadError, ValueError):
    """Raised when upload configuration or settings are invalid."""

    pass


class SourceError(MultipartUploadError):
    """Raised when the input source cannot be opened or read."""

    pass


class UploadSizeExceeded(MultipartUploadError):
    """Raised when the bytes read from the source exceed max_total_size."""

    def __init__(self, total_size: int, max_total_size: int):
        super().__init__(
            f"Upload size {total_size} exceeds the maximum of {max_total_size} bytes"
        )
        self.total_size = total_size
        self.max_total_size = max_total_size


class PartRetriesExhausted(MultipartUploadError):
    """Raised when a part cannot be uploaded within its retry budget."""

    def __init__(
        self,
        part_number: int,
        attempts: int,
        last_error: Optional[Exception] = None,
    ):
        super().__init__(
            f"Part {part_number} failed after {attempts} attempt(s): {last_error}"
        )
        self.part_number = part_number
        self.attempts = attempts
        self.last_error = last_error


class UploadAborted(MultipartUploadError):
    """Raised by UploadSession.upload() when abort() was requested."""

    def __init__(self, upload_id: Optional[str] = None):
        super().__init__(f"Upload aborted (upload id: {upload_id})")
        self.upload_id = upload_id
