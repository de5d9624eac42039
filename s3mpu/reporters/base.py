"""Base reporter interface.

A reporter observes an upload session. The session calls these hooks as
a side channel; nothing a reporter does changes the upload's control flow.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from s3mpu.models import ProgressInfo, UploadResult


class Reporter(ABC):
    """Abstract base class for upload observers."""

    @abstractmethod
    def on_upload_id(self, upload_id: str) -> None:
        """Called when the backend issued the upload identity."""
        pass

    @abstractmethod
    def on_part_start(self, part_number: int) -> None:
        """Called before each upload attempt of a part."""
        pass

    @abstractmethod
    def on_part_retry(self, part_number: int, attempt: int) -> None:
        """Called when a failed part is about to be retried."""
        pass

    @abstractmethod
    def on_part_progress(self, part_number: int, bytes_sent: int, part_size: int) -> None:
        """Called as the transport sends bytes of a part."""
        pass

    @abstractmethod
    def on_part_uploaded(self, part_number: int) -> None:
        """Called when the backend acknowledged a part."""
        pass

    @abstractmethod
    def on_progress(self, info: "ProgressInfo") -> None:
        """Called with cumulative progress after each acknowledged part."""
        pass

    @abstractmethod
    def on_size_exceeded(self, total_size: int) -> None:
        """Called when the source grew past the maximum total size."""
        pass

    @abstractmethod
    def on_completing(self, upload_id: str) -> None:
        """Called before the completion call is issued."""
        pass

    @abstractmethod
    def on_complete(self, result: "UploadResult") -> None:
        """Called when the backend accepted the completion call."""
        pass

    @abstractmethod
    def on_aborting(self, upload_id: Optional[str]) -> None:
        """Called once when the session starts aborting."""
        pass

    @abstractmethod
    def on_aborted(self, upload_id: Optional[str], error: Optional[Exception]) -> None:
        """Called once the session is aborted. ``error`` is set if the abort call failed."""
        pass

    @abstractmethod
    def on_error(self, error: Exception) -> None:
        """Called once for the error that ended the upload."""
        pass
