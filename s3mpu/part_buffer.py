"""Coalesce a byte stream into numbered upload parts.

Chunks arrive with arbitrary boundaries. Every emitted part except
possibly the last one is at least ``min_part_size`` bytes, and bytes are
emitted in arrival order.
"""

import logging
from typing import Optional

from s3mpu.errors import UploadSizeExceeded
from s3mpu.models import Part

logger = logging.getLogger(__name__)


class PartBuffer:
    """Turns incoming chunks into parts numbered from 1.

    Holds at most one pending buffer of undersized data. When ``spool`` is
    True the emitted parts keep their payload in a temporary file instead
    of memory.
    """

    def __init__(
        self,
        min_part_size: int,
        max_part_size: Optional[int] = None,
        max_total_size: Optional[int] = None,
        spool: bool = False,
        spool_dir: Optional[str] = None,
    ):
        self.min_part_size = min_part_size
        self.max_part_size = max_part_size
        self.max_total_size = max_total_size
        self.spool = spool
        self.spool_dir = spool_dir

        self.num_parts = 0
        self.total_size = 0
        self.ended = False
        self._pending: Optional[bytearray] = None

    @property
    def pending_size(self) -> int:
        """Bytes held back waiting for more data."""
        return len(self._pending) if self._pending is not None else 0

    def feed(self, chunk: bytes) -> list[Part]:
        """Consume one chunk and return the parts it completes.

        Raises:
            UploadSizeExceeded: If the cumulative size passes max_total_size.
            RuntimeError: If the stream already ended.
        """
        if self.ended:
            raise RuntimeError("Cannot feed a PartBuffer after end()")
        if not chunk:
            return []

        self.total_size += len(chunk)
        if self.max_total_size is not None and self.total_size > self.max_total_size:
            raise UploadSizeExceeded(self.total_size, self.max_total_size)

        if self._pending is not None:
            self._pending += chunk
            if len(self._pending) >= self.min_part_size:
                data = bytes(self._pending)
                self._pending = None
                self._check_part_size(len(data))
                return [self._emit(data)]
            return []

        if len(chunk) < self.min_part_size:
            self._pending = bytearray(chunk)
            return []

        self._check_part_size(len(chunk))
        return [self._emit(bytes(chunk))]

    def end(self) -> Optional[Part]:
        """Mark the stream ended and flush the pending buffer, if any."""
        if self.ended:
            return None
        self.ended = True
        if not self._pending:
            self._pending = None
            return None
        data = bytes(self._pending)
        self._pending = None
        return self._emit(data)

    def discard(self) -> None:
        """Drop buffered data without emitting it."""
        self._pending = None

    def _check_part_size(self, size: int) -> None:
        # Oversized parts are uploaded whole, not split
        if self.max_part_size is not None and size > self.max_part_size:
            logger.warning(
                f"Part of {size} bytes exceeds max part size "
                f"{self.max_part_size}, uploading it as a single part"
            )

    def _emit(self, data: bytes) -> Part:
        self.num_parts += 1
        if self.spool:
            return Part.spooled(self.num_parts, data, directory=self.spool_dir)
        return Part.in_memory(self.num_parts, data)
