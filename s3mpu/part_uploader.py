"""Upload a single part with immediate retry."""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from s3mpu.errors import PartRetriesExhausted
from s3mpu.models import CompletedPart, Part, ProgressInfo
from s3mpu.retry import RetryBudget

if TYPE_CHECKING:
    from s3mpu.backends import StorageBackend
    from s3mpu.session import UploadSession

logger = logging.getLogger(__name__)


class PartUploader:
    """Uploads parts for one session under its upload identity.

    Results are recorded on the session. A result that arrives after the
    session started aborting is dropped without retry or error.
    """

    def __init__(
        self,
        session: "UploadSession",
        backend: "StorageBackend",
        budget: RetryBudget,
    ):
        self.session = session
        self.backend = backend
        self.budget = budget

    async def upload(self, part: Part) -> Optional[CompletedPart]:
        """Upload ``part``, retrying failures while the budget allows.

        Returns:
            The accepted part, or None if the upload was cancelled.

        Raises:
            PartRetriesExhausted: If the part failed terminally.
        """
        try:
            return await self._upload(part)
        finally:
            part.dispose()

    async def _upload(self, part: Part) -> Optional[CompletedPart]:
        session = self.session
        if session.aborted:
            return None

        if part.path is not None:
            payload = await session.run_blocking(part.read)
        else:
            payload = part.read()
        if not payload:
            return None

        config = session.config
        loop = asyncio.get_running_loop()
        part_number = part.part_number

        def on_progress(bytes_sent: int) -> None:
            # Runs on a transport thread
            loop.call_soon_threadsafe(
                session.notify, "on_part_progress", part_number, bytes_sent, len(payload)
            )

        retries = 0
        while True:
            if session.aborted:
                return None

            session.notify("on_part_start", part_number)
            logger.debug(
                f"Uploading part {part_number} ({len(payload)} bytes), attempt {retries + 1}"
            )
            try:
                etag = await session.run_blocking(
                    self.backend.upload_part,
                    config.bucket,
                    config.key,
                    session.upload_id,
                    part_number,
                    payload,
                    on_progress,
                )
            except Exception as e:
                if session.aborted:
                    return None
                if not self.budget.allows(retries):
                    raise PartRetriesExhausted(part_number, retries + 1, e) from e
                retries += 1
                self.budget.consume()
                logger.warning(f"Error uploading part {part_number}: {e}, retrying")
                session.notify("on_part_retry", part_number, retries)
                continue

            if session.aborted:
                return None
            return self._accept(part_number, etag, len(payload))

    def _accept(self, part_number: int, etag: str, size: int) -> CompletedPart:
        session = self.session
        completed = CompletedPart(part_number=part_number, etag=etag)
        session.parts.append(completed)
        session.total_written += size

        total_size = session.total_size
        if session.stream_ended and total_size:
            total_percent = session.total_written / total_size * 100
        else:
            total_percent = 0.0

        info = ProgressInfo(
            part=part_number,
            part_size=size,
            total_written=session.total_written,
            total_size=total_size,
            total_percent=total_percent,
        )
        logger.debug(f"Part {part_number} accepted with ETag {etag}")
        session.notify("on_part_uploaded", part_number)
        session.notify("on_progress", info)
        return completed
