"""Multipart upload session lifecycle.

An UploadSession drives one upload through an explicit state machine:

    initializing -> active -> completing -> complete
          \\            \\           \\
           +------------+-----------+--> aborting -> aborted

- initializing: the backend issues the upload identity. Stream input is
  already being read; its parts wait in the PendingQueue.
- active: the source is chunked into parts which are uploaded by the
  ConcurrencyQueue. Stream end plus a drained queue moves to completing.
- completing: accepted parts are sorted by part number and the upload is
  completed on the backend.
- aborting/aborted: reachable from every state and sticky. Queued and
  buffered data is discarded and the backend abort call is issued once.

Reporter hooks are a side channel for observers; they never drive the
state machine.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import aclosing
from typing import Any, Awaitable, Callable, Optional, TypeVar

from s3mpu.backends import StorageBackend
from s3mpu.config import UploadConfig
from s3mpu.errors import SourceError, UploadAborted, UploadSizeExceeded
from s3mpu.models import CompletedPart, Part, SessionState, UploadResult
from s3mpu.part_buffer import PartBuffer
from s3mpu.part_uploader import PartUploader
from s3mpu.queues import ConcurrencyQueue, PendingQueue
from s3mpu.reporters.base import Reporter
from s3mpu.retry import RetryBudget
from s3mpu.source import iter_chunks, open_file

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UploadSession:
    """Uploads one stream or file as an S3 multipart upload.

    Usage:
        session = UploadSession(config, S3Backend(client), reporter)
        result = await session.upload()    # or session.run()

    ``abort()``, ``pause()`` and ``resume()`` may be called from reporter
    hooks or other tasks on the same event loop while ``upload()`` runs.
    """

    def __init__(
        self,
        config: UploadConfig,
        backend: StorageBackend,
        reporter: Optional[Reporter] = None,
    ):
        """Initialize the session.

        Args:
            config: Validated upload options
            backend: Storage backend implementing the multipart operations
            reporter: Optional observer for progress callbacks
        """
        self.config = config
        self.backend = backend
        self.reporter = reporter

        self.state = SessionState.INITIALIZING
        self.upload_id: Optional[str] = None
        self.parts: list[CompletedPart] = []
        self.total_written = 0
        self.error: Optional[Exception] = None
        self.result: Optional[UploadResult] = None

        self.budget = RetryBudget(config.max_part_retries, config.max_total_retries)
        self.buffer = PartBuffer(
            min_part_size=config.min_part_size,
            max_part_size=config.max_part_size,
            max_total_size=config.max_total_size,
            spool=not config.no_disk,
            spool_dir=config.spool_dir,
        )
        self.pending: PendingQueue[Part] = PendingQueue()
        self.uploader = PartUploader(self, backend, self.budget)

        # One thread per upload slot plus one for create/complete/abort
        self._executor = ThreadPoolExecutor(
            max_workers=config.concurrency + 1, thread_name_prefix="s3mpu-upload"
        )
        self._reader_executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="s3mpu-reader"
        )
        self._queue: Optional[ConcurrencyQueue[Part]] = None
        self._reader: Optional[asyncio.Task] = None
        self._abort_event = asyncio.Event()
        self._abort_sent = False
        self._paused = False
        self._started = False

    @property
    def aborted(self) -> bool:
        """True once the session entered aborting or aborted."""
        return self.state.is_aborted

    @property
    def num_parts(self) -> int:
        return self.buffer.num_parts

    @property
    def total_size(self) -> int:
        """Bytes read from the source so far."""
        return self.buffer.total_size

    @property
    def stream_ended(self) -> bool:
        return self.buffer.ended

    @property
    def retries(self) -> int:
        return self.budget.used

    def run(self) -> UploadResult:
        """Run the upload on a fresh event loop."""
        return asyncio.run(self.upload())

    async def upload(self) -> UploadResult:
        """Perform the upload.

        Returns:
            The UploadResult of the completed upload.

        Raises:
            UploadAborted: If abort() was requested.
            Exception: The error that made the session abort.
            RuntimeError: If called more than once.
        """
        if self._started:
            raise RuntimeError("upload() can only be called once per session")
        self._started = True

        try:
            return await self._upload()
        finally:
            # Threads still blocked in a backend call or a read are not waited for
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._reader_executor.shutdown(wait=False, cancel_futures=True)

    async def run_blocking(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking backend call on the session's thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def _upload(self) -> UploadResult:
        queue: ConcurrencyQueue[Part] = ConcurrencyQueue(
            self._upload_part,
            self.config.concurrency,
            on_error=self._on_part_error,
        )
        self._queue = queue
        if self._paused:
            queue.pause()

        try:
            if not self.aborted:
                await self._run(queue)
        except asyncio.CancelledError:
            logger.warning("Upload cancelled, aborting")
            self.abort()
            await self._finish_abort()
            raise
        except Exception as e:
            self.fail(e)

        if self.aborted:
            await self._finish_abort()
            if self.error is not None:
                raise self.error
            raise UploadAborted(self.upload_id)

        if self.result is None:
            raise RuntimeError(f"Upload {self.upload_id} ended without a result")
        return self.result

    def abort(self) -> None:
        """Abort the upload. Calling it again has no effect."""
        if self.aborted:
            return

        self.state = SessionState.ABORTING
        logger.info(f"Aborting upload {self.upload_id} of {self.config.key}")

        self.buffer.discard()
        for part in self.pending.clear():
            part.dispose()
        if self._queue is not None:
            for part in self._queue.kill():
                part.dispose()

        self.notify("on_aborting", self.upload_id)
        self._abort_event.set()

    def fail(self, error: Exception) -> None:
        """Report ``error`` once and abort. Ignored once aborting."""
        if self.aborted:
            logger.debug(f"Ignoring error after abort: {error}")
            return

        self.error = error
        logger.error(f"Upload of {self.config.key} failed: {error}")
        self.notify("on_error", error)
        self.abort()

    def pause(self) -> None:
        """Stop starting new part uploads. In-flight parts continue."""
        if self.aborted:
            return
        self._paused = True
        if self._queue is not None:
            self._queue.pause()

    def resume(self) -> None:
        if self.aborted:
            return
        self._paused = False
        if self._queue is not None:
            self._queue.resume()

    def notify(self, hook: str, *args: Any) -> None:
        """Call a reporter hook. Reporter errors are logged, never raised."""
        if self.reporter is None:
            return
        try:
            getattr(self.reporter, hook)(*args)
        except Exception:
            logger.exception(f"Error in reporter hook {hook}")

    async def _run(self, queue: ConcurrencyQueue[Part]) -> None:
        config = self.config

        reader: Optional[asyncio.Task] = None
        if config.stream is not None:
            reader = self._reader = asyncio.create_task(self._consume(config.stream))

        logger.info(f"Creating multipart upload for {config.bucket}/{config.key}")
        upload_id = await self.run_blocking(
            self.backend.create_upload,
            config.bucket,
            config.key,
            config.create_params(),
        )
        self.upload_id = upload_id
        if self.aborted:
            return

        self.state = SessionState.ACTIVE
        logger.info(f"Upload id {upload_id} acquired for {config.key}")
        self.notify("on_upload_id", upload_id)
        if self.aborted:
            return

        moved = self.pending.release_into(queue)
        if moved:
            logger.debug(f"Released {moved} pending part(s) into the upload queue")

        if reader is None:
            reader = self._reader = asyncio.create_task(self._consume_file(config.file))

        if not await self._until_aborted(reader):
            return
        if not await self._until_aborted(queue.join()):
            return

        await self._complete()

    async def _until_aborted(self, awaitable: Awaitable[Any]) -> bool:
        """Wait for ``awaitable`` unless the session aborts first.

        Returns:
            False if the session is aborted.
        """
        task = asyncio.ensure_future(awaitable)
        abort_wait = asyncio.ensure_future(self._abort_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, abort_wait}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            abort_wait.cancel()

        if task not in done:
            task.cancel()
            return False
        task.result()
        return not self.aborted

    async def _consume(self, stream: Any) -> None:
        """Read the source into parts until it ends or the session aborts."""
        try:
            chunk_iter = iter_chunks(stream, self.config.read_size, self._reader_executor)
            async with aclosing(chunk_iter) as chunks:
                async for chunk in chunks:
                    if self.aborted:
                        return
                    try:
                        parts = self.buffer.feed(chunk)
                    except UploadSizeExceeded as e:
                        logger.error(str(e))
                        self.notify("on_size_exceeded", e.total_size)
                        self.fail(e)
                        return
                    for part in parts:
                        self._push(part)

            if self.aborted:
                return
            last = self.buffer.end()
            if last is not None:
                self._push(last)
            logger.info(
                f"Source ended after {self.total_size} bytes in {self.num_parts} part(s)"
            )
        except SourceError as e:
            self.fail(e)
        except Exception as e:
            self.fail(SourceError(f"Error reading stream: {e}"))

    async def _consume_file(self, path: Any) -> None:
        try:
            async with open_file(path, self._reader_executor) as f:
                await self._consume(f)
        except SourceError as e:
            self.fail(e)

    def _push(self, part: Part) -> None:
        if self.aborted:
            part.dispose()
            return
        if self.pending.retired and self._queue is not None:
            self._queue.push(part)
        else:
            self.pending.push(part)

    async def _upload_part(self, part: Part) -> None:
        await self.uploader.upload(part)

    def _on_part_error(self, part: Part, error: Exception) -> None:
        self.fail(error)

    async def _complete(self) -> None:
        config = self.config
        self.state = SessionState.COMPLETING

        parts = sorted(self.parts, key=lambda p: p.part_number)
        logger.info(f"Completing upload {self.upload_id} with {len(parts)} part(s)")
        self.notify("on_completing", self.upload_id)

        response = await self.run_blocking(
            self.backend.complete_upload,
            config.bucket,
            config.key,
            self.upload_id,
            parts,
        )
        if self.aborted:
            return

        self.state = SessionState.COMPLETE
        self.result = UploadResult(
            upload_id=self.upload_id,
            parts=parts,
            total_written=self.total_written,
            total_size=self.total_size,
            retries=self.retries,
            response=response or {},
        )
        logger.info(
            f"Upload of {config.bucket}/{config.key} complete: {self.total_written} bytes"
        )
        self.notify("on_complete", self.result)

    async def _finish_abort(self) -> None:
        if self.state is SessionState.ABORTED:
            return

        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass

        abort_error: Optional[Exception] = None
        if self.upload_id is not None and not self._abort_sent:
            self._abort_sent = True
            try:
                await self.run_blocking(
                    self.backend.abort_upload,
                    self.config.bucket,
                    self.config.key,
                    self.upload_id,
                )
            except Exception as e:
                abort_error = e
                logger.error(f"Error aborting upload {self.upload_id}: {e}")

        self.state = SessionState.ABORTED
        logger.info(f"Upload {self.upload_id} aborted")
        self.notify("on_aborted", self.upload_id, abort_error)
