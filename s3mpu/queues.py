"""Work queues feeding the part uploader.

PendingQueue holds parts produced before the upload identity exists.
ConcurrencyQueue is an asyncio worker pool bounded by the configured
concurrency, with pause/resume/kill and a drain wait.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PendingQueue(Generic[T]):
    """Ordered holding area that is retired once released."""

    def __init__(self) -> None:
        self._items: list[T] = []
        self.retired = False

    def __len__(self) -> int:
        return len(self._items)

    def push(self, item: T) -> None:
        if self.retired:
            raise RuntimeError("PendingQueue has been released")
        self._items.append(item)

    def release_into(self, queue: "ConcurrencyQueue[T]") -> int:
        """Move every held item, in order, into ``queue`` and retire.

        Returns:
            Number of items moved.
        """
        moved = len(self._items)
        items, self._items = self._items, []
        self.retired = True
        for item in items:
            queue.push(item)
        return moved

    def clear(self) -> list[T]:
        """Drop all held items and retire. Returns what was dropped."""
        items, self._items = self._items, []
        self.retired = True
        return items


class ConcurrencyQueue(Generic[T]):
    """Runs ``worker(item)`` for pushed items, at most ``concurrency`` at once.

    Completion order is not guaranteed. Must be used from a running event
    loop. Exceptions escaping the worker are passed to ``on_error``.
    """

    def __init__(
        self,
        worker: Callable[[T], Awaitable[None]],
        concurrency: int,
        on_error: Optional[Callable[[T, Exception], None]] = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._worker = worker
        self.concurrency = concurrency
        self._on_error = on_error
        self._items: deque[T] = deque()
        self._tasks: set[asyncio.Task] = set()
        self._waiters: list[asyncio.Future] = []
        self.running = 0
        self.paused = False
        self.killed = False

    @property
    def length(self) -> int:
        """Items waiting to be dispatched."""
        return len(self._items)

    @property
    def idle(self) -> bool:
        """True when nothing is queued or running."""
        return not self._items and self.running == 0

    def push(self, item: T) -> None:
        if self.killed:
            raise RuntimeError("Cannot push to a killed queue")
        self._items.append(item)
        self._process()

    def pause(self) -> None:
        """Stop dispatching new work. In-flight work keeps running."""
        self.paused = True

    def resume(self) -> None:
        if not self.paused:
            return
        self.paused = False
        self._process()

    def kill(self) -> list[T]:
        """Discard work that has not started and release join() waiters.

        Returns:
            The discarded items.
        """
        dropped = list(self._items)
        self._items.clear()
        self.killed = True
        self._wake_waiters()
        return dropped

    async def join(self) -> None:
        """Wait until the queue is drained or killed."""
        if self.idle or self.killed:
            return
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    def _process(self) -> None:
        while not self.paused and self._items and self.running < self.concurrency:
            item = self._items.popleft()
            self.running += 1
            task = asyncio.get_running_loop().create_task(self._run(item))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, item: T) -> None:
        try:
            await self._worker(item)
        except Exception as e:
            if self._on_error is not None:
                self._on_error(item, e)
            else:
                logger.exception(f"Unhandled error in queue worker for {item!r}")
        finally:
            self.running -= 1
            if not self.killed:
                self._process()
            if self.idle:
                self._wake_waiters()

    def _wake_waiters(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
