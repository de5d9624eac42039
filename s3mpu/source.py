"""Input sources adapted to an async stream of byte chunks.

Accepted sources:
- a readable binary file object (anything with ``read(n)``)
- an iterable of bytes (generators, lists of chunks)
- an async iterable of bytes
- a filesystem path, via ``open_file``

Blocking reads run on ``executor`` (the loop default when None) so the
event loop keeps dispatching part uploads while the source is read.
"""

import asyncio
from concurrent.futures import Executor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, BinaryIO, Optional, Union

from s3mpu.errors import SourceError

_END = object()


async def iter_chunks(
    source: Any,
    read_size: int,
    executor: Optional[Executor] = None,
) -> AsyncIterator[bytes]:
    """Yield non-empty byte chunks from ``source`` in order.

    Raises:
        SourceError: If the source is of an unsupported type or fails
                     while being read.
    """
    if isinstance(source, (str, Path)):
        raise SourceError("Pass file paths as `file`, not `stream`")

    if isinstance(source, (bytes, bytearray, memoryview)):
        if source:
            yield bytes(source)
        return

    loop = asyncio.get_running_loop()
    try:
        if hasattr(source, "__aiter__"):
            async for chunk in source:
                if chunk:
                    yield bytes(chunk)
        elif hasattr(source, "read"):
            while True:
                chunk = await loop.run_in_executor(executor, source.read, read_size)
                if not chunk:
                    break
                yield bytes(chunk)
        elif hasattr(source, "__iter__"):
            iterator = iter(source)
            while True:
                chunk = await loop.run_in_executor(executor, next, iterator, _END)
                if chunk is _END:
                    break
                if chunk:
                    yield bytes(chunk)
        else:
            raise SourceError(f"Unsupported stream type: {type(source).__name__}")
    except SourceError:
        raise
    except (OSError, ValueError, TypeError) as e:
        raise SourceError(f"Error reading stream: {e}") from e


@asynccontextmanager
async def open_file(
    path: Union[str, Path],
    executor: Optional[Executor] = None,
) -> AsyncIterator[BinaryIO]:
    """Open ``path`` for binary reading, closing it on exit.

    Raises:
        SourceError: If the file does not exist or cannot be opened.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise SourceError(f"File does not exist: {path}")
    try:
        loop = asyncio.get_running_loop()
        f = await loop.run_in_executor(executor, open, file_path, "rb")
    except OSError as e:
        raise SourceError(f"Cannot open {path}: {e}") from e
    try:
        yield f
    finally:
        f.close()
