from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, BinaryIO

from ._threads import run_sync
from .errors import BackingFileMissing, BackingStoreCorrupt

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from .models import SegmentRecord
    from .sinks import ResponseSink

LOG = logging.getLogger("blob_site.assembler")


def open_backing_file(path: str) -> BinaryIO:
    """Open a backing file read-only without taking any lock on it."""
    return open(path, "rb", buffering=0)


def _read_at(handle: BinaryIO, offset: int, view: memoryview) -> int:
    handle.seek(offset)
    total = 0
    while total < len(view):
        count = handle.readinto(view[total:])
        if not count:
            break
        total += count
    return total


class BufferPool:
    """Bounded arena of reusable read buffers.

    Buffers are handed out in power-of-two size classes. Released buffers are
    kept for reuse while the class holds fewer than ``max_per_class`` idle
    buffers and the idle total stays within ``max_bytes``; anything beyond
    that is dropped. Safe to share between concurrent requests.
    """

    def __init__(
        self,
        max_bytes: int = 64 * 1024 * 1024,
        max_per_class: int = 8,
        min_size: int = 4096,
    ):
        self._max_bytes = max_bytes
        self._max_per_class = max_per_class
        self._min_size = min_size
        self._lock = threading.Lock()
        self._idle: dict[int, list[bytearray]] = {}
        self._idle_bytes = 0
        self._outstanding = 0

    @property
    def outstanding(self) -> int:
        """Number of buffers currently leased out."""
        with self._lock:
            return self._outstanding

    @property
    def idle_bytes(self) -> int:
        with self._lock:
            return self._idle_bytes

    @property
    def idle_buffers(self) -> int:
        with self._lock:
            return sum(len(buffers) for buffers in self._idle.values())

    def idle_by_class(self) -> dict[int, int]:
        """Idle buffer count per size class."""
        with self._lock:
            return {
                capacity: len(buffers)
                for capacity, buffers in self._idle.items()
                if buffers
            }

    def size_class(self, size: int) -> int:
        capacity = self._min_size
        while capacity < size:
            capacity <<= 1
        return capacity

    def acquire(self, size: int) -> bytearray:
        capacity = self.size_class(size)
        with self._lock:
            self._outstanding += 1
            idle = self._idle.get(capacity)
            if idle:
                self._idle_bytes -= capacity
                return idle.pop()
        return bytearray(capacity)

    def release(self, buffer: bytearray) -> None:
        capacity = len(buffer)
        with self._lock:
            self._outstanding -= 1
            if capacity != self.size_class(capacity):
                return
            idle = self._idle.setdefault(capacity, [])
            if len(idle) >= self._max_per_class:
                return
            if self._idle_bytes + capacity > self._max_bytes:
                return
            idle.append(buffer)
            self._idle_bytes += capacity

    @contextmanager
    def lease(self, size: int) -> Iterator[bytearray]:
        buffer = self.acquire(size)
        try:
            yield buffer
        finally:
            self.release(buffer)


class SegmentStreamAssembler:
    """Copies an object's segments, in order, from backing files to a sink.

    A backing file stays open for a run of consecutive segments that name it
    and is reopened whenever the path changes, including a return to a file
    used earlier in the list. Each segment is read through one pooled buffer
    of at most ``max_read_size`` bytes, so a segment larger than that is
    copied in several reads.
    """

    def __init__(
        self,
        pool: BufferPool,
        *,
        max_read_size: int = 4 * 1024 * 1024,
        opener: Callable[[str], BinaryIO] = open_backing_file,
    ):
        self._pool = pool
        self._max_read_size = max_read_size
        self._opener = opener

    @property
    def pool(self) -> BufferPool:
        return self._pool

    async def stream(
        self, segments: Iterable[SegmentRecord], sink: ResponseSink
    ) -> int:
        """Write every segment to ``sink`` and flush it.

        Returns:
            Number of bytes written.

        Raises:
            BackingFileMissing: A backing file or its directory is missing.
            BackingStoreCorrupt: A backing file ends inside a segment.
        """
        current_path: str | None = None
        handle: BinaryIO | None = None
        written = 0
        try:
            for segment in segments:
                if segment.file_path != current_path:
                    if handle is not None:
                        handle.close()
                        handle = None
                    handle = await run_sync(self._open, segment.file_path)
                    current_path = segment.file_path
                assert handle is not None
                written += await self._copy_segment(handle, segment, sink)
            await sink.flush()
        finally:
            if handle is not None:
                handle.close()
        return written

    def _open(self, path: str) -> BinaryIO:
        try:
            handle = self._opener(path)
        except (FileNotFoundError, NotADirectoryError) as error:
            raise BackingFileMissing(path) from error
        LOG.debug("opened backing file %s", path)
        return handle

    async def _copy_segment(
        self, handle: BinaryIO, segment: SegmentRecord, sink: ResponseSink
    ) -> int:
        remaining = segment.length
        if remaining <= 0:
            return 0
        position = segment.start_offset
        with self._pool.lease(min(remaining, self._max_read_size)) as buffer:
            view = memoryview(buffer)
            while remaining:
                size = min(remaining, self._max_read_size)
                chunk = view[:size]
                count = await run_sync(_read_at, handle, position, chunk)
                if count < size:
                    raise BackingStoreCorrupt(
                        segment.file_path, position, size, count
                    )
                await sink.write(chunk)
                remaining -= size
                position += size
        return segment.length
