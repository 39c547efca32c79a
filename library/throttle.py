"""Bandwidth throttling for file downloads.

Each download gets its own token bucket; concurrent downloads never share
one. A reader that runs out of tokens waits on a condition variable, and
closing the stream wakes it up so a disconnected client stops holding the
file handle.
"""

import logging
import threading
import time
from typing import BinaryIO, Callable, Optional

from .exceptions import FileAccessError, StreamCancelled

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024  # 64 KiB


class TokenBucket:
    """Token bucket refilled at ``rate`` tokens per second.

    Capacity (the burst ceiling) is one second's worth of tokens and the
    bucket starts full.
    """

    def __init__(self, rate: int, clock: Callable[[], float] = time.monotonic):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = rate
        self._tokens = float(rate)
        self._clock = clock
        self._last_refill = clock()
        self._condition = threading.Condition()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last_refill = now

    def _wait(self, timeout: float) -> None:
        self._condition.wait(timeout)

    def consume(self, amount: int) -> None:
        """
        Take ``amount`` tokens, blocking until they are available.

        Raises:
            ValueError: If amount exceeds the bucket capacity
            StreamCancelled: If the bucket is cancelled before or while waiting
        """
        if amount > self.capacity:
            raise ValueError(
                f"cannot consume {amount} tokens from a bucket of {self.capacity}"
            )
        with self._condition:
            while True:
                if self._cancelled:
                    raise StreamCancelled("Download cancelled")
                self._refill()
                if self._tokens >= amount:
                    self._tokens -= amount
                    return
                self._wait((amount - self._tokens) / self.rate)

    def cancel(self) -> None:
        """Wake every waiter; subsequent consume() calls raise StreamCancelled."""
        with self._condition:
            self._cancelled = True
            self._condition.notify_all()


class ThrottledStream:
    """Iterator over bytes [start, end] of a file, optionally rate limited.

    A missing or non-positive ``limit`` streams without any throttling.
    Django calls ``close()`` when the response finishes or the client goes
    away.
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        start: int,
        end: int,
        limit: Optional[int] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        bucket: Optional[TokenBucket] = None,
    ):
        self._file = fileobj
        self._remaining = max(0, end - start + 1)
        if bucket is None and limit is not None and limit > 0:
            bucket = TokenBucket(limit)
        self.bucket = bucket
        self.chunk_size = min(chunk_size, bucket.capacity) if bucket else chunk_size
        self.bytes_sent = 0
        self.closed = False
        self._file.seek(start)

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        if self.closed or self._remaining <= 0:
            raise StopIteration

        size = min(self.chunk_size, self._remaining)
        if self.bucket is not None:
            self.bucket.consume(size)

        chunk = self._file.read(size)
        if not chunk:
            raise FileAccessError(
                "File ended before the requested range was sent",
                path=getattr(self._file, "name", None),
            )

        self._remaining -= len(chunk)
        self.bytes_sent += len(chunk)
        return chunk

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.bucket is not None:
            self.bucket.cancel()
        self._file.close()
        logger.debug("Closed stream after %d bytes", self.bytes_sent)
