"""Tests for the token bucket and throttled stream."""

import io
import threading
import time

import pytest

from library.exceptions import FileAccessError, StreamCancelled
from library.throttle import DEFAULT_CHUNK_SIZE, ThrottledStream, TokenBucket

MIB = 1024 * 1024


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class SimulatedBucket(TokenBucket):
    """Token bucket whose waits advance a fake clock instead of sleeping."""

    def __init__(self, rate, clock):
        super().__init__(rate, clock=clock)
        self.waits = 0

    def _wait(self, timeout):
        self.waits += 1
        self._clock.now += timeout


# -----------------------------------------------------------------------------
# Tests for TokenBucket
# -----------------------------------------------------------------------------


class TestTokenBucket:
    """Tests for TokenBucket."""

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            TokenBucket(0)
        with pytest.raises(ValueError):
            TokenBucket(-10)

    def test_starts_full(self):
        clock = FakeClock()
        bucket = SimulatedBucket(1000, clock)
        bucket.consume(1000)
        assert clock.now == 0.0
        assert bucket.waits == 0

    def test_waits_for_refill(self):
        clock = FakeClock()
        bucket = SimulatedBucket(1000, clock)
        bucket.consume(1000)
        bucket.consume(500)
        assert clock.now == pytest.approx(0.5)

    def test_refill_capped_at_capacity(self):
        clock = FakeClock()
        bucket = SimulatedBucket(1000, clock)
        bucket.consume(1000)
        clock.now = 60.0  # idle for a minute
        bucket.consume(1000)
        bucket.consume(1000)
        # Only one second's worth accumulated while idle
        assert clock.now == pytest.approx(61.0)

    def test_consume_more_than_capacity(self):
        bucket = TokenBucket(100)
        with pytest.raises(ValueError):
            bucket.consume(101)

    def test_cancel_before_consume(self):
        bucket = TokenBucket(100)
        bucket.cancel()
        assert bucket.cancelled
        with pytest.raises(StreamCancelled):
            bucket.consume(1)

    def test_cancel_wakes_blocked_waiter(self):
        bucket = TokenBucket(10)
        bucket.consume(10)  # empty: the next 10 tokens take a full second
        outcome = {}

        def reader():
            started = time.monotonic()
            try:
                bucket.consume(10)
                outcome["result"] = "consumed"
            except StreamCancelled:
                outcome["result"] = "cancelled"
            outcome["elapsed"] = time.monotonic() - started

        thread = threading.Thread(target=reader)
        thread.start()
        time.sleep(0.05)
        bucket.cancel()
        thread.join(timeout=2)

        assert not thread.is_alive()
        assert outcome["result"] == "cancelled"
        assert outcome["elapsed"] < 0.9


# -----------------------------------------------------------------------------
# Tests for ThrottledStream
# -----------------------------------------------------------------------------


class TestThrottledStream:
    """Tests for ThrottledStream."""

    def test_full_download_rate(self):
        """10 MiB at 1 MiB/s takes between 9 and 11 seconds."""
        clock = FakeClock()
        data = b"\x00" * (10 * MIB)
        stream = ThrottledStream(
            io.BytesIO(data), 0, len(data) - 1, bucket=SimulatedBucket(MIB, clock)
        )

        total = sum(len(chunk) for chunk in stream)

        assert total == len(data)
        assert 9.0 <= clock.now <= 11.0

    def test_real_time_throttling(self):
        data = b"x" * 4096
        stream = ThrottledStream(io.BytesIO(data), 0, len(data) - 1, limit=2048)

        started = time.monotonic()
        received = b"".join(stream)
        elapsed = time.monotonic() - started

        assert received == data
        # First second's worth is the initial burst, the rest is paced
        assert elapsed >= 0.9

    @pytest.mark.parametrize("limit", [None, 0, -5])
    def test_unlimited_passthrough(self, limit):
        data = bytes(range(256)) * 1024
        stream = ThrottledStream(io.BytesIO(data), 0, len(data) - 1, limit=limit)

        assert stream.bucket is None
        assert stream.chunk_size == DEFAULT_CHUNK_SIZE
        assert b"".join(stream) == data

    def test_serves_requested_slice(self):
        stream = ThrottledStream(io.BytesIO(b"0123456789"), 2, 5)
        assert b"".join(stream) == b"2345"
        assert stream.bytes_sent == 4

    def test_chunk_size_bounded_by_capacity(self):
        stream = ThrottledStream(io.BytesIO(b"a" * 5000), 0, 4999, limit=1000)
        chunks = list(stream)
        assert stream.chunk_size == 1000
        assert all(len(chunk) <= 1000 for chunk in chunks)

    def test_each_stream_has_its_own_bucket(self):
        first = ThrottledStream(io.BytesIO(b"a" * 10), 0, 9, limit=100)
        second = ThrottledStream(io.BytesIO(b"b" * 10), 0, 9, limit=100)
        assert first.bucket is not second.bucket

    def test_close_releases_file_and_stops(self):
        fileobj = io.BytesIO(b"a" * 100)
        stream = ThrottledStream(fileobj, 0, 99, limit=10)

        stream.close()

        assert fileobj.closed
        assert stream.bucket.cancelled
        assert list(stream) == []

    def test_close_is_idempotent(self):
        stream = ThrottledStream(io.BytesIO(b"abc"), 0, 2)
        stream.close()
        stream.close()
        assert stream.closed

    def test_truncated_file(self):
        stream = ThrottledStream(io.BytesIO(b"12345"), 0, 9)
        with pytest.raises(FileAccessError):
            list(stream)

    def test_empty_interval(self):
        stream = ThrottledStream(io.BytesIO(b""), 0, -1)
        assert list(stream) == []
