# Overview: Tests for the per-row debounced write queue.

"""
Write queue tests.

Covers:
- a burst of submits collapses into one write after the quiet period
- keys never write concurrently with themselves, including direct writes
  made under claim(), and flush() waits for writes already in flight
- hold() pauses the pump
- retry with exponential backoff, then the failed set
- the background pump thread
"""

import threading
import time

import pytest

from turnledger.client.backend import BackendError
from turnledger.client.write_queue import RowWriteQueue


class RecordingWriter:
    def __init__(self, failures: int = 0, exc_type=BackendError):
        self.calls = []
        self.failures = failures
        self.exc_type = exc_type

    def __call__(self, key):
        self.calls.append(key)
        if self.failures:
            self.failures -= 1
            raise self.exc_type("boom")


@pytest.fixture
def writer():
    return RecordingWriter()


@pytest.fixture
def queue(writer, clock):
    return RowWriteQueue(writer, delay=0.5, max_attempts=3, backoff_base=0.5, clock=clock)


# ============================================================================
# Debounce
# ============================================================================

class TestDebounce:

    def test_nothing_fires_before_quiet_period(self, queue, writer, clock):
        queue.submit("row-1")
        clock.advance(0.4)

        assert queue.run_due() == 0
        assert writer.calls == []
        assert queue.is_pending("row-1")

    def test_burst_collapses_into_one_write(self, queue, writer, clock):
        queue.submit("row-1")
        clock.advance(0.1)
        queue.submit("row-1")
        clock.advance(0.1)
        queue.submit("row-1")

        clock.advance(0.4)
        assert queue.run_due() == 0

        clock.advance(0.2)
        assert queue.run_due() == 1
        assert writer.calls == ["row-1"]
        assert not queue.is_pending("row-1")

    def test_keys_are_independent(self, queue, writer, clock):
        queue.submit("row-1")
        clock.advance(0.3)
        queue.submit("row-2")
        clock.advance(0.3)

        assert queue.run_due() == 1
        assert writer.calls == ["row-1"]

        clock.advance(0.3)
        assert queue.run_due() == 1
        assert writer.calls == ["row-1", "row-2"]

    def test_flush_fires_everything_now(self, queue, writer):
        queue.submit("row-1")
        queue.submit("row-2")

        assert queue.flush() == 2
        assert sorted(writer.calls) == ["row-1", "row-2"]
        assert queue.pending_keys() == []

    def test_cancel_drops_scheduled_write(self, queue, writer, clock):
        queue.submit("row-1")
        queue.cancel("row-1")
        clock.advance(1)

        assert queue.run_due() == 0
        assert writer.calls == []

    def test_next_deadline(self, queue, clock):
        assert queue.next_deadline() is None
        queue.submit("row-1")
        assert queue.next_deadline() == pytest.approx(clock() + 0.5)

    def test_max_attempts_must_be_positive(self, writer):
        with pytest.raises(ValueError):
            RowWriteQueue(writer, max_attempts=0)


# ============================================================================
# In-flight guard
# ============================================================================

class TestInFlight:

    def test_key_does_not_fire_while_in_flight(self, clock):
        calls = []

        def writer(key):
            calls.append(key)
            if len(calls) == 1:
                queue.submit(key)
                assert queue.run_due(now=clock() + 10) == 0

        queue = RowWriteQueue(writer, delay=0.5, clock=clock)
        queue.submit("row-1")
        queue.flush()

        assert calls == ["row-1"]
        assert queue.is_pending("row-1")

        clock.advance(0.5)
        assert queue.run_due() == 1
        assert calls == ["row-1", "row-1"]

    def test_failure_with_newer_edit_does_not_count_as_retry(self, clock):
        calls = []

        def writer(key):
            calls.append(key)
            if len(calls) == 1:
                queue.submit(key)
                raise BackendError("boom")

        queue = RowWriteQueue(writer, delay=0.5, max_attempts=1, clock=clock)
        queue.submit("row-1")
        queue.flush()

        assert not queue.is_failed("row-1")
        assert queue.is_pending("row-1")

        clock.advance(0.5)
        queue.run_due()
        assert calls == ["row-1", "row-1"]
        assert not queue.is_pending("row-1")

    def test_flush_waits_for_write_in_flight_elsewhere(self, clock):
        started, release = threading.Event(), threading.Event()
        done = []

        def writer(key):
            started.set()
            assert release.wait(5)
            done.append(key)

        queue = RowWriteQueue(writer, delay=0.5, clock=clock)
        queue.submit("row-1")
        clock.advance(0.5)
        pumper = threading.Thread(target=queue.run_due, daemon=True)
        pumper.start()
        assert started.wait(5)

        queue.submit("row-1")
        threading.Timer(0.05, release.set).start()
        fired = queue.flush()
        pumper.join(5)

        assert done == ["row-1", "row-1"]
        assert fired == 1
        assert not queue.is_pending("row-1")

    def test_claimed_key_waits_for_release(self, queue, writer, clock):
        with queue.claim("row-1"):
            queue.submit("row-1")
            assert queue.run_due(now=clock() + 10) == 0
            assert queue.is_pending("row-1")

        assert queue.flush() == 1
        assert writer.calls == ["row-1"]

    def test_hold_pauses_the_pump(self, queue, writer, clock):
        queue.submit("row-1")
        queue.submit("row-2")
        clock.advance(1)

        with queue.hold():
            assert queue.run_due() == 0
            assert writer.calls == []

        assert queue.run_due() == 2

    def test_flush_still_fires_during_hold(self, queue, writer):
        queue.submit("row-1")

        with queue.hold():
            assert queue.flush() == 1

        assert writer.calls == ["row-1"]


# ============================================================================
# Retry and failure
# ============================================================================

class TestRetry:

    def test_retries_with_exponential_backoff(self, clock):
        writer = RecordingWriter(failures=2)
        queue = RowWriteQueue(writer, delay=0.5, max_attempts=3, backoff_base=0.5, clock=clock)
        queue.submit("row-1")

        clock.advance(0.6)
        queue.run_due()
        assert len(writer.calls) == 1
        assert queue.next_deadline() == pytest.approx(clock() + 0.5)

        clock.advance(0.6)
        queue.run_due()
        assert len(writer.calls) == 2
        assert queue.next_deadline() == pytest.approx(clock() + 1.0)

        clock.advance(0.6)
        assert queue.run_due() == 0

        clock.advance(0.6)
        queue.run_due()
        assert len(writer.calls) == 3
        assert not queue.is_pending("row-1")
        assert not queue.is_failed("row-1")

    def test_exhausted_retries_mark_key_failed(self, clock):
        writer = RecordingWriter(failures=10)
        queue = RowWriteQueue(writer, delay=0.5, max_attempts=2, backoff_base=0.5, clock=clock)
        queue.submit("row-1")

        clock.advance(0.6)
        queue.run_due()
        clock.advance(0.6)
        queue.run_due()

        assert len(writer.calls) == 2
        assert queue.failed_keys() == ["row-1"]
        assert queue.is_failed("row-1")
        assert not queue.is_pending("row-1")

    def test_resubmitting_clears_failure(self, clock):
        writer = RecordingWriter(failures=1)
        queue = RowWriteQueue(writer, delay=0.5, max_attempts=1, clock=clock)
        queue.submit("row-1")
        queue.flush()
        assert queue.is_failed("row-1")

        queue.submit("row-1")
        assert not queue.is_failed("row-1")

        queue.flush()
        assert queue.failed_keys() == []
        assert len(writer.calls) == 2

    def test_unlisted_errors_propagate(self, clock):
        writer = RecordingWriter(failures=1, exc_type=KeyError)
        queue = RowWriteQueue(writer, retry_on=(BackendError,), clock=clock)
        queue.submit("row-1")

        with pytest.raises(KeyError):
            queue.flush()

        assert not queue.is_pending("row-1")
        assert not queue.is_failed("row-1")


# ============================================================================
# Background pump
# ============================================================================

class TestBackgroundPump:

    def test_pump_thread_writes_and_stops(self):
        writer = RecordingWriter()
        queue = RowWriteQueue(writer, delay=0.01)
        queue.start(poll_interval=0.005)
        assert queue.running

        queue.submit("row-1")
        deadline = time.monotonic() + 2
        while not writer.calls and time.monotonic() < deadline:
            time.sleep(0.01)

        queue.stop()
        assert writer.calls == ["row-1"]
        assert not queue.running

    def test_stop_flushes_outstanding_writes(self):
        writer = RecordingWriter()
        queue = RowWriteQueue(writer, delay=60)
        queue.start(poll_interval=0.005)
        queue.submit("row-1")

        queue.stop(flush=True)

        assert writer.calls == ["row-1"]
