"""
Per-row write queue of depth one.

Each key (a grid row) has at most one scheduled write. ``submit`` re-arms the
key's quiet-period deadline, so a burst of edits collapses into a single
call of ``writer(key)``; the writer reads the row's latest state when it
runs, so the last edit always wins.

A key is never written twice at once: while its write is in flight a new
deadline may be set, but the key only fires again after the first write
returns. ``claim(key)`` lets a caller write a key directly under the same
guard, and ``hold()`` keeps the pump idle while the caller does something
that must not interleave with writes.

Failures of the types in ``retry_on`` are rescheduled with exponential
backoff (``backoff_base * 2 ** (attempt - 1)``) until ``max_attempts``, after
which the key is reported by ``failed_keys()`` until it is submitted again.
Other exceptions propagate to whoever is pumping the queue.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Hashable, Iterator

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.5


class RowWriteQueue:
    def __init__(
        self,
        writer: Callable[[Hashable], None],
        *,
        delay: float = DEFAULT_DELAY,
        max_attempts: int = 3,
        backoff_base: float = 0.5,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._writer = writer
        self.delay = delay
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self._retry_on = retry_on
        self._clock = clock

        self._deadlines: dict[Hashable, float] = {}
        self._attempts: dict[Hashable, int] = {}
        self._inflight: set[Hashable] = set()
        self._failed: set[Hashable] = set()
        self._held = 0
        self._lock = threading.Lock()
        # Notified whenever a key leaves _inflight
        self._idle = threading.Condition(self._lock)

        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    # -- scheduling -----------------------------------------------------

    def submit(self, key: Hashable) -> None:
        """Schedule a write for ``key`` after the quiet period, replacing any earlier deadline."""
        with self._lock:
            self._deadlines[key] = self._clock() + self.delay
            self._attempts.pop(key, None)
            self._failed.discard(key)

    def cancel(self, key: Hashable) -> None:
        with self._lock:
            self._deadlines.pop(key, None)
            self._attempts.pop(key, None)
            self._failed.discard(key)

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._deadlines or key in self._inflight

    def is_failed(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._failed

    def pending_keys(self) -> list[Hashable]:
        with self._lock:
            return list(self._deadlines)

    def failed_keys(self) -> list[Hashable]:
        with self._lock:
            return list(self._failed)

    def next_deadline(self) -> float | None:
        with self._lock:
            return min(self._deadlines.values(), default=None)

    # -- firing ---------------------------------------------------------

    def _take(self, keys) -> list[Hashable]:
        taken = []
        for key in keys:
            if key in self._inflight or key not in self._deadlines:
                continue
            del self._deadlines[key]
            self._inflight.add(key)
            taken.append(key)
        return taken

    def run_due(self, now: float | None = None) -> int:
        """
        Fire every key whose deadline has passed. Returns the number fired.

        Fires nothing while a hold() is open.
        """
        with self._lock:
            if self._held:
                return 0
            if now is None:
                now = self._clock()
            due = self._take([k for k, deadline in self._deadlines.items() if deadline <= now])
        for key in due:
            self._fire(key)
        return len(due)

    def flush(self) -> int:
        """
        Fire every scheduled key now, once. Retries stay scheduled.

        A key already being written elsewhere is waited for, and fired
        afterwards if an edit arrived meanwhile, so on return nothing that
        was outstanding at the call is still in flight.
        """
        with self._lock:
            remaining = set(self._deadlines) | self._inflight
        fired = 0
        while remaining:
            with self._idle:
                ready = [key for key in remaining if key not in self._inflight]
                while not ready:
                    self._idle.wait()
                    ready = [key for key in remaining if key not in self._inflight]
                remaining.difference_update(ready)
                due = self._take(ready)
            for key in due:
                self._fire(key)
            fired += len(due)
        return fired

    def _fire(self, key: Hashable) -> None:
        try:
            self._writer(key)
        except self._retry_on as exc:
            self._record_failure(key, exc)
        else:
            with self._lock:
                self._attempts.pop(key, None)
        finally:
            self._release(key)

    def _release(self, key: Hashable) -> None:
        with self._idle:
            self._inflight.discard(key)
            self._idle.notify_all()

    @contextmanager
    def claim(self, key: Hashable) -> Iterator[None]:
        """
        Mark ``key`` in flight while the caller writes it directly.

        Waits for a write already running for the key. Edits submitted
        meanwhile stay scheduled and fire after the claim is released.
        """
        with self._idle:
            while key in self._inflight:
                self._idle.wait()
            self._inflight.add(key)
        try:
            yield
        finally:
            self._release(key)

    @contextmanager
    def hold(self) -> Iterator[None]:
        """
        Keep the pump from firing until the block exits.

        Entering waits for writes already in flight. flush() still fires
        from the calling thread.
        """
        with self._idle:
            self._held += 1
            while self._inflight:
                self._idle.wait()
        try:
            yield
        finally:
            with self._lock:
                self._held -= 1

    def _record_failure(self, key: Hashable, exc: BaseException) -> None:
        with self._lock:
            if key in self._deadlines:
                # Edited while the write was in flight; the newer write supersedes the retry
                self._attempts.pop(key, None)
                logger.warning("Write for %r failed (%s); newer edit pending", key, exc)
                return

            attempt = self._attempts.get(key, 0) + 1
            self._attempts[key] = attempt
            if attempt < self.max_attempts:
                backoff = self.backoff_base * (2 ** (attempt - 1))
                self._deadlines[key] = self._clock() + backoff
                logger.warning(
                    "Write for %r failed (attempt %d/%d): %s; retrying in %.2fs",
                    key, attempt, self.max_attempts, exc, backoff,
                )
            else:
                self._attempts.pop(key, None)
                self._failed.add(key)
                logger.error("Write for %r failed after %d attempts: %s", key, attempt, exc)

    # -- background pump ------------------------------------------------

    def start(self, poll_interval: float = 0.05) -> None:
        """Pump the queue from a daemon thread until stop()."""
        if self._thread is not None:
            return
        self._stop.clear()

        def _loop():
            while not self._stop.wait(poll_interval):
                try:
                    self.run_due()
                except Exception:
                    logger.exception("Write queue pump failed")

        self._thread = threading.Thread(target=_loop, name="row-write-queue", daemon=True)
        self._thread.start()

    def stop(self, flush: bool = True) -> None:
        if self._thread is not None:
            self._stop.set()
            self._thread.join()
            self._thread = None
        if flush:
            self.flush()

    @property
    def running(self) -> bool:
        return self._thread is not None
