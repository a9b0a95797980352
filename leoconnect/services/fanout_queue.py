"""
leoconnect.services.fanout_queue — Bounded background fan-out
==============================================================

Creating a post must not wait for one notification row per follower.  The
route submits a :class:`FanoutJob` and returns; a single background worker
pulls jobs off an :class:`asyncio.Queue` and runs the handler (normally
:func:`leoconnect.services.notification_service.fan_out_new_post` on a worker
thread).

Delivery policy:
    * The queue is bounded.  When it is full the job is **dropped** and the
      drop is recorded; nothing blocks the request path.
    * Jobs live only in process memory.  A crash or restart loses whatever
      is still queued.  Nothing is retried.
    * Per-recipient failures reported by the handler, and handler crashes,
      go to :class:`FailureLog`, a fixed-size ring buffer exposed on the
      admin status endpoint.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000
DEFAULT_FAILURE_CAPACITY = 500


def _now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(slots=True, frozen=True)
class FanoutJob:
    """One "new post" fan-out request."""
    author_id: str
    author_name: str
    post_id: str
    preview: str
    submitted_at: str = field(default_factory=_now)


# Handler returns (recipient_id, error) per failed recipient
FanoutHandler = Callable[[FanoutJob], Awaitable[list[tuple[str, str]]]]


class FailureEntry:
    """One recorded fan-out failure."""
    __slots__ = ("timestamp", "post_id", "recipient_id", "error")

    def __init__(self, timestamp: str, post_id: str, recipient_id: str | None, error: str):
        self.timestamp = timestamp
        self.post_id = post_id
        self.recipient_id = recipient_id
        self.error = error

    def to_dict(self) -> dict[str, str | None]:
        return {
            "timestamp": self.timestamp,
            "postId": self.post_id,
            "recipientId": self.recipient_id,
            "error": self.error,
        }


class FailureLog:
    """Thread-safe ring buffer backed by :class:`collections.deque`."""

    def __init__(self, capacity: int = DEFAULT_FAILURE_CAPACITY) -> None:
        self._entries: deque[FailureEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._total = 0

    def record(self, post_id: str, recipient_id: str | None, error: str) -> None:
        with self._lock:
            self._entries.append(FailureEntry(_now(), post_id, recipient_id, error))
            self._total += 1

    def get_entries(self, tail: int = 100) -> list[dict[str, str | None]]:
        with self._lock:
            snapshot = list(self._entries)
        if tail and len(snapshot) > tail:
            snapshot = snapshot[-tail:]
        return [e.to_dict() for e in snapshot]

    @property
    def total(self) -> int:
        """Failures recorded since start, including ones rotated out."""
        with self._lock:
            return self._total

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)


class FanoutQueue:
    """Bounded job queue drained by one background task."""

    def __init__(
        self,
        handler: FanoutHandler,
        maxsize: int = DEFAULT_QUEUE_SIZE,
        failure_capacity: int = DEFAULT_FAILURE_CAPACITY,
    ) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[FanoutJob] = asyncio.Queue(maxsize=maxsize)
        self.maxsize = maxsize
        self.failures = FailureLog(failure_capacity)
        self._worker: asyncio.Task | None = None
        self.processed = 0
        self.dropped = 0

    # -- producer side ------------------------------------------------------
    def submit(self, job: FanoutJob) -> bool:
        """Enqueue without waiting.  False when the job was dropped."""
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self.dropped += 1
            self.failures.record(job.post_id, None, "queue full; job dropped")
            logger.warning("Fan-out queue full, dropped job for post %s", job.post_id)
            return False
        return True

    # -- consumer side ------------------------------------------------------
    async def _process(self, job: FanoutJob) -> None:
        try:
            failed = await self._handler(job)
        except Exception as exc:
            logger.exception("Fan-out job for post %s crashed", job.post_id)
            self.failures.record(job.post_id, None, str(exc))
        else:
            for recipient_id, error in failed:
                self.failures.record(job.post_id, recipient_id, error)
        finally:
            self.processed += 1

    async def drain_once(self) -> int:
        """Process every job currently queued; return how many ran."""
        ran = 0
        while not self._queue.empty():
            job = self._queue.get_nowait()
            try:
                await self._process(job)
            finally:
                self._queue.task_done()
            ran += 1
        return ran

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Start the background worker."""
        if self._worker is not None:
            return

        async def _worker_loop() -> None:
            while True:
                job = await self._queue.get()
                try:
                    await self._process(job)
                finally:
                    self._queue.task_done()

        loop = loop or asyncio.get_running_loop()
        self._worker = loop.create_task(_worker_loop(), name="fanout-worker")
        logger.info("Fan-out worker started (queue size %d)", self.maxsize)

    def stop(self) -> None:
        """Cancel the worker.  Jobs still queued are discarded."""
        if self._worker:
            self._worker.cancel()
            self._worker = None
            if not self._queue.empty():
                logger.warning("Fan-out worker stopped with %d jobs queued", self._queue.qsize())

    @property
    def running(self) -> bool:
        return self._worker is not None

    def status(self) -> dict:
        return {
            "running": self.running,
            "queued": self._queue.qsize(),
            "maxSize": self.maxsize,
            "processed": self.processed,
            "dropped": self.dropped,
            "failures": self.failures.total,
            "recentFailures": self.failures.get_entries(),
        }
