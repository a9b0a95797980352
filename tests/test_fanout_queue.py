"""
tests/test_fanout_queue.py — Bounded background fan-out
=========================================================
Drop-on-full submission, failure recording, worker lifecycle, and the
queue wired to the real new-post fan-out.
"""

from __future__ import annotations

import asyncio

from conftest import run_async
from sqlalchemy import func, select

from leoconnect.api.deps import build_fanout_queue
from leoconnect.config import LeoConnectConfig
from leoconnect.database.models import Notification
from leoconnect.services import graph_service
from leoconnect.services.fanout_queue import FailureLog, FanoutJob, FanoutQueue


def _job(post_id: str = "p1") -> FanoutJob:
    return FanoutJob(author_id="author", author_name="Author", post_id=post_id, preview="hi")


class _Recorder:
    def __init__(self, failures=None, exc: Exception | None = None):
        self.seen: list[FanoutJob] = []
        self.failures = failures or []
        self.exc = exc

    async def __call__(self, job: FanoutJob):
        self.seen.append(job)
        if self.exc:
            raise self.exc
        return self.failures


class TestFailureLog:
    def test_ring_buffer_keeps_total(self):
        log = FailureLog(capacity=2)
        for i in range(5):
            log.record(f"p{i}", "u", "boom")
        assert log.size == 2
        assert log.total == 5
        assert [e["postId"] for e in log.get_entries()] == ["p3", "p4"]

    def test_tail(self):
        log = FailureLog()
        for i in range(4):
            log.record(f"p{i}", None, "x")
        assert len(log.get_entries(tail=1)) == 1


class TestFanoutQueue:
    def test_submit_and_drain(self):
        handler = _Recorder()
        queue = FanoutQueue(handler, maxsize=10)
        assert queue.submit(_job("a")) is True
        assert queue.submit(_job("b")) is True
        assert run_async(queue.drain_once()) == 2
        assert [j.post_id for j in handler.seen] == ["a", "b"]
        assert queue.status()["processed"] == 2

    def test_full_queue_drops_and_records(self):
        queue = FanoutQueue(_Recorder(), maxsize=1)
        assert queue.submit(_job("kept")) is True
        assert queue.submit(_job("lost")) is False

        status = queue.status()
        assert status["dropped"] == 1
        assert status["queued"] == 1
        assert status["failures"] == 1
        assert status["recentFailures"][0]["postId"] == "lost"
        assert status["recentFailures"][0]["error"] == "queue full; job dropped"

    def test_recipient_failures_recorded(self):
        queue = FanoutQueue(_Recorder(failures=[("u1", "boom"), ("u2", "bang")]))
        queue.submit(_job())
        run_async(queue.drain_once())
        entries = queue.failures.get_entries()
        assert [(e["recipientId"], e["error"]) for e in entries] == [("u1", "boom"), ("u2", "bang")]

    def test_handler_crash_does_not_stop_queue(self):
        queue = FanoutQueue(_Recorder(exc=RuntimeError("db down")))
        queue.submit(_job("a"))
        queue.submit(_job("b"))
        assert run_async(queue.drain_once()) == 2
        assert queue.failures.total == 2
        assert queue.processed == 2

    def test_worker_lifecycle(self):
        handler = _Recorder()
        queue = FanoutQueue(handler)

        async def scenario():
            queue.start()
            assert queue.running
            queue.submit(_job("live"))
            await asyncio.wait_for(queue._queue.join(), timeout=2)
            queue.stop()

        run_async(scenario())
        assert not queue.running
        assert [j.post_id for j in handler.seen] == ["live"]


class TestWiredFanout:
    def test_queue_writes_follower_notifications(self, db_engine, db_session, make_user):
        make_user("author", "Author")
        make_user("f1")
        make_user("f2")
        graph_service.follow_user(db_session, "f1", "author")
        graph_service.follow_user(db_session, "f2", "author")

        queue = build_fanout_queue(db_engine, None, LeoConnectConfig(app_name="test"))
        queue.submit(_job("post-9"))
        run_async(queue.drain_once())

        assert queue.failures.total == 0
        count = db_session.scalar(select(func.count()).select_from(Notification))
        assert count == 2
