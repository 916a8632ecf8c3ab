import asyncio

import pytest
import pytest_asyncio
from loguru import logger

from kgrip.server import JobQueue, JobStatus
from kgrip.types import JobTimeoutError, NoHandlerError


async def settle(n: int = 20):
    for _ in range(n):
        await asyncio.sleep(0)


def record_events(queue: JobQueue) -> list:
    events = []
    for name in ("job:added", "job:start", "job:completed", "job:retry", "job:failed"):
        queue.on(name, lambda *args, name=name: events.append((name, args[0].id)))
    for name in ("queue:paused", "queue:resumed", "queue:cleared"):
        queue.on(name, lambda name=name: events.append((name, None)))
    return events


class TestJobQueue:
    @pytest_asyncio.fixture(autouse=True, scope="function")
    def log(self, request):
        logger.warning("STARTED Test '{}'".format(request.node.originalname))
        yield
        logger.warning("COMPLETED Test '{}' \n".format(request.node.originalname))

    @pytest.mark.asyncio
    async def test_completes(self):
        queue = JobQueue()
        events = record_events(queue)

        async def double(x):
            return x * 2

        queue.process("double", double)
        job_id = queue.add("double", 21)
        job = queue.get_job(job_id)
        await asyncio.wait_for(queue.join(), 1)
        assert job.status is JobStatus.COMPLETED
        assert job.result == 42
        assert [e for e, _ in events] == ["job:added", "job:start", "job:completed"]
        assert queue.get_job(job_id) is None
        assert queue.get_stats()["completed"] == 1

    @pytest.mark.asyncio
    async def test_priority_order(self):
        queue = JobQueue()
        order = []

        async def handler(payload):
            order.append(payload)

        queue.process("send", handler)
        queue.pause()
        queue.add("send", "low", priority=1)
        queue.add("send", "high", priority=5)
        queue.resume()
        await asyncio.wait_for(queue.join(), 1)
        assert order == ["high", "low"]

    @pytest.mark.asyncio
    async def test_fifo_among_equal_priority(self):
        queue = JobQueue()
        order = []

        async def handler(payload):
            order.append(payload)

        queue.process("send", handler)
        queue.pause()
        for i, prio in enumerate([0, 2, 0, 2, 1, 0]):
            queue.add("send", (prio, i), priority=prio)
        assert [j.payload for j in queue.get_jobs()] == [
            (2, 1), (2, 3), (1, 4), (0, 0), (0, 2), (0, 5)
        ]
        queue.resume()
        await asyncio.wait_for(queue.join(), 1)
        assert order == [(2, 1), (2, 3), (1, 4), (0, 0), (0, 2), (0, 5)]

    @pytest.mark.asyncio
    async def test_concurrency_ceiling(self):
        queue = JobQueue(concurrency=2)
        running = 0
        peak = 0

        async def handler(payload):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            assert queue.get_stats()["processing"] <= 2
            await asyncio.sleep(0.01)
            running -= 1

        queue.process("work", handler)
        for i in range(6):
            queue.add("work", i)
        await asyncio.wait_for(queue.join(), 2)
        assert peak == 2
        assert queue.get_stats()["completed"] == 6

    @pytest.mark.asyncio
    async def test_exactly_max_attempts(self):
        queue = JobQueue(retry_delay=0.001)
        events = record_events(queue)
        calls = 0

        async def always_fails(payload):
            nonlocal calls
            calls += 1
            raise RuntimeError("nope")

        queue.process("flaky", always_fails)
        job_id = queue.add("flaky", max_attempts=3)
        await asyncio.wait_for(queue.join(), 1)
        assert calls == 3
        names = [e for e, _ in events if e.startswith("job:")]
        assert names.count("job:retry") == 2
        assert names.count("job:failed") == 1
        assert names[-1] == "job:failed"
        stats = queue.get_stats()
        assert stats["failed"] == 1 and stats["retried"] == 2
        assert queue.get_job(job_id) is None

    @pytest.mark.asyncio
    async def test_exponential_backoff(self, scheduler):
        queue = JobQueue(retry_delay=1.0, scheduler=scheduler)
        attempts = []

        async def always_fails(payload):
            attempts.append(scheduler.now)
            raise RuntimeError("nope")

        queue.process("flaky", always_fails)
        job_id = queue.add("flaky", max_attempts=3)
        await settle()
        assert attempts == [0.0]
        job = queue.get_job(job_id)
        assert job.status is JobStatus.PENDING and not job.ready

        scheduler.advance(0.99)
        await settle()
        assert len(attempts) == 1
        scheduler.advance(0.02)  # 1.0 * 2**0
        await settle()
        assert attempts == pytest.approx([0.0, 1.0], abs=0.02)

        scheduler.advance(1.99)
        await settle()
        assert len(attempts) == 2
        scheduler.advance(0.02)  # 1.0 * 2**1
        await settle()
        assert attempts == pytest.approx([0.0, 1.0, 3.0], abs=0.03)
        assert queue.get_stats()["failed"] == 1

    @pytest.mark.asyncio
    async def test_timeout_is_a_failed_attempt(self):
        queue = JobQueue()
        failures = []
        queue.on("job:failed", lambda job, exc: failures.append(exc))

        async def slow(payload):
            await asyncio.sleep(1)

        queue.process("slow", slow)
        queue.add("slow", timeout=0.02)
        await asyncio.wait_for(queue.join(), 1)
        assert len(failures) == 1
        assert isinstance(failures[0], JobTimeoutError)

    @pytest.mark.asyncio
    async def test_zero_timeout_is_kept(self):
        queue = JobQueue(timeout=5)
        failures = []
        queue.on("job:failed", lambda job, exc: failures.append(exc))

        async def slow(payload):
            await asyncio.sleep(0.05)

        queue.process("slow", slow)
        job_id = queue.add("slow", timeout=0)
        assert queue.get_job(job_id).timeout == 0
        await asyncio.wait_for(queue.join(), 1)
        assert len(failures) == 1
        assert isinstance(failures[0], JobTimeoutError)

    @pytest.mark.asyncio
    async def test_no_handler_is_permanent(self):
        queue = JobQueue(retry_delay=0)
        failures = []
        retries = []
        queue.on("job:failed", lambda job, exc: failures.append((job, exc)))
        queue.on("job:retry", lambda job, exc: retries.append(job))

        job_id = queue.add("unknown", max_attempts=3)  # accepted at enqueue time
        assert isinstance(job_id, str)
        await asyncio.wait_for(queue.join(), 1)
        assert retries == []
        job, exc = failures[0]
        assert isinstance(exc, NoHandlerError)
        assert job.attempts == 0
        assert job.status is JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_failure_does_not_block_queue(self):
        queue = JobQueue()
        done = []

        async def handler(payload):
            if payload == "bad":
                raise ValueError("bad payload")
            done.append(payload)

        queue.process("send", handler)
        queue.add("send", "bad")
        queue.add("send", "good")
        await asyncio.wait_for(queue.join(), 1)
        assert done == ["good"]

    @pytest.mark.asyncio
    async def test_delayed_admission(self, scheduler):
        queue = JobQueue(scheduler=scheduler)
        done = []

        async def handler(payload):
            done.append(payload)

        queue.process("send", handler)
        job_id = queue.add("send", "later", delay=0.5)
        assert queue.get_job(job_id).status is JobStatus.DELAYED
        assert queue.get_stats()["delayed"] == 1
        await settle()
        assert done == []

        scheduler.advance(0.5)
        await settle()
        assert done == ["later"]
        assert queue.get_stats()["delayed"] == 0

    @pytest.mark.asyncio
    async def test_pause_resume_clear(self):
        queue = JobQueue()
        events = record_events(queue)
        done = []

        async def handler(payload):
            done.append(payload)

        queue.process("send", handler)
        queue.pause()
        assert queue.paused
        queue.add("send", 1)
        queue.add("send", 2)
        await settle()
        assert done == []
        assert queue.get_stats()["pending"] == 2
        assert queue.get_stats()["total"] == 2

        queue.clear()
        assert queue.get_stats()["pending"] == 0
        queue.add("send", 3)
        queue.resume()
        await asyncio.wait_for(queue.join(), 1)
        assert done == [3]
        names = [e for e, _ in events]
        for name in ("queue:paused", "queue:cleared", "queue:resumed"):
            assert name in names

    def test_rejects_bad_handler(self):
        queue = JobQueue()
        with pytest.raises(TypeError):
            queue.process("x", None)
