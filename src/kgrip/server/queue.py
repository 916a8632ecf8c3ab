"""Asyncio job queue with priorities, retries with exponential backoff,
per-attempt timeouts and delayed admission.

The server uses it (concurrency 1) to serialise outbound status sends, but it
knows nothing about statuses: a handler is registered per job type and
receives the job payload.

Events (`queue.on(event, listener)`), listeners are plain callables:

- `job:added` (job), `job:start` (job)
- `job:completed` (job, result)
- `job:retry` (job, exc), `job:failed` (job, exc)
- `queue:paused`, `queue:resumed`, `queue:cleared` (no arguments)
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from kgrip.types import JobTimeoutError, NoHandlerError
from kgrip.util.defaults import JOB_QUEUE_TIMEOUT
from kgrip.util.scheduling import LoopScheduler, ScheduledTask, Scheduler, cancel_task

Handler = Callable[[Any], Awaitable[Any]]


class JobStatus(Enum):
    PENDING = "pending"
    DELAYED = "delayed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Job:
    type: str
    payload: Any = None
    priority: int = 0
    max_attempts: int = 1
    timeout: float = JOB_QUEUE_TIMEOUT  # s
    delay: float = 0.0  # s
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    attempts: int = 0
    status: JobStatus = JobStatus.PENDING
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    result: Any = None
    error: Optional[str] = None
    # pending retry backoff, job is not dispatched while set
    backoff: Optional[ScheduledTask] = field(default=None, repr=False)

    @property
    def ready(self) -> bool:
        return self.status is JobStatus.PENDING and self.backoff is None


class JobQueue:
    """
    Parameters
    ----------
    concurrency : int
        Maximum number of jobs processing at once.
    retry_delay : float
        Base backoff in seconds; attempt k waits `retry_delay * 2**(k-1)`.
    timeout : float
        Default per-attempt timeout in seconds.
    scheduler : Scheduler, optional
        Timer source for delays and backoff, the running loop by default.
    """

    def __init__(
        self,
        concurrency: int = 1,
        retry_delay: float = 1.0,
        timeout: float = JOB_QUEUE_TIMEOUT,
        scheduler: Optional[Scheduler] = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.concurrency = concurrency
        self.retry_delay = retry_delay
        self.default_timeout = timeout
        self._scheduler = scheduler or LoopScheduler()

        self._jobs: list[Job] = []  # priority order, pending + processing
        self._delayed: dict[str, tuple[Job, ScheduledTask]] = {}
        self._running: dict[str, asyncio.Task] = {}
        self._handlers: dict[str, Handler] = {}
        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._paused = False
        self._idle = asyncio.Event()
        self._idle.set()
        self.stats = {"completed": 0, "failed": 0, "retried": 0}

    # ----------------------------------------------------------------------------------

    def process(self, job_type: str, handler: Handler) -> JobQueue:
        """Register the (async) handler for `job_type`, replacing any previous one."""
        if not callable(handler):
            raise TypeError("Handler must be callable")
        self._handlers[job_type] = handler
        return self

    register_handler = process

    def on(self, event: str, listener: Callable[..., Any]) -> JobQueue:
        self._listeners[event].append(listener)
        return self

    def add(
        self,
        job_type: str,
        payload: Any = None,
        *,
        priority: int = 0,
        max_attempts: int = 1,
        timeout: Optional[float] = None,
        delay: float = 0.0,
    ) -> str:
        """Queue a job and return its id.

        Handlers are looked up at execution time; a job without one fails
        there with `NoHandlerError`.
        """
        job = Job(
            type=job_type,
            payload=payload,
            priority=priority,
            max_attempts=max(1, max_attempts),
            timeout=self.default_timeout if timeout is None else timeout,
            delay=delay,
        )
        if delay > 0:
            job.status = JobStatus.DELAYED
            task = ScheduledTask(
                self._scheduler, delay, self._admit_delayed, value=job.id, name="job-delay"
            )
            self._delayed[job.id] = (job, task)
            self._idle.clear()
        else:
            self._insert(job)
        logger.debug("Job added: {} ({}) priority {}", job.id, job.type, job.priority)
        self._emit("job:added", job)
        self._dispatch()
        return job.id

    enqueue = add

    def pause(self) -> JobQueue:
        self._paused = True
        self._emit("queue:paused")
        return self

    def resume(self) -> JobQueue:
        self._paused = False
        self._emit("queue:resumed")
        self._dispatch()
        return self

    @property
    def paused(self) -> bool:
        return self._paused

    def get_job(self, job_id: str) -> Optional[Job]:
        for job in self._jobs:
            if job.id == job_id:
                return job
        if job_id in self._delayed:
            return self._delayed[job_id][0]
        return None

    def get_jobs(self, status: Optional[JobStatus] = None) -> list[Job]:
        jobs = self._jobs + [job for job, _ in self._delayed.values()]
        if status is None:
            return jobs
        return [job for job in jobs if job.status is status]

    def get_stats(self) -> dict[str, int]:
        pending = sum(1 for job in self._jobs if job.status is JobStatus.PENDING)
        return {
            **self.stats,
            "pending": pending,
            "processing": len(self._running),
            "delayed": len(self._delayed),
            "total": len(self._jobs) + len(self._delayed),
        }

    def clear(self) -> JobQueue:
        """Drop every job not currently processing, delayed ones included."""
        for job, task in self._delayed.values():
            task.cancel()
        self._delayed.clear()
        for job in self._jobs:
            cancel_task(job.backoff)
        self._jobs = [job for job in self._jobs if job.status is JobStatus.PROCESSING]
        self._update_idle()
        self._emit("queue:cleared")
        return self

    async def join(self):
        """Wait until no job is queued, delayed or processing."""
        await self._idle.wait()

    async def close(self):
        """Clear the queue and cancel jobs still processing."""
        self.clear()
        tasks = list(self._running.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ----------------------------------------------------------------------------------

    def _insert(self, job: Job):
        # before the first job of strictly lower priority, FIFO among equals
        for i, queued in enumerate(self._jobs):
            if job.priority > queued.priority:
                self._jobs.insert(i, job)
                break
        else:
            self._jobs.append(job)
        self._idle.clear()

    def _remove(self, job: Job):
        if job in self._jobs:
            self._jobs.remove(job)
        self._update_idle()

    def _update_idle(self):
        if not self._jobs and not self._delayed and not self._running:
            self._idle.set()

    def _admit_delayed(self, task: ScheduledTask):
        entry = self._delayed.pop(task.value, None)
        if entry is None:
            return
        job = entry[0]
        job.status = JobStatus.PENDING
        job.delay = 0.0
        self._insert(job)
        self._dispatch()

    def _backoff_elapsed(self, task: ScheduledTask):
        job = task.value
        if job.backoff is task:
            job.backoff = None
            self._dispatch()

    def _dispatch(self):
        if self._paused:
            return
        while len(self._running) < self.concurrency:
            job = next((j for j in self._jobs if j.ready), None)
            if job is None:
                return
            job.status = JobStatus.PROCESSING
            job.started_at = time.time()
            self._emit("job:start", job)
            self._running[job.id] = asyncio.create_task(self._execute(job))

    async def _execute(self, job: Job):
        try:
            handler = self._handlers.get(job.type)
            if handler is None:
                self._fail(job, NoHandlerError(f"No handler registered for job type: {job.type}"))
                return
            job.attempts += 1
            try:
                result = await asyncio.wait_for(handler(job.payload), timeout=job.timeout)
            except asyncio.TimeoutError:
                self._attempt_failed(job, JobTimeoutError(f"Job timeout after {job.timeout} s"))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._attempt_failed(job, e)
            else:
                job.status = JobStatus.COMPLETED
                job.result = result
                job.finished_at = time.time()
                self.stats["completed"] += 1
                self._remove(job)
                logger.debug("Job completed: {} ({})", job.id, job.type)
                self._emit("job:completed", job, result)
        finally:
            self._running.pop(job.id, None)
            self._update_idle()
            self._dispatch()

    def _attempt_failed(self, job: Job, exc: Exception):
        job.error = str(exc)
        if job.attempts < job.max_attempts:
            job.status = JobStatus.PENDING
            self.stats["retried"] += 1
            delay = self.retry_delay * 2 ** (job.attempts - 1)
            logger.debug(
                "Job {} ({}) attempt {} failed: {}, retrying in {} s",
                job.id, job.type, job.attempts, exc, delay,
            )
            job.backoff = ScheduledTask(
                self._scheduler, delay, self._backoff_elapsed, value=job, name="job-backoff"
            )
            self._emit("job:retry", job, exc)
        else:
            self._fail(job, exc)

    def _fail(self, job: Job, exc: Exception):
        job.status = JobStatus.FAILED
        job.error = str(exc)
        job.finished_at = time.time()
        self.stats["failed"] += 1
        self._remove(job)
        logger.warning("Job failed: {} ({}): {}", job.id, job.type, exc)
        self._emit("job:failed", job, exc)

    def _emit(self, event: str, *args):
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception:
                logger.exception("Error in {} listener", event)
