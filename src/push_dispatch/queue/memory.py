"""In-process work queue.

A job broker on top of ``asyncio.Queue``: named queues, bounded-concurrency
consumers, per-job attempts and job state inspection. It offers the
contract of a durable broker within a single process; jobs do not survive
a restart.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Mapping

from push_dispatch.core.errors import QueueClosedError
from push_dispatch.core.events import JOB_COMPLETE, JOB_FAILED, EventBus
from push_dispatch.types import Job, JobHandler, JobState, utcnow

__all__ = ["InMemoryWorkQueue"]

logger = logging.getLogger(__name__)


class InMemoryWorkQueue:
    """Asyncio work queue with named queues and worker tasks.

    A job whose handler raises is re-enqueued while it has attempts left and
    is marked ``failed`` afterwards. Terminal outcomes are published on the
    event bus as ``job.complete`` and ``job.failed`` with the job as payload.

    Args:
        events: Event bus receiving job outcome events
        connection: Broker connection settings; kept for parity with
            external brokers, unused in-process
    """

    def __init__(
        self,
        events: EventBus | None = None,
        *,
        connection: Mapping[str, object] | None = None,
    ) -> None:
        self.events: EventBus | None = events
        self.connection: dict[str, object] = dict(connection or {})
        self._queues: dict[str, asyncio.Queue[Job]] = {}
        self._jobs: dict[str, Job] = {}
        self._workers: list[asyncio.Task[None]] = []
        self._active_jobs: int = 0
        self._idle: asyncio.Event = asyncio.Event()
        self._idle.set()
        self._shutdown_event: asyncio.Event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._shutdown_event.is_set()

    @property
    def worker_count(self) -> int:
        return sum(1 for worker in self._workers if not worker.done())

    def _queue(self, queue_name: str) -> asyncio.Queue[Job]:
        queue = self._queues.get(queue_name)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[queue_name] = queue
        return queue

    async def create(
        self,
        queue_name: str,
        data: Mapping[str, object],
        *,
        attempts: int = 1,
    ) -> Job:
        """Publish a job onto the named queue.

        Raises:
            QueueClosedError: If the queue has been shut down
        """
        if self.closed:
            raise QueueClosedError(f"Work queue is shut down; cannot publish to {queue_name!r}")

        job = Job(queue=queue_name, data=copy.deepcopy(dict(data)), attempts=max(attempts, 1))
        self._jobs[job.id] = job
        self._queue(queue_name).put_nowait(job)
        logger.debug("Enqueued job %s on %s", job.id, queue_name)
        return job

    def get_job(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def jobs(self, state: JobState | None = None, queue_name: str | None = None) -> list[Job]:
        """List known jobs, optionally filtered by state and queue name."""
        return [
            job
            for job in self._jobs.values()
            if (state is None or job.state is state) and (queue_name is None or job.queue == queue_name)
        ]

    def pending(self, queue_name: str) -> int:
        """Number of jobs waiting on the named queue."""
        queue = self._queues.get(queue_name)
        return queue.qsize() if queue is not None else 0

    def process(self, queue_name: str, concurrency: int, handler: JobHandler) -> None:
        """Start ``concurrency`` worker tasks consuming the named queue.

        Must be called from a running event loop.

        Raises:
            QueueClosedError: If the queue has been shut down
        """
        if self.closed:
            raise QueueClosedError(f"Work queue is shut down; cannot process {queue_name!r}")

        queue = self._queue(queue_name)
        for i in range(max(concurrency, 1)):
            worker = asyncio.create_task(
                self._worker_loop(queue, handler, f"{queue_name}-worker-{i}"),
                name=f"{queue_name}-worker-{i}",
            )
            self._workers.append(worker)
        logger.info("Started %d workers for %s", concurrency, queue_name)

    async def join(self, queue_name: str) -> None:
        """Wait until every job published on the named queue has been processed."""
        await self._queue(queue_name).join()

    async def shutdown(self, timeout: float) -> None:
        """Stop accepting jobs and wait up to ``timeout`` seconds for in-flight ones.

        Worker tasks still running after the timeout are cancelled; their
        jobs stay ``active``.
        """
        if self.closed and not self._workers:
            return

        self._shutdown_event.set()
        try:
            async with asyncio.timeout(timeout):
                _ = await self._idle.wait()
        except TimeoutError:
            logger.warning("Shutdown timeout (%.1fs) reached with %d jobs in flight", timeout, self._active_jobs)

        for worker in self._workers:
            _ = worker.cancel()
        _ = await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("Work queue shut down")

    async def _worker_loop(self, queue: asyncio.Queue[Job], handler: JobHandler, worker_name: str) -> None:
        logger.debug("Worker %s started", worker_name)
        try:
            while not self._shutdown_event.is_set():
                job = await queue.get()
                if self._shutdown_event.is_set():
                    # Leave the job for the next consumer
                    queue.put_nowait(job)
                    queue.task_done()
                    break
                self._active_jobs += 1
                self._idle.clear()
                try:
                    await self._run_job(queue, job, handler)
                finally:
                    self._active_jobs -= 1
                    if self._active_jobs == 0:
                        self._idle.set()
                    queue.task_done()
        except asyncio.CancelledError:
            logger.debug("Worker %s cancelled", worker_name)
            raise
        finally:
            logger.debug("Worker %s stopped", worker_name)

    async def _run_job(self, queue: asyncio.Queue[Job], job: Job, handler: JobHandler) -> None:
        job.state = JobState.ACTIVE
        job.attempts_made += 1
        job.updated_at = utcnow()

        try:
            result = await handler(job)
        except Exception as exc:
            job.error = str(exc) or type(exc).__name__
            job.updated_at = utcnow()
            if job.remaining_attempts > 0 and not self._shutdown_event.is_set():
                job.state = JobState.INACTIVE
                queue.put_nowait(job)
                logger.warning(
                    "Job %s failed (attempt %d/%d), re-enqueued: %s",
                    job.id,
                    job.attempts_made,
                    job.attempts,
                    job.error,
                )
                return
            job.state = JobState.FAILED
            logger.error("Job %s failed: %s", job.id, job.error)
            self._emit(JOB_FAILED, job)
            return

        job.state = JobState.COMPLETE
        job.result = result
        job.error = None
        job.updated_at = utcnow()
        logger.debug("Job %s complete", job.id)
        self._emit(JOB_COMPLETE, job)

    def _emit(self, topic: str, job: Job) -> None:
        if self.events is not None:
            _ = self.events.publish(topic, job)
