"""Queue worker.

Consumes notification jobs from the work queue: resolves each job's record
id, dispatches the record and reports the gateway response as the job
result. Failures are raised so the broker can apply its attempts policy.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable

from push_dispatch.core.config import QueueConfig
from push_dispatch.core.dispatch import DispatchEngine
from push_dispatch.core.errors import RecordNotFoundError, WorkerConfigurationError
from push_dispatch.types import Job, WorkQueue
from push_dispatch.utils.logging import log_with_context, reset_correlation_id, set_correlation_id

__all__ = ["QueueWorker"]

logger = logging.getLogger(__name__)

type StartCallback = Callable[[Exception | None], None]

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class QueueWorker:
    """Background consumer of queued notification jobs.

    Args:
        engine: Dispatch engine (its store resolves job record ids)
        work_queue: Broker the worker consumes
        config: Queue settings (name, concurrency, shutdown timeout)
        debug: Permissive start; configuration errors are logged, not raised
    """

    def __init__(
        self,
        engine: DispatchEngine,
        work_queue: WorkQueue,
        config: QueueConfig | None = None,
        *,
        debug: bool = False,
    ) -> None:
        self.engine: DispatchEngine = engine
        self.work_queue: WorkQueue = work_queue
        self.config: QueueConfig = config if config is not None else QueueConfig()
        self.debug: bool = debug
        self._started: bool = False
        self._stopping: asyncio.Task[None] | None = None
        self._closed: asyncio.Event = asyncio.Event()
        self._signal_loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_running(self) -> bool:
        return self._started and not self._closed.is_set()

    async def start(self, callback: StartCallback | None = None) -> None:
        """Register the job handler with the work queue.

        Calling ``start`` on a running worker does nothing. Configuration
        errors go to ``callback`` when given; otherwise they are raised,
        unless the worker is in debug mode, where they are only logged.
        """
        try:
            if not self._started:
                if getattr(self.engine, "store", None) is None:
                    raise WorkerConfigurationError("No record store is bound to the dispatch engine")
                self.work_queue.process(self.config.name, self.config.concurrency, self.process_job)
                self._started = True
                self._closed.clear()
                logger.info(
                    "Processing %s jobs (concurrency=%d)",
                    self.config.name,
                    self.config.concurrency,
                )
        except Exception as exc:
            if self.debug:
                logger.error("Queue worker failed to start: %s", exc)
            if callback is not None:
                callback(exc)
                return
            if not self.debug:
                raise
            return

        if callback is not None:
            callback(None)

    async def process_job(self, job: Job) -> object:
        """Handle one job.

        Returns:
            The record's gateway response, or ``None`` for jobs without an id

        Raises:
            RecordNotFoundError: If the job references a missing record
        """
        record_id = job.data.get("id")
        if not record_id:
            logger.debug("Job %s carries no notification id, nothing to do", job.id)
            return None

        token = set_correlation_id(str(record_id))
        try:
            record = await self.engine.store.find_by_id(str(record_id))
            if record is None:
                raise RecordNotFoundError(str(record_id))

            record = await self.engine.dispatch(record)
            log_with_context(
                logger,
                logging.DEBUG,
                "Queued notification processed",
                extra={"job_id": job.id, "record_id": record.id, "sent": record.is_sent},
            )
            return record.response
        finally:
            reset_correlation_id(token)

    async def stop(self) -> None:
        """Shut the work queue down gracefully within ``queue.timeout`` seconds."""
        if self._closed.is_set():
            return
        logger.info("Stopping queue worker (timeout=%.1fs)", self.config.timeout)
        try:
            await self.work_queue.shutdown(self.config.timeout)
        finally:
            self._closed.set()
            self.remove_signal_handlers()

    async def wait_closed(self) -> None:
        """Wait until the worker has been stopped."""
        _ = await self._closed.wait()

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Stop the worker gracefully on SIGINT and SIGTERM."""
        loop = loop if loop is not None else asyncio.get_running_loop()
        for sig in _SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self._request_stop)
        self._signal_loop = loop

    def remove_signal_handlers(self) -> None:
        if self._signal_loop is None:
            return
        for sig in _SHUTDOWN_SIGNALS:
            _ = self._signal_loop.remove_signal_handler(sig)
        self._signal_loop = None

    def _request_stop(self) -> None:
        if self._stopping is None:
            logger.info("Shutdown signal received, stopping queue worker")
            self._stopping = asyncio.get_running_loop().create_task(self.stop())
