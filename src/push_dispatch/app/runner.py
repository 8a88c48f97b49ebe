"""Application runner: configuration, logging and event loop lifecycle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Final

from push_dispatch.core.config import ExecutionMode, MainConfig, QueueConfig, load_main_config
from push_dispatch.core.events import JOB_COMPLETE, JOB_FAILED, Event
from push_dispatch.queue import InMemoryWorkQueue
from push_dispatch.service import PushService
from push_dispatch.types import Job
from push_dispatch.utils.logging import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH: Final[Path] = Path("push-dispatch.yaml")


class ApplicationRunner:
    """Build a ``PushService`` from configuration and run coroutines against it.

    Args:
        config_path: YAML configuration file; when ``None`` the default file
            is used if present, otherwise built-in defaults apply
        log_level: Overrides ``application.log_level`` when given
        dry_run: Force simulated execution (no gateway calls)
    """

    def __init__(
        self,
        config_path: Path | None = None,
        log_level: str | None = None,
        dry_run: bool = False,
    ) -> None:
        self.config_path: Path | None = config_path
        self.log_level: str | None = log_level
        self.dry_run: bool = dry_run
        self._config: MainConfig | None = None

    @property
    def config(self) -> MainConfig:
        """Load (once) and return the effective configuration.

        Raises:
            ConfigurationError: If the configuration file is missing or invalid
        """
        if self._config is None:
            config = self._load()
            if self.log_level is not None:
                config.application.log_level = self.log_level
            if self.dry_run:
                config.push.mode = ExecutionMode.SIMULATED
            configure_logging(log_level=config.application.log_level)
            self._config = config
        return self._config

    def _load(self) -> MainConfig:
        if self.config_path is not None:
            return load_main_config(self.config_path)
        if DEFAULT_CONFIG_PATH.is_file():
            return load_main_config(DEFAULT_CONFIG_PATH)
        logger.debug("No configuration file found, using defaults")
        return MainConfig()

    def build_service(self, *, with_queue: bool = False) -> PushService:
        config = self.config
        if with_queue and config.queue is None:
            config = config.model_copy(update={"queue": QueueConfig()})
        return PushService.from_config(config)

    def run[T](self, operation: Callable[[PushService], Awaitable[T]], *, with_queue: bool = False) -> T:
        """Run one operation against a freshly built service."""

        async def _main() -> T:
            async with self.build_service(with_queue=with_queue) as service:
                return await operation(service)

        return asyncio.run(_main())

    def run_worker(self, *, requeue: bool = False, drain: bool = False) -> dict[str, int]:
        """Run the queue worker.

        Args:
            requeue: Publish every unsent notification before consuming
            drain: Stop once the queue is empty instead of waiting for a signal

        Returns:
            Counts of completed and failed jobs
        """
        counts = {"complete": 0, "failed": 0}

        def _count(event: Event) -> None:
            if isinstance(event.payload, Job):
                counts["complete" if event.topic.name == JOB_COMPLETE else "failed"] += 1

        async def _main() -> None:
            async with self.build_service(with_queue=True) as service:
                _ = service.on(JOB_COMPLETE, _count)
                _ = service.on(JOB_FAILED, _count)
                worker = service.worker
                await worker.start()
                if requeue:
                    records = await service.requeue()
                    logger.info("Requeued %d unsent notifications", len(records))
                if drain:
                    if isinstance(service.work_queue, InMemoryWorkQueue):
                        await service.work_queue.join(service.queue_config.name)
                    await worker.stop()
                    return
                worker.install_signal_handlers()
                await worker.wait_closed()

        asyncio.run(_main())
        return counts
