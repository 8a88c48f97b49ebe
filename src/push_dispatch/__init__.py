"""push-dispatch - push notification dispatch with persistence and queueing.

Notifications are persisted as records, delivered directly or through a
background work queue, and can be resent or requeued while undelivered.
"""

from push_dispatch.core.batch import BatchOperator, BatchOutcome
from push_dispatch.core.config import (
    ConfigurationError,
    ExecutionMode,
    MainConfig,
    PushConfig,
    QueueConfig,
    load_main_config,
    parse_config,
)
from push_dispatch.core.dispatch import DispatchEngine
from push_dispatch.core.errors import (
    InvalidRequestError,
    PersistenceError,
    PublishError,
    PushDispatchError,
    QueueClosedError,
    RecordNotFoundError,
    ServerUnavailableError,
    TransportConfigurationError,
    TransportError,
    TransportStatusError,
    UnauthorizedError,
    ValidationError,
    WorkerConfigurationError,
)
from push_dispatch.core.events import JOB_COMPLETE, JOB_FAILED, QUEUE_ERROR, QUEUED, Event, EventBus
from push_dispatch.core.publisher import QueuePublisher
from push_dispatch.core.worker import QueueWorker
from push_dispatch.service import PushService
from push_dispatch.types import Job, JobState, NotificationRecord, NotificationRequest

__all__ = [
    "JOB_COMPLETE",
    "JOB_FAILED",
    "QUEUED",
    "QUEUE_ERROR",
    "BatchOperator",
    "BatchOutcome",
    "ConfigurationError",
    "DispatchEngine",
    "Event",
    "EventBus",
    "ExecutionMode",
    "InvalidRequestError",
    "Job",
    "JobState",
    "MainConfig",
    "NotificationRecord",
    "NotificationRequest",
    "PersistenceError",
    "PublishError",
    "PushConfig",
    "PushDispatchError",
    "PushService",
    "QueueClosedError",
    "QueueConfig",
    "QueuePublisher",
    "QueueWorker",
    "RecordNotFoundError",
    "ServerUnavailableError",
    "TransportConfigurationError",
    "TransportError",
    "TransportStatusError",
    "UnauthorizedError",
    "ValidationError",
    "WorkerConfigurationError",
    "load_main_config",
    "parse_config",
]
