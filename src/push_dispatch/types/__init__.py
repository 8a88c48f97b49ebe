"""Type definitions and protocols for push-dispatch.

This package provides:
- Data models (record dataclass, request model, job envelope)
- Protocol definitions (store, transport and work queue contracts)
- Type aliases (PEP 695 syntax)
"""

from push_dispatch.types.aliases import (
    CompletionCallback,
    Criteria,
    JobHandler,
    SendOptions,
)
from push_dispatch.types.models import (
    SUCCESS_MESSAGE,
    Job,
    JobState,
    NotificationRecord,
    NotificationRequest,
    utcnow,
)
from push_dispatch.types.protocols import (
    PushTransport,
    RecordStore,
    WorkQueue,
)

__all__ = [
    # Type aliases
    "CompletionCallback",
    "Criteria",
    "JobHandler",
    "SendOptions",
    # Data models
    "SUCCESS_MESSAGE",
    "Job",
    "JobState",
    "NotificationRecord",
    "NotificationRequest",
    "utcnow",
    # Protocols
    "PushTransport",
    "RecordStore",
    "WorkQueue",
]
