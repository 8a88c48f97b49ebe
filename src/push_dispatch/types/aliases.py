"""Type aliases using modern PEP 695 syntax.

This module defines type aliases for the loosely structured mappings that
flow between the dispatch core and its collaborators.
"""

from collections.abc import Awaitable, Callable, Mapping

from push_dispatch.types.models import Job

# Query criteria understood by record stores
# Plain values match by equality; operator mappings use $exists, $ne, $in, $and
type Criteria = Mapping[str, object]

# Gateway send options (priority, time_to_live, retries, fake, ...)
type SendOptions = Mapping[str, object]

# Coroutine registered with a work queue; raising marks the job failed
type JobHandler = Callable[[Job], Awaitable[object]]

# Optional completion callback used by fire-and-forget operations
type CompletionCallback = Callable[[Exception | None, object], None]
