"""Work queue implementations."""

from push_dispatch.queue.memory import InMemoryWorkQueue

__all__ = ["InMemoryWorkQueue"]
