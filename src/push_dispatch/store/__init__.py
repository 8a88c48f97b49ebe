"""Reference record stores."""

from push_dispatch.store.criteria import CriteriaError, matches
from push_dispatch.store.json_file import JsonFileRecordStore
from push_dispatch.store.memory import InMemoryRecordStore

__all__ = [
    "CriteriaError",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "matches",
]
