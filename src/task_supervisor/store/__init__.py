"""Task context storage."""

from .context_store import (
    BaseTaskContextStore,
    TaskContextStore,
    RedisTaskContextStore,
    create_context_store,
    get_context_store,
    merge_context,
)
from .inquiry import describe_context

__all__ = [
    "BaseTaskContextStore",
    "TaskContextStore",
    "RedisTaskContextStore",
    "create_context_store",
    "get_context_store",
    "merge_context",
    "describe_context",
]
