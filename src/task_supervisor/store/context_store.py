"""Task context store: latest snapshot of each session with bounded lifetime."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from ..config.supervisor_config import SupervisorConfig
from ..models.progress_models import ContextProgress, TaskContext
from ..models.supervisor_models import ExecutionStrategy, SupervisorComplexity
from ..models.task_models import TaskNode

logger = logging.getLogger(__name__)


DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_CLEANUP_INTERVAL = 5 * 60

_MERGE_FIELDS = (
    "hierarchical_breakdown",
    "progress",
    "strategy",
    "complexity",
    "final_response",
)


def merge_context(
    session_id: str,
    existing: Optional[TaskContext],
    last_update: float,
    **partial: Any,
) -> TaskContext:
    """
    Merge a partial update over an existing snapshot.

    CRITICAL: Fields missing (or None) in the update keep their previous value

    Args:
        session_id: Session the snapshot belongs to
        existing: Current snapshot, if any
        last_update: Timestamp stamped on the result
        **partial: Any of hierarchical_breakdown, progress, strategy,
            complexity, final_response

    Returns:
        New snapshot
    """
    unknown = set(partial) - set(_MERGE_FIELDS)
    if unknown:
        raise TypeError(f"Unknown task context fields: {sorted(unknown)}")

    values: Dict[str, Any] = {}
    if existing is not None:
        values = {name: getattr(existing, name) for name in _MERGE_FIELDS}

    for name, value in partial.items():
        if value is not None:
            values[name] = value

    return TaskContext(session_id=session_id, last_update=last_update, **values)


class BaseTaskContextStore(ABC):
    """
    Abstract task context store.

    PATTERN: Async access, sync maintenance (cleanup, stats)
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self.logger = logging.getLogger(__name__)

    @abstractmethod
    async def set_context(
        self,
        session_id: str,
        *,
        hierarchical_breakdown: Optional[TaskNode] = None,
        progress: Optional[ContextProgress] = None,
        strategy: Optional[ExecutionStrategy] = None,
        complexity: Optional[SupervisorComplexity] = None,
        final_response: Optional[str] = None,
    ) -> TaskContext:
        """Merge a partial snapshot into the session's context."""

    @abstractmethod
    async def get_context(self, session_id: str) -> Optional[TaskContext]:
        """Latest snapshot, or None when absent or expired."""

    @abstractmethod
    async def remove_context(self, session_id: str) -> None:
        """Forget a session."""

    @abstractmethod
    async def get_all_contexts(self) -> List[TaskContext]:
        """Every snapshot that has not expired."""

    @abstractmethod
    def cleanup(self) -> int:
        """Drop expired snapshots and return how many were removed."""

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Store statistics."""

    def start(self) -> None:
        """Start background maintenance, if the backend needs it."""

    async def stop(self) -> None:
        """Stop background maintenance and release resources."""


class TaskContextStore(BaseTaskContextStore):
    """
    In-memory task context store with TTL.

    PATTERN: Dict keyed by session id, expiry checked on read and by a sweep
    CRITICAL: The sweep runs only between start() and stop()
    GOTCHA: Single-process only; use RedisTaskContextStore across workers
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize in-memory store.

        Args:
            ttl_seconds: Lifetime of a snapshot since its last update
            cleanup_interval: Seconds between background sweeps
            clock: Time source in epoch seconds
        """
        super().__init__(ttl_seconds)
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._contexts: Dict[str, TaskContext] = {}
        self._cleanup_task: Optional[asyncio.Task] = None

    async def set_context(
        self,
        session_id: str,
        *,
        hierarchical_breakdown: Optional[TaskNode] = None,
        progress: Optional[ContextProgress] = None,
        strategy: Optional[ExecutionStrategy] = None,
        complexity: Optional[SupervisorComplexity] = None,
        final_response: Optional[str] = None,
    ) -> TaskContext:
        updated = merge_context(
            session_id,
            self._contexts.get(session_id),
            self._clock(),
            hierarchical_breakdown=hierarchical_breakdown,
            progress=progress,
            strategy=strategy,
            complexity=complexity,
            final_response=final_response,
        )
        self._contexts[session_id] = updated

        self.logger.debug(
            f"Updated context for session {session_id}: "
            f"{len(updated.hierarchical_breakdown.subtasks)} subtasks, "
            f"{updated.progress.percentage}%"
        )
        return updated

    async def get_context(self, session_id: str) -> Optional[TaskContext]:
        context = self._contexts.get(session_id)

        if context is None:
            self.logger.debug(f"No context found for session {session_id}")
            return None

        if self._is_expired(context):
            self.logger.debug(f"Context expired for session {session_id}")
            del self._contexts[session_id]
            return None

        return context

    async def remove_context(self, session_id: str) -> None:
        self._contexts.pop(session_id, None)
        self.logger.debug(f"Removed context for session {session_id}")

    async def get_all_contexts(self) -> List[TaskContext]:
        return [ctx for ctx in self._contexts.values() if not self._is_expired(ctx)]

    def cleanup(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        expired = [
            session_id for session_id, ctx in self._contexts.items()
            if self._is_expired(ctx)
        ]

        for session_id in expired:
            del self._contexts[session_id]

        if expired:
            self.logger.info(f"Cleaned up {len(expired)} expired contexts")

        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "backend": "memory",
            "active_contexts": len(self._contexts),
            "live_contexts": sum(
                1 for ctx in self._contexts.values() if not self._is_expired(ctx)
            ),
            "ttl_seconds": self.ttl_seconds,
        }

    def start(self) -> None:
        """
        Start the periodic sweep.

        CRITICAL: Must be called from a running event loop
        """
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())
        self.logger.info(f"Context cleanup started (every {self.cleanup_interval}s)")

    async def stop(self) -> None:
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        try:
            await self._cleanup_task
        except asyncio.CancelledError:
            pass
        self._cleanup_task = None
        self.logger.info("Context cleanup stopped")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            self.cleanup()

    def _is_expired(self, context: TaskContext) -> bool:
        return self._clock() - context.last_update > self.ttl_seconds


class RedisTaskContextStore(BaseTaskContextStore):
    """
    Redis-backed task context store for multi-process deployments.

    PATTERN: One JSON value per session, written with SETEX
    CRITICAL: Redis enforces the TTL, so cleanup() has nothing to do
    GOTCHA: Read-merge-write is not atomic; one writer per session is assumed
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        prefix: str = "task_context:",
        redis_client: Optional[Redis] = None,
    ):
        """
        Initialize Redis store.

        Args:
            redis_url: Redis connection URL
            ttl_seconds: Key lifetime, refreshed on every write
            prefix: Key prefix for namespacing
            redis_client: Pre-built client (connection is created lazily otherwise)
        """
        super().__init__(ttl_seconds)
        self.redis_url = redis_url
        self.prefix = prefix
        self._pool: Optional[ConnectionPool] = None
        self._redis: Optional[Redis] = redis_client

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._pool = ConnectionPool.from_url(self.redis_url, decode_responses=True)
            self._redis = Redis(connection_pool=self._pool)
            self.logger.info("Redis connection pool created for task contexts")
        return self._redis

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    async def set_context(
        self,
        session_id: str,
        *,
        hierarchical_breakdown: Optional[TaskNode] = None,
        progress: Optional[ContextProgress] = None,
        strategy: Optional[ExecutionStrategy] = None,
        complexity: Optional[SupervisorComplexity] = None,
        final_response: Optional[str] = None,
    ) -> TaskContext:
        redis = await self._get_redis()
        updated = merge_context(
            session_id,
            await self.get_context(session_id),
            time.time(),
            hierarchical_breakdown=hierarchical_breakdown,
            progress=progress,
            strategy=strategy,
            complexity=complexity,
            final_response=final_response,
        )

        try:
            await redis.setex(
                self._key(session_id),
                self.ttl_seconds,
                updated.model_dump_json(by_alias=True),
            )
        except RedisError as e:
            self.logger.error(f"Failed to store context for session {session_id}: {e}")
            raise

        return updated

    async def get_context(self, session_id: str) -> Optional[TaskContext]:
        redis = await self._get_redis()
        data = await redis.get(self._key(session_id))
        if not data:
            return None
        return TaskContext.model_validate_json(data)

    async def remove_context(self, session_id: str) -> None:
        redis = await self._get_redis()
        await redis.delete(self._key(session_id))

    async def get_all_contexts(self) -> List[TaskContext]:
        redis = await self._get_redis()
        contexts: List[TaskContext] = []
        async for key in redis.scan_iter(match=f"{self.prefix}*", count=100):
            data = await redis.get(key)
            if data:
                contexts.append(TaskContext.model_validate_json(data))
        return contexts

    def cleanup(self) -> int:
        return 0

    def get_stats(self) -> Dict[str, Any]:
        return {
            "backend": "redis",
            "prefix": self.prefix,
            "ttl_seconds": self.ttl_seconds,
        }

    async def stop(self) -> None:
        """Close Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
        if self._pool is not None:
            await self._pool.aclose()
        self._redis = None
        self._pool = None


# Global singleton instance
_global_context_store: Optional[BaseTaskContextStore] = None


def create_context_store(
    backend: str = "memory",
    redis_url: str = "redis://localhost:6379",
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
) -> BaseTaskContextStore:
    if backend == "redis":
        return RedisTaskContextStore(redis_url=redis_url, ttl_seconds=ttl_seconds)
    return TaskContextStore(ttl_seconds=ttl_seconds, cleanup_interval=cleanup_interval)


def get_context_store(config: Optional[SupervisorConfig] = None) -> BaseTaskContextStore:
    """
    Get the process-wide task context store (singleton).

    The backend is chosen from the configuration on first use; later calls
    return the same store whatever they pass.

    Args:
        config: Supervisor configuration (environment-driven when None)

    Returns:
        Global task context store
    """
    global _global_context_store
    if _global_context_store is None:
        config = config or SupervisorConfig()
        _global_context_store = create_context_store(
            backend=config.context_store_backend,
            redis_url=config.redis_url,
            ttl_seconds=config.context_ttl_seconds,
            cleanup_interval=config.context_cleanup_interval,
        )
    return _global_context_store
