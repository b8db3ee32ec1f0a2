"""Tests for the task context store backends and snapshot merging."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from task_supervisor.models.progress_models import ContextProgress, TaskContext
from task_supervisor.models.supervisor_models import ExecutionStrategy, SupervisorComplexity
from task_supervisor.models.task_models import TaskNode, TaskStatus
from task_supervisor.store.context_store import (
    RedisTaskContextStore,
    TaskContextStore,
    create_context_store,
    merge_context,
)


def breakdown(description="Organize offsite", status=TaskStatus.IN_PROGRESS, steps=()):
    return TaskNode(
        task_id="task-root",
        description=description,
        status=status,
        subtasks=[
            TaskNode(task_id=f"task-root.{i}", description=step, status=TaskStatus.PLANNED)
            for i, step in enumerate(steps)
        ],
    )


class TestMergeContext:

    def test_new_context_uses_defaults_for_missing_fields(self):
        context = merge_context("s1", None, 10.0, progress=ContextProgress(percentage=20))

        assert context.session_id == "s1"
        assert context.last_update == 10.0
        assert context.progress.percentage == 20
        assert context.strategy == ExecutionStrategy.DIRECT
        assert context.hierarchical_breakdown.description == "Unknown task"

    def test_missing_fields_keep_previous_values(self):
        existing = merge_context(
            "s1",
            None,
            10.0,
            hierarchical_breakdown=breakdown(),
            strategy=ExecutionStrategy.HIERARCHICAL,
            complexity=SupervisorComplexity.COMPLEX,
        )

        merged = merge_context(
            "s1", existing, 20.0, progress=ContextProgress(current=1, total=2, percentage=50),
            strategy=None,
        )

        assert merged.hierarchical_breakdown.description == "Organize offsite"
        assert merged.strategy == ExecutionStrategy.HIERARCHICAL
        assert merged.complexity == SupervisorComplexity.COMPLEX
        assert merged.progress.percentage == 50
        assert merged.last_update == 20.0
        assert existing.progress.percentage == 0

    def test_unknown_field_is_rejected(self):
        with pytest.raises(TypeError):
            merge_context("s1", None, 0.0, colour="blue")


class TestMemoryContextStore:

    @pytest.mark.asyncio
    async def test_set_and_get(self, context_store):
        await context_store.set_context(
            "s1",
            hierarchical_breakdown=breakdown(steps=["Book venue"]),
            strategy=ExecutionStrategy.HIERARCHICAL,
        )

        context = await context_store.get_context("s1")

        assert context.strategy == ExecutionStrategy.HIERARCHICAL
        assert context.hierarchical_breakdown.subtasks[0].description == "Book venue"

    @pytest.mark.asyncio
    async def test_missing_session_returns_none(self, context_store):
        assert await context_store.get_context("nope") is None

    @pytest.mark.asyncio
    async def test_partial_updates_merge(self, context_store):
        await context_store.set_context("s1", complexity=SupervisorComplexity.COMPLEX)
        await context_store.set_context("s1", progress=ContextProgress(percentage=40))

        context = await context_store.get_context("s1")

        assert context.complexity == SupervisorComplexity.COMPLEX
        assert context.progress.percentage == 40

    @pytest.mark.asyncio
    async def test_final_response_is_kept_by_later_updates(self, context_store):
        await context_store.set_context("s1", final_response="Venue booked for May 3")
        await context_store.set_context("s1", progress=ContextProgress(percentage=100))

        context = await context_store.get_context("s1")

        assert context.final_response == "Venue booked for May 3"
        assert context.model_dump(by_alias=True)["finalResponse"] == "Venue booked for May 3"

    @pytest.mark.asyncio
    async def test_context_expires_after_ttl(self, context_store, clock):
        await context_store.set_context("s1", progress=ContextProgress(percentage=10))

        clock.advance(1800)
        assert await context_store.get_context("s1") is not None

        clock.advance(1)
        assert await context_store.get_context("s1") is None
        assert context_store.get_stats()["active_contexts"] == 0

    @pytest.mark.asyncio
    async def test_update_refreshes_ttl(self, context_store, clock):
        await context_store.set_context("s1", progress=ContextProgress(percentage=10))
        clock.advance(1000)
        await context_store.set_context("s1", progress=ContextProgress(percentage=20))
        clock.advance(1000)

        context = await context_store.get_context("s1")
        assert context.progress.percentage == 20

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_expired(self, context_store, clock):
        await context_store.set_context("old", progress=ContextProgress(percentage=10))
        clock.advance(1700)
        await context_store.set_context("fresh", progress=ContextProgress(percentage=10))
        clock.advance(200)

        assert context_store.get_stats()["live_contexts"] == 1
        assert context_store.cleanup() == 1
        assert [c.session_id for c in await context_store.get_all_contexts()] == ["fresh"]
        assert context_store.cleanup() == 0

    @pytest.mark.asyncio
    async def test_get_all_skips_expired(self, context_store, clock):
        await context_store.set_context("a", progress=ContextProgress())
        clock.advance(2000)
        await context_store.set_context("b", progress=ContextProgress())

        contexts = await context_store.get_all_contexts()

        assert [c.session_id for c in contexts] == ["b"]

    @pytest.mark.asyncio
    async def test_remove_context(self, context_store):
        await context_store.set_context("s1", progress=ContextProgress())
        await context_store.remove_context("s1")
        await context_store.remove_context("never-existed")

        assert await context_store.get_context("s1") is None

    def test_stats(self, context_store):
        stats = context_store.get_stats()

        assert stats["backend"] == "memory"
        assert stats["ttl_seconds"] == 1800
        assert stats["active_contexts"] == 0

    @pytest.mark.asyncio
    async def test_background_sweep(self, clock):
        store = TaskContextStore(ttl_seconds=10, cleanup_interval=0.01, clock=clock)
        await store.set_context("s1", progress=ContextProgress())
        clock.advance(11)

        store.start()
        store.start()
        try:
            for _ in range(50):
                if store.get_stats()["active_contexts"] == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await store.stop()

        assert store.get_stats()["active_contexts"] == 0
        await store.stop()

    def test_factory_defaults_to_memory(self):
        assert isinstance(create_context_store(), TaskContextStore)
        assert isinstance(create_context_store(backend="redis"), RedisTaskContextStore)


class TestRedisContextStore:
    """Redis backend against a mocked client."""

    def setup_method(self):
        self.redis = AsyncMock()
        self.redis.get.return_value = None
        self.store = RedisTaskContextStore(ttl_seconds=1800, redis_client=self.redis)

    @pytest.mark.asyncio
    async def test_set_context_writes_with_ttl(self):
        context = await self.store.set_context(
            "s1",
            hierarchical_breakdown=breakdown(),
            strategy=ExecutionStrategy.FLAT,
        )

        self.redis.setex.assert_awaited_once()
        key, ttl, payload = self.redis.setex.await_args.args
        assert key == "task_context:s1"
        assert ttl == 1800
        assert TaskContext.model_validate_json(payload) == context
        assert '"sessionId"' in payload

    @pytest.mark.asyncio
    async def test_set_context_merges_existing(self):
        existing = TaskContext(
            session_id="s1",
            hierarchical_breakdown=breakdown("Previous task"),
            complexity=SupervisorComplexity.COMPLEX,
        )
        self.redis.get.return_value = existing.model_dump_json(by_alias=True)

        context = await self.store.set_context("s1", progress=ContextProgress(percentage=75))

        assert context.hierarchical_breakdown.description == "Previous task"
        assert context.complexity == SupervisorComplexity.COMPLEX
        assert context.progress.percentage == 75

    @pytest.mark.asyncio
    async def test_get_missing_context(self):
        assert await self.store.get_context("s1") is None
        self.redis.get.assert_awaited_with("task_context:s1")

    @pytest.mark.asyncio
    async def test_remove_context(self):
        await self.store.remove_context("s1")
        self.redis.delete.assert_awaited_once_with("task_context:s1")

    @pytest.mark.asyncio
    async def test_get_all_contexts_scans_prefix(self):
        stored = TaskContext(session_id="s1").model_dump_json(by_alias=True)

        async def scan_iter(match=None, count=None):
            assert match == "task_context:*"
            yield "task_context:s1"
            yield "task_context:gone"

        self.redis.scan_iter = MagicMock(side_effect=scan_iter)
        self.redis.get.side_effect = lambda key: stored if key.endswith("s1") else None

        contexts = await self.store.get_all_contexts()

        assert [c.session_id for c in contexts] == ["s1"]

    @pytest.mark.asyncio
    async def test_stop_closes_client(self):
        await self.store.stop()
        self.redis.aclose.assert_awaited_once()

    def test_cleanup_is_delegated_to_redis(self):
        assert self.store.cleanup() == 0
        assert self.store.get_stats()["backend"] == "redis"
