"""Shared fixtures for the task supervisor test suite."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from unittest.mock import AsyncMock

import pytest

from task_supervisor.config.supervisor_config import SupervisorConfig
from task_supervisor.events.progress_bus import ProgressEventBus
from task_supervisor.models.supervisor_models import MaxComplexity
from task_supervisor.oracle.base import DecisionOracle
from task_supervisor.store.context_store import TaskContextStore


class FakeClock:
    """Manually advanced time source (epoch seconds)."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def progress_bus():
    return ProgressEventBus()


@pytest.fixture
def context_store(clock):
    return TaskContextStore(ttl_seconds=1800, cleanup_interval=300, clock=clock)


@pytest.fixture
def supervisor_config():
    return SupervisorConfig(
        openai_api_key="test-key",
        max_nesting_level=5,
        max_subtasks_per_task=10,
        max_complexity=MaxComplexity.HIERARCHICAL,
        max_refinements_per_run=3,
        context_store_backend="memory",
        keep_alive_interval=30,
    )


@pytest.fixture
def oracle():
    return AsyncMock(spec=DecisionOracle)
