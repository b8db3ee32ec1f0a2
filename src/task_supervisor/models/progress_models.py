"""Progress event and task context models."""

import time
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ConfigDict, Field

from .supervisor_models import ExecutionStrategy, SupervisorComplexity
from .task_models import OracleModel, TaskNode, TaskStatus, ROOT_TASK_ID


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProgressEventType(str, Enum):
    """Lifecycle tags carried by progress events."""

    CONNECTED = "connected"
    STARTED = "started"
    COMPLEXITY_ASSESSED = "complexity_assessed"
    DELEGATE_BACK = "delegate_back"
    STRATEGY_SELECTED = "strategy_selected"
    PLAN_READY = "plan_ready"
    BREAKDOWN_STARTED = "breakdown_started"
    BREAKDOWN_COMPLETED = "breakdown_completed"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"
    TASK_BLOCKED = "task_blocked"
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_EVENT_TYPES = frozenset({ProgressEventType.COMPLETED, ProgressEventType.ERROR})


class ProgressUpdate(OracleModel):
    """Immutable progress event for one session.

    ``seq`` is assigned by the event bus on acceptance and travels inside the
    payload so a reconnecting client can resume from the last id it saw.
    """

    session_id: str
    type: ProgressEventType
    message: str
    progress: int = Field(default=0, ge=0, le=100)
    current_step: Optional[int] = None
    total_steps: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: int = Field(default_factory=_now_ms)
    seq: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES


class ContextProgress(OracleModel):
    current: int = 0
    total: int = 0
    percentage: int = 0


def _unknown_breakdown() -> TaskNode:
    return TaskNode(
        task_id=ROOT_TASK_ID,
        description="Unknown task",
        status=TaskStatus.PLANNED,
    )


class TaskContext(OracleModel):
    """Latest known snapshot of a session, for "what is happening now" inquiries."""

    session_id: str
    hierarchical_breakdown: TaskNode = Field(default_factory=_unknown_breakdown)
    progress: ContextProgress = Field(default_factory=ContextProgress)
    strategy: ExecutionStrategy = ExecutionStrategy.DIRECT
    complexity: SupervisorComplexity = SupervisorComplexity.SIMPLE
    final_response: Optional[str] = None
    last_update: float = Field(default_factory=time.time)
