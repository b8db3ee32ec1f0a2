"""Request/response models for adaptive strategy selection."""

from enum import Enum
from typing import List, Optional

from pydantic import Field

from .task_models import OracleModel, TaskNode


class SupervisorComplexity(str, Enum):
    """Request-level complexity verdict."""

    TOO_SIMPLE = "tooSimple"  # Caller can do it itself
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class ExecutionStrategy(str, Enum):
    DIRECT = "direct"
    FLAT = "flat"
    HIERARCHICAL = "hierarchical"


class ExecutionMode(str, Enum):
    AUTO = "auto"
    PLAN = "plan"
    EXECUTE = "execute"


class MaxComplexity(str, Enum):
    """Upper bound on the strategy the supervisor may choose."""

    FLAT = "flat"
    HIERARCHICAL = "hierarchical"


class ComplexityAssessment(OracleModel):
    complexity: SupervisorComplexity = SupervisorComplexity.MEDIUM
    reasoning: str = "No reasoning provided"
    should_delegate_back: bool = False
    guidance: Optional[str] = None


class WorkflowExecution(OracleModel):
    """Outcome of a direct or flat execution: one answer and the steps taken."""

    next_response: str = "Task completed"
    workflow_steps: List[str] = Field(default_factory=list)


class ExecutionPlan(OracleModel):
    """Plan-first output: future-tense steps and a confirmation prompt."""

    next_response: str = "Plan prepared"
    planned_steps: List[str] = Field(default_factory=list)


class StepProgress(OracleModel):
    current: int = 0
    total: int = 0


class UnifiedRequest(OracleModel):
    task_description: str = Field(min_length=1)
    conversation_context: str = Field(min_length=1)
    execution_mode: ExecutionMode = ExecutionMode.AUTO
    max_complexity: Optional[MaxComplexity] = None


class UnifiedResponse(OracleModel):
    strategy: ExecutionStrategy
    complexity: SupervisorComplexity
    next_response: str
    workflow_steps: List[str] = Field(default_factory=list)
    hierarchical_breakdown: Optional[TaskNode] = None
    progress: StepProgress = Field(default_factory=StepProgress)
    execution_time: int = 0
    delegate_back: bool = False
    delegation_guidance: Optional[str] = None
    planned_steps: Optional[List[str]] = None
    session_id: Optional[str] = None
