"""Data models for hierarchical task decomposition and execution."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime


ROOT_TASK_ID = "task-root"


class TaskStatus(str, Enum):
    """Lifecycle status of a task in the tree."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"  # Dependencies unmet
    SKIPPED = "skipped"  # Made moot by context


class TaskComplexity(str, Enum):
    """Complexity of a single task; decides whether breakdown is attempted."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class ExecutionStatus(str, Enum):
    """Outcome reported by a task executor."""

    COMPLETED = "completed"
    FAILED = "failed"
    NEED_USER_INPUT = "needUserInput"
    NEEDS_RESEARCH = "needsResearch"
    TOOL_ERROR = "toolError"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})


class OracleModel(BaseModel):
    """Base for models exchanged with the oracle and the HTTP surface.

    Fields are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class Task(BaseModel):
    """A node in the decomposition tree."""

    id: str = Field(description="Position-encoding task ID")
    parent_id: Optional[str] = Field(default=None, description="Owning task ID")
    description: str = Field(description="What must be done")
    complexity: TaskComplexity = Field(default=TaskComplexity.MODERATE)
    status: TaskStatus = Field(default=TaskStatus.PLANNED)
    level: int = Field(default=0, ge=0, description="Nesting level (0 = root)")

    # Hierarchy
    subtasks: List["Task"] = Field(default_factory=list)
    subtask_results: List[str] = Field(
        default_factory=list,
        description="Results of finished children; non-empty means aggregation mode",
    )
    dependencies: List[str] = Field(
        default_factory=list, description="Sibling IDs that must complete first"
    )

    # Outcome
    result: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None)
    failure_kind: Optional[ExecutionStatus] = Field(default=None)
    user_question: Optional[str] = Field(
        default=None, description="What the executor needs the user to answer"
    )
    research_query: Optional[str] = Field(
        default=None, description="What the executor needs looked up"
    )
    refined: bool = Field(default=False, description="Refinement already used")

    # Timing
    execution_start_time: Optional[datetime] = Field(default=None)
    execution_end_time: Optional[datetime] = Field(default=None)

    @property
    def duration_ms(self) -> Optional[int]:
        if not self.execution_start_time or not self.execution_end_time:
            return None
        delta = self.execution_end_time - self.execution_start_time
        return int(delta.total_seconds() * 1000)


class TaskTree(BaseModel):
    """The whole decomposition: root, flat arena and counters."""

    root_task: Task
    tasks: Dict[str, Task] = Field(default_factory=dict, description="All tasks by ID")
    execution_order: List[str] = Field(
        default_factory=list, description="Leaf IDs in execution order"
    )
    current_task_id: Optional[str] = Field(default=None)

    # Progress counters (leaf tasks)
    total_tasks: int = Field(default=1)
    completed_tasks: int = Field(default=0)
    failed_tasks: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.now)


class TaskNode(OracleModel):
    """Serializable snapshot of a task subtree for observers and reports."""

    task_id: str
    description: str
    status: TaskStatus
    complexity: Optional[TaskComplexity] = None
    result: Optional[str] = None
    error: Optional[str] = None
    failure_kind: Optional[ExecutionStatus] = None
    user_question: Optional[str] = None
    research_query: Optional[str] = None
    duration_ms: Optional[int] = None
    subtasks: List["TaskNode"] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Oracle exchange: breakdown
# ---------------------------------------------------------------------------


class SubtaskSpec(OracleModel):
    """One subtask proposed by a breakdown decision."""

    description: str
    estimated_complexity: TaskComplexity = TaskComplexity.MODERATE
    dependencies: List[int] = Field(
        default_factory=list, description="Indices of earlier sibling subtasks"
    )


class DirectExecution(OracleModel):
    can_execute_directly: bool = True
    executor: str = "supervisor"


class TaskBreakdownRequest(BaseModel):
    task: Task
    conversation_context: str
    previous_results: List[str] = Field(default_factory=list)


class TaskBreakdownResponse(OracleModel):
    should_breakdown: bool = False
    subtasks: List[SubtaskSpec] = Field(default_factory=list)
    reasoning: str = ""
    direct_execution: Optional[DirectExecution] = None


# ---------------------------------------------------------------------------
# Oracle exchange: execution
# ---------------------------------------------------------------------------


class TaskExecutionRequest(BaseModel):
    task: Task
    conversation_context: str
    previous_results: List[str] = Field(default_factory=list)
    sibling_context: str = ""


class TaskExecutionResponse(OracleModel):
    status: ExecutionStatus
    result: Optional[str] = None
    error: Optional[str] = None
    user_question: Optional[str] = None
    research_query: Optional[str] = None
    workflow_steps: List[str] = Field(default_factory=list)
    needs_refinement: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED


# ---------------------------------------------------------------------------
# Oracle exchange: reporting
# ---------------------------------------------------------------------------


class ReportGenerationRequest(BaseModel):
    root_task: Task
    task_tree: TaskTree
    conversation_context: str


class ReportSynthesis(OracleModel):
    """Narrative produced by the oracle over already-collected results."""

    detailed_results: str
    execution_summary: str = ""
    key_findings: List[str] = Field(default_factory=list)
    next_response: str = ""
    workflow_steps: List[str] = Field(default_factory=list)


class FinalReport(OracleModel):
    summary: str
    detailed_results: str
    tasks_completed: int
    tasks_failed: int
    total_tasks: int = Field(description="Leaf tasks scheduled, blocked ones included")
    execution_time: int = Field(description="Total execution time in ms")
    hierarchical_breakdown: TaskNode
    workflow_steps: List[str] = Field(default_factory=list)


Task.model_rebuild()
TaskNode.model_rebuild()
