"""Models package for the task supervisor."""

from .task_models import (
    ROOT_TASK_ID,
    TaskStatus,
    TaskComplexity,
    ExecutionStatus,
    Task,
    TaskTree,
    TaskNode,
    SubtaskSpec,
    DirectExecution,
    TaskBreakdownRequest,
    TaskBreakdownResponse,
    TaskExecutionRequest,
    TaskExecutionResponse,
    ReportGenerationRequest,
    ReportSynthesis,
    FinalReport,
)
from .supervisor_models import (
    SupervisorComplexity,
    ExecutionStrategy,
    ExecutionMode,
    MaxComplexity,
    ComplexityAssessment,
    WorkflowExecution,
    ExecutionPlan,
    StepProgress,
    UnifiedRequest,
    UnifiedResponse,
)
from .progress_models import (
    ProgressEventType,
    ProgressUpdate,
    ContextProgress,
    TaskContext,
)

__all__ = [
    "ROOT_TASK_ID",
    "TaskStatus",
    "TaskComplexity",
    "ExecutionStatus",
    "Task",
    "TaskTree",
    "TaskNode",
    "SubtaskSpec",
    "DirectExecution",
    "TaskBreakdownRequest",
    "TaskBreakdownResponse",
    "TaskExecutionRequest",
    "TaskExecutionResponse",
    "ReportGenerationRequest",
    "ReportSynthesis",
    "FinalReport",
    "SupervisorComplexity",
    "ExecutionStrategy",
    "ExecutionMode",
    "MaxComplexity",
    "ComplexityAssessment",
    "WorkflowExecution",
    "ExecutionPlan",
    "StepProgress",
    "UnifiedRequest",
    "UnifiedResponse",
    "ProgressEventType",
    "ProgressUpdate",
    "ContextProgress",
    "TaskContext",
]
