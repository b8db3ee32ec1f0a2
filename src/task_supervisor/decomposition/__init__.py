"""Task tree helpers and the hierarchical orchestrator."""

from .orchestrator import (
    OrchestratorConfig,
    OrchestratorUpdate,
    TaskOrchestrator,
)
from .task_manager import (
    generate_task_id,
    calculate_execution_order,
    calculate_progress,
    collect_results,
    build_hierarchical_breakdown,
    extract_workflow_steps,
    format_task_tree,
)

__all__ = [
    "OrchestratorConfig",
    "OrchestratorUpdate",
    "TaskOrchestrator",
    "generate_task_id",
    "calculate_execution_order",
    "calculate_progress",
    "collect_results",
    "build_hierarchical_breakdown",
    "extract_workflow_steps",
    "format_task_tree",
]
