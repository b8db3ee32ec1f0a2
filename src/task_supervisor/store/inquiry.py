"""Answering "what are you doing right now?" from a task context snapshot."""

from typing import Any, Dict, Optional

from ..models.progress_models import TaskContext


def describe_context(session_id: str, context: Optional[TaskContext]) -> Dict[str, Any]:
    """
    Turn a snapshot into the structure a conversational agent reads back.

    Args:
        session_id: Session that was asked about
        context: Snapshot from the store, None when missing or expired

    Returns:
        Dictionary with ``success`` and either ``task``/``progress`` or ``error``
    """
    if context is None:
        return {
            "success": False,
            "error": "Task context not found. The task may have completed or expired.",
            "sessionId": session_id,
        }

    root = context.hierarchical_breakdown
    return {
        "success": True,
        "sessionId": context.session_id,
        "task": {
            "description": root.description,
            "status": root.status.value,
            "complexity": context.complexity.value,
            "strategy": context.strategy.value,
            "result": root.result,
            "finalResponse": context.final_response,
            "subtasks": [
                {
                    "number": number,
                    "description": subtask.description,
                    "status": subtask.status.value,
                    "result": subtask.result,
                }
                for number, subtask in enumerate(root.subtasks, start=1)
            ],
            "totalSubtasks": len(root.subtasks),
        },
        "progress": {
            "percentage": context.progress.percentage,
            "message": f"{context.progress.percentage}% complete",
        },
    }
