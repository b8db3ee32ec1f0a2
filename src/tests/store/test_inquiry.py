"""Tests for describing a session snapshot to a conversational caller."""

from task_supervisor.models.progress_models import ContextProgress, TaskContext
from task_supervisor.models.supervisor_models import ExecutionStrategy, SupervisorComplexity
from task_supervisor.models.task_models import TaskNode, TaskStatus
from task_supervisor.store.inquiry import describe_context


def test_missing_context():
    described = describe_context("s1", None)

    assert described == {
        "success": False,
        "error": "Task context not found. The task may have completed or expired.",
        "sessionId": "s1",
    }


def test_snapshot_is_numbered_and_summarized():
    context = TaskContext(
        session_id="s1",
        hierarchical_breakdown=TaskNode(
            task_id="task-root",
            description="Organize offsite",
            status=TaskStatus.IN_PROGRESS,
            subtasks=[
                TaskNode(
                    task_id="task-root.0",
                    description="Book venue",
                    status=TaskStatus.COMPLETED,
                    result="Booked the loft",
                ),
                TaskNode(
                    task_id="task-root.1",
                    description="Email team",
                    status=TaskStatus.IN_PROGRESS,
                ),
            ],
        ),
        progress=ContextProgress(current=1, total=2, percentage=50),
        strategy=ExecutionStrategy.HIERARCHICAL,
        complexity=SupervisorComplexity.COMPLEX,
    )

    described = describe_context("s1", context)

    assert described["success"] is True
    task = described["task"]
    assert task["description"] == "Organize offsite"
    assert task["status"] == "in_progress"
    assert task["strategy"] == "hierarchical"
    assert task["complexity"] == "complex"
    assert task["totalSubtasks"] == 2
    assert task["finalResponse"] is None
    assert task["subtasks"][0] == {
        "number": 1,
        "description": "Book venue",
        "status": "completed",
        "result": "Booked the loft",
    }
    assert task["subtasks"][1]["number"] == 2
    assert described["progress"] == {"percentage": 50, "message": "50% complete"}
