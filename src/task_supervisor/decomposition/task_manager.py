"""Pure helpers over tasks and task trees.

Nothing in this module performs I/O or mutates its arguments.
"""

import logging
from typing import Dict, Iterator, List, Mapping, Optional

from ..models.task_models import (
    ROOT_TASK_ID,
    Task,
    TaskNode,
    TaskStatus,
    TaskTree,
)


logger = logging.getLogger(__name__)


def generate_task_id(parent_id: Optional[str], child_index: int) -> str:
    """
    Generate a task ID encoding its position in the hierarchy.

    PATTERN: root is fixed, children append a zero-based index
    CRITICAL: Unique as long as one parent never reuses an index

    Args:
        parent_id: Owning task ID (None for the root)
        child_index: Zero-based index among the parent's children

    Returns:
        Task ID such as ``task-root.0.2``
    """
    if parent_id is None:
        return ROOT_TASK_ID
    return f"{parent_id}.{child_index}"


def get_task_level(task_id: str) -> int:
    """Nesting level derived from the ID (root is 0)."""
    if task_id == ROOT_TASK_ID:
        return 0
    return task_id.count(".")


def is_leaf_task(task: Task) -> bool:
    return len(task.subtasks) == 0


def iter_leaf_tasks(task: Task) -> Iterator[Task]:
    """Lazily yield every leaf below (or equal to) ``task``."""
    if is_leaf_task(task):
        yield task
        return
    for subtask in task.subtasks:
        yield from iter_leaf_tasks(subtask)


def count_leaf_tasks(task: Task) -> int:
    return sum(1 for _ in iter_leaf_tasks(task))


def sort_siblings(tasks: List[Task]) -> List[Task]:
    """
    Order siblings so every dependency precedes its dependents.

    PATTERN: Stable Kahn-style pass, always taking the earliest ready sibling
    GOTCHA: IDs outside the sibling set are ignored here; a cycle can only
    come from a hand-built tree and leaves the rest in input order

    Args:
        tasks: Children of one parent, in creation order

    Returns:
        New list in execution-safe order
    """
    sibling_ids = {task.id for task in tasks}
    remaining = list(tasks)
    placed: set = set()
    ordered: List[Task] = []

    while remaining:
        for index, task in enumerate(remaining):
            pending = [
                dep for dep in task.dependencies
                if dep in sibling_ids and dep not in placed
            ]
            if not pending:
                ordered.append(task)
                placed.add(task.id)
                del remaining[index]
                break
        else:
            logger.warning(
                f"Circular sibling dependencies among "
                f"{[task.id for task in remaining]}, keeping input order"
            )
            ordered.extend(remaining)
            break

    return ordered


def calculate_execution_order(root_task: Task) -> List[str]:
    """
    Compute the leaf schedule for a tree.

    PATTERN: Depth-first post-order; children sorted by sibling dependencies
    CRITICAL: Only leaf IDs are scheduled; parents complete implicitly

    Args:
        root_task: Root of the tree

    Returns:
        Leaf task IDs in execution order
    """
    order: List[str] = []

    def visit(task: Task) -> None:
        if is_leaf_task(task):
            order.append(task.id)
            return
        for subtask in sort_siblings(task.subtasks):
            visit(subtask)

    visit(root_task)
    return order


def build_task_map(root_task: Task) -> Dict[str, Task]:
    task_map: Dict[str, Task] = {}

    def visit(task: Task) -> None:
        task_map[task.id] = task
        for subtask in task.subtasks:
            visit(subtask)

    visit(root_task)
    return task_map


def are_dependencies_completed(task: Task, task_map: Mapping[str, Task]) -> bool:
    """True iff every dependency resolves to a completed task."""
    for dependency_id in task.dependencies:
        dependency = task_map.get(dependency_id)
        if dependency is None or dependency.status != TaskStatus.COMPLETED:
            return False
    return True


def calculate_progress(task_tree: TaskTree) -> int:
    if task_tree.total_tasks == 0:
        return 0
    return round(task_tree.completed_tasks / task_tree.total_tasks * 100)


def collect_results(task: Task) -> str:
    """
    Human-readable aggregation of a subtree's results.

    Used as the fallback when report synthesis is unavailable.
    """
    if is_leaf_task(task):
        return task.result or ""

    completed = [st for st in task.subtasks if st.status == TaskStatus.COMPLETED]
    return "\n".join(
        f"{index}. {subtask.description}: {collect_results(subtask)}"
        for index, subtask in enumerate(completed, start=1)
    )


def build_hierarchical_breakdown(task: Task) -> TaskNode:
    return TaskNode(
        task_id=task.id,
        description=task.description,
        status=task.status,
        complexity=task.complexity,
        result=task.result,
        error=task.error,
        failure_kind=task.failure_kind,
        user_question=task.user_question,
        research_query=task.research_query,
        duration_ms=task.duration_ms,
        subtasks=[build_hierarchical_breakdown(st) for st in task.subtasks],
    )


def extract_workflow_steps(node: TaskNode) -> List[str]:
    """Flatten completed nodes of a breakdown into ``description: result`` lines."""
    steps: List[str] = []

    def traverse(current: TaskNode) -> None:
        if current.result and current.status == TaskStatus.COMPLETED:
            steps.append(f"{current.description}: {current.result}")
        for subtask in current.subtasks:
            traverse(subtask)

    traverse(node)
    return steps


_STATUS_ICONS = {
    TaskStatus.PLANNED: "[ ]",
    TaskStatus.IN_PROGRESS: "[>]",
    TaskStatus.COMPLETED: "[x]",
    TaskStatus.FAILED: "[!]",
    TaskStatus.BLOCKED: "[#]",
    TaskStatus.SKIPPED: "[-]",
}


def format_task_tree(task: Task, indent: int = 0) -> str:
    """Render a tree as indented text with status markers."""
    prefix = "  " * indent
    lines = [f"{prefix}{_STATUS_ICONS.get(task.status, '[?]')} {task.description}"]

    if task.result and task.status == TaskStatus.COMPLETED:
        lines.append(f"{prefix}  -> {task.result}")
    if task.error and task.status == TaskStatus.FAILED:
        lines.append(f"{prefix}  error: {task.error}")
    if task.user_question and task.status == TaskStatus.FAILED:
        lines.append(f"{prefix}  needs user input: {task.user_question}")
    if task.research_query and task.status == TaskStatus.FAILED:
        lines.append(f"{prefix}  needs research: {task.research_query}")

    for subtask in task.subtasks:
        lines.append(format_task_tree(subtask, indent + 1))

    return "\n".join(lines)
