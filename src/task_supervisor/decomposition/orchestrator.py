"""Hierarchical task orchestrator - recursive breakdown and ordered execution."""

import inspect
import logging
from collections import deque
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Union

from pydantic import BaseModel, Field

from .task_manager import (
    are_dependencies_completed,
    build_hierarchical_breakdown,
    calculate_execution_order,
    calculate_progress,
    collect_results,
    count_leaf_tasks,
    extract_workflow_steps,
    generate_task_id,
    is_leaf_task,
)
from ..models.progress_models import ProgressEventType
from ..models.task_models import (
    TERMINAL_STATUSES,
    ExecutionStatus,
    FinalReport,
    ReportGenerationRequest,
    ReportSynthesis,
    Task,
    TaskBreakdownRequest,
    TaskBreakdownResponse,
    TaskComplexity,
    TaskExecutionRequest,
    TaskExecutionResponse,
    TaskNode,
    TaskStatus,
    TaskTree,
)


logger = logging.getLogger(__name__)


BreakdownFn = Callable[[TaskBreakdownRequest], Awaitable[TaskBreakdownResponse]]
ExecuteFn = Callable[[TaskExecutionRequest], Awaitable[TaskExecutionResponse]]
ReportFn = Callable[[ReportGenerationRequest], Awaitable[ReportSynthesis]]


class OrchestratorConfig(BaseModel):
    """Limits applied while building and running a task tree."""

    max_nesting_level: int = Field(default=5, ge=0)
    max_subtasks_per_task: int = Field(default=10, ge=1)
    max_refinements_per_run: int = Field(default=3, ge=0)
    enable_progress_callbacks: bool = Field(default=True)


class OrchestratorUpdate(BaseModel):
    """Progress notification raised by the orchestrator."""

    type: ProgressEventType
    task_id: str
    task_description: str
    progress: int
    completed_tasks: int = 0
    total_tasks: int = 0
    result: Optional[str] = None
    error: Optional[str] = None
    failure_kind: Optional[ExecutionStatus] = None
    user_question: Optional[str] = None
    research_query: Optional[str] = None
    duration_ms: Optional[int] = None
    root_snapshot: Optional[TaskNode] = None


ProgressCallback = Callable[[OrchestratorUpdate], Union[None, Awaitable[None]]]


class TaskOrchestrator:
    """
    Builds a task tree by recursive breakdown and executes its leaves in order.

    PATTERN: Breakdown (pre-order) -> linearize (post-order) -> sequential loop
    CRITICAL: Leaf failures never abort the run; partial results always reach
    the report
    GOTCHA: Oracle collaborators are passed per call, the orchestrator itself
    knows nothing about them
    """

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Nesting, fan-out and refinement limits
            progress_callback: Sync or async callable receiving updates
        """
        self.config = config or OrchestratorConfig()
        self.progress_callback = progress_callback
        self.task_tree: Optional[TaskTree] = None
        self._refinements_used = 0
        self.logger = logging.getLogger(__name__)

    async def execute_complex_task(
        self,
        task_description: str,
        conversation_context: str,
        breakdown_fn: BreakdownFn,
        execute_fn: ExecuteFn,
        report_fn: ReportFn,
    ) -> FinalReport:
        """
        Execute a complex task from breakdown to final report.

        Args:
            task_description: What the user asked for
            conversation_context: Conversation so far
            breakdown_fn: Decides whether and how a task is split
            execute_fn: Executes a leaf task
            report_fn: Synthesizes the narrative over collected results

        Returns:
            FinalReport with counters and the hierarchical breakdown
        """
        start_time = datetime.now()
        self.logger.info(f"Starting complex task execution: '{task_description[:80]}'")

        root_task = Task(
            id=generate_task_id(None, 0),
            description=task_description,
            complexity=TaskComplexity.COMPLEX,
            level=0,
        )
        task_tree = TaskTree(
            root_task=root_task,
            tasks={root_task.id: root_task},
        )
        self.task_tree = task_tree
        self._refinements_used = 0

        # Step 1: recursive breakdown
        await self._breakdown_recursively(
            root_task, task_tree, conversation_context, breakdown_fn
        )

        # Step 2: leaf schedule
        task_tree.execution_order = calculate_execution_order(root_task)
        task_tree.total_tasks = count_leaf_tasks(root_task)

        self.logger.info(
            f"Breakdown complete: {len(task_tree.tasks)} tasks, "
            f"{task_tree.total_tasks} leaf tasks scheduled"
        )

        # Step 3: sequential execution
        await self._execute_tasks_in_order(
            task_tree, conversation_context, execute_fn, breakdown_fn
        )

        # Step 4: report
        report = await self._generate_final_report(
            task_tree, conversation_context, report_fn, start_time
        )

        self.logger.info(
            f"Task execution complete: {task_tree.completed_tasks} completed, "
            f"{task_tree.failed_tasks} failed, {task_tree.total_tasks} total"
        )

        return report

    # ------------------------------------------------------------------
    # Breakdown
    # ------------------------------------------------------------------

    async def _breakdown_recursively(
        self,
        task: Task,
        task_tree: TaskTree,
        conversation_context: str,
        breakdown_fn: BreakdownFn,
    ) -> None:
        """
        Break a task down depth-first, creating children before recursing.

        PATTERN: Base case checks -> oracle decision -> create children -> recurse
        CRITICAL: Depth and fan-out limits truncate silently
        """
        if task.level >= self.config.max_nesting_level:
            self.logger.debug(f"Task {task.id} at max nesting level, treating as leaf")
            return

        if task.complexity == TaskComplexity.SIMPLE:
            self.logger.debug(f"Task {task.id} is simple, no breakdown needed")
            return

        await self._notify(ProgressEventType.BREAKDOWN_STARTED, task, task_tree)

        request = TaskBreakdownRequest(
            task=task,
            conversation_context=conversation_context,
            previous_results=self._collect_sibling_results(task, task_tree),
        )

        try:
            breakdown = await breakdown_fn(request)
        except Exception as e:
            self.logger.error(f"Breakdown failed for task {task.id}: {e}")
            return

        if not breakdown.should_breakdown:
            self.logger.debug(
                f"Task {task.id} does not need breakdown: {breakdown.reasoning}"
            )
            if (
                breakdown.direct_execution
                and breakdown.direct_execution.can_execute_directly
            ):
                task.complexity = TaskComplexity.SIMPLE
            return

        specs = breakdown.subtasks[: self.config.max_subtasks_per_task]
        if not specs:
            self.logger.debug(f"No subtasks provided for task {task.id}")
            return

        if len(breakdown.subtasks) > len(specs):
            self.logger.warning(
                f"Breakdown of {task.id} returned {len(breakdown.subtasks)} subtasks, "
                f"keeping first {len(specs)}"
            )

        for index, spec in enumerate(specs):
            subtask = Task(
                id=generate_task_id(task.id, index),
                parent_id=task.id,
                description=spec.description,
                complexity=spec.estimated_complexity,
                level=task.level + 1,
                dependencies=self._resolve_dependencies(task.id, index, spec.dependencies),
            )
            task.subtasks.append(subtask)
            task_tree.tasks[subtask.id] = subtask

        self.logger.debug(
            f"Broke down {task.id} into {len(task.subtasks)} subtasks at level {task.level}"
        )

        await self._notify(ProgressEventType.BREAKDOWN_COMPLETED, task, task_tree)

        for subtask in task.subtasks:
            await self._breakdown_recursively(
                subtask, task_tree, conversation_context, breakdown_fn
            )

    def _resolve_dependencies(
        self,
        parent_id: str,
        index: int,
        dependency_indices: List[int],
    ) -> List[str]:
        """
        Translate dependency indices into sibling IDs.

        CRITICAL: Only earlier siblings may be referenced, which keeps the
        sibling graph acyclic by construction
        """
        resolved: List[str] = []
        for dep_index in dependency_indices:
            if not 0 <= dep_index < index:
                self.logger.warning(
                    f"Dropping dependency of {generate_task_id(parent_id, index)} "
                    f"on sibling index {dep_index}"
                )
                continue
            dependency_id = generate_task_id(parent_id, dep_index)
            if dependency_id not in resolved:
                resolved.append(dependency_id)
        return resolved

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _execute_tasks_in_order(
        self,
        task_tree: TaskTree,
        conversation_context: str,
        execute_fn: ExecuteFn,
        breakdown_fn: BreakdownFn,
    ) -> None:
        """Run every scheduled leaf, one at a time."""
        pending = deque(task_tree.execution_order)

        while pending:
            task_id = pending.popleft()
            task = task_tree.tasks.get(task_id)

            if task is None:
                self.logger.error(f"Task {task_id} not found in task map")
                continue

            if task.status != TaskStatus.PLANNED:
                continue

            if not are_dependencies_completed(task, task_tree.tasks):
                self.logger.info(f"Task {task_id} dependencies not met, marking blocked")
                task.status = TaskStatus.BLOCKED
                await self._notify(ProgressEventType.TASK_BLOCKED, task, task_tree)
                continue

            try:
                refined = await self._execute_single_task(
                    task, task_tree, conversation_context, execute_fn, breakdown_fn
                )
            except Exception as e:
                self.logger.error(f"Exception during task {task.id} execution: {e}")
                await self._record_unexpected_failure(task, task_tree, e)
                refined = False
            finally:
                task_tree.current_task_id = None

            if refined:
                task_tree.execution_order = calculate_execution_order(task_tree.root_task)
                pending = deque(
                    tid for tid in task_tree.execution_order
                    if task_tree.tasks[tid].status == TaskStatus.PLANNED
                )

    async def _execute_single_task(
        self,
        task: Task,
        task_tree: TaskTree,
        conversation_context: str,
        execute_fn: ExecuteFn,
        breakdown_fn: BreakdownFn,
    ) -> bool:
        """
        Execute one leaf and fold its outcome into the tree.

        Returns:
            True when the task was refined into new subtasks
        """
        self.logger.info(f"Executing task {task.id}: {task.description}")

        task.status = TaskStatus.IN_PROGRESS
        task.execution_start_time = datetime.now()
        task_tree.current_task_id = task.id
        self._mark_ancestors_started(task, task_tree)

        await self._notify(ProgressEventType.TASK_STARTED, task, task_tree)

        previous_results = self._collect_sibling_results(task, task_tree)
        request = TaskExecutionRequest(
            task=task,
            conversation_context=conversation_context,
            previous_results=previous_results,
            sibling_context="\n".join(previous_results),
        )

        response = await execute_fn(request)

        if response.succeeded:
            self._mark_completed(task, task_tree, response.result or "")
            self.logger.info(f"Task {task.id} completed successfully")
            await self._notify(
                ProgressEventType.TASK_COMPLETED, task, task_tree, result=task.result
            )
            await self._propagate_to_parent(task, task_tree)
            return False

        self._mark_failed(
            task,
            task_tree,
            response.error,
            response.status,
            user_question=response.user_question,
            research_query=response.research_query,
        )
        self.logger.warning(f"Task {task.id} failed ({response.status.value}): {task.error}")
        await self._notify(ProgressEventType.TASK_FAILED, task, task_tree, error=task.error)

        if response.needs_refinement and self._can_refine(task):
            return await self._refine_task(
                task, task_tree, conversation_context, breakdown_fn
            )

        await self._propagate_to_parent(task, task_tree)
        return False

    def _can_refine(self, task: Task) -> bool:
        if task.refined:
            return False
        if task.level >= self.config.max_nesting_level:
            return False
        return self._refinements_used < self.config.max_refinements_per_run

    async def _refine_task(
        self,
        task: Task,
        task_tree: TaskTree,
        conversation_context: str,
        breakdown_fn: BreakdownFn,
    ) -> bool:
        """
        Re-plan a failed task by breaking it down once.

        GOTCHA: The original failure stays counted; new leaves are added to
        total_tasks so the counters stay monotonic
        """
        self._refinements_used += 1
        self.logger.info(
            f"Task {task.id} needs refinement, attempting breakdown "
            f"({self._refinements_used}/{self.config.max_refinements_per_run})"
        )

        failed_error = task.error
        failed_kind = task.failure_kind
        failed_question = task.user_question
        failed_query = task.research_query
        failed_at = task.execution_end_time

        task.refined = True
        task.status = TaskStatus.PLANNED
        task.complexity = TaskComplexity.COMPLEX
        task.error = None
        task.failure_kind = None
        task.user_question = None
        task.research_query = None
        task.execution_end_time = None

        await self._breakdown_recursively(
            task, task_tree, conversation_context, breakdown_fn
        )

        if is_leaf_task(task):
            self.logger.info(f"Refinement of {task.id} produced no subtasks")
            task.status = TaskStatus.FAILED
            task.error = failed_error
            task.failure_kind = failed_kind
            task.user_question = failed_question
            task.research_query = failed_query
            task.execution_end_time = failed_at
            await self._propagate_to_parent(task, task_tree)
            return False

        task_tree.total_tasks += count_leaf_tasks(task)
        return True

    async def _record_unexpected_failure(
        self,
        task: Task,
        task_tree: TaskTree,
        error: Exception,
    ) -> None:
        if task.status in TERMINAL_STATUSES:
            return
        self._mark_failed(task, task_tree, str(error) or type(error).__name__)
        await self._notify(ProgressEventType.TASK_FAILED, task, task_tree, error=task.error)
        await self._propagate_to_parent(task, task_tree)

    def _mark_completed(self, task: Task, task_tree: TaskTree, result: str) -> None:
        task.status = TaskStatus.COMPLETED
        task.result = result
        task.error = None
        task.execution_end_time = datetime.now()
        task_tree.completed_tasks += 1

    def _mark_failed(
        self,
        task: Task,
        task_tree: TaskTree,
        error: Optional[str],
        kind: ExecutionStatus = ExecutionStatus.FAILED,
        user_question: Optional[str] = None,
        research_query: Optional[str] = None,
    ) -> None:
        task.status = TaskStatus.FAILED
        task.error = error or "Unknown error"
        task.result = None
        task.failure_kind = kind
        task.user_question = user_question
        task.research_query = research_query
        task.execution_end_time = datetime.now()
        task_tree.failed_tasks += 1

    def _mark_ancestors_started(self, task: Task, task_tree: TaskTree) -> None:
        parent_id = task.parent_id
        while parent_id:
            parent = task_tree.tasks.get(parent_id)
            if parent is None:
                return
            if parent.status == TaskStatus.PLANNED:
                parent.status = TaskStatus.IN_PROGRESS
                parent.execution_start_time = parent.execution_start_time or datetime.now()
            parent_id = parent.parent_id

    async def _propagate_to_parent(self, task: Task, task_tree: TaskTree) -> None:
        """
        Fold a finished child into its parent, completing ancestors as needed.

        CRITICAL: A parent completes only once every child is completed or failed
        """
        if not task.parent_id:
            return

        parent = task_tree.tasks.get(task.parent_id)
        if parent is None:
            return

        if task.status == TaskStatus.COMPLETED:
            parent.subtask_results.append(task.result or "")

        if not all(st.status in TERMINAL_STATUSES for st in parent.subtasks):
            return

        self.logger.info(f"All subtasks of {parent.id} finished, collecting results")
        parent.result = collect_results(parent)
        parent.error = None
        parent.status = TaskStatus.COMPLETED
        parent.execution_end_time = datetime.now()

        await self._notify(
            ProgressEventType.TASK_COMPLETED, parent, task_tree, result=parent.result
        )
        await self._propagate_to_parent(parent, task_tree)

    def _collect_sibling_results(self, task: Task, task_tree: TaskTree) -> List[str]:
        """Results of completed siblings, formatted ``description: result``."""
        if not task.parent_id:
            return []

        parent = task_tree.tasks.get(task.parent_id)
        if parent is None:
            return []

        return [
            f"{sibling.description}: {sibling.result}"
            for sibling in parent.subtasks
            if sibling.id != task.id
            and sibling.status == TaskStatus.COMPLETED
            and sibling.result
        ]

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def _generate_final_report(
        self,
        task_tree: TaskTree,
        conversation_context: str,
        report_fn: ReportFn,
        start_time: datetime,
    ) -> FinalReport:
        """
        Ask for a narrative over collected results, falling back to plain text.

        GOTCHA: One extra oracle call over existing results, never a re-execution
        """
        self.logger.info("Generating final report")

        breakdown = build_hierarchical_breakdown(task_tree.root_task)
        summary = self._default_summary(task_tree)

        try:
            synthesis = await report_fn(
                ReportGenerationRequest(
                    root_task=task_tree.root_task,
                    task_tree=task_tree,
                    conversation_context=conversation_context,
                )
            )
            if synthesis.execution_summary:
                summary = synthesis.execution_summary
            detailed_results = synthesis.detailed_results
            workflow_steps = synthesis.workflow_steps or extract_workflow_steps(breakdown)
        except Exception as e:
            self.logger.error(f"Report synthesis failed, using collected results: {e}")
            detailed_results = collect_results(task_tree.root_task) or summary
            workflow_steps = extract_workflow_steps(breakdown)

        execution_time = int((datetime.now() - start_time).total_seconds() * 1000)

        return FinalReport(
            summary=summary,
            detailed_results=detailed_results,
            tasks_completed=task_tree.completed_tasks,
            tasks_failed=task_tree.failed_tasks,
            total_tasks=task_tree.total_tasks,
            execution_time=execution_time,
            hierarchical_breakdown=breakdown,
            workflow_steps=workflow_steps,
        )

    @staticmethod
    def _default_summary(task_tree: TaskTree) -> str:
        if task_tree.failed_tasks:
            return (
                f"Task completed with {task_tree.failed_tasks} failures "
                f"({task_tree.completed_tasks} of {task_tree.total_tasks} subtasks succeeded)"
            )
        return f"Task completed successfully ({task_tree.completed_tasks} subtasks)"

    async def _notify(
        self,
        event_type: ProgressEventType,
        task: Task,
        task_tree: TaskTree,
        result: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        if not (self.config.enable_progress_callbacks and self.progress_callback):
            return

        update = OrchestratorUpdate(
            type=event_type,
            task_id=task.id,
            task_description=task.description,
            progress=calculate_progress(task_tree),
            completed_tasks=task_tree.completed_tasks,
            total_tasks=task_tree.total_tasks,
            result=result,
            error=error,
            failure_kind=task.failure_kind,
            user_question=task.user_question,
            research_query=task.research_query,
            duration_ms=task.duration_ms,
            root_snapshot=build_hierarchical_breakdown(task_tree.root_task),
        )

        try:
            outcome = self.progress_callback(update)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.logger.error(f"Progress callback failed for {event_type.value}: {e}")
