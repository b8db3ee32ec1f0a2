"""Intelligent supervisor - adaptive strategy selection over the decision oracle.

Assesses how complex a request is, then either hands it back to the caller,
executes it directly, runs it as a flat workflow or decomposes it into a task
tree. Every session reports its progress on the event bus and keeps its
latest snapshot in the task context store.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config.supervisor_config import SupervisorConfig
from ..decomposition.orchestrator import (
    OrchestratorConfig,
    OrchestratorUpdate,
    TaskOrchestrator,
)
from ..decomposition.task_manager import extract_workflow_steps, generate_task_id
from ..events.progress_bus import ProgressEventBus, get_progress_bus
from ..models.progress_models import ContextProgress, ProgressEventType, ProgressUpdate
from ..models.supervisor_models import (
    ComplexityAssessment,
    ExecutionMode,
    ExecutionStrategy,
    MaxComplexity,
    StepProgress,
    SupervisorComplexity,
    UnifiedResponse,
)
from ..models.task_models import (
    DirectExecution,
    ExecutionStatus,
    ReportGenerationRequest,
    ReportSynthesis,
    TaskBreakdownRequest,
    TaskBreakdownResponse,
    TaskComplexity,
    TaskExecutionRequest,
    TaskExecutionResponse,
    TaskNode,
    TaskStatus,
)
from ..oracle.base import DecisionOracle, TaskExecutor
from ..store.context_store import BaseTaskContextStore, get_context_store

logger = logging.getLogger(__name__)


# Overall progress checkpoints (percent)
PROGRESS_STARTED = 0
PROGRESS_ASSESSED = 10
PROGRESS_STRATEGY = 20
PROGRESS_EXECUTING = 30
PROGRESS_EXECUTED = 90
PROGRESS_DONE = 100

_UPDATE_VERBS = {
    ProgressEventType.BREAKDOWN_STARTED: "Breaking down",
    ProgressEventType.BREAKDOWN_COMPLETED: "Broke down",
    ProgressEventType.TASK_STARTED: "Started",
    ProgressEventType.TASK_COMPLETED: "Completed",
    ProgressEventType.TASK_FAILED: "Failed",
    ProgressEventType.TASK_BLOCKED: "Blocked",
}


def new_session_id() -> str:
    return f"session-{uuid.uuid4().hex}"


def synthesize_breakdown(
    description: str,
    steps: List[str],
    status: TaskStatus,
    result: Optional[str] = None,
) -> TaskNode:
    """
    Build a one-level breakdown: a root with one leaf per step.

    Used for display only; nothing is executed from it.
    """
    root_id = generate_task_id(None, 0)
    return TaskNode(
        task_id=root_id,
        description=description,
        status=status,
        complexity=TaskComplexity.MODERATE,
        result=result,
        subtasks=[
            TaskNode(
                task_id=generate_task_id(root_id, index),
                description=step,
                status=status,
                complexity=TaskComplexity.SIMPLE,
            )
            for index, step in enumerate(steps)
        ],
    )


class IntelligentSupervisor:
    """
    Adaptive task execution over a decision oracle.

    PATTERN: Assess -> (delegate back | select strategy) -> execute -> report
    CRITICAL: Every session ends with exactly one terminal event
    (completed or error)
    GOTCHA: Oracle failures are recovered with conservative defaults; only
    failures of the execution paths themselves are session-fatal
    """

    def __init__(
        self,
        oracle: DecisionOracle,
        config: Optional[SupervisorConfig] = None,
        progress_bus: Optional[ProgressEventBus] = None,
        context_store: Optional[BaseTaskContextStore] = None,
        executor: Optional[TaskExecutor] = None,
    ):
        """
        Initialize the supervisor.

        Args:
            oracle: Reasoning collaborator
            config: Limits and defaults (environment-driven when None)
            progress_bus: Event bus (process singleton when None)
            context_store: Snapshot store (process singleton when None)
            executor: Leaf task executor (the oracle's execute_task when None)
        """
        self.oracle = oracle
        self.config = config or SupervisorConfig()
        self.progress_bus = progress_bus or get_progress_bus()
        self.context_store = context_store or get_context_store()
        self.executor = executor
        self.logger = logging.getLogger(__name__)

    async def assess_complexity(
        self,
        task_description: str,
        conversation_context: str,
    ) -> ComplexityAssessment:
        """
        Ask the oracle how complex a request is.

        CRITICAL: Never raises; any failure yields ``medium``

        Args:
            task_description: What the user asked for
            conversation_context: Conversation so far

        Returns:
            ComplexityAssessment
        """
        try:
            assessment = await self.oracle.assess_complexity(
                task_description, conversation_context
            )
        except Exception as e:
            self.logger.warning(f"Complexity assessment failed, defaulting to medium: {e}")
            return ComplexityAssessment(
                complexity=SupervisorComplexity.MEDIUM,
                reasoning=f"Complexity assessment failed: {e}",
            )

        self.logger.info(
            f"Complexity assessed as {assessment.complexity.value}: {assessment.reasoning}"
        )
        return assessment

    def select_strategy(
        self,
        complexity: SupervisorComplexity,
        max_complexity: Optional[MaxComplexity] = None,
    ) -> ExecutionStrategy:
        """Map a complexity verdict to an execution strategy."""
        if complexity in (SupervisorComplexity.TOO_SIMPLE, SupervisorComplexity.SIMPLE):
            return ExecutionStrategy.DIRECT

        cap = max_complexity or self.config.max_complexity
        if complexity == SupervisorComplexity.MEDIUM or cap == MaxComplexity.FLAT:
            return ExecutionStrategy.FLAT

        return ExecutionStrategy.HIERARCHICAL

    async def execute(
        self,
        task_description: str,
        conversation_context: str,
        execution_mode: ExecutionMode = ExecutionMode.AUTO,
        session_id: Optional[str] = None,
        assessment: Optional[ComplexityAssessment] = None,
        max_complexity: Optional[MaxComplexity] = None,
    ) -> UnifiedResponse:
        """
        Run one request end to end.

        Args:
            task_description: What the user asked for
            conversation_context: Conversation so far
            execution_mode: auto/execute run the task, plan only describes it
            session_id: Session for progress events (generated when None)
            assessment: Assessment already obtained by the caller
            max_complexity: Per-request cap on the strategy

        Returns:
            UnifiedResponse

        Raises:
            Exception: Whatever escaped an execution path, after an ``error``
                event was emitted
        """
        session_id = session_id or new_session_id()
        start_time = datetime.now()

        self.logger.info(
            f"Session {session_id}: executing '{task_description[:80]}' "
            f"(mode: {execution_mode.value})"
        )

        try:
            self._emit(session_id, ProgressEventType.STARTED, "Task received", PROGRESS_STARTED)

            # Step 1: assess
            if assessment is None:
                assessment = await self.assess_complexity(
                    task_description, conversation_context
                )

            self._emit(
                session_id,
                ProgressEventType.COMPLEXITY_ASSESSED,
                f"Complexity assessed: {assessment.complexity.value}",
                PROGRESS_ASSESSED,
                details={
                    "complexity": assessment.complexity.value,
                    "reasoning": assessment.reasoning,
                },
            )

            # Step 2: early exit for trivial requests
            if self.should_delegate_back(assessment):
                response = self._delegate_back(assessment)
                self._emit(
                    session_id,
                    ProgressEventType.DELEGATE_BACK,
                    "Task delegated back to caller",
                    PROGRESS_DONE,
                    details={"guidance": assessment.guidance},
                )
                return self._finish(session_id, response, start_time)

            # Step 3: strategy
            strategy = self.select_strategy(assessment.complexity, max_complexity)
            self._emit(
                session_id,
                ProgressEventType.STRATEGY_SELECTED,
                f"Strategy selected: {strategy.value}",
                PROGRESS_STRATEGY,
                details={"strategy": strategy.value},
            )

            # Step 4: plan or execute
            complexity = assessment.complexity
            if execution_mode == ExecutionMode.PLAN:
                response = await self._generate_plan(
                    session_id, task_description, conversation_context, complexity, strategy
                )
            elif strategy == ExecutionStrategy.DIRECT:
                response = await self._execute_direct(
                    session_id, task_description, conversation_context, complexity
                )
            elif strategy == ExecutionStrategy.FLAT:
                response = await self._execute_flat(
                    session_id, task_description, conversation_context, complexity
                )
            else:
                response = await self._execute_hierarchical(
                    session_id, task_description, conversation_context, complexity
                )

            # Step 5: snapshot and terminal event
            await self._store_snapshot(session_id, task_description, response)
            return self._finish(session_id, response, start_time)

        except Exception as e:
            self.logger.error(f"Session {session_id} failed: {e}", exc_info=True)
            self._emit(
                session_id,
                ProgressEventType.ERROR,
                "Task execution failed",
                PROGRESS_DONE,
                details={"error": str(e) or type(e).__name__},
            )
            raise

    @staticmethod
    def should_delegate_back(assessment: ComplexityAssessment) -> bool:
        return (
            assessment.complexity == SupervisorComplexity.TOO_SIMPLE
            and assessment.should_delegate_back
        )

    # ------------------------------------------------------------------
    # Execution paths
    # ------------------------------------------------------------------

    def _delegate_back(self, assessment: ComplexityAssessment) -> UnifiedResponse:
        self.logger.info("Task is too simple, delegating back to caller")
        return UnifiedResponse(
            strategy=ExecutionStrategy.DIRECT,
            complexity=SupervisorComplexity.TOO_SIMPLE,
            next_response=assessment.guidance or "Task is simple enough to handle directly",
            delegate_back=True,
            delegation_guidance=assessment.guidance,
        )

    async def _generate_plan(
        self,
        session_id: str,
        task_description: str,
        conversation_context: str,
        complexity: SupervisorComplexity,
        strategy: ExecutionStrategy,
    ) -> UnifiedResponse:
        """Plan-first mode: describe the steps, execute nothing."""
        plan = await self.oracle.generate_plan(task_description, conversation_context)

        self._emit(
            session_id,
            ProgressEventType.PLAN_READY,
            f"Plan prepared with {len(plan.planned_steps)} steps",
            PROGRESS_EXECUTED,
            total_steps=len(plan.planned_steps),
        )

        return UnifiedResponse(
            strategy=strategy,
            complexity=complexity,
            next_response=plan.next_response,
            workflow_steps=[],
            planned_steps=plan.planned_steps,
            progress=StepProgress(current=0, total=len(plan.planned_steps)),
        )

    async def _execute_direct(
        self,
        session_id: str,
        task_description: str,
        conversation_context: str,
        complexity: SupervisorComplexity,
    ) -> UnifiedResponse:
        self._emit(
            session_id,
            ProgressEventType.STEP_STARTED,
            "Executing task",
            PROGRESS_EXECUTING,
            current_step=1,
            total_steps=1,
        )

        execution = await self.oracle.execute_direct(task_description, conversation_context)

        self._emit(
            session_id,
            ProgressEventType.STEP_COMPLETED,
            "Task executed",
            PROGRESS_EXECUTED,
            current_step=1,
            total_steps=1,
        )

        return UnifiedResponse(
            strategy=ExecutionStrategy.DIRECT,
            complexity=complexity,
            next_response=execution.next_response,
            workflow_steps=execution.workflow_steps,
            progress=StepProgress(current=1, total=1),
        )

    async def _execute_flat(
        self,
        session_id: str,
        task_description: str,
        conversation_context: str,
        complexity: SupervisorComplexity,
    ) -> UnifiedResponse:
        """
        One oracle call runs the whole workflow.

        GOTCHA: Step events are replayed from the reported steps after the
        call returns; the breakdown is synthesized for display only
        """
        self._emit(
            session_id,
            ProgressEventType.STEP_STARTED,
            "Executing workflow",
            PROGRESS_EXECUTING,
        )

        execution = await self.oracle.execute_workflow(task_description, conversation_context)
        steps = execution.workflow_steps
        total = len(steps)

        for index, step in enumerate(steps, start=1):
            self._emit(
                session_id,
                ProgressEventType.STEP_COMPLETED,
                step,
                PROGRESS_EXECUTING
                + round((PROGRESS_EXECUTED - PROGRESS_EXECUTING) * index / total),
                current_step=index,
                total_steps=total,
            )

        return UnifiedResponse(
            strategy=ExecutionStrategy.FLAT,
            complexity=complexity,
            next_response=execution.next_response,
            workflow_steps=steps,
            hierarchical_breakdown=synthesize_breakdown(
                task_description, steps, TaskStatus.COMPLETED, execution.next_response
            ),
            progress=StepProgress(current=total, total=total),
        )

    async def _execute_hierarchical(
        self,
        session_id: str,
        task_description: str,
        conversation_context: str,
        complexity: SupervisorComplexity,
    ) -> UnifiedResponse:
        orchestrator = TaskOrchestrator(
            config=OrchestratorConfig(
                max_nesting_level=self.config.max_nesting_level,
                max_subtasks_per_task=self.config.max_subtasks_per_task,
                max_refinements_per_run=self.config.max_refinements_per_run,
            ),
            progress_callback=self._orchestrator_listener(session_id, complexity),
        )

        report = await orchestrator.execute_complex_task(
            task_description,
            conversation_context,
            self._breakdown_with_oracle,
            self._execute_with_executor,
            self._report_with_oracle,
        )

        return UnifiedResponse(
            strategy=ExecutionStrategy.HIERARCHICAL,
            complexity=complexity,
            next_response=report.detailed_results,
            workflow_steps=report.workflow_steps
            or extract_workflow_steps(report.hierarchical_breakdown),
            hierarchical_breakdown=report.hierarchical_breakdown,
            progress=StepProgress(
                current=report.tasks_completed,
                total=report.total_tasks,
            ),
        )

    def _orchestrator_listener(self, session_id: str, complexity: SupervisorComplexity):
        """Forward orchestrator updates to the bus and the context store."""

        async def on_update(update: OrchestratorUpdate) -> None:
            verb = _UPDATE_VERBS.get(update.type, update.type.value)
            details: Dict[str, Any] = {"taskId": update.task_id}
            if update.result is not None:
                details["result"] = update.result
            if update.error is not None:
                details["error"] = update.error
            if update.failure_kind is not None:
                details["failureKind"] = update.failure_kind.value
            if update.user_question is not None:
                details["userQuestion"] = update.user_question
            if update.research_query is not None:
                details["researchQuery"] = update.research_query
            if update.duration_ms is not None:
                details["durationMs"] = update.duration_ms
            if update.root_snapshot is not None:
                details["hierarchicalBreakdown"] = update.root_snapshot.model_dump(
                    mode="json", by_alias=True
                )

            self._emit(
                session_id,
                update.type,
                f"{verb}: {update.task_description}",
                PROGRESS_STRATEGY
                + round((PROGRESS_EXECUTED - PROGRESS_STRATEGY) * update.progress / 100),
                current_step=update.completed_tasks,
                total_steps=update.total_tasks,
                details=details,
            )

            await self.context_store.set_context(
                session_id,
                hierarchical_breakdown=update.root_snapshot,
                progress=ContextProgress(
                    current=update.completed_tasks,
                    total=update.total_tasks,
                    percentage=update.progress,
                ),
                strategy=ExecutionStrategy.HIERARCHICAL,
                complexity=complexity,
            )

        return on_update

    # ------------------------------------------------------------------
    # Oracle-backed orchestrator collaborators
    # ------------------------------------------------------------------

    async def _breakdown_with_oracle(
        self, request: TaskBreakdownRequest
    ) -> TaskBreakdownResponse:
        try:
            return await self.oracle.breakdown(request)
        except Exception as e:
            self.logger.warning(f"Breakdown of {request.task.id} failed, executing directly: {e}")
            return TaskBreakdownResponse(
                should_breakdown=False,
                reasoning=f"Breakdown failed: {e}",
                direct_execution=DirectExecution(
                    can_execute_directly=True, executor="supervisor"
                ),
            )

    async def _execute_with_executor(
        self, request: TaskExecutionRequest
    ) -> TaskExecutionResponse:
        try:
            if self.executor is not None:
                return await self.executor.execute(request)
            return await self.oracle.execute_task(request)
        except Exception as e:
            self.logger.warning(f"Execution of {request.task.id} failed: {e}")
            return TaskExecutionResponse(
                status=ExecutionStatus.FAILED,
                error=str(e) or type(e).__name__,
            )

    async def _report_with_oracle(self, request: ReportGenerationRequest) -> ReportSynthesis:
        # Failures fall through to the orchestrator's collected-results report
        return await self.oracle.synthesize_report(request)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    async def _store_snapshot(
        self,
        session_id: str,
        task_description: str,
        response: UnifiedResponse,
    ) -> None:
        breakdown = response.hierarchical_breakdown
        if breakdown is None and response.planned_steps is not None:
            breakdown = synthesize_breakdown(
                task_description, response.planned_steps, TaskStatus.PLANNED
            )
        elif breakdown is None:
            breakdown = synthesize_breakdown(
                task_description, [], TaskStatus.COMPLETED, response.next_response
            )

        total = response.progress.total
        percentage = round(response.progress.current / total * 100) if total else 0
        if response.planned_steps is None and not total:
            percentage = 100

        await self.context_store.set_context(
            session_id,
            hierarchical_breakdown=breakdown,
            progress=ContextProgress(
                current=response.progress.current,
                total=total,
                percentage=percentage,
            ),
            strategy=response.strategy,
            complexity=response.complexity,
            final_response=response.next_response,
        )

    def _finish(
        self,
        session_id: str,
        response: UnifiedResponse,
        start_time: datetime,
    ) -> UnifiedResponse:
        response.execution_time = int((datetime.now() - start_time).total_seconds() * 1000)
        response.session_id = session_id

        self.logger.info(
            f"Session {session_id} complete: strategy={response.strategy.value}, "
            f"complexity={response.complexity.value}, {response.execution_time}ms"
        )

        self._emit(
            session_id,
            ProgressEventType.COMPLETED,
            "Task completed",
            PROGRESS_DONE,
            details=response.model_dump(mode="json", by_alias=True),
        )
        return response

    def _emit(
        self,
        session_id: str,
        event_type: ProgressEventType,
        message: str,
        progress: int,
        current_step: Optional[int] = None,
        total_steps: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[ProgressUpdate]:
        return self.progress_bus.emit_progress(
            ProgressUpdate(
                session_id=session_id,
                type=event_type,
                message=message,
                progress=progress,
                current_step=current_step,
                total_steps=total_steps,
                details=details,
            )
        )
