"""Decision oracle boundary: reasoning calls the supervisor depends on."""

import logging
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from ..models.supervisor_models import (
    ComplexityAssessment,
    ExecutionPlan,
    WorkflowExecution,
)
from ..models.task_models import (
    ReportGenerationRequest,
    ReportSynthesis,
    TaskBreakdownRequest,
    TaskBreakdownResponse,
    TaskExecutionRequest,
    TaskExecutionResponse,
)

logger = logging.getLogger(__name__)


class DecisionOracle(ABC):
    """
    Abstract reasoning collaborator.

    Every method is a single awaited call. Implementations raise
    ``OracleError`` subclasses on failure; callers choose the fallback.
    """

    @abstractmethod
    async def assess_complexity(
        self, task_description: str, conversation_context: str
    ) -> ComplexityAssessment:
        """Classify a request as tooSimple, simple, medium or complex."""

    @abstractmethod
    async def breakdown(self, request: TaskBreakdownRequest) -> TaskBreakdownResponse:
        """Decide whether a task is split, and into which subtasks."""

    @abstractmethod
    async def execute_task(self, request: TaskExecutionRequest) -> TaskExecutionResponse:
        """Execute a single leaf task."""

    @abstractmethod
    async def synthesize_report(self, request: ReportGenerationRequest) -> ReportSynthesis:
        """Write the narrative over results already collected in the tree."""

    @abstractmethod
    async def execute_direct(
        self, task_description: str, conversation_context: str
    ) -> WorkflowExecution:
        """Handle a simple request in one step."""

    @abstractmethod
    async def execute_workflow(
        self, task_description: str, conversation_context: str
    ) -> WorkflowExecution:
        """Handle a medium request as a flat sequence of steps."""

    @abstractmethod
    async def generate_plan(
        self, task_description: str, conversation_context: str
    ) -> ExecutionPlan:
        """Describe the steps that would be taken, without executing them."""


@runtime_checkable
class TaskExecutor(Protocol):
    """Performs leaf task actions (tool calls) on behalf of the orchestrator."""

    async def execute(self, request: TaskExecutionRequest) -> TaskExecutionResponse:
        ...


class OracleError(Exception):
    """Base class for oracle failures."""


class OracleCommunicationError(OracleError):
    """Raised when the oracle cannot be reached."""


class OracleResponseError(OracleError):
    """Raised when an oracle reply is malformed or fails validation."""
