"""Decision oracle backed by a chat model."""

import json
import logging
import re
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ValidationError

from . import prompts
from .base import DecisionOracle, OracleCommunicationError, OracleResponseError
from ..llm.base import BaseLLM, LLMError
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

ModelT = TypeVar("ModelT", bound=BaseModel)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Pull the outermost JSON object out of a model reply.

    GOTCHA: Models wrap JSON in prose or code fences; the span from the first
    ``{`` to the last ``}`` is taken

    Args:
        text: Raw model reply

    Returns:
        Parsed object

    Raises:
        OracleResponseError: When no JSON object can be parsed
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise OracleResponseError("No JSON object found in oracle response")

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise OracleResponseError(f"Invalid JSON in oracle response: {e}") from e

    if not isinstance(payload, dict):
        raise OracleResponseError("Oracle response is not a JSON object")

    return payload


class LLMDecisionOracle(DecisionOracle):
    """
    Decision oracle that prompts a chat model and validates its JSON replies.

    PATTERN: Build prompt -> generate -> extract JSON -> validate with pydantic
    CRITICAL: Raises OracleError subclasses; fallbacks belong to the caller
    GOTCHA: Conversation context is trimmed to the token budget before prompting
    """

    def __init__(
        self,
        llm: BaseLLM,
        max_context_tokens: int = 4000,
        max_subtasks_per_task: int = 10,
    ):
        """
        Initialize the oracle.

        Args:
            llm: Provider used for every call
            max_context_tokens: Budget for the conversation context
            max_subtasks_per_task: Fan-out limit announced to the planner
        """
        self.llm = llm
        self.max_context_tokens = max_context_tokens
        self.max_subtasks_per_task = max_subtasks_per_task
        self.logger = logging.getLogger(__name__)

    async def assess_complexity(
        self, task_description: str, conversation_context: str
    ) -> ComplexityAssessment:
        messages = prompts.build_assessment_messages(
            task_description, self._trim(conversation_context)
        )
        return await self._complete(messages, ComplexityAssessment, "assessment")

    async def breakdown(self, request: TaskBreakdownRequest) -> TaskBreakdownResponse:
        request = request.model_copy(
            update={"conversation_context": self._trim(request.conversation_context)}
        )
        messages = prompts.build_breakdown_messages(request, self.max_subtasks_per_task)
        return await self._complete(messages, TaskBreakdownResponse, "breakdown")

    async def execute_task(self, request: TaskExecutionRequest) -> TaskExecutionResponse:
        request = request.model_copy(
            update={"conversation_context": self._trim(request.conversation_context)}
        )
        messages = prompts.build_execution_messages(request)
        return await self._complete(messages, TaskExecutionResponse, "execution")

    async def synthesize_report(self, request: ReportGenerationRequest) -> ReportSynthesis:
        request = request.model_copy(
            update={"conversation_context": self._trim(request.conversation_context)}
        )
        messages = prompts.build_report_messages(request)
        payload = await self._generate_json(messages, "report")

        # Summary sometimes comes back as a counters object
        summary = payload.get("executionSummary")
        if isinstance(summary, dict):
            payload["executionSummary"] = ", ".join(
                f"{key}: {value}" for key, value in summary.items()
            )

        return self._validate(payload, ReportSynthesis, "report")

    async def execute_direct(
        self, task_description: str, conversation_context: str
    ) -> WorkflowExecution:
        messages = prompts.build_direct_messages(
            task_description, self._trim(conversation_context)
        )
        return await self._complete(messages, WorkflowExecution, "direct execution")

    async def execute_workflow(
        self, task_description: str, conversation_context: str
    ) -> WorkflowExecution:
        messages = prompts.build_workflow_messages(
            task_description, self._trim(conversation_context)
        )
        return await self._complete(messages, WorkflowExecution, "workflow execution")

    async def generate_plan(
        self, task_description: str, conversation_context: str
    ) -> ExecutionPlan:
        messages = prompts.build_plan_messages(
            task_description, self._trim(conversation_context)
        )
        return await self._complete(messages, ExecutionPlan, "plan")

    def _trim(self, conversation_context: str) -> str:
        return self.llm.fit_to_budget(conversation_context, self.max_context_tokens)

    async def _complete(
        self, messages: prompts.Messages, response_model: Type[ModelT], purpose: str
    ) -> ModelT:
        payload = await self._generate_json(messages, purpose)
        return self._validate(payload, response_model, purpose)

    async def _generate_json(self, messages: prompts.Messages, purpose: str) -> Dict[str, Any]:
        self.logger.debug(f"Requesting {purpose} from oracle")

        try:
            raw = await self.llm.agenerate(messages)
        except (LLMError, ValueError) as e:
            self.logger.error(f"Oracle {purpose} call failed: {e}")
            raise OracleCommunicationError(f"Oracle {purpose} call failed: {e}") from e

        return extract_json_object(raw)

    def _validate(
        self, payload: Dict[str, Any], response_model: Type[ModelT], purpose: str
    ) -> ModelT:
        try:
            return response_model.model_validate(payload)
        except ValidationError as e:
            self.logger.warning(f"Malformed {purpose} response: {e}")
            raise OracleResponseError(f"Malformed {purpose} response: {e}") from e
