"""Prompt builders for the LLM decision oracle.

Each builder returns chat messages in OpenAI format. The system message fixes
the JSON shape of the reply; the user message carries the request.
"""

from typing import Dict, List

from ..decomposition.task_manager import format_task_tree
from ..models.task_models import (
    ReportGenerationRequest,
    TaskBreakdownRequest,
    TaskExecutionRequest,
)

Messages = List[Dict[str, str]]


ASSESSOR_INSTRUCTIONS = """You assess how complex a user's request is.

Levels:
- tooSimple: a few sequential steps with clear parameters and no conditional
  logic. The calling agent can do it itself.
- simple: one to three steps that need some reasoning or interpretation.
- medium: two to seven dependent steps, conditional logic or cross-referencing
  two data sources.
- complex: many steps, bulk operations, several data sources or analysis that
  needs hierarchical decomposition.

Set shouldDelegateBack to true only for tooSimple, and then give short
guidance the calling agent can follow.

Return ONLY valid JSON:
{"complexity": "tooSimple" | "simple" | "medium" | "complex",
 "reasoning": "one or two sentences",
 "shouldDelegateBack": true | false,
 "guidance": "string or null"}"""


PLANNER_INSTRUCTIONS = """You decide whether a task should be split into subtasks.

Split only when the task clearly consists of separable parts. Each subtask
must be concrete and self-contained. A subtask may depend on earlier
subtasks only, referenced by zero-based index. Use at most {max_subtasks}
subtasks.

Return ONLY valid JSON:
{{"shouldBreakdown": true | false,
 "reasoning": "why",
 "subtasks": [{{"description": "...",
               "estimatedComplexity": "simple" | "moderate" | "complex",
               "dependencies": [0]}}],
 "directExecution": {{"canExecuteDirectly": true, "executor": "supervisor"}}}}"""


EXECUTOR_INSTRUCTIONS = """You execute one task and report what was done.

If the task has results from its subtasks, combine them into one answer
instead of repeating the work.

Return ONLY valid JSON:
{"status": "completed" | "failed" | "needUserInput" | "needsResearch" | "toolError",
 "result": "what was done and what came out of it",
 "error": "what went wrong, when not completed",
 "userQuestion": "question for the user, when needUserInput",
 "researchQuery": "what to look up, when needsResearch",
 "workflowSteps": ["step taken"],
 "needsRefinement": true | false}"""


REPORT_INSTRUCTIONS = """You write the final report over results that were already collected.

Do not invent results. Mention failures plainly.

Return ONLY valid JSON:
{"detailedResults": "comprehensive summary",
 "executionSummary": "one line with counts",
 "keyFindings": ["..."],
 "nextResponse": "short answer for the user",
 "workflowSteps": ["..."]}"""


DIRECT_INSTRUCTIONS = """You handle a simple request in one step.

Return ONLY valid JSON:
{"nextResponse": "answer for the user",
 "workflowSteps": ["step taken"]}"""


WORKFLOW_INSTRUCTIONS = """You handle a request as a sequence of steps, one after another.
Carry results of earlier steps into later ones.

Return ONLY valid JSON:
{"nextResponse": "answer for the user",
 "workflowSteps": ["step taken", "..."]}"""


PLAN_INSTRUCTIONS = """You prepare a plan for a request without executing anything.
Describe the steps in the future tense and end the response with a question
asking the user to confirm the plan.

Return ONLY valid JSON:
{"plannedSteps": ["step that will be taken"],
 "nextResponse": "plan presentation ending with a confirmation question"}"""


def _messages(system: str, user: str) -> Messages:
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def _request_prompt(task_description: str, conversation_context: str) -> str:
    return f"""Task: {task_description}

Conversation context:
{conversation_context}"""


def build_assessment_messages(task_description: str, conversation_context: str) -> Messages:
    return _messages(
        ASSESSOR_INSTRUCTIONS,
        _request_prompt(task_description, conversation_context),
    )


def build_breakdown_messages(request: TaskBreakdownRequest, max_subtasks: int) -> Messages:
    """
    Build the breakdown prompt for one task.

    Args:
        request: Task, context and results of completed siblings
        max_subtasks: Fan-out limit to announce

    Returns:
        Chat messages
    """
    task = request.task
    previous = ""
    if request.previous_results:
        previous = "\n\nAlready completed sibling tasks:\n" + "\n".join(
            f"- {result}" for result in request.previous_results
        )

    user = f"""Task: {task.description}
Current complexity: {task.complexity.value}
Nesting level: {task.level}{previous}

Conversation context:
{request.conversation_context}"""

    return _messages(PLANNER_INSTRUCTIONS.format(max_subtasks=max_subtasks), user)


def build_execution_messages(request: TaskExecutionRequest) -> Messages:
    task = request.task
    sections = [f"Task: {task.description}"]

    if task.subtask_results:
        sections.append(
            "Results of this task's subtasks:\n"
            + "\n".join(f"{i}. {r}" for i, r in enumerate(task.subtask_results, start=1))
        )
    if request.sibling_context:
        sections.append(f"Results of earlier related tasks:\n{request.sibling_context}")

    sections.append(f"Conversation context:\n{request.conversation_context}")
    return _messages(EXECUTOR_INSTRUCTIONS, "\n\n".join(sections))


def build_report_messages(request: ReportGenerationRequest) -> Messages:
    tree = request.task_tree
    user = f"""Original request: {request.root_task.description}

Counters: {tree.completed_tasks} completed, {tree.failed_tasks} failed, {tree.total_tasks} total

Task tree:
{format_task_tree(request.root_task)}

Conversation context:
{request.conversation_context}"""
    return _messages(REPORT_INSTRUCTIONS, user)


def build_direct_messages(task_description: str, conversation_context: str) -> Messages:
    return _messages(
        DIRECT_INSTRUCTIONS,
        _request_prompt(task_description, conversation_context),
    )


def build_workflow_messages(task_description: str, conversation_context: str) -> Messages:
    return _messages(
        WORKFLOW_INSTRUCTIONS,
        _request_prompt(task_description, conversation_context),
    )


def build_plan_messages(task_description: str, conversation_context: str) -> Messages:
    return _messages(
        PLAN_INSTRUCTIONS,
        _request_prompt(task_description, conversation_context),
    )
