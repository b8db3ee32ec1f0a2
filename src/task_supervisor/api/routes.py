"""HTTP routes of the unified supervisor endpoint."""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .streaming import stream_progress
from ..models.supervisor_models import (
    ComplexityAssessment,
    ExecutionMode,
    MaxComplexity,
    UnifiedRequest,
)
from ..services.supervisor_service import IntelligentSupervisor, new_session_id
from ..store.inquiry import describe_context

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ["taskDescription", "conversationContext"]
STREAM_PATH = "/api/supervisor/unified/stream"


def _bad_request(error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": error, **extra})


async def _run_session(
    supervisor: IntelligentSupervisor,
    session_id: str,
    unified: UnifiedRequest,
    assessment: ComplexityAssessment,
) -> None:
    try:
        await supervisor.execute(
            unified.task_description,
            unified.conversation_context,
            unified.execution_mode,
            session_id=session_id,
            assessment=assessment,
            max_complexity=unified.max_complexity,
        )
    except Exception as e:
        # Already reported to subscribers as an error event
        logger.error(f"Background session {session_id} failed: {e}")


@router.post("/api/supervisor/unified")
async def start_unified_task(request: Request, body: Dict[str, Any] = Body(...)):
    """
    Accept a task, answer immediately when it is delegated back, otherwise
    start it in the background and return the session to follow.
    """
    missing = [
        name for name in REQUIRED_FIELDS
        if not isinstance(body.get(name), str) or not body[name].strip()
    ]
    if missing:
        return _bad_request("Missing required parameters", required=REQUIRED_FIELDS)

    raw_mode = body.get("executionMode") or ExecutionMode.AUTO.value
    if raw_mode not in {mode.value for mode in ExecutionMode}:
        return _bad_request("Invalid executionMode", allowed=[m.value for m in ExecutionMode])

    raw_cap = body.get("maxComplexity")
    if raw_cap is not None and raw_cap not in {cap.value for cap in MaxComplexity}:
        return _bad_request("Invalid maxComplexity", allowed=[c.value for c in MaxComplexity])

    unified = UnifiedRequest(
        task_description=body["taskDescription"],
        conversation_context=body["conversationContext"],
        execution_mode=ExecutionMode(raw_mode),
        max_complexity=MaxComplexity(raw_cap) if raw_cap is not None else None,
    )

    supervisor: IntelligentSupervisor = request.app.state.supervisor
    session_id = new_session_id()

    try:
        assessment = await supervisor.assess_complexity(
            unified.task_description, unified.conversation_context
        )

        if supervisor.should_delegate_back(assessment):
            response = await supervisor.execute(
                unified.task_description,
                unified.conversation_context,
                unified.execution_mode,
                session_id=session_id,
                assessment=assessment,
                max_complexity=unified.max_complexity,
            )
            return {"success": True, **response.model_dump(mode="json", by_alias=True)}

        task = asyncio.create_task(
            _run_session(supervisor, session_id, unified, assessment)
        )
        background_tasks = request.app.state.background_tasks
        background_tasks.add(task)
        task.add_done_callback(background_tasks.discard)

        logger.info(f"Session {session_id} started in background")
        return {
            "success": True,
            "sessionId": session_id,
            "message": f"Task execution started. Connect to {STREAM_PATH} to receive updates.",
        }

    except Exception as e:
        logger.error(f"Unified request failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(e)},
        )


@router.get(STREAM_PATH)
async def stream_session(
    request: Request,
    sessionId: Optional[str] = Query(default=None),
    lastSeq: Optional[str] = Query(default=None),
):
    """
    Stream a session's progress, first replaying accepted events whose
    ``seq`` is greater than ``lastSeq``.
    """
    if not sessionId:
        return _bad_request("Missing sessionId parameter")

    try:
        last_seq = max(int(lastSeq), 0) if lastSeq else 0
    except ValueError:
        return _bad_request("Invalid lastSeq parameter")

    return StreamingResponse(
        stream_progress(
            request.app.state.supervisor.progress_bus,
            sessionId,
            keep_alive_interval=request.app.state.config.keep_alive_interval,
            last_seq=last_seq,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/api/supervisor/unified/context/{session_id}")
async def get_task_context(request: Request, session_id: str):
    context = await request.app.state.supervisor.context_store.get_context(session_id)
    if context is None:
        return JSONResponse(
            status_code=404,
            content={"error": "Task context not found", "sessionId": session_id},
        )

    return {
        **describe_context(session_id, context),
        "context": context.model_dump(mode="json", by_alias=True),
    }


@router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "contextStore": request.app.state.supervisor.context_store.get_stats(),
    }
