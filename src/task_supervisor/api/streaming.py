"""Server-Sent Events rendering of a session's progress."""

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Dict

from ..events.progress_bus import ProgressEventBus
from ..models.progress_models import ProgressEventType, ProgressUpdate

logger = logging.getLogger(__name__)


KEEP_ALIVE_COMMENT = ": keep-alive\n\n"


def format_sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _event_frame(update: ProgressUpdate) -> str:
    return format_sse(update.model_dump(mode="json", by_alias=True))


async def stream_progress(
    bus: ProgressEventBus,
    session_id: str,
    keep_alive_interval: float = 30.0,
    last_seq: int = 0,
) -> AsyncIterator[str]:
    """
    Yield SSE frames for one subscriber of a session.

    PATTERN: Listener feeds an asyncio.Queue, the generator drains it
    CRITICAL: Subscribes and snapshots the replay history in the same step,
    so every event after ``last_seq`` is sent exactly once
    GOTCHA: Closing the generator (client disconnect) removes only this
    subscriber; the session keeps running

    Args:
        bus: Progress bus to subscribe to
        session_id: Session to follow
        keep_alive_interval: Seconds of silence before a keep-alive comment
        last_seq: Last sequence id the client already has (0 for all)

    Yields:
        SSE frames
    """
    queue: "asyncio.Queue[ProgressUpdate]" = asyncio.Queue()
    already_terminal = bus.is_terminal(session_id)

    def listener(update: ProgressUpdate) -> None:
        queue.put_nowait(update)

    if not already_terminal:
        bus.on_progress(session_id, listener)
    backlog = bus.history(session_id, after_seq=last_seq)
    delivered = last_seq

    logger.info(
        f"Stream opened for session {session_id} "
        f"(after #{last_seq}, replaying {len(backlog)})"
    )

    try:
        yield format_sse(
            {
                "type": ProgressEventType.CONNECTED.value,
                "message": "Connected to progress stream",
                "sessionId": session_id,
                "seq": 0,
                "timestamp": int(time.time() * 1000),
            }
        )

        for update in backlog:
            yield _event_frame(update)
            delivered = update.seq
            if update.is_terminal:
                return

        if already_terminal:
            return

        while True:
            try:
                update = await asyncio.wait_for(queue.get(), timeout=keep_alive_interval)
            except asyncio.TimeoutError:
                yield KEEP_ALIVE_COMMENT
                continue

            if update.seq <= delivered:
                continue

            yield _event_frame(update)
            delivered = update.seq

            if update.is_terminal:
                break
    finally:
        bus.off_progress(session_id, listener)
        logger.info(f"Stream closed for session {session_id}")
