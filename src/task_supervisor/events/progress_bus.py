"""Per-session progress event bus.

Delivers progress updates to session subscribers with monotonic sequence
ids, drops consecutive duplicates and refuses events after a session has
reached ``completed`` or ``error``. A bounded history of accepted events is
kept per session so late or reconnecting subscribers can replay what they
missed.
"""

import hashlib
import logging
from collections import OrderedDict, defaultdict, deque
from typing import Callable, Deque, Dict, List, Optional, Set

from ..config.supervisor_config import SupervisorConfig
from ..models.progress_models import ProgressUpdate

logger = logging.getLogger(__name__)


DEFAULT_REPLAY_LIMIT = 200
DEFAULT_REPLAY_SESSIONS = 500


ProgressListener = Callable[[ProgressUpdate], None]


def event_fingerprint(update: ProgressUpdate) -> str:
    """md5 over ``type|message|progress``, the identity used for deduplication."""
    raw = f"{update.type.value}|{update.message}|{update.progress}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


class ProgressEventBus:
    """
    In-process publish/subscribe keyed by session id.

    PATTERN: Synchronous fan-out; emitters never await subscribers
    CRITICAL: Terminal sessions stay terminal for the life of the process
    GOTCHA: cleanup_session drops listeners and replay history only; the
    sequence counter and terminal flag survive so a late emitter cannot
    restart the session
    """

    def __init__(
        self,
        replay_limit: int = DEFAULT_REPLAY_LIMIT,
        replay_sessions: int = DEFAULT_REPLAY_SESSIONS,
    ):
        """
        Args:
            replay_limit: Accepted events kept per session for replay
            replay_sessions: Sessions whose history is kept; the least
                recently active one is evicted first
        """
        self.replay_limit = replay_limit
        self.replay_sessions = replay_sessions
        self._history: "OrderedDict[str, Deque[ProgressUpdate]]" = OrderedDict()
        self._listeners: Dict[str, List[ProgressListener]] = defaultdict(list)
        self._sequence: Dict[str, int] = {}
        self._last_fingerprint: Dict[str, str] = {}
        self._terminal: Set[str] = set()

    def emit_progress(self, update: ProgressUpdate) -> Optional[ProgressUpdate]:
        """
        Accept and deliver a progress update.

        Args:
            update: Event to publish (never mutated)

        Returns:
            The delivered copy carrying its ``seq``, or None when dropped
        """
        session_id = update.session_id

        if session_id in self._terminal:
            logger.debug(
                f"Session {session_id} already terminal, dropping {update.type.value}"
            )
            return None

        fingerprint = event_fingerprint(update)
        if self._last_fingerprint.get(session_id) == fingerprint:
            logger.debug(f"Duplicate {update.type.value} for session {session_id}, dropping")
            return None

        seq = self._sequence.get(session_id, 0) + 1
        self._sequence[session_id] = seq

        if update.is_terminal:
            self._terminal.add(session_id)
            self._last_fingerprint.pop(session_id, None)
        else:
            self._last_fingerprint[session_id] = fingerprint

        accepted = update.model_copy(update={"seq": seq})
        self._remember(accepted)

        logger.info(
            f"Session {session_id} #{seq}: {update.type.value} - "
            f"{update.message} ({update.progress}%)"
        )

        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners.get(session_id, [])):
            try:
                listener(accepted)
            except Exception as e:
                logger.error(f"Progress listener failed for session {session_id}: {e}")

        return accepted

    def on_progress(self, session_id: str, callback: ProgressListener) -> None:
        self._listeners[session_id].append(callback)
        logger.debug(
            f"Listener added for session {session_id} "
            f"({len(self._listeners[session_id])} total)"
        )

    def off_progress(self, session_id: str, callback: ProgressListener) -> None:
        listeners = self._listeners.get(session_id)
        if not listeners:
            return
        try:
            listeners.remove(callback)
        except ValueError:
            return
        if not listeners:
            del self._listeners[session_id]

    def cleanup_session(self, session_id: str) -> None:
        """Remove every listener and the replay history of a session."""
        self._listeners.pop(session_id, None)
        self._history.pop(session_id, None)
        logger.info(f"Cleaned up session {session_id}")

    def history(self, session_id: str, after_seq: int = 0) -> List[ProgressUpdate]:
        """
        Accepted events of a session with ``seq`` greater than ``after_seq``.

        GOTCHA: Only the last ``replay_limit`` events are kept, so a client far
        behind gets a gap it can detect from the first ``seq`` it receives
        """
        return [e for e in self._history.get(session_id, ()) if e.seq > after_seq]

    def is_terminal(self, session_id: str) -> bool:
        return session_id in self._terminal

    def last_sequence(self, session_id: str) -> int:
        return self._sequence.get(session_id, 0)

    def listener_count(self, session_id: str) -> int:
        return len(self._listeners.get(session_id, []))

    def _remember(self, update: ProgressUpdate) -> None:
        session_id = update.session_id
        events = self._history.get(session_id)
        if events is None:
            events = deque(maxlen=self.replay_limit)
            self._history[session_id] = events
        else:
            self._history.move_to_end(session_id)
        events.append(update)

        while len(self._history) > self.replay_sessions:
            evicted, _ = self._history.popitem(last=False)
            logger.debug(f"Dropped replay history of session {evicted}")


# Global singleton instance
_global_progress_bus: Optional[ProgressEventBus] = None


def get_progress_bus(config: Optional[SupervisorConfig] = None) -> ProgressEventBus:
    """
    Get the process-wide progress bus (singleton).

    Args:
        config: Supervisor configuration read on first use (environment-driven
            when None)

    Returns:
        Global ProgressEventBus instance
    """
    global _global_progress_bus
    if _global_progress_bus is None:
        config = config or SupervisorConfig()
        _global_progress_bus = ProgressEventBus(
            replay_limit=config.progress_replay_limit,
            replay_sessions=config.progress_replay_sessions,
        )
    return _global_progress_bus
