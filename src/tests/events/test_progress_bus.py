"""Tests for the per-session progress event bus."""

import pytest

from task_supervisor.events.progress_bus import (
    ProgressEventBus,
    event_fingerprint,
    get_progress_bus,
)
from task_supervisor.models.progress_models import ProgressEventType, ProgressUpdate


def update(event_type=ProgressEventType.STEP_STARTED, message="X", progress=40, session="s1", **kwargs):
    return ProgressUpdate(
        session_id=session,
        type=event_type,
        message=message,
        progress=progress,
        **kwargs,
    )


class TestProgressEventBus:
    """Delivery, sequencing, deduplication and terminal state."""

    def setup_method(self):
        self.bus = ProgressEventBus()
        self.received = []
        self.bus.on_progress("s1", self.received.append)

    def test_delivers_with_increasing_sequence(self):
        self.bus.emit_progress(update(message="one"))
        self.bus.emit_progress(update(message="two"))

        assert [e.seq for e in self.received] == [1, 2]
        assert self.bus.last_sequence("s1") == 2

    def test_emitted_update_is_not_mutated(self):
        original = update()
        accepted = self.bus.emit_progress(original)

        assert original.seq is None
        assert accepted.seq == 1
        assert accepted.message == original.message

    def test_consecutive_duplicate_is_dropped(self):
        first = self.bus.emit_progress(update())
        second = self.bus.emit_progress(update())

        assert second is None
        assert len(self.received) == 1
        assert self.received[0].seq == first.seq
        assert self.bus.last_sequence("s1") == 1

    def test_duplicate_after_different_event_is_delivered(self):
        self.bus.emit_progress(update())
        self.bus.emit_progress(update(message="Y"))
        self.bus.emit_progress(update())

        assert [e.message for e in self.received] == ["X", "Y", "X"]

    def test_details_do_not_affect_identity(self):
        self.bus.emit_progress(update(details={"a": 1}))
        self.bus.emit_progress(update(details={"a": 2}))

        assert len(self.received) == 1

    def test_terminal_session_rejects_further_events(self):
        self.bus.emit_progress(update())
        self.bus.emit_progress(update(ProgressEventType.COMPLETED, "done", 100))

        assert self.bus.is_terminal("s1")
        assert self.bus.emit_progress(update(message="late")) is None
        assert self.bus.emit_progress(update(ProgressEventType.ERROR, "late error", 100)) is None
        assert [e.type for e in self.received] == [
            ProgressEventType.STEP_STARTED,
            ProgressEventType.COMPLETED,
        ]

    def test_error_is_terminal(self):
        self.bus.emit_progress(update(ProgressEventType.ERROR, "failed", 100))
        assert self.bus.is_terminal("s1")

    def test_sessions_are_independent(self):
        other = []
        self.bus.on_progress("s2", other.append)

        self.bus.emit_progress(update(session="s2"))
        self.bus.emit_progress(update())

        assert len(self.received) == 1
        assert len(other) == 1
        assert other[0].seq == 1
        assert self.received[0].seq == 1

    def test_multiple_subscribers_see_same_event(self):
        second = []
        self.bus.on_progress("s1", second.append)

        self.bus.emit_progress(update())

        assert self.received == second

    def test_failing_listener_does_not_block_others(self):
        def broken(event):
            raise RuntimeError("listener crashed")

        bus = ProgressEventBus()
        received = []
        bus.on_progress("s1", broken)
        bus.on_progress("s1", received.append)

        assert bus.emit_progress(update()) is not None
        assert len(received) == 1

    def test_off_progress_unsubscribes(self):
        self.bus.off_progress("s1", self.received.append)
        self.bus.emit_progress(update())

        assert self.received == []
        assert self.bus.listener_count("s1") == 0

    def test_off_progress_unknown_listener_is_ignored(self):
        self.bus.off_progress("s1", lambda event: None)
        self.bus.off_progress("missing", lambda event: None)

        assert self.bus.listener_count("s1") == 1

    def test_listener_may_unsubscribe_itself(self):
        bus = ProgressEventBus()
        calls = []

        def once(event):
            calls.append(event)
            bus.off_progress("s1", once)

        bus.on_progress("s1", once)
        bus.emit_progress(update(message="a"))
        bus.emit_progress(update(message="b"))

        assert len(calls) == 1

    def test_cleanup_keeps_sequence_and_terminal_state(self):
        self.bus.emit_progress(update())
        self.bus.emit_progress(update(ProgressEventType.COMPLETED, "done", 100))

        self.bus.cleanup_session("s1")

        assert self.bus.listener_count("s1") == 0
        assert self.bus.last_sequence("s1") == 2
        assert self.bus.emit_progress(update(message="restart")) is None

    def test_emit_without_listeners_still_sequences(self):
        bus = ProgressEventBus()
        accepted = bus.emit_progress(update(session="lonely"))

        assert accepted.seq == 1


class TestReplayHistory:
    """Bounded per-session history for late subscribers."""

    def test_history_holds_accepted_events_only(self):
        bus = ProgressEventBus()
        bus.emit_progress(update(message="one"))
        bus.emit_progress(update(message="one"))
        bus.emit_progress(update(ProgressEventType.COMPLETED, "done", 100))
        bus.emit_progress(update(message="late"))

        history = bus.history("s1")

        assert [e.seq for e in history] == [1, 2]
        assert [e.message for e in history] == ["one", "done"]

    def test_history_after_sequence(self):
        bus = ProgressEventBus()
        for message in ("a", "b", "c"):
            bus.emit_progress(update(message=message))

        assert [e.message for e in bus.history("s1", after_seq=1)] == ["b", "c"]
        assert bus.history("s1", after_seq=3) == []
        assert bus.history("unknown") == []

    def test_history_is_bounded_per_session(self):
        bus = ProgressEventBus(replay_limit=2)
        for message in ("a", "b", "c"):
            bus.emit_progress(update(message=message))

        assert [e.seq for e in bus.history("s1")] == [2, 3]
        assert bus.last_sequence("s1") == 3

    def test_least_recent_session_history_is_evicted(self):
        bus = ProgressEventBus(replay_sessions=2)
        bus.emit_progress(update(session="a"))
        bus.emit_progress(update(session="b"))
        bus.emit_progress(update(session="a", message="again"))
        bus.emit_progress(update(session="c"))

        assert bus.history("b") == []
        assert len(bus.history("a")) == 2
        assert len(bus.history("c")) == 1
        assert bus.last_sequence("b") == 1

    def test_cleanup_drops_history(self):
        bus = ProgressEventBus()
        bus.emit_progress(update())

        bus.cleanup_session("s1")

        assert bus.history("s1") == []
        assert bus.last_sequence("s1") == 1


class TestFingerprint:

    def test_fingerprint_covers_type_message_progress(self):
        base = event_fingerprint(update())
        assert event_fingerprint(update()) == base
        assert event_fingerprint(update(message="Y")) != base
        assert event_fingerprint(update(progress=41)) != base
        assert event_fingerprint(update(ProgressEventType.STEP_COMPLETED)) != base

    def test_fingerprint_ignores_session_and_timestamp(self):
        assert event_fingerprint(update(session="a", timestamp=1)) == event_fingerprint(
            update(session="b", timestamp=2)
        )


def test_global_bus_is_singleton():
    assert get_progress_bus() is get_progress_bus()


def test_progress_out_of_range_is_rejected():
    with pytest.raises(ValueError):
        update(progress=101)
