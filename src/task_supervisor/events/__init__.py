"""Progress events."""

from .progress_bus import ProgressEventBus, event_fingerprint, get_progress_bus

__all__ = ["ProgressEventBus", "event_fingerprint", "get_progress_bus"]
