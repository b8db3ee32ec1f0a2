"""Service layer."""

from .supervisor_service import IntelligentSupervisor, new_session_id, synthesize_breakdown

__all__ = ["IntelligentSupervisor", "new_session_id", "synthesize_breakdown"]
