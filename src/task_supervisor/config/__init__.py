"""Configuration package."""

from .supervisor_config import SupervisorConfig, configure_logging

__all__ = ["SupervisorConfig", "configure_logging"]
