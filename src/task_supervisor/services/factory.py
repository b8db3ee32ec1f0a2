"""Wiring of the default supervisor from configuration."""

import logging
from typing import Optional

from .supervisor_service import IntelligentSupervisor
from ..config.supervisor_config import SupervisorConfig
from ..events.progress_bus import get_progress_bus
from ..llm.providers.openai_provider import OpenAIProvider
from ..oracle.llm_oracle import LLMDecisionOracle
from ..store.context_store import get_context_store

logger = logging.getLogger(__name__)


def build_supervisor(config: Optional[SupervisorConfig] = None) -> IntelligentSupervisor:
    """
    Build a supervisor backed by the configured OpenAI-compatible model.

    Args:
        config: Supervisor configuration (environment-driven when None)

    Returns:
        IntelligentSupervisor using the process-wide bus and context store
    """
    config = config or SupervisorConfig()

    provider = OpenAIProvider(config.get_model_config(), api_key=config.openai_api_key)
    oracle = LLMDecisionOracle(
        provider,
        max_context_tokens=config.max_context_tokens,
        max_subtasks_per_task=config.max_subtasks_per_task,
    )

    logger.info(
        f"Supervisor ready: model={config.oracle_model}, "
        f"context store={config.context_store_backend}"
    )

    return IntelligentSupervisor(
        oracle,
        config=config,
        progress_bus=get_progress_bus(config),
        context_store=get_context_store(config),
    )
