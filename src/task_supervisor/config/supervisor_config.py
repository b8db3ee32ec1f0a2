"""Supervisor configuration with environment variable loading."""

import logging
import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ..models.llm_models import ModelConfig
from ..models.supervisor_models import MaxComplexity

# Load environment variables from .env file
load_dotenv()


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class SupervisorConfig(BaseModel):
    """Configuration for the task supervisor."""

    # Oracle model
    openai_api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY"),
        description="OpenAI API key",
    )
    openai_base_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL") or None,
        description="OpenAI-compatible endpoint",
    )
    oracle_model: str = Field(
        default_factory=lambda: os.getenv("ORACLE_MODEL", "gpt-4o-mini"),
        description="Model used for every oracle call",
    )
    oracle_temperature: float = Field(
        default_factory=lambda: float(os.getenv("ORACLE_TEMPERATURE", "0.2")),
        ge=0,
        le=2,
    )
    oracle_max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("ORACLE_MAX_TOKENS", "2048")),
        description="Max tokens generated per oracle call",
    )
    max_context_tokens: int = Field(
        default_factory=lambda: int(os.getenv("MAX_CONTEXT_TOKENS", "4000")),
        description="Token budget for conversation context in prompts",
    )

    # Decomposition limits
    max_nesting_level: int = Field(
        default_factory=lambda: int(os.getenv("MAX_NESTING_LEVEL", "5")),
        ge=0,
    )
    max_subtasks_per_task: int = Field(
        default_factory=lambda: int(os.getenv("MAX_SUBTASKS_PER_TASK", "10")),
        ge=1,
    )
    max_complexity: MaxComplexity = Field(
        default_factory=lambda: MaxComplexity(os.getenv("MAX_COMPLEXITY", "hierarchical")),
        description="Upper bound on the strategy the supervisor may choose",
    )
    max_refinements_per_run: int = Field(
        default_factory=lambda: int(os.getenv("MAX_REFINEMENTS_PER_RUN", "3")),
        ge=0,
    )

    # Task context store
    context_store_backend: Literal["memory", "redis"] = Field(
        default_factory=lambda: os.getenv("CONTEXT_STORE_BACKEND", "memory"),
    )
    redis_url: str = Field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379"),
    )
    context_ttl_seconds: int = Field(
        default_factory=lambda: int(os.getenv("CONTEXT_TTL_SECONDS", "1800")),
        ge=1,
    )
    context_cleanup_interval: int = Field(
        default_factory=lambda: int(os.getenv("CONTEXT_CLEANUP_INTERVAL", "300")),
        ge=1,
    )

    # Streaming
    progress_replay_limit: int = Field(
        default_factory=lambda: int(os.getenv("PROGRESS_REPLAY_LIMIT", "200")),
        ge=1,
        description="Progress events kept per session for stream replay",
    )
    progress_replay_sessions: int = Field(
        default_factory=lambda: int(os.getenv("PROGRESS_REPLAY_SESSIONS", "500")),
        ge=1,
    )
    keep_alive_interval: float = Field(
        default_factory=lambda: float(os.getenv("KEEP_ALIVE_INTERVAL", "30")),
        gt=0,
    )

    log_level: str = Field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"),
    )

    def get_model_config(self) -> ModelConfig:
        """
        Build the model configuration for the oracle provider.

        Returns:
            ModelConfig for the configured oracle model
        """
        return ModelConfig(
            model_name=self.oracle_model,
            api_endpoint=self.openai_base_url,
            max_tokens=self.oracle_max_tokens,
            temperature=self.oracle_temperature,
        )


def configure_logging(level: str = "INFO") -> None:
    """Apply the process-wide logging format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
