"""Models describing the language model behind the decision oracle."""

from typing import Optional

from pydantic import BaseModel, Field


class ModelConfig(BaseModel):
    """Configuration for a specific model."""

    model_name: str = Field(description="Model identifier")
    api_endpoint: Optional[str] = Field(
        default=None, description="Base URL of an OpenAI-compatible endpoint"
    )
    max_tokens: int = Field(default=2048, description="Max tokens to generate")
    context_window: int = Field(default=128000, description="Context window size")
    temperature: float = Field(default=0.2, ge=0, le=2)
