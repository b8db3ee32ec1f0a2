"""LLM provider implementations."""

from .openai_provider import OpenAIProvider

__all__ = ["OpenAIProvider"]
