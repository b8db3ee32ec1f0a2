"""LLM access for the decision oracle."""

from .base import BaseLLM, LLMError, RateLimitError, APIError

__all__ = ["BaseLLM", "LLMError", "RateLimitError", "APIError"]
