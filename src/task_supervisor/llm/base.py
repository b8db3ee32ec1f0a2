"""Base LLM provider abstraction."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models.llm_models import ModelConfig

logger = logging.getLogger(__name__)


class BaseLLM(ABC):
    """
    Abstract base class for LLM providers used by the decision oracle.

    Providers implement async generation and token counting; request
    validation and budget trimming are shared.
    """

    def __init__(self, config: ModelConfig):
        """
        Initialize LLM provider.

        Args:
            config: Model configuration
        """
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.{config.model_name}")

    @abstractmethod
    async def agenerate(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs: Any,
    ) -> str:
        """
        Generate a response asynchronously.

        CRITICAL: Must be async, every oracle call is awaited

        Args:
            messages: Chat messages in OpenAI format
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0-2), model default when None
            **kwargs: Additional provider-specific parameters

        Returns:
            Generated text response

        Raises:
            RateLimitError: When rate limited
            APIError: On API failures
        """

    @abstractmethod
    def get_num_tokens(self, text: str) -> int:
        """
        Count tokens in text.

        Args:
            text: Text to count tokens for

        Returns:
            Number of tokens
        """

    def validate_request(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
    ) -> None:
        """
        Validate request size against the context window.

        Raises:
            ValueError: When the request cannot fit
        """
        total_tokens = sum(
            self.get_num_tokens(msg.get("content", ""))
            for msg in messages
        )

        if max_tokens:
            total_tokens += max_tokens

        if total_tokens > self.config.context_window:
            raise ValueError(
                f"Request exceeds context window: {total_tokens} > "
                f"{self.config.context_window}"
            )

        self.logger.debug(f"Request validated: {total_tokens} tokens")

    def fit_to_budget(self, text: str, max_tokens: int) -> str:
        """
        Trim text to at most ``max_tokens`` tokens, keeping the most recent part.

        GOTCHA: Conversation context grows at the end, so the head is dropped

        Args:
            text: Text to trim
            max_tokens: Token budget

        Returns:
            The text itself when it fits, otherwise its trimmed tail
        """
        if max_tokens <= 0 or self.get_num_tokens(text) <= max_tokens:
            return text

        # Binary search on the character offset of the kept tail
        low, high = 0, len(text)
        while low < high:
            middle = (low + high) // 2
            if self.get_num_tokens(text[middle:]) <= max_tokens:
                high = middle
            else:
                low = middle + 1

        self.logger.debug(f"Trimmed {low} leading characters to fit {max_tokens} tokens")
        return text[low:]


class LLMError(Exception):
    """Base class for provider failures."""


class RateLimitError(LLMError):
    """Raised when rate limited by provider."""


class APIError(LLMError):
    """Raised on API failures."""
