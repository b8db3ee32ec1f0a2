"""OpenAI provider for the decision oracle."""

import logging
from typing import Any, Dict, List, Optional

import tiktoken
from openai import AsyncOpenAI, RateLimitError as OpenAIRateLimitError, APIError as OpenAIAPIError

from ..base import BaseLLM, RateLimitError, APIError
from ...models.llm_models import ModelConfig

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLM):
    """
    OpenAI chat completions provider.

    PATTERN: Official OpenAI SDK with async client
    GOTCHA: Any OpenAI-compatible server works through ``api_endpoint``
    GOTCHA: Unknown model names fall back to the cl100k_base tokenizer
    """

    def __init__(self, config: ModelConfig, api_key: Optional[str] = None):
        """
        Initialize OpenAI provider.

        Args:
            config: Model configuration
            api_key: OpenAI API key (SDK reads OPENAI_API_KEY when None)
        """
        super().__init__(config)
        self.client = AsyncOpenAI(api_key=api_key, base_url=config.api_endpoint)

        try:
            self.tokenizer = tiktoken.encoding_for_model(config.model_name)
        except KeyError:
            self.tokenizer = tiktoken.get_encoding("cl100k_base")

    async def agenerate(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs: Any,
    ) -> str:
        """
        Generate response using the chat completions API.

        Args:
            messages: Chat messages in OpenAI format
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0-2)
            **kwargs: Additional parameters (response_format, etc.)

        Returns:
            Generated response text

        Raises:
            RateLimitError: When rate limited
            APIError: On API failures
        """
        max_tokens = max_tokens or self.config.max_tokens
        self.validate_request(messages, max_tokens)

        try:
            response = await self.client.chat.completions.create(
                model=self.config.model_name,
                messages=messages,
                max_tokens=max_tokens,
                temperature=self.config.temperature if temperature is None else temperature,
                **kwargs,
            )
            return response.choices[0].message.content or ""

        except OpenAIRateLimitError as e:
            self.logger.warning(f"Rate limited: {e}")
            raise RateLimitError(f"OpenAI rate limit: {str(e)}") from e
        except OpenAIAPIError as e:
            self.logger.error(f"OpenAI API error: {e}")
            raise APIError(f"OpenAI API error: {str(e)}") from e

    def get_num_tokens(self, text: str) -> int:
        return len(self.tokenizer.encode(text))

    async def close(self) -> None:
        """Close OpenAI client."""
        await self.client.close()
