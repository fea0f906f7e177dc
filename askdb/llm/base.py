"""
Base LLM Provider

The query pipeline treats the generation service as `prompt -> text`.
Providers implement `generate()` over the richer LLMRequest/LLMResponse
models; `complete()` is the narrow entry point the assistant uses.
"""

import logging
from abc import ABC, abstractmethod

from askdb.llm.models import LLMRequest, LLMResponse

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


class BaseLLMProvider(ABC):
    """
    Abstract generation provider.

    Attributes:
        provider_name: Registry key ("google", "openai", "anthropic")
        temperature: Sampling temperature used when a request sets none
        max_tokens: Completion budget used when a request sets none
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        provider_name: str,
        temperature: float = 0.1,
        max_tokens: int = 1024,
        timeout: int = 30,
    ):
        self.provider_name = provider_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

        logger.debug(
            f"{provider_name} provider configured",
            extra={"provider": provider_name, "temperature": temperature, "max_tokens": max_tokens},
        )

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Run one generation request.

        Raises:
            Exception: SDK errors propagate unchanged; the assistant wraps
                them in GenerationError
        """

    async def complete(self, prompt: str) -> str:
        """Send one prompt and return the generated text."""
        response = await self.generate(LLMRequest.from_prompt(prompt))
        return response.content

    async def close(self) -> None:
        """Release SDK clients. Providers without a session keep this no-op."""

    def count_tokens(self, text: str) -> int:
        """Character-based estimate for providers that report no usage."""
        return len(text) // CHARS_PER_TOKEN

    def _apply_defaults(self, request: LLMRequest) -> LLMRequest:
        updates = {}
        if request.temperature is None:
            updates["temperature"] = self.temperature
        if request.max_tokens is None:
            updates["max_tokens"] = self.max_tokens
        return request.model_copy(update=updates) if updates else request

    def _log_request(self, request: LLMRequest) -> None:
        logger.debug(
            f"Sending {len(request.messages)} message(s) to {self.provider_name}",
            extra={
                "provider": self.provider_name,
                "temperature": request.temperature,
                "max_tokens": request.max_tokens,
            },
        )

    def _log_response(self, response: LLMResponse) -> None:
        logger.debug(
            f"{self.provider_name} answered with {response.usage.total_tokens} tokens "
            f"({response.finish_reason})",
            extra={"provider": self.provider_name, "model": response.model},
        )
