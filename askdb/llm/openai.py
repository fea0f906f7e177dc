"""
OpenAI LLM Provider

Chat-completions implementation of BaseLLMProvider.
"""

import logging

import openai
from openai import AsyncOpenAI

from askdb.llm.base import BaseLLMProvider
from askdb.llm.models import LLMRequest, LLMResponse, LLMUsage

logger = logging.getLogger(__name__)

# tool_calls / function_call never occur for plain SQL prompts and count as "stop"
KNOWN_FINISH_REASONS = frozenset({"stop", "length", "content_filter"})


class OpenAIProvider(BaseLLMProvider):
    """GPT models via AsyncOpenAI."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        max_tokens: int = 1024,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="openai",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, timeout=float(timeout))

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Run a chat completion.

        Raises:
            openai.APIError: Any SDK failure (timeouts included), re-raised after logging
        """
        request = self._apply_defaults(request)
        self._log_request(request)
        model = request.model or self.model

        try:
            completion = await self.client.chat.completions.create(
                model=model,
                messages=[message.model_dump() for message in request.messages],
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except openai.APIError as e:
            logger.error(f"OpenAI request for {model} failed: {e}", extra={"model": model})
            raise

        choice = completion.choices[0]
        usage = completion.usage
        reason = choice.finish_reason if choice.finish_reason in KNOWN_FINISH_REASONS else "stop"

        llm_response = LLMResponse(
            content=choice.message.content or "",
            model=completion.model,
            usage=LLMUsage(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            ),
            finish_reason=reason,
            provider="openai",
            metadata={"id": completion.id},
        )
        self._log_response(llm_response)
        return llm_response

    async def close(self) -> None:
        await self.client.close()
