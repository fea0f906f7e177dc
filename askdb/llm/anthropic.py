"""
Anthropic LLM Provider

Claude through the Messages API. The system prompt travels in its own
`system` parameter, never as a message.
"""

import logging

from askdb.llm.base import BaseLLMProvider
from askdb.llm.models import LLMMessage, LLMRequest, LLMResponse, LLMUsage

logger = logging.getLogger(__name__)

STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
}


def split_system_prompt(messages: list[LLMMessage]) -> tuple[str | None, list[dict[str, str]]]:
    """Separate system content (joined) from the conversational turns."""
    system_parts = [msg.content for msg in messages if msg.role == "system"]
    turns = [{"role": msg.role, "content": msg.content} for msg in messages if msg.role != "system"]
    return ("\n\n".join(system_parts) or None), turns


class AnthropicProvider(BaseLLMProvider):
    """Claude provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-haiku-20241022",
        temperature: float = 0.1,
        max_tokens: int = 1024,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="anthropic",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        self.model = model
        self.api_key = api_key

        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            logger.warning("anthropic package not installed. Install with: pip install anthropic")
            self.client = None
        else:
            self.client = AsyncAnthropic(api_key=api_key, timeout=float(timeout))

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate SQL text with Claude."""
        if self.client is None:
            raise ImportError("anthropic package not installed")

        request = self._apply_defaults(request)
        self._log_request(request)

        system_prompt, turns = split_system_prompt(request.messages)
        optional = {"system": system_prompt} if system_prompt else {}

        response = await self.client.messages.create(
            model=request.model or self.model,
            messages=turns,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            **optional,
        )

        # tool_use and other non-text blocks carry no SQL
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens

        llm_response = LLMResponse(
            content=text,
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            finish_reason=STOP_REASONS.get(response.stop_reason, "stop"),
            provider="anthropic",
            metadata={"id": response.id, "stop_reason": response.stop_reason},
        )
        self._log_response(llm_response)
        return llm_response

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
