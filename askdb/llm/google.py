"""
Google LLM Provider

Gemini is the default generation service. Requests are flattened into a
single prompt string because SQL generation only ever sends one user turn,
optionally preceded by a system turn.
"""

import logging
import warnings
from typing import Any

from askdb.llm.base import BaseLLMProvider
from askdb.llm.models import LLMMessage, LLMRequest, LLMResponse, LLMUsage

logger = logging.getLogger(__name__)

# Gemini finish reasons are enum names (MAX_TOKENS, SAFETY, ...); matched by substring
FINISH_REASON_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("length", ("max_tokens", "length")),
    ("content_filter", ("safety", "blocked", "recitation")),
    ("error", ("error",)),
)


def flatten_messages(messages: list[LLMMessage]) -> str:
    """Join messages into one Gemini prompt; a lone user message is sent as is."""
    if len(messages) == 1 and messages[0].role == "user":
        return messages[0].content
    return "\n\n".join(f"{msg.role.capitalize()}: {msg.content}" for msg in messages)


class GoogleProvider(BaseLLMProvider):
    """Gemini provider backed by the google-generativeai SDK."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        temperature: float = 0.1,
        max_tokens: int = 1024,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="google",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        self.model = model
        self.api_key = api_key
        self.genai = self._load_sdk(api_key)

    @staticmethod
    def _load_sdk(api_key: str):
        try:
            # the SDK emits a FutureWarning on import
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", FutureWarning)
                import google.generativeai as genai
        except ImportError:
            logger.warning(
                "google-generativeai package not installed. "
                "Install with: pip install google-generativeai"
            )
            return None

        genai.configure(api_key=api_key)
        return genai

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate SQL text with Gemini."""
        if self.genai is None:
            raise ImportError("google-generativeai package not installed")

        request = self._apply_defaults(request)
        self._log_request(request)

        model_name = request.model or self.model
        prompt = flatten_messages(request.messages)
        config = self.genai.types.GenerationConfig(
            temperature=request.temperature,
            max_output_tokens=request.max_tokens,
        )

        response = await self.genai.GenerativeModel(model_name).generate_content_async(
            prompt,
            generation_config=config,
            request_options={"timeout": self.timeout},
        )

        text = self._response_text(response)
        raw_reason = self._raw_finish_reason(response)
        # usage metadata is not reliable across SDK versions, estimate instead
        prompt_tokens = self.count_tokens(prompt)
        completion_tokens = self.count_tokens(text)

        llm_response = LLMResponse(
            content=text,
            model=model_name,
            usage=LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason=self.map_finish_reason(raw_reason),
            provider="google",
            metadata={"raw_finish_reason": raw_reason},
        )
        self._log_response(llm_response)
        return llm_response

    @staticmethod
    def _response_text(response: Any) -> str:
        text = getattr(response, "text", None)
        if text is None:
            return ""
        return text if isinstance(text, str) else str(text)

    @staticmethod
    def _raw_finish_reason(response: Any) -> str:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return ""
        return str(getattr(candidates[0], "finish_reason", "") or "")

    @staticmethod
    def map_finish_reason(raw_reason: str) -> str:
        """Map a Gemini finish reason onto LLMResponse.finish_reason."""
        lowered = raw_reason.lower()
        for finish_reason, markers in FINISH_REASON_MARKERS:
            if any(marker in lowered for marker in markers):
                return finish_reason
        return "stop"
