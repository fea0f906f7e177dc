"""Text-generation providers used to turn questions into SQL."""

from askdb.llm.base import BaseLLMProvider
from askdb.llm.factory import LLMProviderFactory
from askdb.llm.models import LLMMessage, LLMRequest, LLMResponse, LLMUsage

__all__ = [
    "BaseLLMProvider",
    "LLMProviderFactory",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
]
