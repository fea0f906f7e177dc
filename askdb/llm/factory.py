"""
LLM Provider Factory

Registry for creating generation providers from LLMSettings.
"""

import logging
from typing import Literal

from askdb.config import LLMSettings
from askdb.exceptions import ConfigurationError
from askdb.llm.anthropic import AnthropicProvider
from askdb.llm.base import BaseLLMProvider
from askdb.llm.google import GoogleProvider
from askdb.llm.openai import OpenAIProvider

logger = logging.getLogger(__name__)

ProviderType = Literal["google", "openai", "anthropic"]


class LLMProviderFactory:
    """
    Factory for creating generation provider instances.

    A provider is only created when its API key is configured; a missing
    key is a configuration error surfaced before any database work.
    """

    PROVIDERS = {
        "google": GoogleProvider,
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
    }

    @staticmethod
    def create_provider(provider_type: ProviderType, config: LLMSettings) -> BaseLLMProvider:
        """
        Create a provider instance.

        Raises:
            ConfigurationError: If the provider is unknown or its API key is missing
        """
        if provider_type not in LLMProviderFactory.PROVIDERS:
            raise ConfigurationError(
                f"Unknown provider type: {provider_type}. "
                f"Available providers: {list(LLMProviderFactory.PROVIDERS.keys())}",
                context={"provider": provider_type},
            )

        logger.info(f"Creating {provider_type} provider", extra={"provider": provider_type})

        if provider_type == "google":
            return LLMProviderFactory._create_google(config)
        if provider_type == "openai":
            return LLMProviderFactory._create_openai(config)
        return LLMProviderFactory._create_anthropic(config)

    @staticmethod
    def create_default_provider(config: LLMSettings) -> BaseLLMProvider:
        """Create the provider named by config.default_provider."""
        return LLMProviderFactory.create_provider(config.default_provider, config)

    @staticmethod
    def _require_key(config: LLMSettings, provider_type: str, env_var: str) -> str:
        api_key = config.api_key_for(provider_type)
        if not api_key:
            raise ConfigurationError(
                f"{env_var} is required for the {provider_type} provider but not configured",
                context={"provider": provider_type},
            )
        return api_key

    @staticmethod
    def _create_google(config: LLMSettings) -> GoogleProvider:
        return GoogleProvider(
            api_key=LLMProviderFactory._require_key(config, "google", "GOOGLE_API_KEY"),
            model=config.google_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

    @staticmethod
    def _create_openai(config: LLMSettings) -> OpenAIProvider:
        return OpenAIProvider(
            api_key=LLMProviderFactory._require_key(config, "openai", "LLM_OPENAI_API_KEY"),
            model=config.openai_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

    @staticmethod
    def _create_anthropic(config: LLMSettings) -> AnthropicProvider:
        return AnthropicProvider(
            api_key=LLMProviderFactory._require_key(config, "anthropic", "LLM_ANTHROPIC_API_KEY"),
            model=config.anthropic_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )
