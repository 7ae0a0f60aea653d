"""
Provider registry.

Maps provider names to their implementation classes and builds the
configured provider from Settings.
"""

from __future__ import annotations

import logging
from typing import Optional

from ...config import Settings
from ...errors import ConfigurationError
from .anthropic import AnthropicProvider
from .base import BaseLLMProvider, LLMProviderConfig
from .lmstudio import LMStudioProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Name-keyed registry of provider classes.

    Usage:
        registry = ProviderRegistry()
        provider_cls = registry.get("ollama")
    """

    def __init__(self, default: str = "openai"):
        self._providers: dict[str, type[BaseLLMProvider]] = {}
        self._default = default
        self.register("openai", OpenAIProvider)
        self.register("anthropic", AnthropicProvider)
        self.register("ollama", OllamaProvider)
        self.register("lmstudio", LMStudioProvider)

    def register(self, name: str, provider_cls: type[BaseLLMProvider]) -> None:
        self._providers[name] = provider_cls

    def get(self, name: str) -> Optional[type[BaseLLMProvider]]:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return list(self._providers)

    @property
    def default(self) -> str:
        return self._default

    def set_default(self, name: str) -> bool:
        if name not in self._providers:
            return False
        self._default = name
        return True


def build_provider_config(settings: Settings) -> LLMProviderConfig:
    """Translate settings for the selected provider into a provider config.

    Raises:
        ConfigurationError: If a hosted provider has no API key
    """
    name = settings.llm_provider
    timeout = settings.llm_timeout_seconds

    if name == "openai":
        if not settings.openai_api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is required for the openai provider",
                missing_keys=["OPENAI_API_KEY"],
            )
        return LLMProviderConfig(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=timeout,
        )
    if name == "anthropic":
        if not settings.anthropic_api_key:
            raise ConfigurationError(
                "ANTHROPIC_API_KEY is required for the anthropic provider",
                missing_keys=["ANTHROPIC_API_KEY"],
            )
        return LLMProviderConfig(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            timeout=timeout,
        )
    if name == "ollama":
        return LLMProviderConfig(
            api_key="not-needed",
            model=settings.ollama_model,
            base_url=settings.ollama_base_url,
            timeout=timeout,
        )
    if name == "lmstudio":
        return LLMProviderConfig(
            api_key="lm-studio",
            model=settings.lmstudio_model,
            base_url=settings.lmstudio_base_url,
            timeout=timeout,
        )
    raise ConfigurationError(f"Unsupported LLM provider {name!r}")


def create_provider(
    settings: Settings, registry: Optional[ProviderRegistry] = None
) -> BaseLLMProvider:
    """Instantiate the provider named by ``settings.llm_provider``."""
    registry = registry or ProviderRegistry()
    provider_cls = registry.get(settings.llm_provider)
    if provider_cls is None:
        raise ConfigurationError(
            f"Unsupported LLM provider {settings.llm_provider!r}",
            details={"supported": ", ".join(registry.names())},
        )

    provider = provider_cls(build_provider_config(settings))
    logger.info(f"Using {settings.llm_provider} provider with model {provider.model_name}")
    return provider
