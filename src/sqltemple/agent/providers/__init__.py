"""LLM provider implementations."""

from .anthropic import AnthropicProvider
from .base import BaseLLMProvider, ErrorType, LLMProviderConfig, LLMProviderError
from .lmstudio import LMStudioProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider
from .registry import ProviderRegistry, build_provider_config, create_provider

__all__ = [
    "AnthropicProvider",
    "BaseLLMProvider",
    "ErrorType",
    "LLMProviderConfig",
    "LLMProviderError",
    "LMStudioProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "ProviderRegistry",
    "build_provider_config",
    "create_provider",
]
