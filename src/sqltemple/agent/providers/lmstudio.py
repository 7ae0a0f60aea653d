"""
LM Studio LLM Provider.

LM Studio serves an OpenAI-compatible API, so this reuses the OpenAI
provider against the local server.
"""

from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI

from .base import LLMProviderConfig
from .openai import OpenAIProvider


class LMStudioProvider(OpenAIProvider):
    """Provider for models served by a local LM Studio instance.

    The server ignores the API key; a placeholder is sent.
    """

    provider_name = "LM Studio"
    DEFAULT_BASE_URL = "http://localhost:1234"

    def __init__(self, config: LLMProviderConfig, client: Optional[AsyncOpenAI] = None):
        base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        if not base_url.endswith("/v1"):
            base_url = f"{base_url}/v1"
        config.base_url = base_url
        config.api_key = config.api_key or "lm-studio"
        super().__init__(config, client=client)
