"""
OpenAI LLM Provider.

Single-shot chat completions through the official async client.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from .base import BaseLLMProvider, ErrorType, LLMProviderConfig, LLMProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completion provider.

    Usage:
        config = LLMProviderConfig(api_key="sk-...", model="gpt-4o-mini")
        provider = OpenAIProvider(config)

        text = await provider.complete("Hello", system_prompt="Be brief")
    """

    provider_name = "OpenAI"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, config: LLMProviderConfig, client: Optional[AsyncOpenAI] = None):
        super().__init__(config)
        self.client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    def _build_messages(
        self, prompt: str, system_prompt: Optional[str]
    ) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": self._build_messages(prompt, system_prompt),
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            logger.error(f"{self.provider_name} API timeout: {e}")
            raise LLMProviderError(
                f"Request timed out: {e}",
                error_type=ErrorType.TIMEOUT,
                original_error=e,
            )
        except openai.APIStatusError as e:
            logger.error(f"{self.provider_name} API error ({e.status_code}): {e}")
            raise self.handle_error(e.status_code, str(e), e)
        except openai.APIError as e:
            logger.error(f"{self.provider_name} API error: {e}")
            raise self.handle_error(None, str(e), e)

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        await self.client.close()
