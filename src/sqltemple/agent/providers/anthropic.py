"""
Anthropic Claude LLM Provider.

Single-shot completions through the Messages API.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import anthropic
from anthropic import AsyncAnthropic

from .base import BaseLLMProvider, ErrorType, LLMProviderConfig, LLMProviderError

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude provider.

    Usage:
        config = LLMProviderConfig(api_key="sk-ant-...", model="claude-sonnet-4-5-20250929")
        provider = AnthropicProvider(config)

        text = await provider.complete("Hello", system_prompt="Be brief")
    """

    provider_name = "Anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

    def __init__(
        self, config: LLMProviderConfig, client: Optional[AsyncAnthropic] = None
    ):
        super().__init__(config)
        self.client = client or AsyncAnthropic(
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": max_tokens or self.config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APITimeoutError as e:
            logger.error(f"Anthropic API timeout: {e}")
            raise LLMProviderError(
                f"Request timed out: {e}",
                error_type=ErrorType.TIMEOUT,
                original_error=e,
            )
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic API error ({e.status_code}): {e}")
            raise self.handle_error(e.status_code, str(e), e)
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise self.handle_error(None, str(e), e)

        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

    async def close(self) -> None:
        await self.client.close()
