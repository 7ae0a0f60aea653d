"""
Ollama LLM Provider.

Calls a locally hosted Ollama server's /api/chat endpoint with streaming
disabled and returns the assistant's reply.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .base import BaseLLMProvider, ErrorType, LLMProviderConfig, LLMProviderError

logger = logging.getLogger(__name__)


class OllamaProvider(BaseLLMProvider):
    """Ollama local LLM provider.

    Usage:
        config = LLMProviderConfig(
            api_key="not-needed",  # Ollama doesn't require auth
            model="qwen3:4b",
            base_url="http://localhost:11434",
        )
        provider = OllamaProvider(config)

        text = await provider.complete("List three tables")
    """

    provider_name = "Ollama"
    DEFAULT_MODEL = "qwen3:4b"
    DEFAULT_BASE_URL = "http://localhost:11434"

    def __init__(
        self, config: LLMProviderConfig, client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(config)
        self.base_url = config.base_url or self.DEFAULT_BASE_URL
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.timeout,
        )

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature},
        }
        if max_tokens:
            payload["options"]["num_predict"] = max_tokens

        try:
            response = await self.client.post("/api/chat", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Ollama API error: {e.response.status_code} - {e.response.text}"
            )
            raise self.handle_error(e.response.status_code, e.response.text, e)
        except httpx.TimeoutException as e:
            logger.error(f"Ollama request timeout: {e}")
            raise LLMProviderError(
                f"Ollama request timeout: {e}",
                error_type=ErrorType.TIMEOUT,
                original_error=e,
            )
        except httpx.RequestError as e:
            logger.error(f"Ollama connection error: {e}")
            raise LLMProviderError(
                f"Ollama connection error: {e}",
                error_type=ErrorType.FATAL,
                original_error=e,
            )
        except ValueError as e:
            raise LLMProviderError(
                f"Ollama returned invalid JSON: {e}",
                error_type=ErrorType.RECOVERABLE,
                original_error=e,
            )

        message = body.get("message") or {}
        return message.get("content") or ""

    async def close(self) -> None:
        await self.client.aclose()
