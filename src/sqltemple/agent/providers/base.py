"""
Base LLM Provider Implementation.

Provides common functionality for all LLM providers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ...errors import SQLTempleError
from ..domain.ports import ILLMProvider

logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    """Categories of provider failures."""

    RECOVERABLE = "recoverable"  # Can retry
    FATAL = "fatal"  # Must abort
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"  # Rate limited, back off
    AUTHENTICATION = "authentication"


class LLMProviderError(SQLTempleError):
    """Raised when a provider call fails. Fatal to the current run."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.RECOVERABLE,
        original_error: Optional[Exception] = None,
        status_code: Optional[int] = None,
    ):
        details = {"error_type": error_type.value}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message,
            code="LLM_PROVIDER_ERROR",
            details=details,
            cause=original_error,
            recoverable=error_type in (ErrorType.RECOVERABLE, ErrorType.RATE_LIMIT),
        )
        self.error_type = error_type
        self.original_error = original_error
        self.status_code = status_code


@dataclass
class LLMProviderConfig:
    """Configuration for LLM providers.

    Attributes:
        api_key: API key for the provider
        model: Model name to use
        base_url: Optional custom base URL
        timeout: Request timeout in seconds
        max_retries: Maximum retry attempts
        temperature: Default temperature
        max_tokens: Default max tokens
    """

    api_key: str
    model: str
    base_url: Optional[str] = None
    timeout: float = 60.0
    max_retries: int = 3
    temperature: float = 0.1
    max_tokens: int = 4096
    extra: dict[str, Any] = field(default_factory=dict)


class BaseLLMProvider(ILLMProvider, ABC):
    """Base class for LLM provider implementations.

    Subclasses implement ``complete`` for their API and use ``handle_error``
    to turn HTTP status failures into LLMProviderError.
    """

    provider_name: str = "llm"

    def __init__(self, config: LLMProviderConfig):
        self.config = config

    @property
    def model_name(self) -> str:
        return self.config.model

    def handle_error(
        self, status_code: Optional[int], message: str, original: Optional[Exception] = None
    ) -> LLMProviderError:
        """Map an API failure to an LLMProviderError with a readable message."""
        name = self.provider_name
        if status_code == 401:
            return LLMProviderError(
                f"Invalid {name} API key. Please check your settings.",
                error_type=ErrorType.AUTHENTICATION,
                original_error=original,
                status_code=status_code,
            )
        if status_code == 429:
            return LLMProviderError(
                f"{name} rate limit exceeded. Please try again later.",
                error_type=ErrorType.RATE_LIMIT,
                original_error=original,
                status_code=status_code,
            )
        if status_code == 403:
            return LLMProviderError(
                f"Access to {name} was denied. Check your plan and permissions.",
                error_type=ErrorType.FATAL,
                original_error=original,
                status_code=status_code,
            )
        if status_code == 404:
            return LLMProviderError(
                f"Model {self.config.model} was not found on {name}.",
                error_type=ErrorType.FATAL,
                original_error=original,
                status_code=status_code,
            )
        return LLMProviderError(
            f"{name} request failed: {message}",
            error_type=ErrorType.RECOVERABLE,
            original_error=original,
            status_code=status_code,
        )

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Generate a completion. Must be implemented by subclasses."""
        pass

    async def close(self) -> None:
        """Release client resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
