"""Application settings.

Settings are read from environment variables (optionally from a ``.env``
file) once at startup and passed explicitly to the components that need them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .errors import ConfigurationError

SUPPORTED_PROVIDERS = ("openai", "anthropic", "ollama", "lmstudio")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}", cause=e
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be a number, got {raw!r}", cause=e
        )


@dataclass
class Settings:
    """Runtime configuration for the agent service.

    Attributes:
        history_database_url: asyncpg DSN for session history (in-memory if empty)
        llm_provider: Which provider answers prompts
        openai_api_key / openai_model: OpenAI settings
        anthropic_api_key / anthropic_model: Anthropic settings
        ollama_base_url / ollama_model: Ollama settings
        lmstudio_base_url / lmstudio_model: LM Studio settings
        llm_timeout_seconds: Per-request provider timeout
        agent_max_steps: Reasoning loop step budget
        agent_temperature: Sampling temperature for agent prompts
        stream_chunk_size: Characters per simulated token
        channel_max_size: Bound of the outbound notification queue
        cors_origins: Allowed CORS origins
        log_level: Root logging level
    """

    history_database_url: str = field(
        default_factory=lambda: os.getenv("HISTORY_DATABASE_URL", "")
    )
    llm_provider: str = field(
        default_factory=lambda: os.getenv("LLM_PROVIDER", "openai").lower()
    )
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    openai_model: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o-mini"))
    anthropic_api_key: str = field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", "")
    )
    anthropic_model: str = field(
        default_factory=lambda: os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5-20250929")
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_model: str = field(default_factory=lambda: os.getenv("OLLAMA_MODEL", "qwen3:4b"))
    lmstudio_base_url: str = field(
        default_factory=lambda: os.getenv("LMSTUDIO_BASE_URL", "http://localhost:1234")
    )
    lmstudio_model: str = field(
        default_factory=lambda: os.getenv("LMSTUDIO_MODEL", "local-model")
    )
    llm_timeout_seconds: float = field(
        default_factory=lambda: _env_float("LLM_TIMEOUT_SECONDS", 60.0)
    )
    agent_max_steps: int = field(default_factory=lambda: _env_int("AGENT_MAX_STEPS", 10))
    agent_temperature: float = field(
        default_factory=lambda: _env_float("AGENT_TEMPERATURE", 0.1)
    )
    stream_chunk_size: int = field(
        default_factory=lambda: _env_int("AGENT_STREAM_CHUNK_SIZE", 80)
    )
    channel_max_size: int = field(
        default_factory=lambda: _env_int("AGENT_CHANNEL_MAX_SIZE", 256)
    )
    cors_origins: list[str] = field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]
    )
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    def __post_init__(self):
        if self.llm_provider not in SUPPORTED_PROVIDERS:
            raise ConfigurationError(
                f"Unsupported LLM_PROVIDER {self.llm_provider!r}",
                details={"supported": ", ".join(SUPPORTED_PROVIDERS)},
            )
        if self.agent_max_steps < 1:
            raise ConfigurationError("AGENT_MAX_STEPS must be at least 1")
        if self.stream_chunk_size < 1:
            raise ConfigurationError("AGENT_STREAM_CHUNK_SIZE must be at least 1")
        if self.channel_max_size < 1:
            raise ConfigurationError("AGENT_CHANNEL_MAX_SIZE must be at least 1")


def load_settings() -> Settings:
    """Load settings from the environment, reading ``.env`` first."""
    load_dotenv()
    return Settings()
