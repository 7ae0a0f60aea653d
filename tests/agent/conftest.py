"""Shared fixtures for agent tests."""

import json
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from src.sqltemple.agent.domain.ports import ILLMProvider
from src.sqltemple.agent.tools.context import ToolContext
from src.sqltemple.database.models import ConnectionConfig, QueryResult


class ScriptedLLM(ILLMProvider):
    """Returns canned replies in order and records every prompt."""

    def __init__(self, replies: Optional[list] = None):
        self.replies = list(replies or [])
        self.calls: list[dict] = []

    @property
    def model_name(self) -> str:
        return "scripted"

    async def complete(self, prompt, system_prompt=None, temperature=0.1, max_tokens=None):
        self.calls.append(
            {
                "prompt": prompt,
                "system_prompt": system_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if not self.replies:
            return json.dumps({"thought": "done", "finalAnswer": "done"})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply


@pytest.fixture
def connection():
    return ConnectionConfig(
        id=7,
        name="local",
        host="localhost",
        port=5432,
        database="shop",
        username="postgres",
    )


@pytest.fixture
def scripted_llm():
    """Factory for scripted providers."""
    return ScriptedLLM


@pytest.fixture
def make_tool_context(connection):
    """Factory for a ToolContext whose SQL executor returns canned results."""

    def _make(*results, bound=True):
        executor = AsyncMock()
        if len(results) == 1:
            executor.return_value = results[0]
        elif results:
            executor.side_effect = list(results)
        else:
            executor.return_value = QueryResult()
        loader = AsyncMock(return_value=None)
        context = ToolContext(
            connection=connection if bound else None,
            schema_loader=loader,
            sql_executor=executor,
        )
        context.executor = executor
        context.loader = loader
        return context

    return _make
