"""
Query assistant.

One-shot helpers outside the agent loop: write SQL from a plain-language
request, explain a statement, rewrite it for speed, and review its
execution plan. Each helper is a single ``complete`` call on the configured
provider.

Usage:
    assistant = QueryAssistant(llm_provider)

    sql = await assistant.create_query("top 5 customers by revenue", schema)
    plan = await fetch_query_plan(client, sql)
    review = await assistant.analyze_query_plan(sql, plan)
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, is_dataclass
from typing import Any, Optional

from ...database.models import DatabaseSchema
from ...errors import QueryPlanError
from ..domain.ports import IDatabaseClient, ILLMProvider
from ..providers.base import ErrorType, LLMProviderError

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2000
DEFAULT_TEMPERATURE = 0.7
CREATE_TEMPERATURE = 0.3
OPTIMIZE_TEMPERATURE = 0.2

_FENCE_OPEN = re.compile(r"^```(?:sql)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


CREATE_SYSTEM_PROMPT = """You write PostgreSQL queries from a user's request and the database schema.

Guidelines:
1. Format the SQL so it is easy to read
2. Prefer JOINs to correlated subqueries
3. Comment non-obvious logic inline
4. Keep performance in mind
5. Use short table aliases
6. Guard against NULLs with COALESCE/NULLIF where it matters
7. Reply with the SQL only: no prose, no markdown"""

EXPLAIN_SYSTEM_PROMPT = """You explain SQL queries to developers of any experience level.

Be technically accurate and structure the answer as:
- What the query does, in one or two sentences
- A step-by-step walk through its clauses
- SQL concepts it relies on
- Problems, anti-patterns or improvements worth considering"""

OPTIMIZE_SYSTEM_PROMPT = """You rewrite PostgreSQL queries for better performance using their execution plans.

Consider:
1. Indexes that would help
2. Subqueries that work better as JOINs
3. CTEs for clarity
4. JOIN order given row estimates
5. Aggregates and window functions
6. Work the query does not need

Reply with the optimized SQL only: no prose, no markdown."""

PLAN_SYSTEM_PROMPT = """You analyze PostgreSQL execution plans and give clear, actionable advice.

Look for:
1. The most expensive nodes by cost and time
2. Sequential scans on large tables that an index would avoid
3. Nested loops with many iterations
4. Sorts that could be avoided
5. Missing or unused indexes and poor join order

Answer in sections:
- Plan summary
- Bottlenecks
- Recommendations
- Suggested indexes"""


def clean_sql_response(response: str) -> str:
    """Strip a surrounding markdown code fence from a model reply."""
    cleaned = response.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned)
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def format_json(value: Any) -> str:
    """Pretty JSON for prompts; dataclasses (schemas) are expanded first."""
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    return json.dumps(value, indent=2, default=str)


async def fetch_query_plan(client: IDatabaseClient, sql: str) -> Any:
    """Return PostgreSQL's JSON plan for ``sql`` without executing it.

    Raises:
        QueryPlanError: If the server rejects the statement
    """
    result = await client.execute_query(f"EXPLAIN (FORMAT JSON) {sql.strip().rstrip(';')}")
    if result.error:
        raise QueryPlanError(result.error)
    if not result.rows:
        raise QueryPlanError("EXPLAIN returned no plan")

    plan = next(iter(result.rows[0].values()))
    if isinstance(plan, str):
        try:
            plan = json.loads(plan)
        except ValueError as e:
            raise QueryPlanError("EXPLAIN returned an unreadable plan", cause=e)
    return plan


class QueryAssistant:
    """Schema-aware SQL helpers over a single-shot LLM provider."""

    def __init__(self, llm_provider: ILLMProvider, max_tokens: int = DEFAULT_MAX_TOKENS):
        self.llm = llm_provider
        self.max_tokens = max_tokens

    async def create_query(
        self, request: str, schema: Optional[DatabaseSchema] = None
    ) -> str:
        """Write SQL for a plain-language request."""
        prompt = (
            "Write a SQL query for this request:\n\n"
            f"REQUEST: {request}\n\n"
            f"DATABASE SCHEMA:\n{format_json(schema)}\n\n"
            "Reply with the SQL query only."
        )
        reply = await self._complete(CREATE_SYSTEM_PROMPT, prompt, CREATE_TEMPERATURE)
        return clean_sql_response(reply)

    async def explain_query(
        self, sql: str, schema: Optional[DatabaseSchema] = None
    ) -> str:
        prompt = f"Explain this SQL query:\n\n{sql}\n"
        if schema is not None:
            prompt += f"\nSchema of the database it runs against:\n{format_json(schema)}\n"
        return await self._complete(EXPLAIN_SYSTEM_PROMPT, prompt, DEFAULT_TEMPERATURE)

    async def optimize_query(
        self, sql: str, plan: Any, schema: Optional[DatabaseSchema] = None
    ) -> str:
        """Rewrite ``sql`` for speed given its plan. Returns SQL only."""
        prompt = (
            "Optimize this PostgreSQL query using its execution plan.\n\n"
            f"ORIGINAL QUERY:\n{sql}\n\n"
            f"EXECUTION PLAN:\n{format_json(plan)}\n\n"
            f"DATABASE SCHEMA:\n{format_json(schema)}\n\n"
            "Reply with the optimized SQL query only."
        )
        reply = await self._complete(OPTIMIZE_SYSTEM_PROMPT, prompt, OPTIMIZE_TEMPERATURE)
        return clean_sql_response(reply)

    async def analyze_query_plan(self, sql: str, plan: Any) -> str:
        prompt = (
            "Analyze this PostgreSQL query and its execution plan.\n\n"
            f"QUERY:\n{sql}\n\n"
            f"EXECUTION PLAN:\n{format_json(plan)}\n\n"
            "Give specific optimization recommendations."
        )
        return await self._complete(PLAN_SYSTEM_PROMPT, prompt, DEFAULT_TEMPERATURE)

    async def _complete(self, system_prompt: str, prompt: str, temperature: float) -> str:
        reply = await self.llm.complete(
            prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=self.max_tokens,
        )
        if not reply or not reply.strip():
            logger.warning(f"Empty reply from {self.llm.model_name}")
            raise LLMProviderError(
                "The model returned an empty response",
                error_type=ErrorType.RECOVERABLE,
            )
        return reply
