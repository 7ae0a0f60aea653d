"""Single-shot SQL helpers: write, explain and optimize queries."""

from .query_assistant import (
    QueryAssistant,
    clean_sql_response,
    fetch_query_plan,
)

__all__ = [
    "QueryAssistant",
    "clean_sql_response",
    "fetch_query_plan",
]
