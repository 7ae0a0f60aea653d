"""HTTP and WebSocket boundary for the agent."""

from .router import (
    AgentDependencies,
    create_agent_dependencies,
    reset_agent_dependencies,
    router,
)

__all__ = [
    "AgentDependencies",
    "create_agent_dependencies",
    "reset_agent_dependencies",
    "router",
]
