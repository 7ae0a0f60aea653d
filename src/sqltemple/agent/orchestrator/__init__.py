"""Agent Orchestrator.

Provides:
- The bounded reasoning loop and its configuration
- Prompt building and reply parsing
- Tool execution with error capture
- The controller that persists events and streams notifications
- Active run tracking and cancellation
"""

from .agent import INCOMPLETE_ANSWER, AgentConfig, AgentOrchestrator
from .cancellation import CancellationToken
from .controller import AgentController, ControllerConfig
from .event_streamer import (
    BroadcastEventChannel,
    CollectingEventChannel,
    EventStreamer,
    QueueEventChannel,
    chunk_text,
)
from .prompt_builder import SYSTEM_PROMPT, AgentPrompt, PromptBuilder
from .reply_parser import ParsedReply, parse_reply
from .session_registry import ActiveRun, ActiveRunRegistry
from .tool_executor import ToolExecutor, ToolOutcome

__all__ = [
    # Main orchestrator
    "AgentOrchestrator",
    "AgentConfig",
    "INCOMPLETE_ANSWER",
    "CancellationToken",
    # Controller
    "AgentController",
    "ControllerConfig",
    "ActiveRun",
    "ActiveRunRegistry",
    # Streaming
    "BroadcastEventChannel",
    "CollectingEventChannel",
    "EventStreamer",
    "QueueEventChannel",
    "chunk_text",
    # Prompting
    "AgentPrompt",
    "PromptBuilder",
    "SYSTEM_PROMPT",
    "ParsedReply",
    "parse_reply",
    # Tools
    "ToolExecutor",
    "ToolOutcome",
]
