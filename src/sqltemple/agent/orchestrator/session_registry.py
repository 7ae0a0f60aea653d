"""
Active run registry.

Tracks which sessions currently have an orchestrator run in flight. All
mutations are synchronous so that check-and-insert cannot interleave with
another coroutine.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from ...errors import SessionAlreadyRunningError
from ..domain.ports import IEventChannel
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ActiveRun:
    """One in-flight run. Compared by identity."""

    session_id: str
    channel: IEventChannel
    token: CancellationToken = field(default_factory=CancellationToken)
    task: Optional[asyncio.Task] = None


class ActiveRunRegistry:
    """At most one active run per session id.

    Usage:
        run = registry.reserve(session_id, channel)
        ...
        registry.release(run)
    """

    def __init__(self):
        self._runs: dict[str, ActiveRun] = {}

    def reserve(self, session_id: str, channel: IEventChannel) -> ActiveRun:
        """Register a new run for ``session_id``.

        Raises:
            SessionAlreadyRunningError: If a run is already active
        """
        if session_id in self._runs:
            raise SessionAlreadyRunningError(session_id)
        run = ActiveRun(session_id=session_id, channel=channel)
        self._runs[session_id] = run
        logger.debug(f"Reserved run for session {session_id}")
        return run

    def release(self, run: ActiveRun) -> bool:
        """Remove ``run`` if it is still the registered run for its session.

        Returns False when a different run now owns the session id.
        """
        if self._runs.get(run.session_id) is not run:
            return False
        del self._runs[run.session_id]
        logger.debug(f"Released run for session {run.session_id}")
        return True

    def get(self, session_id: str) -> Optional[ActiveRun]:
        return self._runs.get(session_id)

    def is_active(self, session_id: str) -> bool:
        return session_id in self._runs

    def active_runs(self) -> list[ActiveRun]:
        return list(self._runs.values())

    def __len__(self) -> int:
        return len(self._runs)
