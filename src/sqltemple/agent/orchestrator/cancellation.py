"""Cooperative cancellation for orchestrator runs."""

import asyncio


class CancellationToken:
    """Advisory stop signal.

    The orchestrator checks the token at the top of each iteration only; an
    in-flight model call or tool run is never interrupted.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
