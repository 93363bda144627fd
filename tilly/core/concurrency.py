"""Bounded admission of concurrent tasks.

The orchestrator loop is the single owner of the in-flight set: it admits a new
task only when fewer than ``max_in_flight`` are running, otherwise it waits for
whichever task finishes first. Finished tasks remove themselves.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any


class ConcurrencyLimiter:
    """Work pool with dynamic admission instead of fixed workers."""

    def __init__(self, max_in_flight: int = 50) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self.max_in_flight = max_in_flight
        self.peak_in_flight = 0
        self._in_flight: set[asyncio.Task[Any]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def submit(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Start ``coro`` once a slot is free and return its task."""
        while len(self._in_flight) >= self.max_in_flight:
            await asyncio.wait(self._in_flight, return_when=asyncio.FIRST_COMPLETED)

        task = asyncio.create_task(coro)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        self.peak_in_flight = max(self.peak_in_flight, len(self._in_flight))
        return task

    async def drain(self) -> None:
        """Wait for every in-flight task; task exceptions are not re-raised."""
        while self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
