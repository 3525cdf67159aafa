"""Cooperative yield points for long-running work on a shared event loop."""

from __future__ import annotations

import asyncio
from typing import Protocol


class Scheduler(Protocol):
    """Anything that can hand control back to the host loop."""

    async def yield_now(self) -> None: ...


class AsyncioScheduler:
    """Yield to the running asyncio loop via ``asyncio.sleep(0)``."""

    async def yield_now(self) -> None:
        await asyncio.sleep(0)


class YieldController:
    """Yield once every *every* calls to ``maybe_yield()``.

    Used inside loops to balance throughput against responsiveness.
    """

    def __init__(self, scheduler: Scheduler, every: int = 10) -> None:
        if every < 1:
            raise ValueError("every must be >= 1")
        self._scheduler = scheduler
        self._every = every
        self._counter = 0

    async def maybe_yield(self) -> None:
        self._counter += 1
        if self._counter >= self._every:
            self._counter = 0
            await self._scheduler.yield_now()


default_scheduler = AsyncioScheduler()
