"""Retry policy and delayed-task scheduling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    Attempt ``n`` (zero based) waits ``min(base_delay * 2**n, max_delay)`` seconds.
    """

    max_attempts: int = 5
    base_delay: float = 0.1
    max_delay: float = 3.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def allows(self, attempt: int) -> bool:
        """Return True if retry number ``attempt`` (zero based) may run."""
        return attempt < self.max_attempts


class Scheduler(Protocol):
    """Runs async callbacks after a delay."""

    def schedule(self, delay: float, callback: AsyncCallback) -> None: ...

    async def cancel_all(self) -> None: ...


class AsyncioScheduler:
    """Scheduler backed by tasks on the running event loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def schedule(self, delay: float, callback: AsyncCallback) -> None:
        task = asyncio.get_running_loop().create_task(self._run_later(delay, callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _run_later(delay: float, callback: AsyncCallback) -> None:
        await asyncio.sleep(max(0.0, delay))
        try:
            await callback()
        except Exception:
            logger.exception("Scheduled callback failed")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
