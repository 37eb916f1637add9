"""Cancellable delayed task: only the last call within the quiet period runs."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import structlog

log = structlog.get_logger()


class Debouncer:

    def __init__(self, delay_seconds: float) -> None:
        self._delay = delay_seconds
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def schedule(self, func: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """Cancel any pending call and run ``func`` after the quiet period."""
        self.cancel()
        self._task = asyncio.create_task(self._run(func))
        return self._task

    async def _run(self, func: Callable[[], Awaitable[Any]]) -> Any:
        await asyncio.sleep(self._delay)
        try:
            return await func()
        except Exception:
            log.error("debounced_call_failed", exc_info=True)
            return None
