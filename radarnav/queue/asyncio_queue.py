"""In-process asyncio queue implementation of SampleQueue."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from radarnav.core.session import QueuedSample


class AsyncioSampleQueue:
    """SampleQueue backed by asyncio.Queue. Zero dependencies."""

    def __init__(self, max_size: int = 1_000) -> None:
        self._queue: asyncio.Queue[QueuedSample] = asyncio.Queue(maxsize=max_size)

    async def put(self, item: QueuedSample) -> None:
        await self._queue.put(item)

    async def get(self) -> QueuedSample:
        return await self._queue.get()

    def get_nowait(self) -> QueuedSample | None:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()
