"""Queue interface (port) for position sample ingestion."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from radarnav.core.session import QueuedSample


class SampleQueue(Protocol):
    """Port: accepts position samples and delivers them to a single consumer."""

    async def put(self, item: QueuedSample) -> None: ...

    async def get(self) -> QueuedSample: ...

    def get_nowait(self) -> QueuedSample | None: ...

    def qsize(self) -> int: ...
