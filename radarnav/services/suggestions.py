"""Search-as-you-type suggestions with a debounced geocoder lookup."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from radarnav.core.debounce import Debouncer

if TYPE_CHECKING:
    from radarnav.core.models import GeocodeResult
    from radarnav.services.geocoding import GeocodingClient

log = structlog.get_logger()


class SuggestionBox:
    """Holds the suggestions for the latest typed query."""

    def __init__(
        self,
        geocoder: GeocodingClient,
        *,
        debounce_seconds: float = 0.3,
        min_chars: int = 3,
        limit: int = 5,
    ) -> None:
        self._geocoder = geocoder
        self._debouncer = Debouncer(debounce_seconds)
        self._min_chars = min_chars
        self._limit = limit
        self.query = ""
        self.suggestions: list[GeocodeResult] = []

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    async def lookup(self, query: str) -> list[GeocodeResult]:
        """Immediate, undebounced search."""
        return await self._geocoder.search(query)

    def on_input(self, text: str) -> None:
        """Register a keystroke; a lookup runs once typing pauses."""
        query = text.strip()
        self.query = query
        if len(query) < self._min_chars:
            self._debouncer.cancel()
            self.suggestions = []
            return
        self._debouncer.schedule(lambda: self._lookup(query))

    async def _lookup(self, query: str) -> None:
        results = await self._geocoder.search(query)
        if query != self.query:
            return
        self.suggestions = results[: self._limit]
        log.debug("suggestions_updated", query=query, count=len(self.suggestions))

    def clear(self) -> None:
        self._debouncer.cancel()
        self.query = ""
        self.suggestions = []
