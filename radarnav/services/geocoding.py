"""Address search against the French address API and Nominatim.

Results from both providers are concatenated (addresses first), deduplicated
by display name and truncated. A failing provider is logged and skipped.
"""

from __future__ import annotations

import httpx
import structlog

from radarnav.core.models import GeocodeResult
from radarnav.services.errors import ServiceError

log = structlog.get_logger()


def _parse_address_features(payload: dict) -> list[GeocodeResult]:
    results = []
    for feature in payload.get("features", []):
        props = feature.get("properties") or {}
        coords = (feature.get("geometry") or {}).get("coordinates") or []
        label = props.get("label")
        if not label or len(coords) < 2:
            continue
        results.append(GeocodeResult(
            name=label,
            lat=float(coords[1]),
            lon=float(coords[0]),
            kind="address",
            properties=props,
        ))
    return results


def _parse_nominatim(payload: list) -> list[GeocodeResult]:
    results = []
    for item in payload:
        name = item.get("display_name")
        try:
            lat, lon = float(item["lat"]), float(item["lon"])
        except (KeyError, TypeError, ValueError):
            continue
        if not name:
            continue
        results.append(GeocodeResult(
            name=name,
            lat=lat,
            lon=lon,
            kind="poi",
            properties={
                "label": name,
                "type": item.get("type") or "poi",
                "category": item.get("category") or "business",
            },
        ))
    return results


def _parse_payload(parser, payload) -> list[GeocodeResult]:
    """Run a provider parser; a payload of the wrong shape is a provider failure."""
    try:
        return parser(payload)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ServiceError("geocoder returned an unexpected payload") from exc


def dedupe_by_name(results: list[GeocodeResult], limit: int) -> list[GeocodeResult]:
    """Keep the first result for each name, preserving rank order."""
    seen: set[str] = set()
    unique = []
    for r in results:
        if r.name in seen:
            continue
        seen.add(r.name)
        unique.append(r)
    return unique[:limit]


class GeocodingClient:
    """Free-text place search over two providers."""

    def __init__(
        self,
        *,
        address_url: str,
        nominatim_url: str,
        nominatim_suffix: str = " France",
        provider_limit: int = 3,
        result_limit: int = 5,
        timeout: float = 10.0,
        user_agent: str = "radarnav",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.address_url = address_url
        self.nominatim_url = nominatim_url
        self.nominatim_suffix = nominatim_suffix
        self.provider_limit = provider_limit
        self.result_limit = result_limit
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    async def _get_json(self, client: httpx.AsyncClient, url: str, params: dict):
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise ServiceError(f"geocoder returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ServiceError(f"geocoder request failed: {exc}") from exc
        except ValueError as exc:
            raise ServiceError("geocoder returned invalid JSON") from exc

    async def search(self, query: str) -> list[GeocodeResult]:
        """Ranked candidate places for ``query``; empty when nothing matched."""
        query = query.strip()
        if not query:
            return []

        results: list[GeocodeResult] = []
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"User-Agent": self.user_agent},
        ) as client:
            try:
                payload = await self._get_json(
                    client, self.address_url, {"q": query, "limit": self.provider_limit})
                results.extend(_parse_payload(_parse_address_features, payload))
            except ServiceError as exc:
                log.warning("geocoder_failed", provider="address", error=str(exc))

            try:
                payload = await self._get_json(client, self.nominatim_url, {
                    "format": "json",
                    "q": query + self.nominatim_suffix,
                    "limit": self.provider_limit,
                    "addressdetails": 1,
                })
                results.extend(_parse_payload(_parse_nominatim, payload))
            except ServiceError as exc:
                log.warning("geocoder_failed", provider="nominatim", error=str(exc))

        unique = dedupe_by_name(results, self.result_limit)
        log.debug("geocode_done", query=query, results=len(unique))
        return unique
