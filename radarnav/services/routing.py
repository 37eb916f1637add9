"""Driving routes from an OSRM server."""

from __future__ import annotations

import httpx
import structlog

from radarnav.core.models import RouteDescriptor
from radarnav.services.errors import ServiceError

log = structlog.get_logger()


def parse_osrm_route(payload: dict) -> RouteDescriptor | None:
    """First route of an OSRM response, or None for an explicit "no route"."""
    routes = payload.get("routes") or []
    if not routes:
        return None
    route = routes[0]
    coords = (route.get("geometry") or {}).get("coordinates") or []
    points = tuple((float(c[1]), float(c[0])) for c in coords if len(c) >= 2)
    if not points:
        return None
    return RouteDescriptor(
        points=points,
        distance_m=float(route.get("distance") or 0.0),
        duration_s=float(route.get("duration") or 0.0),
    )


class RoutingClient:

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 10.0,
        user_agent: str = "radarnav",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    async def route(
        self, origin: tuple[float, float], destination: tuple[float, float],
    ) -> RouteDescriptor | None:
        """Route between two (lat, lon) points; None when no route exists."""
        url = (f"{self.base_url}/{origin[1]},{origin[0]};"
               f"{destination[1]},{destination[0]}")
        params = {"overview": "full", "geometries": "geojson", "steps": "true"}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": self.user_agent},
            ) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            log.error("routing_timeout", error=str(exc))
            raise ServiceError("Routing service timeout") from exc
        except httpx.HTTPStatusError as exc:
            log.error("routing_http_error", status=exc.response.status_code)
            raise ServiceError(f"Routing service returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            log.error("routing_request_failed", error=str(exc))
            raise ServiceError("Routing request failed") from exc
        except ValueError as exc:
            raise ServiceError("Routing service returned invalid JSON") from exc

        try:
            route = parse_osrm_route(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            log.error("routing_bad_payload", error=str(exc))
            raise ServiceError("Routing service returned an unexpected payload") from exc
        if route is None:
            log.info("routing_no_route", code=payload.get("code"))
        return route
