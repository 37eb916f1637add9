"""Route proximity index: keeps the candidates lying along a route.

Two passes: a cheap bounding-box reject against the route's padded bounds,
then a point-to-segment test against every leg of the polyline.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import structlog

from radarnav.core.geo import BoundingBox, point_to_segment_m

if TYPE_CHECKING:
    from radarnav.core.models import Candidate

log = structlog.get_logger()

# Lateral corridor (km) on each side of the route.
DEFAULT_BUFFER_KM = 0.12

# Bounding-box growth, as a fraction of the box extent on each side.
BBOX_PADDING = 0.02


def near_route(
    lat: float, lon: float,
    route_points: Sequence[tuple[float, float]],
    buffer_km: float,
) -> bool:
    """True if the point is within ``buffer_km`` of any leg of the route."""
    buffer_m = buffer_km * 1000
    if len(route_points) == 1:
        a = route_points[0]
        return point_to_segment_m(lat, lon, a[0], a[1], a[0], a[1]) <= buffer_m
    for a, b in zip(route_points, route_points[1:]):
        if point_to_segment_m(lat, lon, a[0], a[1], b[0], b[1]) <= buffer_m:
            return True
    return False


def filter_along_route(
    candidates: Sequence[Candidate],
    route_points: Sequence[tuple[float, float]],
    buffer_km: float = DEFAULT_BUFFER_KM,
    padding: float = BBOX_PADDING,
) -> list[Candidate]:
    """Subset of ``candidates`` within ``buffer_km`` of the route, in input order."""
    if not route_points:
        return []

    # The margin keeps straight north-south or east-west routes (zero-width
    # boxes) from rejecting everything before the precise test.
    bounds = BoundingBox.around(route_points).pad(padding, min_margin_m=buffer_km * 1000)

    out: list[Candidate] = []
    for c in candidates:
        if not bounds.contains(c.lat, c.lon):
            continue
        if near_route(c.lat, c.lon, route_points, buffer_km):
            out.append(c)

    log.info("route_candidates_filtered", total=len(candidates), kept=len(out),
             route_points=len(route_points), buffer_km=buffer_km)
    return out


def candidates_to_geojson(candidates: Sequence[Candidate]) -> dict:
    """Convert candidates to a GeoJSON FeatureCollection."""
    return {
        "type": "FeatureCollection",
        "features": [c.to_geojson_feature() for c in candidates],
    }
