"""Route computation and route-scoped candidate endpoints."""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from radarnav.core.proximity import candidates_to_geojson

router = APIRouter(prefix="/api/v1")


@router.post("/route")
async def compute_route(request: Request) -> JSONResponse:
    """Route from the current position to the best match for ``query``.

    Body: {"query": "Gare de Lyon, Paris"}
    """
    from radarnav.main import get_controller

    try:
        body = json.loads(await request.body())
        query = str(body.get("query", ""))
    except (json.JSONDecodeError, UnicodeDecodeError, AttributeError):
        return JSONResponse(content={"ok": False, "message": "invalid JSON"}, status_code=400)

    outcome = await get_controller().compute_route(query)
    return JSONResponse(content=outcome.to_dict())


@router.get("/route")
async def get_route() -> JSONResponse:
    """Current route as a GeoJSON LineString feature."""
    from radarnav.main import get_controller

    route = get_controller().session.route
    if route is None:
        return JSONResponse(content={"error": "no route"}, status_code=404)
    feature = {
        "type": "Feature",
        "geometry": {
            "type": "LineString",
            "coordinates": [[round(lon, 6), round(lat, 6)] for lat, lon in route.points],
        },
        "properties": {
            "distance_m": route.distance_m,
            "duration_s": route.duration_s,
            "travel_time": route.travel_time_text(),
        },
    }
    return JSONResponse(content=feature, media_type="application/geo+json")


@router.get("/route/candidates")
async def get_route_candidates() -> JSONResponse:
    """Candidates along the current route as a GeoJSON FeatureCollection."""
    from radarnav.main import get_controller

    candidates = get_controller().session.route_candidates
    return JSONResponse(content=candidates_to_geojson(candidates),
                        media_type="application/geo+json")
