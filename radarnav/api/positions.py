"""Location and orientation provider endpoints.

This is the thin FastAPI adapter. It parses JSON requests from the browser,
converts them to internal models, and hands them to the controller.
"""

from __future__ import annotations

import json
import math

from fastapi import APIRouter, Request, Response

from radarnav.core.models import RawPositionSample

router = APIRouter(prefix="/api/v1")


def _json_response(payload: dict, status_code: int = 200) -> Response:
    return Response(content=json.dumps(payload), status_code=status_code,
                    media_type="application/json")


def _optional_float(value) -> float | None:
    if value is None:
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _parse_sample(data: dict) -> RawPositionSample:
    """Parse one position sample. Raises KeyError/TypeError/ValueError/OverflowError."""
    return RawPositionSample(
        lat=float(data["lat"]),
        lon=float(data["lon"]),
        accuracy_m=float(data.get("accuracy_m", math.inf)),
        timestamp_ms=int(data["timestamp_ms"]),
        speed_mps=_optional_float(data.get("speed_mps")),
        heading_deg=_optional_float(data.get("heading_deg")),
    )


async def _read_json(request: Request):
    body = await request.body()
    return json.loads(body)


@router.post("/positions")
async def receive_positions(request: Request) -> Response:
    """Receive one position sample, or a batch under ``samples``."""
    from radarnav.main import get_controller

    controller = get_controller()
    try:
        body = await _read_json(request)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _json_response({"accepted": False, "error": "invalid JSON"}, 400)
    if not isinstance(body, dict):
        return _json_response({"accepted": False, "error": "expected an object"}, 422)

    raw_samples = body["samples"] if "samples" in body else [body]
    try:
        samples = [_parse_sample(s) for s in raw_samples]
    except (KeyError, OverflowError, TypeError, ValueError) as exc:
        return _json_response({"accepted": False, "error": f"invalid sample: {exc}"}, 422)

    queued = 0
    for sample in samples:
        if await controller.submit(sample):
            queued += 1

    if samples and queued == 0:
        return _json_response({"accepted": False, "error": "tracking not active",
                               "queued": 0}, 409)
    return _json_response({"accepted": True, "error": "", "queued": queued})


@router.post("/orientation")
async def receive_orientation(request: Request) -> Response:
    """Receive a device orientation angle (``alpha``, degrees)."""
    from radarnav.main import get_controller

    try:
        body = await _read_json(request)
        alpha = float(body["alpha"])
    except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError, ValueError):
        return _json_response({"accepted": False, "error": "alpha is required"}, 422)

    invert = str(body.get("platform", "")).lower() in ("ios", "iphone", "ipad")
    heading = get_controller().on_orientation(alpha, invert=invert)
    return _json_response({"accepted": heading is not None, "heading_deg": heading})


@router.post("/location-error")
async def receive_location_error(request: Request) -> Response:
    """The browser reports a geolocation failure (1 denied, 2 unavailable, 3 timeout)."""
    from radarnav.main import get_controller

    try:
        body = await _read_json(request)
        code = int(body.get("code", 0))
    except (json.JSONDecodeError, UnicodeDecodeError, AttributeError, TypeError, ValueError):
        return _json_response({"error": "code is required"}, 422)

    message = get_controller().on_provider_error(code, str(body.get("message", "")))
    return _json_response({"advisory": message})
