"""Tracking lifecycle and live readout endpoints."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1")


@router.post("/tracking/start")
async def start_tracking() -> dict:
    from radarnav.main import get_controller

    controller = get_controller()
    started = controller.start_tracking()
    return {"started": started, "generation": controller.session.generation}


@router.post("/tracking/stop")
async def stop_tracking() -> dict:
    from radarnav.main import get_controller

    return {"stopped": get_controller().stop_tracking()}


@router.post("/orientation/enable")
async def enable_orientation() -> dict:
    from radarnav.main import get_controller

    get_controller().enable_orientation()
    return {"enabled": True}


@router.post("/orientation/disable")
async def disable_orientation() -> dict:
    from radarnav.main import get_controller

    get_controller().disable_orientation()
    return {"enabled": False}


@router.get("/state")
async def get_state() -> dict:
    """Speed, heading, route and next-radar readouts plus live advisories."""
    from radarnav.main import get_controller

    return get_controller().snapshot()
