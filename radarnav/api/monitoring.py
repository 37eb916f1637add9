"""Health check and monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from radarnav.main import get_controller, get_stats

    controller = get_controller()
    snapshot = get_stats().snapshot()
    return {
        "status": "ok",
        "version": "0.1.0",
        "uptime_seconds": snapshot["uptime_seconds"],
        "queue_depth": snapshot["queue_depth"],
        "candidates_loaded": len(controller.candidates),
        "tracking_active": controller.session.active,
    }


@router.get("/stats")
async def stats() -> dict:
    """Pipeline counters: samples accepted/rejected/dropped, alerts, routes."""
    from radarnav.main import get_stats

    return get_stats().snapshot()


@router.get("/config")
async def get_client_config() -> dict:
    """Parameters the browser client needs at startup."""
    from radarnav.main import get_config

    config = get_config()
    return {
        "search_debounce_ms": config.services.search_debounce_ms,
        "search_min_chars": config.services.search_min_chars,
        "search_limit": config.services.search_limit,
        "advisory_ttl_s": config.alerts.advisory_ttl_s,
        "alert_radius_m": config.alerts.radius_m,
        "max_accuracy_m": config.filter.max_accuracy_m,
        "default_origin": [config.route.default_origin_lat, config.route.default_origin_lon],
    }
