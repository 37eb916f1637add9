"""RadarNav server: main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, queue, services, and API layers.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from radarnav.api.monitoring import router as monitoring_router
from radarnav.api.positions import router as positions_router
from radarnav.api.route import router as route_router
from radarnav.api.search import router as search_router
from radarnav.api.tracking import router as tracking_router
from radarnav.config import AppConfig, load_config
from radarnav.core.advisory import AdvisoryBoard
from radarnav.core.session import NavigationController
from radarnav.core.stats import NavigationStats
from radarnav.queue.asyncio_queue import AsyncioSampleQueue
from radarnav.services.candidates import CandidateLoader
from radarnav.services.errors import ServiceError
from radarnav.services.geocoding import GeocodingClient
from radarnav.services.routing import RoutingClient
from radarnav.services.suggestions import SuggestionBox

log = structlog.get_logger()

# Module-level singletons (set during startup)
_controller: NavigationController | None = None
_suggestions: SuggestionBox | None = None
_stats: NavigationStats | None = None
_config: AppConfig | None = None


def get_controller() -> NavigationController:
    assert _controller is not None, "Server not initialized"
    return _controller


def get_suggestions() -> SuggestionBox:
    assert _suggestions is not None, "Server not initialized"
    return _suggestions


def get_stats() -> NavigationStats:
    assert _stats is not None, "Server not initialized"
    return _stats


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
    )


def build_components(
    config: AppConfig,
) -> tuple[NavigationController, SuggestionBox, NavigationStats]:
    """Create the controller and its collaborators from configuration."""
    svc = config.services
    stats = NavigationStats()
    queue = AsyncioSampleQueue(max_size=config.queue.max_size)
    advisories = AdvisoryBoard(ttl_seconds=config.alerts.advisory_ttl_s)
    geocoder = GeocodingClient(
        address_url=svc.address_url,
        nominatim_url=svc.nominatim_url,
        nominatim_suffix=svc.nominatim_suffix,
        provider_limit=svc.provider_limit,
        result_limit=svc.search_limit,
        timeout=svc.timeout_s,
        user_agent=svc.user_agent,
    )
    router = RoutingClient(base_url=svc.osrm_url, timeout=svc.timeout_s,
                           user_agent=svc.user_agent)
    controller = NavigationController(
        config=config, queue=queue, stats=stats, advisories=advisories,
        geocoder=geocoder, router=router,
    )
    suggestions = SuggestionBox(
        geocoder,
        debounce_seconds=svc.search_debounce_ms / 1000,
        min_chars=svc.search_min_chars,
        limit=svc.search_limit,
    )
    return controller, suggestions, stats


async def _load_candidates(controller: NavigationController, config: AppConfig) -> None:
    """Fetch the candidate set once; a failure leaves the set empty."""
    loader = CandidateLoader(
        url=config.services.candidates_url,
        path=config.services.candidates_file,
        timeout=max(config.services.timeout_s, 30.0),
    )
    try:
        candidates = await loader.load()
    except ServiceError as exc:
        log.error("candidates_load_failed", error=str(exc))
        return
    controller.set_candidates(candidates)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _controller, _suggestions, _stats, _config

    _config = load_config()
    _setup_logging(_config)

    log.info("server_starting",
             env=_config.server.env,
             queue_max_size=_config.queue.max_size)

    _controller, _suggestions, _stats = build_components(_config)

    # Background tasks: sample consumer and the one-shot candidate load
    tasks = [asyncio.create_task(_controller.run_sample_consumer())]
    if _config.services.load_candidates:
        tasks.append(asyncio.create_task(_load_candidates(_controller, _config)))

    log.info("server_started",
             host=_config.server.host,
             port=_config.server.port)

    yield

    # Shutdown
    _controller.stop_tracking()
    _suggestions.clear()
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
    log.info("server_stopped")


app = FastAPI(
    title="RadarNav",
    description="Real-time navigation aid with speed-camera alerts",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(positions_router)
app.include_router(tracking_router)
app.include_router(route_router)
app.include_router(search_router)
app.include_router(monitoring_router)
