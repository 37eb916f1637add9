"""Shared test fixtures."""

from __future__ import annotations

import math
from urllib.parse import unquote

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

import radarnav.main as main_module
from radarnav.config import AppConfig
from radarnav.core.advisory import AdvisoryBoard
from radarnav.core.models import Candidate, RawPositionSample
from radarnav.core.session import NavigationController
from radarnav.core.stats import NavigationStats
from radarnav.queue.asyncio_queue import AsyncioSampleQueue
from radarnav.services.geocoding import GeocodingClient
from radarnav.services.routing import RoutingClient
from radarnav.services.suggestions import SuggestionBox

# Meters per degree of latitude on the haversine sphere.
M_PER_DEG = 6_371_000.0 * math.pi / 180

# query (lowercase) -> (label, lat, lon)
PLACES = {
    "gare du nord": ("Gare du Nord, Paris", 48.880, 2.355),
    "broken": ("Broken Place", 10.0, 10.0),
    "island": ("Lonely Island", 70.0, 20.0),
    "garbled": ("Garbled Reply", 30.0, 30.0),
}


def east_offset_deg(lat: float, meters: float) -> float:
    """Longitude delta that moves ``meters`` east at ``lat``."""
    return meters / (M_PER_DEG * math.cos(math.radians(lat)))


def north_offset_deg(meters: float) -> float:
    return meters / M_PER_DEG


def sample(lat: float, lon: float, t_ms: int, acc: float = 5.0,
           speed_mps: float | None = None, heading: float | None = None) -> RawPositionSample:
    return RawPositionSample(lat=lat, lon=lon, accuracy_m=acc, timestamp_ms=t_ms,
                             speed_mps=speed_mps, heading_deg=heading)


def fake_services(request: httpx.Request) -> httpx.Response:
    """Stand-in for the address API, Nominatim and OSRM."""
    host = request.url.host
    if host == "adresse.test":
        place = PLACES.get(request.url.params.get("q", "").lower())
        if place is None:
            return httpx.Response(200, json={"features": []})
        label, lat, lon = place
        return httpx.Response(200, json={"features": [{
            "properties": {"label": label},
            "geometry": {"coordinates": [lon, lat]},
        }]})

    if host == "nominatim.test":
        q = request.url.params.get("q", "").lower().removesuffix(" france")
        place = PLACES.get(q)
        if place is None:
            return httpx.Response(200, json=[])
        label, lat, lon = place
        return httpx.Response(200, json=[
            {"display_name": label, "lat": str(lat), "lon": str(lon)},
            {"display_name": label + " (entrance)", "lat": str(lat + 0.001), "lon": str(lon)},
        ])

    if host == "osrm.test":
        legs = unquote(request.url.path.rsplit("/", 1)[-1]).split(";")
        (lon0, lat0), (lon1, lat1) = [tuple(float(v) for v in leg.split(",")) for leg in legs]
        if lat1 < 20:
            return httpx.Response(500, text="upstream failure")
        if lat1 > 60:
            return httpx.Response(200, json={"code": "NoRoute", "routes": []})
        if lat1 < 40:
            return httpx.Response(200, json={"code": "Ok", "routes": ["not a route"]})
        mid = (lat0 + lat1) / 2
        return httpx.Response(200, json={"code": "Ok", "routes": [{
            "geometry": {"coordinates": [[lon0, lat0], [lon0, mid], [lon1, lat1]]},
            "distance": 2600.0,
            "duration": 420.0,
        }]})

    return httpx.Response(404)


ROUTE_CANDIDATES = [
    # ~50 m east of the first leg
    Candidate(id="R1", lat=48.865, lon=2.35 + east_offset_deg(48.865, 50), type="Radar fixe",
              limit_light_kmh=50),
    # far away
    Candidate(id="R2", lat=45.0, lon=4.0, type="Radar fixe", limit_light_kmh=90),
    # on the second leg
    Candidate(id="R3", lat=48.875, lon=2.3525, type="Radar feu rouge"),
]


def make_controller(config: AppConfig | None = None, candidates=ROUTE_CANDIDATES):
    config = config or AppConfig()
    config.services.load_candidates = False
    transport = httpx.MockTransport(fake_services)
    stats = NavigationStats()
    advisories = AdvisoryBoard(ttl_seconds=config.alerts.advisory_ttl_s)
    geocoder = GeocodingClient(address_url="http://adresse.test/search/",
                               nominatim_url="http://nominatim.test/search",
                               transport=transport)
    router = RoutingClient(base_url="http://osrm.test/route/v1/driving", transport=transport)
    controller = NavigationController(
        config=config,
        queue=AsyncioSampleQueue(max_size=config.queue.max_size),
        stats=stats,
        advisories=advisories,
        geocoder=geocoder,
        router=router,
        candidates=candidates,
    )
    return controller, geocoder, stats, advisories


@pytest.fixture
def controller():
    ctrl, _, _, _ = make_controller()
    return ctrl


@pytest.fixture(autouse=True)
def _init_server():
    """Initialize server singletons for every test, with faked external services."""
    config = AppConfig()
    config.logging.level = "warning"
    ctrl, geocoder, stats, _ = make_controller(config)

    # Patch module-level singletons
    main_module._config = config
    main_module._stats = stats
    main_module._controller = ctrl
    main_module._suggestions = SuggestionBox(geocoder, debounce_seconds=0.01)

    yield

    # Cleanup
    main_module._config = None
    main_module._stats = None
    main_module._controller = None
    main_module._suggestions = None


@pytest.fixture
async def client():
    from radarnav.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
