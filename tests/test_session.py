"""Tests for the tracking session lifecycle and the per-sample pipeline."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from conftest import fake_services, make_controller, north_offset_deg, sample
from radarnav.config import AppConfig
from radarnav.core.models import Candidate, RouteDescriptor
from radarnav.core.session import NavigationController
from radarnav.queue.asyncio_queue import AsyncioSampleQueue
from radarnav.services.routing import RoutingClient


def test_end_to_end_three_samples_northbound(controller):
    controller.start_tracking()
    controller.process_sample(sample(48.860, 2.350, 0))
    controller.process_sample(sample(48.8605, 2.350, 1000))
    fused = controller.process_sample(sample(48.8610, 2.350, 2000))

    assert fused is not None
    assert fused.speed_kmh is not None
    assert 0 < fused.speed_kmh <= 200
    assert fused.heading_deg == pytest.approx(0.0, abs=0.5)
    assert fused.accuracy_m == 5.0


def test_realistic_pace_gives_twenty_kmh(controller):
    controller.start_tracking()
    step = north_offset_deg(20 / 3.6)
    fused = None
    for i in range(4):
        fused = controller.process_sample(sample(48.86 + i * step, 2.35, i * 1000))
    assert fused.speed_kmh == pytest.approx(20.0, abs=0.1)
    # 3 x 5.6 m: the two-back sample is only ~11 m away, under the 15 m minimum
    assert fused.heading_deg is None
    snap = controller.snapshot()
    assert snap["display"]["speed"] == "20 km/h"


def test_samples_ignored_when_not_tracking(controller):
    assert controller.process_sample(sample(48.86, 2.35, 0)) is None
    assert len(controller.session.buffer) == 0


def test_low_accuracy_sample_yields_nothing(controller):
    controller.start_tracking()
    assert controller.process_sample(sample(48.86, 2.35, 0, acc=45)) is None
    assert controller.session.last_fused is None


def test_start_twice_is_noop(controller):
    assert controller.start_tracking() is True
    controller.process_sample(sample(48.86, 2.35, 0))
    assert controller.start_tracking() is False
    assert len(controller.session.buffer) == 1
    assert controller.session.generation == 1


def test_stop_clears_buffers_and_orientation(controller):
    controller.start_tracking()
    controller.enable_orientation()
    controller.process_sample(sample(48.86, 2.35, 0, speed_mps=10.0, heading=90.0))
    assert controller.stop_tracking() is True

    session = controller.session
    assert len(session.buffer) == 0
    assert session.speed.last_device_kmh is None
    assert session.heading.last_heading is None
    assert not session.orientation.enabled
    assert controller.process_sample(sample(48.861, 2.35, 1000)) is None
    assert controller.stop_tracking() is False


async def test_queued_samples_from_stopped_session_are_dropped(controller):
    controller.start_tracking()
    assert await controller.submit(sample(48.86, 2.35, 0))
    controller.stop_tracking()
    controller.start_tracking()
    assert await controller.submit(sample(48.87, 2.35, 5000))

    assert await controller.drain() == 2
    assert [s.timestamp_ms for s in controller.session.buffer] == [5000]


async def test_submit_refused_when_not_tracking(controller):
    assert await controller.submit(sample(48.86, 2.35, 0)) is False
    assert await controller.drain() == 0


def test_provider_error_halts_until_restart(controller):
    controller.start_tracking()
    message = controller.on_provider_error(1)
    assert message == "Location permission denied."
    assert controller.process_sample(sample(48.86, 2.35, 0)) is None

    # Restarting after a provider failure starts a fresh session
    assert controller.start_tracking() is True
    assert controller.process_sample(sample(48.86, 2.35, 1000)) is not None


def test_unknown_provider_error_code(controller):
    assert controller.on_provider_error(99) == "Location error."


def test_orientation_ignored_while_not_tracking(controller):
    controller.enable_orientation()
    assert controller.on_orientation(45.0) is None


def test_orientation_calibrates_and_feeds_heading(controller):
    controller.start_tracking()
    controller.enable_orientation()
    # Device heading 90 at 36 km/h establishes the reference
    controller.process_sample(sample(48.86, 2.35, 0, speed_mps=10.0, heading=90.0))
    assert controller.on_orientation(30.0) == pytest.approx(90.0)
    assert controller.on_orientation(40.0) == pytest.approx(100.0)

    # Next fix has no device heading and no usable displacement: sensor wins
    fused = controller.process_sample(sample(48.86, 2.35, 1000, speed_mps=10.0))
    assert fused.heading_deg == pytest.approx(100.0)


def test_snapshot_reports_device_speed_and_sensor_state(controller):
    controller.start_tracking()
    controller.enable_orientation()
    controller.process_sample(sample(48.86, 2.35, 0, speed_mps=10.0, heading=90.0))
    snap = controller.snapshot()
    assert snap["tracking"]["device_speed_kmh"] == pytest.approx(36.0)
    assert snap["orientation"]["usable"] is False

    controller.on_orientation(30.0)
    assert controller.snapshot()["orientation"]["usable"] is True

    controller.stop_tracking()
    snap = controller.snapshot()
    assert snap["tracking"]["device_speed_kmh"] is None
    assert snap["orientation"]["usable"] is False


def test_alert_pipeline_and_route_reset():
    radar = Candidate(id="R1", lat=48.86 + north_offset_deg(300), lon=2.35,
                      type="Radar fixe", limit_light_kmh=50)
    controller, _, stats, advisories = make_controller(candidates=[radar])
    route = RouteDescriptor(points=((48.85, 2.35), (48.90, 2.35)))

    controller.session.replace_route(route, [radar])
    controller.start_tracking()
    controller.process_sample(sample(48.86, 2.35, 0, speed_mps=10.0))
    controller.process_sample(sample(48.86, 2.35, 1000, speed_mps=10.0))

    assert stats.alerts_emitted == 1
    alerts = [a for a in advisories.active() if a.kind == "alert"]
    assert len(alerts) == 1
    assert alerts[0].identity == "R1"
    assert controller.snapshot()["next_radar"] == "Radar fixe, 300 m, 50 km/h"

    # A new route clears the alert record but not the tracking state
    controller.session.replace_route(route, [radar])
    assert len(controller.session.buffer) == 2
    controller.process_sample(sample(48.86, 2.35, 2000, speed_mps=10.0))
    assert stats.alerts_emitted == 2


async def test_compute_route_success(controller):
    outcome = await controller.compute_route("Gare du Nord")

    assert outcome.ok
    assert outcome.destination.name == "Gare du Nord, Paris"
    assert outcome.route.points[0] == (48.86, 2.35)
    assert [c.id for c in controller.session.route_candidates] == ["R1", "R3"]
    assert outcome.candidates_on_route == 2
    assert outcome.message == "Route computed. 2 radars on the route."
    assert outcome.to_dict()["travel_time"] == "7min, 2.6 km"
    readout = controller.snapshot()["next_radar"]
    assert readout.startswith("Radar fixe, ")
    assert readout.endswith(" m, 50 km/h")


async def test_compute_route_uses_last_position_as_origin(controller):
    controller.start_tracking()
    controller.process_sample(sample(48.861, 2.351, 0))
    outcome = await controller.compute_route("gare du nord")
    assert outcome.route.points[0] == (48.861, 2.351)


async def test_new_route_allows_same_alert_again(controller):
    controller.start_tracking()
    await controller.compute_route("Gare du Nord")
    near_r1 = sample(48.8645, 2.35, 0, speed_mps=10.0)
    controller.process_sample(near_r1)
    assert "R1" in controller.session.alert_state

    await controller.compute_route("Gare du Nord")
    assert "R1" not in controller.session.alert_state
    controller.process_sample(sample(48.8645, 2.35, 1000, speed_mps=10.0))
    assert "R1" in controller.session.alert_state


@pytest.mark.parametrize("query, message", [
    ("", "Enter a destination."),
    ("   ", "Enter a destination."),
    ("nowhere at all", "Destination not found."),
    ("broken", "Error while computing the route."),
    ("island", "Could not compute a route."),
    ("garbled", "Error while computing the route."),
])
async def test_route_failures_keep_previous_state(controller, query, message):
    ok = await controller.compute_route("Gare du Nord")
    assert ok.ok
    previous_route = controller.session.route
    previous_subset = controller.session.route_candidates

    outcome = await controller.compute_route(query)

    assert not outcome.ok
    assert outcome.message == message
    assert controller.session.route is previous_route
    assert controller.session.route_candidates is previous_subset


async def test_candidates_installed_after_route_are_filtered(controller):
    controller.set_candidates([])
    await controller.compute_route("Gare du Nord")
    assert controller.session.route_candidates == []

    controller.set_candidates([Candidate(id="late", lat=48.865, lon=2.35)])
    assert [c.id for c in controller.session.route_candidates] == ["late"]


class HeldGeocoder:
    """Geocoder whose answer for some queries waits until released."""

    def __init__(self, inner, held: dict[str, asyncio.Event]) -> None:
        self._inner = inner
        self._held = held

    async def search(self, query: str):
        gate = self._held.get(query)
        if gate is not None:
            await gate.wait()
        return await self._inner.search(query)


def _controller_with_held_queries(*queries: str):
    _, geocoder, stats, advisories = make_controller()
    gates = {q: asyncio.Event() for q in queries}
    controller = NavigationController(
        config=AppConfig(),
        queue=AsyncioSampleQueue(),
        stats=stats,
        advisories=advisories,
        geocoder=HeldGeocoder(geocoder, gates),
        router=RoutingClient(base_url="http://osrm.test/route/v1/driving",
                             transport=httpx.MockTransport(fake_services)),
    )
    return controller, gates, stats, advisories


async def test_stale_failed_route_request_publishes_nothing():
    controller, gates, stats, advisories = _controller_with_held_queries("nowhere at all")

    stale = asyncio.create_task(controller.compute_route("nowhere at all"))
    await asyncio.sleep(0)
    fresh = await controller.compute_route("Gare du Nord")
    gates["nowhere at all"].set()
    outcome = await stale

    assert fresh.ok
    assert not outcome.ok
    assert outcome.message == "Superseded by a newer request."
    assert [a.message for a in advisories.active() if a.kind == "error"] == []
    assert stats.snapshot()["route_failures"] == 0
    assert controller.session.route is fresh.route


async def test_stale_successful_route_request_does_not_replace_route():
    controller, gates, stats, _ = _controller_with_held_queries("gare du nord")

    stale = asyncio.create_task(controller.compute_route("gare du nord"))
    await asyncio.sleep(0)
    fresh = await controller.compute_route("Gare du Nord")
    gates["gare du nord"].set()
    outcome = await stale

    assert outcome.message == "Superseded by a newer request."
    assert outcome.destination.name == "Gare du Nord, Paris"
    assert controller.session.route is fresh.route
    assert stats.snapshot()["routes_computed"] == 1
