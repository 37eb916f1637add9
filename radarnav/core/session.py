"""Tracking session and navigation controller.

This is the core business logic. It depends on the SampleQueue port and the
service clients passed in, not on concrete implementations.

Each position sample goes filter -> speed + heading -> alert engine and is
processed to completion before the next one. Samples are queued with the
session generation they were submitted under; anything left over from a
stopped session is discarded by the consumer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

import structlog

from radarnav.core.alerts import AlertEngine, AlertState
from radarnav.core.heading import HeadingDisplay, HeadingEstimator, OrientationTracker
from radarnav.core.models import FusedEstimate
from radarnav.core.position_filter import PositionSampleFilter
from radarnav.core.proximity import filter_along_route
from radarnav.core.speed import SpeedDisplay, SpeedEstimator
from radarnav.services.errors import ServiceError

if TYPE_CHECKING:
    from radarnav.config import AppConfig
    from radarnav.core.advisory import AdvisoryBoard
    from radarnav.core.models import (
        Candidate,
        GeocodeResult,
        RawPositionSample,
        RouteDescriptor,
    )
    from radarnav.core.stats import NavigationStats
    from radarnav.queue.base import SampleQueue
    from radarnav.services.geocoding import GeocodingClient
    from radarnav.services.routing import RoutingClient

log = structlog.get_logger()

# Location provider error codes, as reported by the browser geolocation API.
PROVIDER_ERRORS = {
    1: "Location permission denied.",
    2: "Position unavailable. Check that GPS is enabled.",
    3: "Location request timed out.",
}


@dataclass(frozen=True)
class QueuedSample:
    sample: RawPositionSample
    generation: int


@dataclass
class RouteOutcome:
    ok: bool
    message: str
    destination: GeocodeResult | None = None
    route: RouteDescriptor | None = None
    candidates_on_route: int = 0

    def to_dict(self) -> dict:
        result = {"ok": self.ok, "message": self.message,
                  "candidates_on_route": self.candidates_on_route}
        if self.destination is not None:
            result["destination"] = self.destination.to_dict()
        if self.route is not None:
            result["distance_m"] = self.route.distance_m
            result["duration_s"] = self.route.duration_s
            result["travel_time"] = self.route.travel_time_text()
        return result


class TrackingSession:
    """All per-session navigation state, owned by one controller."""

    def __init__(self, config: AppConfig) -> None:
        self.active = False
        self.generation = 0
        self.provider_failed = False

        self.filter = PositionSampleFilter(config.filter)
        self.speed = SpeedEstimator(config.speed)
        self.heading = HeadingEstimator(config.heading)
        self.speed_display = SpeedDisplay(config.speed.display_window)
        self.heading_display = HeadingDisplay(config.heading)
        self.orientation = OrientationTracker(config.heading)
        self.last_fused: FusedEstimate | None = None

        self.route: RouteDescriptor | None = None
        self.route_candidates: list[Candidate] = []
        self.alert_state = AlertState()

    @property
    def buffer(self):
        return self.filter.buffer

    @property
    def last_speed_kmh(self) -> float | None:
        return self.last_fused.speed_kmh if self.last_fused else None

    def reset_tracking(self) -> None:
        """Clear sample buffers and estimator memory; route state is kept."""
        self.filter.reset()
        self.speed.reset()
        self.heading.reset()
        self.speed_display.reset()
        self.heading_display.reset()
        self.provider_failed = False

    def replace_route(self, route: RouteDescriptor, candidates: list[Candidate]) -> None:
        """Swap the route, its candidate subset and the alert record in one step."""
        self.route = route
        self.route_candidates = candidates
        self.alert_state = AlertState()


class NavigationController:
    """Runs the sample pipeline and the route lifecycle for one session."""

    def __init__(
        self,
        config: AppConfig,
        queue: SampleQueue,
        stats: NavigationStats,
        advisories: AdvisoryBoard,
        geocoder: GeocodingClient | None = None,
        router: RoutingClient | None = None,
        candidates: Sequence[Candidate] = (),
    ) -> None:
        self._config = config
        self._queue = queue
        self._stats = stats
        self._advisories = advisories
        self._geocoder = geocoder
        self._router = router
        self._route_request = 0
        self.candidates: tuple[Candidate, ...] = tuple(candidates)
        self.session = TrackingSession(config)
        self.alerts = AlertEngine(config.alerts.radius_m)

    # -- lifecycle ---------------------------------------------------------

    def start_tracking(self) -> bool:
        """Start a session. Returns False if one is already running."""
        session = self.session
        if session.active and not session.provider_failed:
            log.debug("tracking_already_active", generation=session.generation)
            return False
        session.reset_tracking()
        session.generation += 1
        session.active = True
        log.info("tracking_started", generation=session.generation)
        self._advisories.publish("GPS tracking started.")
        return True

    def stop_tracking(self) -> bool:
        session = self.session
        if not session.active:
            return False
        session.active = False
        session.orientation.disable()
        session.reset_tracking()
        log.info("tracking_stopped", generation=session.generation)
        self._advisories.publish("GPS tracking stopped.")
        return True

    def enable_orientation(self) -> None:
        self.session.orientation.enable()
        log.info("orientation_enabled")
        self._advisories.publish("Gyroscope enabled.")

    def disable_orientation(self) -> None:
        self.session.orientation.disable()
        log.info("orientation_disabled")
        self._advisories.publish("Gyroscope disabled.")

    def set_candidates(self, candidates: Sequence[Candidate]) -> None:
        """Install the full candidate set (loaded once at startup)."""
        self.candidates = tuple(candidates)
        route = self.session.route
        if route is not None:
            subset = filter_along_route(self.candidates, route.points,
                                        self._config.route.buffer_km,
                                        self._config.route.bbox_padding)
            self.session.route_candidates = subset
        log.info("candidates_installed", count=len(self.candidates))

    # -- location provider -------------------------------------------------

    async def submit(self, sample: RawPositionSample) -> bool:
        """Queue a sample for processing. False when tracking is not running."""
        session = self.session
        self._stats.record_received()
        if not session.active or session.provider_failed:
            self._stats.record_dropped()
            return False
        await self._queue.put(QueuedSample(sample=sample, generation=session.generation))
        self._stats.update_queue_depth(self._queue.qsize())
        return True

    async def run_sample_consumer(self) -> None:
        """Consume queued samples one at a time. Runs as a background task."""
        log.info("sample_consumer_started")
        while True:
            item = await self._queue.get()
            self._handle_queued(item)

    async def drain(self) -> int:
        """Process every sample currently queued; returns how many were handled."""
        handled = 0
        while True:
            item = self._queue.get_nowait()
            if item is None:
                return handled
            self._handle_queued(item)
            handled += 1

    def _handle_queued(self, item: QueuedSample) -> None:
        try:
            self.process_sample(item.sample, generation=item.generation)
        except Exception:
            log.error("sample_processing_failed", exc_info=True)
        self._stats.update_queue_depth(self._queue.qsize())

    def process_sample(
        self, raw: RawPositionSample, generation: int | None = None,
    ) -> FusedEstimate | None:
        """Run one sample through the pipeline; None when nothing is produced."""
        session = self.session
        if (not session.active or session.provider_failed
                or (generation is not None and generation != session.generation)):
            self._stats.record_dropped()
            log.debug("sample_dropped", generation=generation, current=session.generation)
            return None

        accepted = session.filter.accept(raw)
        if accepted is None:
            self._stats.record_rejected()
            return None
        self._stats.record_accepted()

        now_ms = accepted.timestamp_ms
        speed = session.speed.estimate(session.buffer, accepted.speed_mps, now_ms)
        orientation = session.orientation
        heading = session.heading.estimate(
            session.buffer,
            accepted.heading_deg,
            speed,
            orientation.heading,
            orientation.usable,
            now_ms,
        )

        fused = FusedEstimate(
            lat=accepted.lat,
            lon=accepted.lon,
            speed_kmh=speed,
            heading_deg=heading,
            accuracy_m=accepted.accuracy_m,
            timestamp_ms=now_ms,
        )
        session.last_fused = fused
        session.speed_display.update(speed)
        session.heading_display.update(heading)

        log.debug("fused_estimate", accuracy_m=fused.accuracy_m,
                  speed_kmh=None if speed is None else round(speed, 2),
                  heading_deg=None if heading is None else round(heading, 1))

        if session.route is not None:
            alert = self.alerts.on_progress(
                fused.lat, fused.lon, session.route_candidates, session.alert_state, speed)
            if alert is not None:
                self._stats.record_alert()
                self._advisories.publish(alert.message, identity=alert.candidate_id,
                                         spoken=alert.spoken, kind="alert")
        return fused

    def on_provider_error(self, code: int, detail: str = "") -> str:
        """Location provider failure: no more samples until tracking restarts."""
        message = PROVIDER_ERRORS.get(code, "Location error.")
        self._stats.record_provider_error()
        if self.session.active:
            self.session.provider_failed = True
        log.warning("location_provider_error", code=code, detail=detail)
        self._advisories.publish(message, kind="error")
        return message

    # -- orientation provider ----------------------------------------------

    def on_orientation(self, alpha: float, invert: bool = False) -> float | None:
        """Overwrite the latest orientation heading. Ignored while not tracking."""
        session = self.session
        if not session.active:
            return None
        self._stats.record_orientation()
        return session.orientation.on_orientation(
            alpha,
            reference_heading=session.heading.last_heading,
            speed_kmh=session.last_speed_kmh,
            invert=invert,
        )

    # -- routing -----------------------------------------------------------

    def origin(self) -> tuple[float, float]:
        fused = self.session.last_fused
        if fused is not None:
            return fused.lat, fused.lon
        cfg = self._config.route
        return cfg.default_origin_lat, cfg.default_origin_lon

    def _fail(self, message: str, destination: GeocodeResult | None = None) -> RouteOutcome:
        self._stats.record_route(ok=False)
        self._advisories.publish(message, kind="error")
        return RouteOutcome(ok=False, message=message, destination=destination)

    def _superseded(self, query: str,
                    destination: GeocodeResult | None = None) -> RouteOutcome:
        # A newer request owns the route and the advisories; stay silent.
        log.info("route_superseded", query=query)
        return RouteOutcome(ok=False, message="Superseded by a newer request.",
                            destination=destination)

    async def compute_route(self, query: str) -> RouteOutcome:
        """Geocode ``query``, route to the best match and rebuild route state.

        Any failure leaves the previous route, candidate subset and alert
        record untouched.
        """
        query = query.strip()
        if not query:
            return self._fail("Enter a destination.")
        if self._geocoder is None or self._router is None:
            return self._fail("Routing is not available.")

        self._route_request += 1
        request_id = self._route_request

        try:
            results = await self._geocoder.search(query)
        except ServiceError as exc:
            log.warning("route_geocode_failed", error=str(exc))
            results = []
        if request_id != self._route_request:
            return self._superseded(query)
        if not results:
            return self._fail("Destination not found.")

        best = results[0]
        origin = self.origin()
        try:
            route = await self._router.route(origin, (best.lat, best.lon))
        except ServiceError as exc:
            log.warning("route_failed", error=str(exc), destination=best.name)
            route = None
            failure = "Error while computing the route."
        else:
            failure = "Could not compute a route."
        if request_id != self._route_request:
            return self._superseded(query, best)
        if route is None:
            return self._fail(failure, best)

        subset = filter_along_route(self.candidates, route.points,
                                    self._config.route.buffer_km,
                                    self._config.route.bbox_padding)
        self.session.replace_route(route, subset)
        self.alerts.reset()
        fused = self.session.last_fused
        here = (fused.lat, fused.lon) if fused is not None else origin
        self.alerts.update_next(here[0], here[1], subset)

        self._stats.record_route(ok=True)
        message = f"Route computed. {len(subset)} radars on the route."
        self._advisories.publish(message)
        log.info("route_computed", destination=best.name, points=len(route.points),
                 distance_m=route.distance_m, candidates=len(subset))
        return RouteOutcome(ok=True, message=message, destination=best, route=route,
                            candidates_on_route=len(subset))

    # -- readouts ----------------------------------------------------------

    def snapshot(self) -> dict:
        """JSON-serializable view of the current session for the client."""
        session = self.session
        orientation = session.orientation
        route = session.route
        next_candidate = self.alerts.next_candidate if route is not None else None
        device_kmh = session.speed.last_device_kmh
        return {
            "tracking": {
                "active": session.active,
                "generation": session.generation,
                "provider_failed": session.provider_failed,
                "buffered_samples": len(session.buffer),
                "device_speed_kmh": None if device_kmh is None else round(device_kmh, 2),
            },
            "orientation": {
                "enabled": orientation.enabled,
                "calibrated": orientation.calibrated,
                "usable": orientation.usable,
                "heading_deg": orientation.heading,
            },
            "estimate": session.last_fused.to_dict() if session.last_fused else None,
            "display": {
                "speed": session.speed_display.text(),
                "speed_kmh": session.speed_display.value,
                "heading": session.heading_display.text(),
                "heading_deg": session.heading_display.value,
                "heading_revision": session.heading_display.revision,
            },
            "route": None if route is None else {
                "points": len(route.points),
                "distance_m": route.distance_m,
                "duration_s": route.duration_s,
                "travel_time": route.travel_time_text(),
                "candidates": len(session.route_candidates),
                "alerted": len(session.alert_state),
            },
            "next_radar": next_candidate.readout() if next_candidate else "—",
            "advisories": [a.to_dict() for a in self._advisories.active()],
        }
