"""Alert engine: one-shot "radar ahead" alerts along the current route."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import structlog

from radarnav.core.geo import haversine_m
from radarnav.core.models import Alert, NextCandidate

if TYPE_CHECKING:
    from radarnav.core.models import Candidate

log = structlog.get_logger()

# Alert radius in meters.
ALERT_RADIUS_M = 500.0


class AlertState:
    """Candidate identities already alerted for the current route."""

    def __init__(self) -> None:
        self._alerted: set[str] = set()

    def __contains__(self, key: str) -> bool:
        return key in self._alerted

    def __len__(self) -> int:
        return len(self._alerted)

    def add(self, key: str) -> None:
        self._alerted.add(key)

    def clear(self) -> None:
        self._alerted.clear()


def rank_candidates(
    lat: float, lon: float, candidates: Sequence[Candidate],
) -> list[tuple[Candidate, float]]:
    """Candidates with their distance in meters, nearest first.

    ``sorted`` is stable, so equal distances keep the input order.
    """
    ranked = [(c, haversine_m(lat, lon, c.lat, c.lon)) for c in candidates]
    return sorted(ranked, key=lambda item: item[1])


def format_alert(candidate: Candidate, distance_m: float, speed_kmh: float | None) -> Alert:
    distance = round(distance_m)
    limit = (f"{candidate.limit_light_kmh} km/h" if candidate.limit_light_kmh
             else "unspecified speed limit")
    speed = f"{round(speed_kmh)} km/h" if speed_kmh else "—"
    radar = f"Radar {candidate.type}" if candidate.type else "Radar"
    spoken_limit = candidate.limit_light_kmh or "unspecified"
    return Alert(
        candidate_id=candidate.key,
        distance_m=distance,
        message=f"⚠️ {radar} in {distance} m - limit {limit}. Speed {speed}.",
        spoken=f"Warning. Radar in {distance} meters. Limit {spoken_limit}.",
    )


class AlertEngine:
    """Emits at most one alert per candidate identity per route."""

    def __init__(self, radius_m: float = ALERT_RADIUS_M) -> None:
        self._radius_m = radius_m
        self.next_candidate: NextCandidate | None = None
        # Candidate id -> distance (m) from the last position checked.
        self.distances: dict[str, float] = {}

    def update_next(
        self, lat: float, lon: float, candidates: Sequence[Candidate],
    ) -> list[tuple[Candidate, float]]:
        """Refresh the nearest-candidate readout; returns the full ranking."""
        ranked = rank_candidates(lat, lon, candidates)
        self.distances = {c.key: d for c, d in ranked}
        self.next_candidate = NextCandidate(*ranked[0]) if ranked else None
        return ranked

    def on_progress(
        self,
        lat: float,
        lon: float,
        candidates: Sequence[Candidate],
        state: AlertState,
        speed_kmh: float | None = None,
    ) -> Alert | None:
        ranked = self.update_next(lat, lon, candidates)
        ahead = [(c, d) for c, d in ranked if d <= self._radius_m]
        if not ahead:
            return None

        candidate, distance = ahead[0]
        if candidate.key in state:
            return None

        state.add(candidate.key)
        alert = format_alert(candidate, distance, speed_kmh)
        log.info("alert_emitted", candidate=candidate.key, distance_m=alert.distance_m,
                 type=candidate.type)
        return alert

    def reset(self) -> None:
        self.next_candidate = None
        self.distances = {}
