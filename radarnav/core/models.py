"""RadarNav core internal data models.

These are plain dataclasses with no framework dependencies.
JSON payloads are converted to/from these at the API boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RawPositionSample:
    """One observation from the location provider."""
    lat: float
    lon: float
    accuracy_m: float
    timestamp_ms: int
    speed_mps: float | None = None
    heading_deg: float | None = None


@dataclass(frozen=True)
class AcceptedSample:
    lat: float
    lon: float
    accuracy_m: float
    timestamp_ms: int
    speed_mps: float | None = None
    heading_deg: float | None = None

    @classmethod
    def from_raw(cls, raw: RawPositionSample) -> AcceptedSample:
        speed = raw.speed_mps
        if speed is not None and not math.isfinite(speed):
            speed = None
        heading = raw.heading_deg
        if heading is not None and not math.isfinite(heading):
            heading = None
        return cls(
            lat=float(raw.lat),
            lon=float(raw.lon),
            accuracy_m=float(raw.accuracy_m),
            timestamp_ms=int(raw.timestamp_ms),
            speed_mps=speed,
            heading_deg=heading,
        )


@dataclass(frozen=True)
class FusedEstimate:
    lat: float
    lon: float
    speed_kmh: float | None
    heading_deg: float | None
    accuracy_m: float
    timestamp_ms: int

    def to_dict(self) -> dict:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "speed_kmh": None if self.speed_kmh is None else round(self.speed_kmh, 2),
            "heading_deg": None if self.heading_deg is None else round(self.heading_deg, 1),
            "accuracy_m": self.accuracy_m,
            "timestamp_ms": self.timestamp_ms,
        }


@dataclass(frozen=True)
class RouteDescriptor:
    points: tuple[tuple[float, float], ...]
    distance_m: float = 0.0
    duration_s: float = 0.0

    def travel_time_text(self) -> str:
        """Human-readable duration and distance, e.g. "1h 5min, 84.2 km"."""
        if not self.duration_s:
            return "—"
        hours = int(self.duration_s // 3600)
        minutes = int((self.duration_s % 3600) // 60)
        time_text = f"{hours}h {minutes}min" if hours > 0 else f"{minutes}min"
        distance_text = f"{self.distance_m / 1000:.1f} km" if self.distance_m else "—"
        return f"{time_text}, {distance_text}"


@dataclass(frozen=True)
class Candidate:
    """A fixed-location point of interest (speed camera)."""
    id: str
    lat: float
    lon: float
    type: str = ""
    road: str = ""
    town: str = ""
    department: str = ""
    limit_light_kmh: int | None = None
    limit_heavy_kmh: int | None = None

    @property
    def key(self) -> str:
        """Stable identity used for alert deduplication."""
        return self.id or f"{self.lat},{self.lon}"

    def to_geojson_feature(self) -> dict:
        return {
            "type": "Feature",
            "geometry": {
                "type": "Point",
                "coordinates": [round(self.lon, 6), round(self.lat, 6)],
            },
            "properties": {
                "id": self.key,
                "type": self.type or "Radar",
                "road": self.road,
                "town": self.town,
                "department": self.department,
                "limit_light_kmh": self.limit_light_kmh,
                "limit_heavy_kmh": self.limit_heavy_kmh,
            },
        }


@dataclass(frozen=True)
class Alert:
    candidate_id: str
    distance_m: int
    message: str
    spoken: str


@dataclass(frozen=True)
class NextCandidate:
    candidate: Candidate
    distance_m: float

    def readout(self) -> str:
        limit = f"{self.candidate.limit_light_kmh} km/h" if self.candidate.limit_light_kmh else "—"
        return f"{self.candidate.type or 'Radar'}, {round(self.distance_m)} m, {limit}"


@dataclass(frozen=True)
class GeocodeResult:
    name: str
    lat: float
    lon: float
    kind: str = "address"  # "address" or "poi"
    properties: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"name": self.name, "lat": self.lat, "lon": self.lon, "kind": self.kind}
