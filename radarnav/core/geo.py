"""Geometry helpers on a spherical Earth. No state."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

# Earth radius in meters (for Haversine).
EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two points."""
    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial great-circle bearing from point 1 to point 2, in [0, 360)."""
    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlon = math.radians(lon2 - lon1)
    y = math.sin(dlon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(dlon)
    return normalize_deg(math.degrees(math.atan2(y, x)))


def normalize_deg(degrees: float) -> float:
    return degrees % 360.0


def angle_diff_deg(a: float, b: float) -> float:
    """Smallest absolute difference between two angles, in [0, 180]."""
    d = abs(normalize_deg(a) - normalize_deg(b)) % 360.0
    return 360.0 - d if d > 180.0 else d


def point_to_segment_m(
    lat: float, lon: float,
    lat_a: float, lon_a: float,
    lat_b: float, lon_b: float,
) -> float:
    """Distance from a point to segment A-B, in meters.

    The projection parameter is computed in plain lon/lat space and clamped to
    [0, 1]; the distance to the projected point is then a true haversine.
    """
    abx, aby = lon_b - lon_a, lat_b - lat_a
    apx, apy = lon - lon_a, lat - lat_a
    ab2 = abx * abx + aby * aby
    t = (apx * abx + apy * aby) / ab2 if ab2 else 0.0
    t = max(0.0, min(1.0, t))
    return haversine_m(lat, lon, lat_a + t * aby, lon_a + t * abx)


@dataclass(frozen=True)
class BoundingBox:
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def around(cls, points: Sequence[tuple[float, float]]) -> BoundingBox:
        lats = [p[0] for p in points]
        lons = [p[1] for p in points]
        return cls(south=min(lats), west=min(lons), north=max(lats), east=max(lons))

    def pad(self, ratio: float, min_margin_m: float = 0.0) -> BoundingBox:
        """Grow each side by ``ratio`` of the box extent, and by at least ``min_margin_m``."""
        lat_pad = (self.north - self.south) * ratio
        lon_pad = (self.east - self.west) * ratio
        if min_margin_m > 0:
            deg_per_m = 1.0 / (EARTH_RADIUS_M * math.pi / 180.0)
            mid_lat = math.radians((self.north + self.south) / 2)
            lat_pad = max(lat_pad, min_margin_m * deg_per_m)
            lon_pad = max(lon_pad, min_margin_m * deg_per_m / max(math.cos(mid_lat), 1e-6))
        return BoundingBox(
            south=self.south - lat_pad,
            west=self.west - lon_pad,
            north=self.north + lat_pad,
            east=self.east + lon_pad,
        )

    def contains(self, lat: float, lon: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lon <= self.east
