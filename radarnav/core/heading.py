"""Heading estimation, display smoothing and orientation-sensor calibration.

Headings are degrees clockwise from north, normalised to [0, 360). Any
averaging goes through unit vectors so that 350 and 10 average to 0, not 180.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable

import structlog

from radarnav.core.geo import angle_diff_deg, bearing_deg, haversine_m, normalize_deg
from radarnav.core.ring import RingBuffer

if TYPE_CHECKING:
    from radarnav.config import HeadingConfig
    from radarnav.core.models import AcceptedSample

log = structlog.get_logger()


def circular_mean(headings: Iterable[float]) -> float | None:
    """Mean direction of a set of headings, or None for an empty set."""
    sum_sin = sum_cos = 0.0
    count = 0
    for h in headings:
        rad = math.radians(h)
        sum_sin += math.sin(rad)
        sum_cos += math.cos(rad)
        count += 1
    if count == 0:
        return None
    return normalize_deg(math.degrees(math.atan2(sum_sin, sum_cos)))


class HeadingEstimator:
    """Picks the best available heading source for the current fix.

    While moving: device heading, then displacement bearing, then the
    calibrated orientation sensor, then a recent last-known heading.
    While stopped the last known heading is held as is.
    """

    def __init__(self, config: HeadingConfig) -> None:
        self._cfg = config
        self._last_heading: float | None = None
        self._last_heading_ms: int | None = None

    @property
    def last_heading(self) -> float | None:
        return self._last_heading

    def _record(self, heading: float, now_ms: int) -> float:
        self._last_heading = heading
        self._last_heading_ms = now_ms
        return heading

    def displacement_bearing(self, buffer: RingBuffer[AcceptedSample]) -> float | None:
        lookback = self._cfg.lookback
        if len(buffer) <= lookback:
            return None
        prev, curr = buffer[-1 - lookback], buffer[-1]
        if haversine_m(prev.lat, prev.lon, curr.lat, curr.lon) <= self._cfg.min_displacement_m:
            return None
        return bearing_deg(prev.lat, prev.lon, curr.lat, curr.lon)

    def estimate(
        self,
        buffer: RingBuffer[AcceptedSample],
        device_heading: float | None,
        speed_kmh: float | None,
        gyro_heading: float | None,
        gyro_enabled: bool,
        now_ms: int,
    ) -> float | None:
        cfg = self._cfg
        if speed_kmh is None:
            return None
        if speed_kmh <= cfg.motion_kmh:
            return self._last_heading

        if device_heading is not None and device_heading >= 0:
            return self._record(normalize_deg(device_heading), now_ms)

        bearing = self.displacement_bearing(buffer)
        if bearing is not None:
            return self._record(bearing, now_ms)

        if gyro_enabled and gyro_heading is not None:
            return gyro_heading

        if self._last_heading is not None and self._last_heading_ms is not None:
            if now_ms - self._last_heading_ms < cfg.hold_s * 1000:
                return self._last_heading
        return None

    def reset(self) -> None:
        self._last_heading = None
        self._last_heading_ms = None


class HeadingDisplay:
    """User-facing heading readout.

    Drops single-sample glitches, averages the last few headings as unit
    vectors and only moves the displayed value by at least ``display_step_deg``.
    """

    def __init__(self, config: HeadingConfig) -> None:
        self._cfg = config
        self._values: RingBuffer[float] = RingBuffer(config.display_window)
        self.value: int | None = None
        # Bumped every time the displayed value moves (marker rotation).
        self.revision = 0

    def update(self, heading: float | None) -> int | None:
        if heading is None or not math.isfinite(heading):
            return self.value
        cfg = self._cfg
        normalized = normalize_deg(heading)

        if self.value is not None and len(self._values) > cfg.glitch_min_buffer:
            diff = angle_diff_deg(normalized, self.value)
            if diff > cfg.glitch_deg:
                log.debug("heading_glitch_ignored", heading=round(normalized, 1),
                          displayed=self.value, diff=round(diff, 1))
                return self.value

        self._values.push(normalized)
        mean = circular_mean(self._values) if len(self._values) > 1 else normalized
        display = round(mean) % 360

        if self.value is None or angle_diff_deg(display, self.value) >= cfg.display_step_deg:
            self.value = display
            self.revision += 1
        return self.value

    def text(self) -> str:
        return "—" if self.value is None else f"{self.value}°"

    def reset(self) -> None:
        self._values.clear()
        self.value = None


class OrientationTracker:
    """Holds the latest orientation-sensor heading (single writer slot).

    The sensor is relative to the device, so the first reading taken while a
    GPS heading is known and the vehicle moves faster than
    ``calibration_min_kmh`` fixes the offset applied to every later reading.
    """

    def __init__(self, config: HeadingConfig) -> None:
        self._min_kmh = config.calibration_min_kmh
        self.enabled = False
        self.calibrated = False
        self.offset_deg = 0.0
        self.heading: float | None = None

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False
        self.reset()

    def reset(self) -> None:
        self.heading = None
        self.calibrated = False
        self.offset_deg = 0.0

    @property
    def usable(self) -> bool:
        return self.enabled and self.calibrated and self.heading is not None

    def on_orientation(
        self,
        alpha: float,
        reference_heading: float | None,
        speed_kmh: float | None,
        invert: bool = False,
    ) -> float | None:
        if not self.enabled or alpha is None or not math.isfinite(alpha):
            return None
        heading = normalize_deg(360 - alpha if invert else alpha)

        if (not self.calibrated and reference_heading is not None
                and speed_kmh is not None and speed_kmh > self._min_kmh):
            self.offset_deg = reference_heading - heading
            self.calibrated = True
            log.info("orientation_calibrated", offset_deg=round(self.offset_deg, 1))

        if self.calibrated:
            heading = normalize_deg(heading + self.offset_deg)
        self.heading = heading
        return heading
