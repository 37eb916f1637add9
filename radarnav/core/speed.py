"""Speed estimation.

Fuses the speed reported by the location provider with a speed derived from
successive buffered fixes:

1. Derived speed: mean of the pairwise displacement speeds over the last
   ``window`` samples. Only pairs between ``min_pair_s`` and ``max_pair_s``
   apart with more than ``min_pair_distance_m`` of displacement count, which
   drops duplicate timestamps, stale gaps and jitter at rest.
   The mean is clamped at ``max_speed_kmh``: an outlier pair is averaged in
   and clamped with the others, not discarded on its own.
2. Device speed: provider speed converted to km/h, used when 0..max_speed_kmh.
3. Both present and within ``agreement_kmh``: weighted blend. Disagreement or
   device-only: device speed. Derived-only: derived speed.
4. Neither: decay the last device speed while it is fresh.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from radarnav.core.geo import haversine_m
from radarnav.core.ring import RingBuffer

if TYPE_CHECKING:
    from radarnav.config import SpeedConfig
    from radarnav.core.models import AcceptedSample

log = structlog.get_logger()

MPS_TO_KMH = 3.6


class SpeedEstimator:

    def __init__(self, config: SpeedConfig) -> None:
        self._cfg = config
        self._last_device_kmh: float | None = None
        self._last_device_ms: int | None = None

    @property
    def last_device_kmh(self) -> float | None:
        return self._last_device_kmh

    def derived_speed(self, buffer: RingBuffer[AcceptedSample]) -> float | None:
        """Displacement speed in km/h, or None when too few valid pairs exist."""
        cfg = self._cfg
        if len(buffer) < cfg.window:
            return None

        recent = buffer.last(cfg.window)
        speeds: list[float] = []
        for prev, curr in zip(recent, recent[1:]):
            elapsed_s = (curr.timestamp_ms - prev.timestamp_ms) / 1000
            if not (cfg.min_pair_s < elapsed_s < cfg.max_pair_s):
                continue
            distance = haversine_m(prev.lat, prev.lon, curr.lat, curr.lon)
            if distance <= cfg.min_pair_distance_m:
                continue
            speeds.append(distance / elapsed_s * MPS_TO_KMH)

        if not speeds or len(speeds) < cfg.min_valid_pairs:
            return None
        return min(sum(speeds) / len(speeds), cfg.max_speed_kmh)

    def device_speed(self, speed_mps: float | None) -> float | None:
        if speed_mps is None or speed_mps < 0:
            return None
        kmh = speed_mps * MPS_TO_KMH
        if kmh > self._cfg.max_speed_kmh:
            log.debug("device_speed_implausible", speed_kmh=round(kmh, 1))
            return None
        return kmh

    def estimate(
        self,
        buffer: RingBuffer[AcceptedSample],
        device_speed_mps: float | None,
        now_ms: int,
    ) -> float | None:
        """Fused speed in km/h, or None when unknown."""
        cfg = self._cfg
        derived = self.derived_speed(buffer)
        device = self.device_speed(device_speed_mps)

        if device is not None:
            self._last_device_kmh = device
            self._last_device_ms = now_ms
            if derived is not None and abs(device - derived) < cfg.agreement_kmh:
                return device * cfg.device_weight + derived * (1 - cfg.device_weight)
            return device

        if derived is not None:
            return derived

        if self._last_device_kmh is not None and self._last_device_ms is not None:
            age_s = (now_ms - self._last_device_ms) / 1000
            if 0 <= age_s < cfg.decay_window_s:
                # Compounds on every update without fresh data; the window
                # is still anchored to the last real device reading.
                self._last_device_kmh *= cfg.decay_factor
                return self._last_device_kmh
        return None

    def reset(self) -> None:
        self._last_device_kmh = None
        self._last_device_ms = None


class SpeedDisplay:
    """User-facing readout: rolling mean of the last emitted speeds."""

    def __init__(self, window: int = 2) -> None:
        self._values: RingBuffer[float] = RingBuffer(window)
        self.value: int | None = None

    def update(self, speed_kmh: float | None) -> int | None:
        if speed_kmh is None:
            return self.value
        self._values.push(speed_kmh)
        self.value = round(sum(self._values) / len(self._values))
        return self.value

    def text(self) -> str:
        return "—" if self.value is None else f"{self.value} km/h"

    def reset(self) -> None:
        self._values.clear()
        self.value = None
