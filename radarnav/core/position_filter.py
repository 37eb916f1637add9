"""Position sample filter: accuracy gate plus rolling buffer of accepted fixes."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import structlog

from radarnav.core.models import AcceptedSample
from radarnav.core.ring import RingBuffer

if TYPE_CHECKING:
    from radarnav.config import FilterConfig
    from radarnav.core.models import RawPositionSample

log = structlog.get_logger()


class PositionSampleFilter:
    """Rejects imprecise fixes and keeps the most recent accepted ones."""

    def __init__(self, config: FilterConfig) -> None:
        self._max_accuracy_m = config.max_accuracy_m
        self.buffer: RingBuffer[AcceptedSample] = RingBuffer(config.buffer_size)

    def accept(self, raw: RawPositionSample) -> AcceptedSample | None:
        """Return the accepted sample, or None when the fix is rejected."""
        if not (math.isfinite(raw.lat) and math.isfinite(raw.lon)):
            log.info("sample_rejected", reason="non_finite_position")
            return None
        if not math.isfinite(raw.accuracy_m) or raw.accuracy_m > self._max_accuracy_m:
            log.info("sample_rejected", reason="low_accuracy", accuracy_m=raw.accuracy_m,
                     max_accuracy_m=self._max_accuracy_m)
            return None

        sample = AcceptedSample.from_raw(raw)
        self.buffer.push(sample)
        return sample

    def reset(self) -> None:
        self.buffer.clear()
