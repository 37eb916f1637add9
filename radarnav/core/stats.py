"""Navigation statistics.

In-memory counters for the sample pipeline and the external services.
No framework dependencies.
"""

from __future__ import annotations

import threading
import time


class NavigationStats:
    """Thread-safe counters exposed by the monitoring endpoints."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()

        # Counters
        self.samples_received: int = 0
        self.samples_accepted: int = 0
        self.samples_rejected: int = 0
        self.samples_dropped: int = 0
        self.orientation_updates: int = 0
        self.alerts_emitted: int = 0
        self.routes_computed: int = 0
        self.route_failures: int = 0
        self.provider_errors: int = 0
        self.queue_depth: int = 0
        self.queue_max_depth: int = 0

    def record_received(self, count: int = 1) -> None:
        with self._lock:
            self.samples_received += count

    def record_accepted(self) -> None:
        with self._lock:
            self.samples_accepted += 1

    def record_rejected(self) -> None:
        with self._lock:
            self.samples_rejected += 1

    def record_dropped(self, count: int = 1) -> None:
        """Samples discarded because tracking was stopped or the provider failed."""
        with self._lock:
            self.samples_dropped += count

    def record_orientation(self) -> None:
        with self._lock:
            self.orientation_updates += 1

    def record_alert(self) -> None:
        with self._lock:
            self.alerts_emitted += 1

    def record_route(self, ok: bool) -> None:
        with self._lock:
            if ok:
                self.routes_computed += 1
            else:
                self.route_failures += 1

    def record_provider_error(self) -> None:
        with self._lock:
            self.provider_errors += 1

    def update_queue_depth(self, depth: int) -> None:
        with self._lock:
            self.queue_depth = depth
            if depth > self.queue_max_depth:
                self.queue_max_depth = depth

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        with self._lock:
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "samples_received": self.samples_received,
                "samples_accepted": self.samples_accepted,
                "samples_rejected": self.samples_rejected,
                "samples_dropped": self.samples_dropped,
                "orientation_updates": self.orientation_updates,
                "alerts_emitted": self.alerts_emitted,
                "routes_computed": self.routes_computed,
                "route_failures": self.route_failures,
                "provider_errors": self.provider_errors,
                "queue_depth": self.queue_depth,
                "queue_max_depth_ever": self.queue_max_depth,
            }
