"""Advisory output: transient user-facing messages.

Messages stay visible for ``ttl_seconds`` and may carry a spoken variant.
Nothing here is persisted.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass

import structlog

log = structlog.get_logger()


@dataclass(frozen=True)
class Advisory:
    seq: int
    message: str
    created_at: float         # time.monotonic() timestamp
    expires_at: float
    identity: str | None = None
    spoken: str | None = None
    kind: str = "info"        # "info", "alert" or "error"

    def to_dict(self) -> dict:
        return {
            "seq": self.seq,
            "message": self.message,
            "spoken": self.spoken,
            "identity": self.identity,
            "kind": self.kind,
        }


class AdvisoryBoard:
    """Keeps the most recent advisories; expired ones are hidden, not deleted."""

    def __init__(self, ttl_seconds: float = 6.0, history: int = 50) -> None:
        self._ttl = ttl_seconds
        self._items: deque[Advisory] = deque(maxlen=history)
        self._next_seq = 1

    def publish(self, message: str, *, identity: str | None = None,
                spoken: str | None = None, kind: str = "info",
                now: float | None = None) -> Advisory:
        now = time.monotonic() if now is None else now
        advisory = Advisory(
            seq=self._next_seq,
            message=message,
            created_at=now,
            expires_at=now + self._ttl,
            identity=identity,
            spoken=spoken if spoken is not None else message,
            kind=kind,
        )
        self._next_seq += 1
        self._items.append(advisory)
        log.info("advisory", kind=kind, message=message, identity=identity)
        return advisory

    def active(self, now: float | None = None) -> list[Advisory]:
        now = time.monotonic() if now is None else now
        return [a for a in self._items if a.expires_at > now]
