"""Speed-camera candidate loading.

The public dataset is a CSV whose column names vary between exports, so each
field is read from the first non-empty of several aliases. Rows without finite
coordinates are dropped.
"""

from __future__ import annotations

import csv
import io
import math
from pathlib import Path
from typing import Iterable

import httpx
import structlog

from radarnav.core.models import Candidate
from radarnav.services.errors import ServiceError

log = structlog.get_logger()

_ID_KEYS = ("id", "ID")
_LAT_KEYS = ("latitude", "lat", "Latitude", "y")
_LON_KEYS = ("longitude", "lon", "Longitude", "x")
_TYPE_KEYS = ("type", "Type", "equipement")
_ROAD_KEYS = ("route", "Route")
_TOWN_KEYS = ("commune", "localisation")
_DEPT_KEYS = ("departement", "departement_code")
_LIGHT_KEYS = ("vitesse_vehicules_legers_kmh", "Vitesse", "vitesse")
_HEAVY_KEYS = ("vitesse_poids_lourds_kmh", "Vitesse_PL", "vitesse_pl")


def _first(row: dict, keys: Iterable[str]) -> str:
    for k in keys:
        v = row.get(k)
        if v not in (None, ""):
            return str(v).strip()
    return ""


def _to_float(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return math.nan


def _to_limit(value: str) -> int | None:
    """Leading integer of ``value``; 0 and unparsable values mean "unknown"."""
    digits = ""
    for ch in value.strip():
        if ch.isdigit() or (ch == "-" and not digits):
            digits += ch
        else:
            break
    try:
        limit = int(digits)
    except ValueError:
        return None
    return limit or None


def parse_candidate_row(row: dict) -> Candidate | None:
    lat = _to_float(_first(row, _LAT_KEYS))
    lon = _to_float(_first(row, _LON_KEYS))
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return Candidate(
        id=_first(row, _ID_KEYS),
        lat=lat,
        lon=lon,
        type=_first(row, _TYPE_KEYS),
        road=_first(row, _ROAD_KEYS),
        town=_first(row, _TOWN_KEYS),
        department=_first(row, _DEPT_KEYS),
        limit_light_kmh=_to_limit(_first(row, _LIGHT_KEYS)),
        limit_heavy_kmh=_to_limit(_first(row, _HEAVY_KEYS)),
    )


def parse_candidates_csv(text: str) -> list[Candidate]:
    """Parse the candidate CSV, dropping malformed rows."""
    reader = csv.DictReader(io.StringIO(text))
    candidates: list[Candidate] = []
    dropped = 0
    for row in reader:
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        candidate = parse_candidate_row(row)
        if candidate is None:
            dropped += 1
            continue
        candidates.append(candidate)
    log.info("candidates_parsed", loaded=len(candidates), dropped=dropped)
    return candidates


class CandidateLoader:
    """Loads the full candidate set once, from a local file or over HTTP."""

    def __init__(
        self,
        *,
        url: str = "",
        path: str | Path = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.path = Path(path) if path else None
        self.timeout = timeout
        self._transport = transport

    async def load(self) -> list[Candidate]:
        if self.path is not None:
            try:
                text = self.path.read_text(encoding="utf-8-sig")
            except OSError as exc:
                raise ServiceError(f"cannot read candidates file {self.path}") from exc
            return parse_candidates_csv(text)

        if not self.url:
            return []
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport, follow_redirects=True,
            ) as client:
                response = await client.get(self.url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            log.error("candidates_download_failed", url=self.url, error=str(exc))
            raise ServiceError("Candidate download failed") from exc
        return parse_candidates_csv(response.text)
