"""Tests for the HTTP API."""

from __future__ import annotations

import asyncio
import json

import radarnav.main as main_module


def _post_json(client, url, payload):
    return client.post(url, content=json.dumps(payload),
                       headers={"content-type": "application/json"})


async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["candidates_loaded"] == 3
    assert data["tracking_active"] is False


async def test_stats(client):
    resp = await client.get("/api/v1/stats")
    assert resp.status_code == 200
    assert resp.json()["samples_received"] == 0


async def test_client_config(client):
    data = (await client.get("/api/v1/config")).json()
    assert data["search_min_chars"] == 3
    assert data["max_accuracy_m"] == 30.0
    assert data["default_origin"] == [48.86, 2.35]


async def test_position_rejected_when_not_tracking(client):
    resp = await _post_json(client, "/api/v1/positions",
                            {"lat": 48.86, "lon": 2.35, "accuracy_m": 5, "timestamp_ms": 0})
    assert resp.status_code == 409
    assert resp.json()["error"] == "tracking not active"


async def test_position_invalid_json(client):
    await client.post("/api/v1/tracking/start")
    resp = await client.post("/api/v1/positions", content=b"not json{{{")
    assert resp.status_code == 400


async def test_position_missing_lat(client):
    await client.post("/api/v1/tracking/start")
    resp = await _post_json(client, "/api/v1/positions", {"lon": 2.35, "timestamp_ms": 0})
    assert resp.status_code == 422
    assert "invalid sample" in resp.json()["error"]


async def test_position_non_finite_timestamp(client):
    await client.post("/api/v1/tracking/start")
    body = b'{"lat": 48.86, "lon": 2.35, "accuracy_m": 5, "timestamp_ms": Infinity}'
    resp = await client.post("/api/v1/positions", content=body,
                             headers={"content-type": "application/json"})
    assert resp.status_code == 422
    assert "invalid sample" in resp.json()["error"]


async def test_position_non_object(client):
    resp = await _post_json(client, "/api/v1/positions", [1, 2, 3])
    assert resp.status_code == 422


async def test_batch_then_state(client):
    resp = await client.post("/api/v1/tracking/start")
    assert resp.json() == {"started": True, "generation": 1}

    samples = [
        {"lat": 48.8600, "lon": 2.35, "accuracy_m": 5, "timestamp_ms": 0},
        {"lat": 48.8605, "lon": 2.35, "accuracy_m": 5, "timestamp_ms": 1000},
        {"lat": 48.8610, "lon": 2.35, "accuracy_m": 5, "timestamp_ms": 2000},
        {"lat": 48.8615, "lon": 2.35, "accuracy_m": 80, "timestamp_ms": 3000},
    ]
    resp = await _post_json(client, "/api/v1/positions", {"samples": samples})
    assert resp.status_code == 200
    assert resp.json() == {"accepted": True, "error": "", "queued": 4}

    assert await main_module._controller.drain() == 4

    state = (await client.get("/api/v1/state")).json()
    assert state["tracking"]["active"] is True
    assert state["tracking"]["buffered_samples"] == 3
    assert state["estimate"]["lat"] == 48.861
    assert state["estimate"]["heading_deg"] == 0.0
    assert state["display"]["heading"] == "0°"
    assert state["next_radar"] == "—"

    stats = (await client.get("/api/v1/stats")).json()
    assert stats["samples_accepted"] == 3
    assert stats["samples_rejected"] == 1


async def test_stop_tracking(client):
    await client.post("/api/v1/tracking/start")
    resp = await client.post("/api/v1/tracking/stop")
    assert resp.json() == {"stopped": True}
    state = (await client.get("/api/v1/state")).json()
    assert state["tracking"]["active"] is False
    messages = [a["message"] for a in state["advisories"]]
    assert "GPS tracking stopped." in messages


async def test_route_endpoints(client):
    assert (await client.get("/api/v1/route")).status_code == 404

    resp = await _post_json(client, "/api/v1/route", {"query": "Gare du Nord"})
    data = resp.json()
    assert data["ok"] is True
    assert data["message"] == "Route computed. 2 radars on the route."
    assert data["destination"]["name"] == "Gare du Nord, Paris"
    assert data["travel_time"] == "7min, 2.6 km"

    route = await client.get("/api/v1/route")
    assert route.status_code == 200
    assert route.headers["content-type"].startswith("application/geo+json")
    feature = route.json()
    assert feature["geometry"]["type"] == "LineString"
    assert feature["geometry"]["coordinates"][0] == [2.35, 48.86]

    collection = (await client.get("/api/v1/route/candidates")).json()
    assert collection["type"] == "FeatureCollection"
    assert sorted(f["properties"]["id"] for f in collection["features"]) == ["R1", "R3"]


async def test_route_failure_reported(client):
    data = (await _post_json(client, "/api/v1/route", {"query": "nowhere at all"})).json()
    assert data == {"ok": False, "message": "Destination not found.", "candidates_on_route": 0}

    resp = await client.post("/api/v1/route", content=b"{oops")
    assert resp.status_code == 400

    resp = await _post_json(client, "/api/v1/route", {"query": "garbled"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Error while computing the route."


async def test_geocode_endpoint(client):
    resp = await client.get("/api/v1/geocode", params={"q": "gare du nord"})
    assert resp.status_code == 200
    names = [r["name"] for r in resp.json()["results"]]
    assert names == ["Gare du Nord, Paris", "Gare du Nord, Paris (entrance)"]


async def test_geocode_requires_query(client):
    resp = await client.get("/api/v1/geocode")
    assert resp.status_code == 422


async def test_search_as_you_type(client):
    resp = await _post_json(client, "/api/v1/search/input", {"text": "gare du nord"})
    assert resp.json() == {"query": "gare du nord", "pending": True}

    await asyncio.sleep(0.05)
    data = (await client.get("/api/v1/search/suggestions")).json()
    assert data["pending"] is False
    assert data["suggestions"][0]["name"] == "Gare du Nord, Paris"

    resp = await _post_json(client, "/api/v1/search/input", {"text": "ga"})
    assert resp.json()["pending"] is False
    assert (await client.get("/api/v1/search/suggestions")).json()["suggestions"] == []


async def test_location_error(client):
    await client.post("/api/v1/tracking/start")
    resp = await _post_json(client, "/api/v1/location-error", {"code": 1, "message": "denied"})
    assert resp.json() == {"advisory": "Location permission denied."}

    # provider failed: samples are refused until tracking restarts
    resp = await _post_json(client, "/api/v1/positions",
                            {"lat": 48.86, "lon": 2.35, "accuracy_m": 5, "timestamp_ms": 0})
    assert resp.status_code == 409

    assert (await client.post("/api/v1/tracking/start")).json()["started"] is True
    resp = await _post_json(client, "/api/v1/positions",
                            {"lat": 48.86, "lon": 2.35, "accuracy_m": 5, "timestamp_ms": 0})
    assert resp.status_code == 200


async def test_unknown_location_error_code(client):
    resp = await _post_json(client, "/api/v1/location-error", {"code": 99})
    assert resp.json() == {"advisory": "Location error."}


async def test_orientation_ignored_when_not_tracking(client):
    resp = await _post_json(client, "/api/v1/orientation", {"alpha": 90})
    assert resp.json() == {"accepted": False, "heading_deg": None}


async def test_orientation_platform_inversion(client):
    await client.post("/api/v1/tracking/start")
    await client.post("/api/v1/orientation/enable")

    resp = await _post_json(client, "/api/v1/orientation", {"alpha": 90, "platform": "iOS"})
    assert resp.json() == {"accepted": True, "heading_deg": 270.0}
    resp = await _post_json(client, "/api/v1/orientation", {"alpha": 90})
    assert resp.json()["heading_deg"] == 90.0

    resp = await _post_json(client, "/api/v1/orientation", {"platform": "ios"})
    assert resp.status_code == 422
