#!/usr/bin/env python3
"""RadarNav drive simulator.

Replays a noisy GPS drive against a running server, the way a browser client
would: start tracking, optionally route to a destination, then post one
position sample per tick and print the live readouts.

Usage:
    # 2 minutes of driving north out of Paris at ~50 km/h
    python -m tools.simulator.simulate --server http://localhost:8000 --duration 120

    # Route first, then drive with 20% imprecise fixes and no device speed
    python -m tools.simulator.simulate --destination "Versailles" --bad-fix-rate 0.2 --no-device-speed
"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import random
import time
from dataclasses import dataclass

import httpx


@dataclass
class SimVehicle:
    lat: float
    lon: float
    bearing: float
    speed_mps: float
    samples_sent: int = 0
    errors: int = 0


def make_sample_payload(
    vehicle: SimVehicle,
    timestamp_ms: int,
    *,
    bad_fix_rate: float = 0.0,
    device_speed: bool = True,
    device_heading: bool = True,
    noise_m: float = 3.0,
) -> dict:
    """Create one position sample with GPS noise around the true position."""
    noise_lat = random.gauss(0, noise_m) / 111_000
    noise_lon = random.gauss(0, noise_m) / (111_000 * math.cos(math.radians(vehicle.lat)))
    accuracy = random.uniform(40, 120) if random.random() < bad_fix_rate else random.uniform(3, 15)

    return {
        "lat": round(vehicle.lat + noise_lat, 7),
        "lon": round(vehicle.lon + noise_lon, 7),
        "accuracy_m": round(accuracy, 1),
        "timestamp_ms": timestamp_ms,
        "speed_mps": round(vehicle.speed_mps, 2) if device_speed else None,
        "heading_deg": round(vehicle.bearing, 1) if device_heading else None,
    }


def move_vehicle(vehicle: SimVehicle, dt_seconds: float) -> None:
    """Move the vehicle along its current bearing, with gentle turns."""
    vehicle.bearing = (vehicle.bearing + random.uniform(-3, 3)) % 360

    # Urban / suburban driving: 5-25 m/s
    vehicle.speed_mps = max(5.0, min(25.0, vehicle.speed_mps + random.uniform(-0.5, 0.5)))

    distance_m = vehicle.speed_mps * dt_seconds
    bearing_rad = math.radians(vehicle.bearing)

    # Approximate: 1 degree latitude ~ 111,000 m
    dlat = (distance_m * math.cos(bearing_rad)) / 111_000
    dlon = (distance_m * math.sin(bearing_rad)) / (111_000 * math.cos(math.radians(vehicle.lat)))

    vehicle.lat += dlat
    vehicle.lon += dlon


async def run_drive(client: httpx.AsyncClient, vehicle: SimVehicle, args: argparse.Namespace) -> None:
    """Post samples for the configured duration, printing readouts."""
    end_time = time.monotonic() + args.duration
    tick = 0

    while time.monotonic() < end_time:
        move_vehicle(vehicle, args.interval)
        payload = make_sample_payload(
            vehicle, int(time.time() * 1000),
            bad_fix_rate=args.bad_fix_rate,
            device_speed=not args.no_device_speed,
            device_heading=not args.no_device_heading,
        )
        try:
            resp = await client.post(
                f"{args.server}/api/v1/positions",
                content=json.dumps(payload),
                headers={"content-type": "application/json"},
            )
            if resp.status_code == 200:
                vehicle.samples_sent += 1
            else:
                vehicle.errors += 1
        except httpx.RequestError:
            vehicle.errors += 1

        tick += 1
        if tick % 5 == 0:
            try:
                state = (await client.get(f"{args.server}/api/v1/state")).json()
                display = state["display"]
                print(f"  speed {display['speed']:>9}  heading {display['heading']:>5}"
                      f"  next radar: {state['next_radar']}")
                for advisory in state["advisories"]:
                    if advisory["kind"] == "alert":
                        print(f"  ALERT {advisory['message']}")
            except (httpx.RequestError, ValueError, KeyError):
                pass

        await asyncio.sleep(args.interval)


async def run_simulation(args: argparse.Namespace) -> None:
    """Run the full simulation."""
    start_lat, start_lon = args.start
    vehicle = SimVehicle(lat=start_lat, lon=start_lon, bearing=args.bearing,
                         speed_mps=args.speed_kmh / 3.6)

    print(f"Starting drive at {start_lat:.4f}, {start_lon:.4f}, bearing {args.bearing:.0f}")
    print(f"  Duration: {args.duration}s, one sample every {args.interval}s")
    print(f"  Server: {args.server}")
    print()

    start = time.monotonic()
    async with httpx.AsyncClient(timeout=30.0) as client:
        await client.post(f"{args.server}/api/v1/tracking/start")
        # Seed one position so the route starts where the vehicle is
        await client.post(
            f"{args.server}/api/v1/positions",
            content=json.dumps(make_sample_payload(vehicle, int(time.time() * 1000))),
            headers={"content-type": "application/json"},
        )
        if args.destination:
            resp = await client.post(f"{args.server}/api/v1/route",
                                     content=json.dumps({"query": args.destination}))
            print(f"Route: {resp.json().get('message')}")

        await run_drive(client, vehicle, args)
        await client.post(f"{args.server}/api/v1/tracking/stop")

        elapsed = time.monotonic() - start
        print(f"\nDrive complete in {elapsed:.1f}s")
        print(f"  Samples sent: {vehicle.samples_sent}")
        print(f"  Errors: {vehicle.errors}")

        try:
            resp = await client.get(f"{args.server}/api/v1/stats")
            if resp.status_code == 200:
                stats = resp.json()
                print("\nServer stats:")
                print(f"  Samples accepted: {stats['samples_accepted']}")
                print(f"  Samples rejected: {stats['samples_rejected']}")
                print(f"  Alerts emitted: {stats['alerts_emitted']}")
        except (httpx.RequestError, ValueError, KeyError):
            pass


def main():
    parser = argparse.ArgumentParser(description="RadarNav drive simulator")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--duration", type=int, default=60, help="Drive duration in seconds")
    parser.add_argument("--interval", type=float, default=1.0, help="Seconds between samples")
    parser.add_argument("--start", type=str, default="48.860,2.350",
                        help="Start lat,lon (default: Paris)")
    parser.add_argument("--bearing", type=float, default=0.0, help="Initial bearing in degrees")
    parser.add_argument("--speed-kmh", type=float, default=50.0, help="Initial speed")
    parser.add_argument("--destination", type=str, default="", help="Route to this place first")
    parser.add_argument("--bad-fix-rate", type=float, default=0.1,
                        help="Share of samples with poor accuracy (default: 0.1)")
    parser.add_argument("--no-device-speed", action="store_true",
                        help="Omit provider speed (forces displacement speed)")
    parser.add_argument("--no-device-heading", action="store_true",
                        help="Omit provider heading (forces displacement bearing)")

    args = parser.parse_args()

    lat, lon = args.start.split(",")
    args.start = (float(lat), float(lon))

    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
