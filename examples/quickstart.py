#!/usr/bin/env python3
"""
Station Manager Quickstart — register, log in, sync and list stations.

Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8080
(with STATION_MANAGER_STATION_FEED_URL pointing at a transit feed)
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8080/api"


def main():
    run_id = uuid.uuid4().hex[:6]
    client = httpx.Client(base_url=BASE, timeout=30)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  station-manager init-db && station-manager serve")
        sys.exit(1)
    health = resp.json()
    print(f"  Status:   {health['status']}")
    print(f"  Database: {health['database']}")
    print(f"  Redis:    {health['redis']}")

    # ── Register ──────────────────────────────────────────────────
    username = f"demo-{run_id}"
    password = "demo-password"
    print("\n1. Registering user...")
    resp = client.post(
        "/authentication/register",
        json={"name": "Demo User", "username": username, "password": password},
    )
    assert resp.status_code == 201, f"Failed: {resp.text}"
    user = resp.json()["data"]
    print(f"   User: {user['username']} ({user['id'][:8]}...)")

    # ── Login ─────────────────────────────────────────────────────
    print("\n2. Logging in...")
    resp = client.post(
        "/authentication/login",
        json={"username": username, "password": password},
    )
    assert resp.status_code == 200, f"Failed: {resp.text}"
    tokens = resp.json()["data"]
    print(f"   Token: {tokens['token'][:24]}...")

    # ── Anonymous sync is refused ─────────────────────────────────
    print("\n3. Syncing stations without a token...")
    resp = client.post("/stations/save")
    print(f"   {resp.status_code}: {resp.json()['message']}")

    # ── Authenticated sync ────────────────────────────────────────
    print("\n4. Syncing stations from the transit feed...")
    resp = client.post(
        "/stations/save",
        headers={"Authorization": f"Bearer {tokens['token']}"},
    )
    body = resp.json()
    print(f"   {resp.status_code}: {body['message']}")
    if resp.status_code != 200:
        sys.exit(1)

    # ── List ──────────────────────────────────────────────────────
    print("\n5. Listing stations...")
    body = client.get("/stations").json()
    print(f"   {body['message']}")
    for station in (body["data"] or [])[:10]:
        routes = len(station["stationRoutes"])
        print(f"   - {station['stationName']} ({station['stationAgency']}, {routes} routes)")

    # ── Refresh ───────────────────────────────────────────────────
    print("\n6. Refreshing tokens...")
    resp = client.post(
        "/authentication/refresh",
        json={"refreshToken": tokens["refreshToken"]},
    )
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   {resp.json()['message']}")

    # The old refresh token is now superseded
    resp = client.post(
        "/authentication/refresh",
        json={"refreshToken": tokens["refreshToken"]},
    )
    print(f"   Reusing the old refresh token: {resp.status_code} {resp.json()['message']}")

    print("\nDone.")


if __name__ == "__main__":
    main()
