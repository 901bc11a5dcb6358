"""Station Manager CLI — talk to the API, set up the database, run the server.

Usage:
    station-manager register "Ada" ada               # Create an account (prompts)
    station-manager login ada --password s3cret      # Print token + refreshToken
    station-manager refresh <refresh-token>          # Exchange for a new pair
    station-manager stations                         # List stored stations
    station-manager sync-stations --token <token>    # Re-fetch from the transit feed
    station-manager init-db                          # Create tables (dev / SQLite)
    station-manager serve                            # Run the API with uvicorn
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Optional

import click
import httpx

from station_manager import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8080"


def _api_url() -> str:
    return os.environ.get("STATION_MANAGER_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Station Manager backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _unwrap(r: httpx.Response) -> Optional[dict | list]:
    """Return the envelope's data, or exit with its message on failure."""
    try:
        body = r.json()
    except ValueError:
        body = {"message": r.text, "data": None}
    if r.is_error:
        click.secho(f"Error ({r.status_code}): {body.get('message')}", fg="red", err=True)
        sys.exit(1)
    click.secho(body.get("message", ""), fg="green")
    return body.get("data")


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="station-manager")
def main():
    """Station Manager — transit stations behind bearer-token auth."""


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


@main.command()
@click.argument("name")
@click.argument("username")
@click.password_option(confirmation_prompt=False)
def register(name: str, username: str, password: str):
    """Register a new user."""
    asyncio.run(_register_impl(name, username, password))


async def _register_impl(name: str, username: str, password: str):
    async with _client() as c:
        r = await c.post(
            "/api/authentication/register",
            json={"name": name, "username": username, "password": password},
        )
    user = _unwrap(r)
    click.echo(f"  id: {user['id']}")


@main.command()
@click.argument("username")
@click.password_option(confirmation_prompt=False)
def login(username: str, password: str):
    """Log in and print the access and refresh tokens."""
    asyncio.run(_login_impl(username, password))


async def _login_impl(username: str, password: str):
    async with _client() as c:
        r = await c.post(
            "/api/authentication/login",
            json={"username": username, "password": password},
        )
    click.echo(_pretty_json(_unwrap(r)))


@main.command()
@click.argument("refresh_token")
def refresh(refresh_token: str):
    """Exchange a refresh token for a new token pair."""
    asyncio.run(_refresh_impl(refresh_token))


async def _refresh_impl(refresh_token: str):
    async with _client() as c:
        r = await c.post(
            "/api/authentication/refresh",
            json={"refreshToken": refresh_token},
        )
    click.echo(_pretty_json(_unwrap(r)))


# ---------------------------------------------------------------------------
# Stations
# ---------------------------------------------------------------------------

_STATION_COLUMNS = [
    ("Name", "stationName", 32),
    ("Agency", "stationAgency", 16),
    ("URI", "stationUri", 40),
]


@main.command()
@click.option("--token", envvar="STATION_MANAGER_TOKEN", help="Access token (optional)")
def stations(token: Optional[str]):
    """List stored stations."""
    asyncio.run(_stations_impl(token))


async def _stations_impl(token: Optional[str]):
    async with _client(token) as c:
        r = await c.get("/api/stations")
    rows = _unwrap(r) or []
    if rows:
        _print_table(rows, _STATION_COLUMNS)


@main.command("sync-stations")
@click.option("--token", envvar="STATION_MANAGER_TOKEN", required=True,
              help="Access token (or set STATION_MANAGER_TOKEN)")
def sync_stations(token: str):
    """Fetch the transit feed and replace the stored stations."""
    asyncio.run(_sync_impl(token))


async def _sync_impl(token: str):
    async with _client(token) as c:
        r = await c.post("/api/stations/save")
    rows = _unwrap(r) or []
    click.echo(f"  {len(rows)} stations saved")


# ---------------------------------------------------------------------------
# Server / database
# ---------------------------------------------------------------------------


@main.command("init-db")
def init_db():
    """Create all tables directly (use alembic for PostgreSQL deployments)."""
    asyncio.run(_init_db_impl())


async def _init_db_impl():
    from station_manager.db.engine import engine
    from station_manager.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    click.secho("Tables created", fg="green")


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", default=None, type=int, help="Port (default from settings)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from station_manager.config import settings

    uvicorn.run(
        "station_manager.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


if __name__ == "__main__":
    main()
