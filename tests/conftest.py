"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import Settings  # noqa: E402

STEAM_ID = "76561198240690266"


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object with defaults suitable for tests."""

    base: dict[str, Any] = {
        "STEAM_API_KEY": "test-key",
        "FETCH_BASE_DELAY": 0,
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def player_payload(**overrides: Any) -> dict[str, Any]:
    player: dict[str, Any] = {
        "steamid": STEAM_ID,
        "personaname": "Heavy",
        "avatarfull": "https://avatars.steamstatic.com/heavy_full.jpg",
        "profileurl": f"https://steamcommunity.com/profiles/{STEAM_ID}/",
        "personastate": 1,
        "communityvisibilitystate": 3,
        "timecreated": 1430000000,
        "lastlogoff": 1700000000,
        "loccountrycode": "US",
    }
    player.update(overrides)
    return player


def store_entry(app_id: int, name: str, **data: Any) -> dict[str, Any]:
    return {str(app_id): {"success": True, "data": {"name": name, **data}}}


Handler = Callable[[httpx.Request], httpx.Response]


def steam_router(
    *,
    players: list[dict[str, Any]] | None = None,
    games: list[dict[str, Any]] | None = None,
    wishlist: dict[str, Any] | None = None,
    store: Handler | None = None,
    requests: list[httpx.Request] | None = None,
) -> Handler:
    """Build a MockTransport handler that fakes the Steam endpoints."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        path = request.url.path
        if path.endswith("/GetPlayerSummaries/v2/"):
            return json_response({"response": {"players": players if players is not None else [player_payload()]}})
        if path.endswith("/GetOwnedGames/v1/"):
            body: dict[str, Any] = {}
            if games is not None:
                body = {"game_count": len(games), "games": games}
            return json_response({"response": body})
        if path.endswith("/GetWishlist/v1/"):
            return json_response(wishlist if wishlist is not None else {"response": {}})
        if path.endswith("/appdetails"):
            if store is None:
                return json_response({request.url.params["appids"]: {"success": False}})
            return store(request)
        return httpx.Response(404, text="not found")

    return handler
