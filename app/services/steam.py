"""Utilities for communicating with the Steam Web API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import NotFoundError, UpstreamError, ValidationError
from ..models import LibraryEntry, Profile, WishlistEntry
from ..utils import is_valid_steam_id
from .http import InvalidResponseError, fetch_json

logger = logging.getLogger(__name__)

PLAYER_SUMMARIES_PATH = "/ISteamUser/GetPlayerSummaries/v2/"
OWNED_GAMES_PATH = "/IPlayerService/GetOwnedGames/v1/"
WISHLIST_PATH = "/IWishlistService/GetWishlist/v1/"
RESOLVE_VANITY_PATH = "/ISteamUser/ResolveVanityURL/v1/"


def require_steam_id(steam_id: str | None) -> str:
    """Return the stripped id or raise ``ValidationError`` before any request."""

    if not steam_id:
        raise ValidationError("Steam ID is required")
    cleaned = steam_id.strip()
    if not is_valid_steam_id(cleaned):
        raise ValidationError(
            "Invalid Steam ID",
            message="Steam IDs are numeric strings",
            steamId=steam_id,
        )
    return cleaned


class SteamClient:
    """Thin wrapper around the player-facing Steam Web API endpoints.

    Each fetcher issues exactly one request; the retry policy is reserved
    for the Store client.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.steam_api_key:
            raise ValueError("Steam API key is required when initialising SteamClient")
        self._settings = settings
        self._client = http_client

    def _url(self, path: str) -> str:
        return f"{self._settings.steam_api_base}{path}"

    async def _get(self, path: str, params: dict[str, Any], *, error: str, **context: Any) -> Any:
        try:
            return await fetch_json(self._client, self._url(path), params=params, max_attempts=1)
        except (httpx.HTTPError, InvalidResponseError) as exc:
            logger.warning("Steam API request to %s failed: %s", path, exc)
            raise UpstreamError(
                error, message=str(exc) or exc.__class__.__name__, **context
            ) from exc

    async def get_profile(self, steam_id: str | None) -> Profile:
        """Fetch the player summary for ``steam_id``."""

        steam_id = require_steam_id(steam_id)
        payload = await self._get(
            PLAYER_SUMMARIES_PATH,
            {"key": self._settings.steam_api_key, "steamids": steam_id},
            error="Failed to fetch profile information",
            steamId=steam_id,
        )
        response = payload.get("response") if isinstance(payload, dict) else None
        players = response.get("players") if isinstance(response, dict) else None
        if not isinstance(players, list) or not players or not isinstance(players[0], dict):
            logger.warning("No player summary returned for %s", steam_id)
            raise NotFoundError(
                "Failed to fetch profile information",
                message="No player found for this Steam ID",
                steamId=steam_id,
                response=payload,
            )
        return Profile.from_player(players[0])

    async def get_library(self, steam_id: str | None) -> list[LibraryEntry]:
        """Fetch the owned games for ``steam_id`` with playtime in hours.

        A response without a ``games`` list is an error rather than an empty
        library; Steam omits the list for private or broken profiles.
        """

        steam_id = require_steam_id(steam_id)
        payload = await self._get(
            OWNED_GAMES_PATH,
            {
                "key": self._settings.steam_api_key,
                "steamid": steam_id,
                "include_appinfo": "true",
                "include_played_free_games": "true",
            },
            error="Failed to fetch owned games",
            steamId=steam_id,
        )
        response = payload.get("response") if isinstance(payload, dict) else None
        games = response.get("games") if isinstance(response, dict) else None
        if not isinstance(games, list):
            logger.warning("Owned games response for %s had no games list", steam_id)
            raise UpstreamError(
                "Failed to fetch owned games",
                message="Response did not include a games list",
                steamId=steam_id,
            )
        return [LibraryEntry.from_owned_game(game) for game in games if isinstance(game, dict)]

    async def get_wishlist(self, steam_id: str | None) -> list[WishlistEntry]:
        """Fetch the wishlist for ``steam_id``.

        ``{"response": {}}`` is a valid empty wishlist; a payload without a
        ``response`` object is an error.
        """

        steam_id = require_steam_id(steam_id)
        payload = await self._get(
            WISHLIST_PATH,
            {"steamid": steam_id},
            error="Failed to fetch wishlist",
            steamId=steam_id,
        )
        response = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(response, dict):
            logger.warning("Wishlist response for %s was malformed", steam_id)
            raise UpstreamError(
                "Failed to fetch wishlist",
                message="Response envelope missing",
                steamId=steam_id,
            )
        items = response.get("items")
        if not isinstance(items, list):
            return []
        return [WishlistEntry.from_wishlist_item(item) for item in items if isinstance(item, dict)]

    async def resolve_steam_id(self, username: str | None) -> str:
        """Resolve a vanity name, falling back to treating it as a Steam ID."""

        cleaned = (username or "").strip()
        if not cleaned:
            raise ValidationError("Username is required")

        try:
            vanity = await fetch_json(
                self._client,
                self._url(RESOLVE_VANITY_PATH),
                params={"key": self._settings.steam_api_key, "vanityurl": cleaned},
                max_attempts=1,
            )
        except (httpx.HTTPError, InvalidResponseError) as exc:
            logger.info("Vanity URL lookup for %s failed: %s", cleaned, exc)
            vanity = None

        response = vanity.get("response") if isinstance(vanity, dict) else None
        if isinstance(response, dict) and response.get("success") == 1 and response.get("steamid"):
            return str(response["steamid"])

        try:
            payload = await fetch_json(
                self._client,
                self._url(PLAYER_SUMMARIES_PATH),
                params={"key": self._settings.steam_api_key, "steamids": cleaned},
                max_attempts=1,
            )
        except InvalidResponseError as exc:
            logger.info("Player summary lookup for %s rejected: %s", cleaned, exc)
            raise NotFoundError("Could not resolve username to Steam ID") from exc
        except httpx.HTTPError as exc:
            logger.warning("Steam API request to %s failed: %s", PLAYER_SUMMARIES_PATH, exc)
            raise UpstreamError(
                "Failed to resolve Steam username", message=str(exc) or exc.__class__.__name__
            ) from exc

        response = payload.get("response") if isinstance(payload, dict) else None
        players = response.get("players") if isinstance(response, dict) else None
        if isinstance(players, list) and players and isinstance(players[0], dict):
            steam_id = players[0].get("steamid")
            if steam_id:
                return str(steam_id)

        raise NotFoundError("Could not resolve username to Steam ID")
