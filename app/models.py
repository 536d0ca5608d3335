"""Pydantic models describing Steam profile, library and catalog payloads."""

from __future__ import annotations

from datetime import datetime
from types import MappingProxyType
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field

from .utils import (
    coerce_int,
    epoch_to_iso,
    epoch_to_locale_date,
    format_minor_units,
    minutes_to_hours,
)

UNKNOWN_LABEL = "Unknown"

PERSONA_STATES: Mapping[int, str] = MappingProxyType(
    {
        0: "Offline",
        1: "Online",
        2: "Busy",
        3: "Away",
        4: "Snooze",
        5: "Looking to trade",
        6: "Looking to play",
    }
)

VISIBILITY_STATES: Mapping[int, str] = MappingProxyType(
    {
        1: "Private",
        2: "Friends only",
        3: "Public",
    }
)


def persona_state_label(code: object) -> str:
    if isinstance(code, int) and not isinstance(code, bool):
        return PERSONA_STATES.get(code, UNKNOWN_LABEL)
    return UNKNOWN_LABEL


def visibility_state_label(code: object) -> str:
    if isinstance(code, int) and not isinstance(code, bool):
        return VISIBILITY_STATES.get(code, UNKNOWN_LABEL)
    return UNKNOWN_LABEL


def _mapping(value: object) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _sequence(value: object) -> list[Any]:
    return value if isinstance(value, list) else []


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _string_map(value: object) -> dict[str, str]:
    return {str(key): str(item) for key, item in _mapping(value).items() if item is not None}


def _extras(model: type[BaseModel], data: Mapping[str, Any]) -> dict[str, Any]:
    """Keys of ``data`` the model does not declare, kept as-is."""

    return {
        str(key): value for key, value in data.items() if str(key) not in model.model_fields
    }


class Profile(BaseModel):
    """A player summary plus the labels derived from it at fetch time."""

    steamid: str
    personaname: str = ""
    avatar: str | None = None
    realname: str | None = None
    country: str | None = None
    timecreated: int | None = None
    lastlogoff: int | None = None
    profileurl: str | None = None
    personastate: int | None = None
    gameextrainfo: str | None = None
    gameid: str | None = None
    primaryclanid: str | None = None
    communityvisibilitystate: int | None = None
    commentpermission: int | None = None
    last_online: str | None = None
    account_created: str | None = None
    current_status: str = UNKNOWN_LABEL
    current_game: str | None = None
    profile_visibility: str = UNKNOWN_LABEL

    @classmethod
    def from_player(cls, player: Mapping[str, Any]) -> "Profile":
        personastate = player.get("personastate")
        visibility = player.get("communityvisibilitystate")
        timecreated = player.get("timecreated")
        lastlogoff = player.get("lastlogoff")
        game = _optional_str(player.get("gameextrainfo"))
        comments = player.get("commentpermission")
        return cls(
            steamid=str(player.get("steamid") or ""),
            personaname=str(player.get("personaname") or ""),
            avatar=_optional_str(player.get("avatarfull") or player.get("avatar")),
            realname=_optional_str(player.get("realname")),
            country=_optional_str(player.get("loccountrycode")),
            timecreated=timecreated if isinstance(timecreated, int) else None,
            lastlogoff=lastlogoff if isinstance(lastlogoff, int) else None,
            profileurl=_optional_str(player.get("profileurl")),
            personastate=personastate if isinstance(personastate, int) else None,
            gameextrainfo=game,
            gameid=_optional_str(player.get("gameid")),
            primaryclanid=_optional_str(player.get("primaryclanid")),
            communityvisibilitystate=visibility if isinstance(visibility, int) else None,
            commentpermission=comments if isinstance(comments, int) else None,
            last_online=epoch_to_iso(lastlogoff),
            account_created=epoch_to_iso(timecreated),
            current_status=persona_state_label(personastate),
            current_game=game,
            profile_visibility=visibility_state_label(visibility),
        )


class Category(BaseModel):
    id: int
    description: str = ""


class Genre(BaseModel):
    id: str
    description: str = ""


class ReleaseDate(BaseModel):
    coming_soon: bool = False
    date: str = ""


class PriceOverview(BaseModel):
    """Store pricing in minor units with pre-formatted display strings."""

    currency: str
    initial: int
    final: int
    discount_percent: int = 0
    formatted_initial: str
    formatted_final: str

    @classmethod
    def from_store_payload(cls, data: Mapping[str, Any]) -> "PriceOverview":
        currency = str(data.get("currency") or "USD")
        initial = coerce_int(data.get("initial"))
        final = coerce_int(data.get("final"), initial)
        return cls(
            currency=currency,
            initial=initial,
            final=final,
            discount_percent=coerce_int(data.get("discount_percent")),
            formatted_initial=format_minor_units(initial, currency),
            formatted_final=format_minor_units(final, currency),
        )


class Platforms(BaseModel):
    windows: bool = False
    mac: bool = False
    linux: bool = False


class Metacritic(BaseModel):
    score: int = 0
    url: str | None = None


class Recommendations(BaseModel):
    total: int = 0


class Screenshot(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int = 0
    path_thumbnail: str | None = None
    path_full: str | None = None

    @classmethod
    def from_store_payload(cls, data: Mapping[str, Any]) -> "Screenshot":
        return cls(
            **_extras(cls, data),
            id=coerce_int(data.get("id")),
            path_thumbnail=_optional_str(data.get("path_thumbnail")),
            path_full=_optional_str(data.get("path_full")),
        )


class Movie(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int = 0
    name: str = ""
    thumbnail: str | None = None
    highlight: bool = False
    webm: dict[str, str] = Field(default_factory=dict)
    mp4: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_store_payload(cls, data: Mapping[str, Any]) -> "Movie":
        return cls(
            **_extras(cls, data),
            id=coerce_int(data.get("id")),
            name=str(data.get("name") or ""),
            thumbnail=_optional_str(data.get("thumbnail")),
            highlight=bool(data.get("highlight", False)),
            webm=_string_map(data.get("webm")),
            mp4=_string_map(data.get("mp4")),
        )


class CatalogDetail(BaseModel):
    """Store metadata for one app, structurally complete even when sparse."""

    name: str = ""
    short_description: str = ""
    header_image: str | None = None
    categories: list[Category] = Field(default_factory=list)
    genres: list[Genre] = Field(default_factory=list)
    release_date: ReleaseDate = Field(default_factory=ReleaseDate)
    developers: list[str] = Field(default_factory=list)
    publishers: list[str] = Field(default_factory=list)
    price_overview: PriceOverview | None = None
    platforms: Platforms = Field(default_factory=Platforms)
    metacritic: Metacritic = Field(default_factory=Metacritic)
    recommendations: Recommendations = Field(default_factory=Recommendations)
    screenshots: list[Screenshot] = Field(default_factory=list)
    movies: list[Movie] = Field(default_factory=list)

    @classmethod
    def from_store_payload(cls, data: Mapping[str, Any]) -> "CatalogDetail":
        """Normalise the ``data`` block of an ``appdetails`` response."""

        categories = [
            Category(id=coerce_int(entry.get("id")), description=str(entry.get("description") or ""))
            for entry in _sequence(data.get("categories"))
            if isinstance(entry, dict)
        ]
        genres = [
            Genre(
                id="" if entry.get("id") is None else str(entry["id"]),
                description=str(entry.get("description") or ""),
            )
            for entry in _sequence(data.get("genres"))
            if isinstance(entry, dict)
        ]

        release = _mapping(data.get("release_date"))
        platforms = _mapping(data.get("platforms"))
        metacritic = _mapping(data.get("metacritic"))
        recommendations = _mapping(data.get("recommendations"))
        price = data.get("price_overview")

        return cls(
            name=str(data.get("name") or ""),
            short_description=str(data.get("short_description") or ""),
            header_image=_optional_str(data.get("header_image")),
            categories=categories,
            genres=genres,
            release_date=ReleaseDate(
                coming_soon=bool(release.get("coming_soon", False)),
                date=str(release.get("date") or ""),
            ),
            developers=[str(name) for name in _sequence(data.get("developers"))],
            publishers=[str(name) for name in _sequence(data.get("publishers"))],
            price_overview=PriceOverview.from_store_payload(price)
            if isinstance(price, dict)
            else None,
            platforms=Platforms(
                windows=bool(platforms.get("windows", False)),
                mac=bool(platforms.get("mac", False)),
                linux=bool(platforms.get("linux", False)),
            ),
            metacritic=Metacritic(
                score=coerce_int(metacritic.get("score")),
                url=_optional_str(metacritic.get("url")),
            ),
            recommendations=Recommendations(
                total=coerce_int(recommendations.get("total"))
            ),
            screenshots=[
                Screenshot.from_store_payload(entry)
                for entry in _sequence(data.get("screenshots"))
                if isinstance(entry, dict)
            ],
            movies=[
                Movie.from_store_payload(entry)
                for entry in _sequence(data.get("movies"))
                if isinstance(entry, dict)
            ],
        )


class LibraryEntry(BaseModel):
    """An owned app with playtime converted to whole hours."""

    appid: int
    name: str = ""
    playtime_forever: int = 0
    playtime_windows_forever: int = 0
    playtime_mac_forever: int = 0
    playtime_linux_forever: int = 0
    img_icon_url: str | None = None
    has_community_visible_stats: bool = False
    rtime_last_played: str | None = None
    details: CatalogDetail | None = None

    @classmethod
    def from_owned_game(cls, game: Mapping[str, Any]) -> "LibraryEntry":
        last_played = game.get("rtime_last_played")
        return cls(
            appid=coerce_int(game.get("appid")),
            name=str(game.get("name") or ""),
            playtime_forever=minutes_to_hours(game.get("playtime_forever")),
            playtime_windows_forever=minutes_to_hours(game.get("playtime_windows_forever")),
            playtime_mac_forever=minutes_to_hours(game.get("playtime_mac_forever")),
            playtime_linux_forever=minutes_to_hours(game.get("playtime_linux_forever")),
            img_icon_url=_optional_str(game.get("img_icon_url")),
            has_community_visible_stats=bool(game.get("has_community_visible_stats", False)),
            # Zero means "never played".
            rtime_last_played=epoch_to_iso(last_played) if last_played else None,
        )


class WishlistEntry(BaseModel):
    appid: int
    priority: int = 0
    date_added: str = ""
    details: CatalogDetail | None = None

    @classmethod
    def from_wishlist_item(cls, item: Mapping[str, Any]) -> "WishlistEntry":
        return cls(
            appid=coerce_int(item.get("appid")),
            priority=coerce_int(item.get("priority")),
            date_added=epoch_to_locale_date(item.get("date_added")),
        )


class CallRecord(BaseModel):
    """One upstream call made while building an aggregate."""

    endpoint: str
    timestamp: datetime
    outcome: Literal["success", "error"]
    error: str | None = None
    response: Any = None


class AggregateResult(BaseModel):
    """Profile, library and wishlist for one player, enriched with catalog data."""

    model_config = ConfigDict(populate_by_name=True)

    steam_id: str = Field(serialization_alias="steamId")
    profile: Profile
    owned_games: list[LibraryEntry] = Field(
        default_factory=list, serialization_alias="ownedGames"
    )
    wishlist: list[WishlistEntry] = Field(default_factory=list)
    calls: list[CallRecord] = Field(default_factory=list)

    def enriched_count(self) -> int:
        entries: list[LibraryEntry | WishlistEntry] = [*self.owned_games, *self.wishlist]
        return sum(1 for entry in entries if entry.details is not None)
