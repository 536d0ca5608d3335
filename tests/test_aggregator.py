"""Tests for the aggregate builder and its enrichment fan-out."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from app.errors import PartialFailureError, ValidationError
from app.models import CatalogDetail
from app.services.aggregator import AggregationService, CallLog
from app.services.steam import SteamClient
from app.services.store import StoreClient

from conftest import STEAM_ID, build_settings, json_response, steam_router, store_entry


async def _build(handler, steam_id: str | None = STEAM_ID, **overrides: Any):
    settings = build_settings(**overrides)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = AggregationService(
            settings,
            SteamClient(settings, http_client),
            StoreClient(settings, http_client),
        )
        return await service.build_aggregate(steam_id)


@pytest.mark.anyio("asyncio")
async def test_single_game_library_is_enriched() -> None:
    def store(request: httpx.Request) -> httpx.Response:
        assert request.url.params["appids"] == "440"
        return json_response(
            store_entry(
                440,
                "Team Fortress 2",
                platforms={"windows": True, "mac": True, "linux": True},
            )
        )

    handler = steam_router(
        games=[{"appid": 440, "name": "Team Fortress 2", "playtime_forever": 600}],
        store=store,
    )

    result = await _build(handler)

    assert result.profile.current_status == "Online"
    assert len(result.owned_games) == 1
    entry = result.owned_games[0]
    assert entry.appid == 440
    assert entry.playtime_forever == 10
    assert entry.details is not None
    assert entry.details.name == "Team Fortress 2"
    assert entry.details.platforms.model_dump() == {"windows": True, "mac": True, "linux": True}
    assert entry.details.price_overview is None
    assert result.wishlist == []

    payload = result.model_dump(mode="json", by_alias=True)
    assert payload["steamId"] == STEAM_ID
    assert payload["ownedGames"][0]["details"]["name"] == "Team Fortress 2"


@pytest.mark.anyio("asyncio")
async def test_failed_enrichment_leaves_entry_without_details() -> None:
    def store(request: httpx.Request) -> httpx.Response:
        app_id = request.url.params["appids"]
        if app_id == "20":
            return httpx.Response(429, html="<html>Too Many Requests</html>")
        return json_response(store_entry(int(app_id), f"Game {app_id}"))

    handler = steam_router(
        games=[
            {"appid": 10, "name": "Counter-Strike", "playtime_forever": 60},
            {"appid": 20, "name": "Team Fortress Classic", "playtime_forever": 60},
            {"appid": 30, "name": "Day of Defeat", "playtime_forever": 60},
        ],
        store=store,
    )

    result = await _build(handler)

    assert [entry.appid for entry in result.owned_games] == [10, 20, 30]
    assert result.owned_games[0].details is not None
    assert result.owned_games[1].details is None
    assert result.owned_games[2].details is not None
    assert result.enriched_count() == 2

    failures = [record for record in result.calls if record.outcome == "error"]
    assert [record.endpoint for record in failures] == ["store/appdetails/20"]
    assert "Failed to fetch game details" in (failures[0].error or "")


@pytest.mark.anyio("asyncio")
async def test_not_found_enrichment_is_absorbed() -> None:
    handler = steam_router(
        games=[{"appid": 1, "name": "Delisted", "playtime_forever": 5}],
        wishlist={"response": {"items": [{"appid": 2, "priority": 1, "date_added": 1700000000}]}},
    )

    result = await _build(handler)

    assert result.owned_games[0].details is None
    assert result.wishlist[0].details is None
    assert result.wishlist[0].date_added == "11/14/2023"


@pytest.mark.anyio("asyncio")
async def test_shared_app_id_is_fetched_once_and_attached_to_both_lists() -> None:
    requests: list[httpx.Request] = []

    def store(request: httpx.Request) -> httpx.Response:
        app_id = int(request.url.params["appids"])
        return json_response(store_entry(app_id, f"Game {app_id}"))

    handler = steam_router(
        games=[{"appid": 440, "name": "Team Fortress 2", "playtime_forever": 0}],
        wishlist={
            "response": {
                "items": [
                    {"appid": 440, "priority": 2, "date_added": 1690000000},
                    {"appid": 620, "priority": 1, "date_added": 1700000000},
                ]
            }
        },
        store=store,
        requests=requests,
    )

    result = await _build(handler)

    store_calls = [request for request in requests if request.url.path.endswith("/appdetails")]
    assert sorted(request.url.params["appids"] for request in store_calls) == ["440", "620"]
    assert result.owned_games[0].details == result.wishlist[0].details
    assert result.wishlist[1].details is not None
    assert result.wishlist[1].details.name == "Game 620"
    assert result.wishlist[0].priority == 2


@pytest.mark.anyio("asyncio")
async def test_call_log_records_every_upstream_call() -> None:
    def store(request: httpx.Request) -> httpx.Response:
        return json_response(store_entry(440, "Team Fortress 2"))

    handler = steam_router(
        games=[{"appid": 440, "name": "Team Fortress 2", "playtime_forever": 1}],
        store=store,
    )

    result = await _build(handler)

    endpoints = [record.endpoint for record in result.calls]
    assert set(endpoints[:3]) == {
        "ISteamUser/GetPlayerSummaries",
        "IPlayerService/GetOwnedGames",
        "IWishlistService/GetWishlist",
    }
    assert endpoints[3] == "store/appdetails/440"
    assert all(record.outcome == "success" for record in result.calls)
    assert result.calls[3].response["name"] == "Team Fortress 2"


@pytest.mark.anyio("asyncio")
async def test_missing_profile_aborts_with_not_found_status() -> None:
    handler = steam_router(players=[], games=[])

    with pytest.raises(PartialFailureError) as excinfo:
        await _build(handler)

    error = excinfo.value
    assert error.section == "profile"
    assert error.status_code == 404
    assert error.context["steamId"] == STEAM_ID
    outcomes = {call["endpoint"]: call["outcome"] for call in error.context["calls"]}
    assert outcomes["ISteamUser/GetPlayerSummaries"] == "error"
    assert outcomes["IPlayerService/GetOwnedGames"] == "success"


@pytest.mark.anyio("asyncio")
async def test_broken_library_aborts_without_enrichment() -> None:
    requests: list[httpx.Request] = []
    handler = steam_router(games=None, requests=requests)

    with pytest.raises(PartialFailureError) as excinfo:
        await _build(handler)

    assert excinfo.value.section == "library"
    assert excinfo.value.status_code == 500
    assert excinfo.value.to_payload()["error"] == "Failed to fetch owned games"
    assert not any(request.url.path.endswith("/appdetails") for request in requests)


@pytest.mark.anyio("asyncio")
async def test_broken_wishlist_aborts() -> None:
    handler = steam_router(games=[], wishlist={"unexpected": True})

    with pytest.raises(PartialFailureError) as excinfo:
        await _build(handler)

    assert excinfo.value.section == "wishlist"


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize("steam_id", [None, "", "not-a-number"])
async def test_invalid_identifier_makes_no_upstream_calls(steam_id: str | None) -> None:
    requests: list[httpx.Request] = []
    handler = steam_router(games=[], requests=requests)

    with pytest.raises(ValidationError) as excinfo:
        await _build(handler, steam_id=steam_id)

    assert excinfo.value.status_code == 400
    assert requests == []


class SlowStore:
    """Store client double whose lookups never finish for selected ids."""

    def __init__(self, slow_ids: set[int]) -> None:
        self.slow_ids = slow_ids
        self.cancelled: list[int] = []
        self.stalled = asyncio.Event()

    async def get_catalog_detail(self, app_id: int) -> CatalogDetail:
        if app_id in self.slow_ids:
            self.stalled.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                self.cancelled.append(app_id)
                raise
        return CatalogDetail(name=f"Game {app_id}")


@pytest.mark.anyio("asyncio")
async def test_enrichment_budget_cancels_slow_lookups() -> None:
    settings = build_settings(AGGREGATE_TIMEOUT=0.2)
    handler = steam_router(
        games=[
            {"appid": 1, "name": "Fast", "playtime_forever": 0},
            {"appid": 2, "name": "Slow", "playtime_forever": 0},
        ]
    )
    store = SlowStore({2})
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = AggregationService(settings, SteamClient(settings, http_client), store)  # type: ignore[arg-type]
        result = await service.build_aggregate(STEAM_ID)

    assert result.owned_games[0].details is not None
    assert result.owned_games[1].details is None
    assert store.cancelled == [2]
    timed_out = [record for record in result.calls if record.error == "Enrichment timed out"]
    assert [record.endpoint for record in timed_out] == ["store/appdetails/2"]


@pytest.mark.anyio("asyncio")
async def test_cancelling_aggregate_cancels_outstanding_lookups() -> None:
    settings = build_settings()
    handler = steam_router(
        games=[
            {"appid": 1, "name": "Fast", "playtime_forever": 0},
            {"appid": 2, "name": "Slow", "playtime_forever": 0},
        ]
    )
    store = SlowStore({2})
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = AggregationService(settings, SteamClient(settings, http_client), store)  # type: ignore[arg-type]
        task = asyncio.create_task(service.build_aggregate(STEAM_ID))
        await asyncio.wait_for(store.stalled.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert store.cancelled == [2]


class CountingStore:
    """Store client double tracking how many lookups run at once."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def get_catalog_detail(self, app_id: int) -> CatalogDetail:
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
        finally:
            self.active -= 1
        return CatalogDetail(name=f"Game {app_id}")


@pytest.mark.anyio("asyncio")
async def test_enrichment_concurrency_is_bounded() -> None:
    settings = build_settings(ENRICHMENT_CONCURRENCY=2)
    handler = steam_router(
        games=[{"appid": app_id, "name": f"Game {app_id}"} for app_id in range(1, 8)]
    )
    store = CountingStore()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = AggregationService(settings, SteamClient(settings, http_client), store)  # type: ignore[arg-type]
        result = await service.build_aggregate(STEAM_ID)

    assert result.enriched_count() == 7
    assert store.peak == 2


def test_call_log_formats_errors() -> None:
    log = CallLog()
    log.record_failure("store/appdetails/1", RuntimeError("boom"))
    log.record_success("store/appdetails/2", CatalogDetail(name="Portal"))

    first, second = log.records
    assert len(log) == 2
    assert (first.outcome, first.error, first.response) == ("error", "boom", None)
    assert second.response["name"] == "Portal"
