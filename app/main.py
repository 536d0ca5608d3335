"""Entry point for the FastAPI-powered Steam profile service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings
from .errors import SteamLensError, ValidationError
from .models import CatalogDetail
from .services.aggregator import AggregationService
from .services.steam import SteamClient
from .services.store import StoreClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_service(
    config: Settings,
    api_client: httpx.AsyncClient,
    store_client: httpx.AsyncClient,
) -> AggregationService:
    return AggregationService(
        config,
        SteamClient(config, api_client),
        StoreClient(config, store_client),
    )


def create_app(config: Settings | None = None) -> FastAPI:
    resolved = config or settings

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        exit_stack = AsyncExitStack()
        timeout = httpx.Timeout(resolved.http_timeout_seconds, connect=10.0)
        api_client = await exit_stack.enter_async_context(httpx.AsyncClient(timeout=timeout))
        store_client = await exit_stack.enter_async_context(httpx.AsyncClient(timeout=timeout))
        fastapi_app.state.aggregation_service = build_service(
            resolved, api_client, store_client
        )
        try:
            yield
        finally:  # pragma: no cover - teardown path exercised at runtime
            await exit_stack.aclose()

    fastapi_app = FastAPI(
        title=resolved.app_name,
        description="Steam profile, library and wishlist aggregation with Store enrichment",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @fastapi_app.exception_handler(SteamLensError)
    async def _steam_error_handler(_: Request, exc: SteamLensError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed: %s", exc)
        return JSONResponse(exc.to_payload(), status_code=exc.status_code)

    register_routes(fastapi_app)
    return fastapi_app


def get_aggregation_service(fastapi_app: FastAPI) -> AggregationService:
    service = getattr(fastapi_app.state, "aggregation_service", None)
    if not isinstance(service, AggregationService):
        raise RuntimeError("Aggregation service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/steam/aggregate")
    async def aggregate(steam_id: str | None = Query(default=None, alias="steamId")) -> JSONResponse:
        service = get_aggregation_service(fastapi_app)
        result = await service.build_aggregate(steam_id)
        return JSONResponse(result.model_dump(mode="json", by_alias=True))

    @fastapi_app.get("/api/steam/profile")
    async def profile(steam_id: str | None = Query(default=None, alias="steamId")) -> dict[str, Any]:
        service = get_aggregation_service(fastapi_app)
        player = await service.steam.get_profile(steam_id)
        games = await service.steam.get_library(steam_id)
        return {
            "profile": player.model_dump(mode="json"),
            "ownedGames": [game.model_dump(mode="json", exclude={"details"}) for game in games],
        }

    @fastapi_app.get("/api/steam")
    async def wishlist(steam_id: str | None = Query(default=None, alias="steamId")) -> dict[str, Any]:
        service = get_aggregation_service(fastapi_app)
        entries = await service.steam.get_wishlist(steam_id)
        return {
            "wishlist": [entry.model_dump(mode="json", exclude={"details"}) for entry in entries]
        }

    @fastapi_app.get("/api/steam/game")
    async def game(app_id: str | None = Query(default=None, alias="appId")) -> CatalogDetail:
        if not app_id:
            raise ValidationError("App ID is required")
        service = get_aggregation_service(fastapi_app)
        return await service.store.get_catalog_detail(app_id)

    @fastapi_app.get("/api/steam/resolve")
    async def resolve(username: str | None = None) -> dict[str, str]:
        service = get_aggregation_service(fastapi_app)
        steam_id = await service.steam.resolve_steam_id(username)
        return {"steamId": steam_id}


app = create_app()
