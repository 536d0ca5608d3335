"""Build the enriched profile/library/wishlist view for one Steam account."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, TypeVar

from pydantic import BaseModel

from ..config import Settings
from ..errors import PartialFailureError, SteamLensError
from ..models import AggregateResult, CallRecord, CatalogDetail
from .steam import SteamClient, require_steam_id
from .store import StoreClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROFILE_ENDPOINT = "ISteamUser/GetPlayerSummaries"
LIBRARY_ENDPOINT = "IPlayerService/GetOwnedGames"
WISHLIST_ENDPOINT = "IWishlistService/GetWishlist"


def catalog_endpoint(app_id: int) -> str:
    return f"store/appdetails/{app_id}"


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


class CallLog:
    """Ordered audit trail of upstream calls made for one aggregate."""

    def __init__(self) -> None:
        self._records: list[CallRecord] = []

    def record_success(self, endpoint: str, response: Any) -> None:
        self._records.append(
            CallRecord(
                endpoint=endpoint,
                timestamp=datetime.now(timezone.utc),
                outcome="success",
                response=_dump(response),
            )
        )

    def record_failure(self, endpoint: str, error: BaseException | str) -> None:
        if isinstance(error, SteamLensError):
            detail = error.error if not error.message else f"{error.error}: {error.message}"
        else:
            detail = str(error) or error.__class__.__name__
        self._records.append(
            CallRecord(
                endpoint=endpoint,
                timestamp=datetime.now(timezone.utc),
                outcome="error",
                error=detail,
            )
        )

    @property
    def records(self) -> list[CallRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)


class AggregationService:
    """Coordinates the Steam fetchers and the catalog enrichment fan-out."""

    def __init__(self, settings: Settings, steam: SteamClient, store: StoreClient):
        self._settings = settings
        self._steam = steam
        self._store = store

    @property
    def steam(self) -> SteamClient:
        return self._steam

    @property
    def store(self) -> StoreClient:
        return self._store

    async def _tracked(self, log: CallLog, endpoint: str, call: Awaitable[T]) -> T:
        try:
            result = await call
        except Exception as exc:
            log.record_failure(endpoint, exc)
            raise
        log.record_success(endpoint, result)
        return result

    async def build_aggregate(self, steam_id: str | None) -> AggregateResult:
        """Return the profile, library and wishlist for ``steam_id``.

        Profile, library and wishlist are mandatory: the first of them to
        fail aborts the request with ``PartialFailureError``. Catalog
        enrichment is best effort and a failed lookup only leaves the
        entry's ``details`` empty.
        """

        steam_id = require_steam_id(steam_id)

        loop = asyncio.get_running_loop()
        started = loop.time()
        log = CallLog()

        profile, library, wishlist = await asyncio.gather(
            self._tracked(log, PROFILE_ENDPOINT, self._steam.get_profile(steam_id)),
            self._tracked(log, LIBRARY_ENDPOINT, self._steam.get_library(steam_id)),
            self._tracked(log, WISHLIST_ENDPOINT, self._steam.get_wishlist(steam_id)),
            return_exceptions=True,
        )
        for section, outcome in (
            ("profile", profile),
            ("library", library),
            ("wishlist", wishlist),
        ):
            if isinstance(outcome, SteamLensError):
                logger.warning(
                    "Aggregate for %s aborted: %s fetch failed (%s)",
                    steam_id,
                    section,
                    outcome,
                )
                raise PartialFailureError(
                    section,
                    outcome,
                    steamId=steam_id,
                    calls=[record.model_dump(mode="json") for record in log.records],
                ) from outcome
            if isinstance(outcome, BaseException):
                raise outcome

        budget = self._settings.aggregate_timeout_seconds
        remaining = None if budget is None else max(budget - (loop.time() - started), 0.0)
        app_ids = list(
            dict.fromkeys([entry.appid for entry in library] + [entry.appid for entry in wishlist])
        )
        details = await self._enrich(app_ids, log, timeout=remaining)

        owned_games = [
            entry.model_copy(update={"details": details.get(entry.appid)}) for entry in library
        ]
        wishlist_entries = [
            entry.model_copy(update={"details": details.get(entry.appid)}) for entry in wishlist
        ]
        result = AggregateResult(
            steam_id=steam_id,
            profile=profile,
            owned_games=owned_games,
            wishlist=wishlist_entries,
            calls=log.records,
        )
        logger.info(
            "Built aggregate for %s: %s games, %s wishlist items, %s entries enriched from %s lookups",
            steam_id,
            len(owned_games),
            len(wishlist_entries),
            result.enriched_count(),
            len(app_ids),
        )
        return result

    async def _enrich(
        self,
        app_ids: list[int],
        log: CallLog,
        *,
        timeout: float | None,
    ) -> dict[int, CatalogDetail]:
        """Fetch catalog details for every id, dropping the ones that fail."""

        if not app_ids:
            return {}

        semaphore = asyncio.Semaphore(self._settings.enrichment_concurrency)

        async def _lookup(app_id: int) -> CatalogDetail:
            async with semaphore:
                return await self._tracked(
                    log, catalog_endpoint(app_id), self._store.get_catalog_detail(app_id)
                )

        tasks = {app_id: asyncio.create_task(_lookup(app_id)) for app_id in app_ids}
        try:
            await asyncio.wait(tasks.values(), timeout=timeout)
        finally:
            # Also runs when the caller cancels build_aggregate mid fan-out.
            unfinished = [task for task in tasks.values() if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        details: dict[int, CatalogDetail] = {}
        for app_id, task in tasks.items():
            if task.cancelled():
                logger.warning("Catalog enrichment for %s timed out", app_id)
                log.record_failure(catalog_endpoint(app_id), "Enrichment timed out")
                continue
            exc = task.exception()
            if exc is not None:
                logger.warning("Catalog enrichment failed for %s: %s", app_id, exc)
                continue
            details[app_id] = task.result()
        return details
