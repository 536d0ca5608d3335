"""Client for the Steam Store ``appdetails`` endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import NotFoundError, UpstreamError, ValidationError
from ..models import CatalogDetail
from .http import InvalidResponseError, Sleep, fetch_json

logger = logging.getLogger(__name__)


class StoreClient:
    """Fetches and normalises catalog metadata for a single app."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self._sleep = sleep

    def _params(self, app_id: str) -> dict[str, Any]:
        params: dict[str, Any] = {"appids": app_id}
        if self._settings.store_country_code:
            params["cc"] = self._settings.store_country_code
        if self._settings.store_language:
            params["l"] = self._settings.store_language
        return params

    async def get_catalog_detail(self, app_id: int | str) -> CatalogDetail:
        """Return normalised store metadata for ``app_id``.

        Raises ``NotFoundError`` when the envelope is not keyed by the id,
        reports ``success: false`` or lacks ``data``; raises
        ``UpstreamError`` when every retry failed.
        """

        key = str(app_id).strip()
        if not key:
            raise ValidationError("App ID is required")

        url = f"{self._settings.steam_store_base}/appdetails"
        try:
            payload = await fetch_json(
                self._client,
                url,
                params=self._params(key),
                max_attempts=self._settings.fetch_max_attempts,
                base_delay=self._settings.fetch_base_delay,
                sleep=self._sleep,
            )
        except (httpx.HTTPError, InvalidResponseError) as exc:
            logger.error("Error fetching game details for %s: %s", key, exc)
            raise UpstreamError(
                "Failed to fetch game details",
                message=str(exc) or exc.__class__.__name__,
                appId=key,
            ) from exc

        entry = payload.get(key) if isinstance(payload, dict) else None
        data = entry.get("data") if isinstance(entry, dict) else None
        if not isinstance(entry, dict) or not entry.get("success") or not isinstance(data, dict):
            logger.warning("Steam Store returned no data for app %s", key)
            raise NotFoundError(
                "Failed to fetch game details or game not found",
                appId=key,
                response=payload,
            )

        return CatalogDetail.from_store_payload(data)
