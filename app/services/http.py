"""Resilient JSON GET used for the rate-limited Steam Store endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping

import httpx

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class InvalidResponseError(Exception):
    """Raised when a response cannot be treated as a JSON payload."""

    def __init__(
        self,
        url: str,
        *,
        status_code: int,
        content_type: str | None,
        reason: str = "Invalid response type from API",
    ) -> None:
        super().__init__(f"{reason} (status {status_code}, content-type {content_type or 'none'})")
        self.url = url
        self.status_code = status_code
        self.content_type = content_type


def _is_json_content_type(value: str | None) -> bool:
    return bool(value) and "application/json" in value.lower()


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Sleep = asyncio.sleep,
) -> Any:
    """GET ``url`` and return the decoded JSON body, retrying on failure.

    A failure is a transport error, a non-2xx status, a content type other
    than JSON, or a body that does not decode. Failed attempt ``n`` is
    followed by a ``base_delay * n`` second pause. Once ``max_attempts``
    attempts have failed the last exception is re-raised.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        logger.debug("GET %s (attempt %s/%s)", url, attempt, max_attempts)
        try:
            response = await client.get(url, params=params)
            content_type = response.headers.get("content-type")
            if not response.is_success or not _is_json_content_type(content_type):
                logger.debug(
                    "Non-JSON response from %s (status %s): %.200s",
                    url,
                    response.status_code,
                    response.text,
                )
                raise InvalidResponseError(
                    url,
                    status_code=response.status_code,
                    content_type=content_type,
                )
            try:
                return response.json()
            except ValueError as exc:
                raise InvalidResponseError(
                    url,
                    status_code=response.status_code,
                    content_type=content_type,
                    reason="Malformed JSON body",
                ) from exc
        except (httpx.HTTPError, InvalidResponseError) as exc:
            if attempt >= max_attempts:
                # Single-shot callers decide how loudly to report the failure.
                if max_attempts > 1:
                    logger.error("Max retries reached for %s: %s", url, exc)
                raise
            backoff = base_delay * attempt
            logger.warning(
                "Attempt %s failed for %s (%s). Retrying in %.1fs",
                attempt,
                url,
                exc,
                backoff,
            )
            await sleep(backoff)

    raise AssertionError("unreachable")  # pragma: no cover
