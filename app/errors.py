"""Error taxonomy shared by the fetchers, the aggregator and the HTTP layer."""

from __future__ import annotations

from typing import Any


class SteamLensError(Exception):
    """Base error rendered as ``{"error": ..., "message": ...}`` to clients."""

    status_code: int = 500

    def __init__(
        self,
        error: str,
        *,
        message: str | None = None,
        status_code: int | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message or error)
        self.error = error
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context = {key: value for key, value in context.items() if value is not None}

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        payload.update(self.context)
        return payload


class ValidationError(SteamLensError):
    """A required input was missing or malformed; no upstream call was made."""

    status_code = 400


class NotFoundError(SteamLensError):
    """Upstream answered but holds no matching record."""

    status_code = 404


class UpstreamError(SteamLensError):
    """Transport failure, non-JSON response or malformed envelope."""

    status_code = 500


class PartialFailureError(SteamLensError):
    """One of the mandatory aggregate sections could not be fetched.

    The status code and message are inherited from the underlying error so
    that a missing profile still surfaces as a 404 and a broken library
    endpoint as a 500.
    """

    def __init__(self, section: str, cause: SteamLensError, **context: Any) -> None:
        merged = {**cause.context, **context}
        super().__init__(
            cause.error,
            message=cause.message,
            status_code=cause.status_code,
            **merged,
        )
        self.section = section
        self.cause = cause
