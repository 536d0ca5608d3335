"""Utility helpers for the SteamLens service."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping


STEAM_ID_RE = re.compile(r"^\d+$")

CURRENCY_SYMBOLS: Mapping[str, str] = MappingProxyType(
    {
        "USD": "$",
        "CAD": "CA$",
        "AUD": "A$",
        "EUR": "€",
        "GBP": "£",
        "JPY": "¥",
        "BRL": "R$",
        "RUB": "₽",
        "PLN": "zł",
        "INR": "₹",
        "KRW": "₩",
    }
)


def is_valid_steam_id(value: object) -> bool:
    """Return ``True`` for a non-empty string of ASCII digits."""

    return isinstance(value, str) and bool(STEAM_ID_RE.match(value))


def coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def minutes_to_hours(minutes: Any) -> int:
    """Convert a minute count to whole hours, rounding half up.

    90 minutes is 2 hours, 29 minutes is 0 hours. Missing or invalid values
    count as zero.
    """

    total = max(coerce_int(minutes), 0)
    return (total + 30) // 60


def epoch_to_iso(timestamp: Any) -> str | None:
    """Render epoch seconds as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""

    if timestamp is None or isinstance(timestamp, bool):
        return None
    try:
        moment = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_to_locale_date(timestamp: Any) -> str:
    """Render epoch seconds as an en-US style ``M/D/YYYY`` UTC calendar date."""

    try:
        moment = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return ""
    return f"{moment.month}/{moment.day}/{moment.year}"


def format_minor_units(amount: int, currency: str | None) -> str:
    """Format a minor-unit price (cents) with a currency prefix."""

    code = (currency or "USD").upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    return f"{symbol}{amount / 100:.2f}"
