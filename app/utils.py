"""Utility helpers for the CineCatalog service."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

import httpx


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def epoch_millis(moment: datetime) -> int:
    """Return ``moment`` as integer milliseconds since the Unix epoch."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def new_content_id() -> str:
    """Generate a collision-resistant identifier for a new title."""

    return uuid.uuid4().hex


def parse_release_date(value: object) -> date | None:
    """Coerce a stored release date into a ``date``.

    Accepts ``date``/``datetime`` instances and ISO formatted strings; only the
    leading ``YYYY-MM-DD`` part of a string is considered. Anything else,
    including blank or malformed strings, is treated as a missing date.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()[:10]
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def coerce_bool(value: object) -> bool:
    """Interpret loosely typed form and JSON flags."""

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return bool(value)
    return False


def describe_error_response(response: httpx.Response) -> str:
    """Extract a human readable message from a failed upstream response."""

    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("msg", "message", "error_description", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.text or f"HTTP {response.status_code}"
