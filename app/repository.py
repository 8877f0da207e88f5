"""Typed access to the logical collections kept in the key-value store."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import ValidationError

from .kv_store import KeyValueStore
from .models import ContentType, FavoriteEntry, SliderEntry, Title

EntryT = TypeVar("EntryT", SliderEntry, FavoriteEntry)

logger = logging.getLogger(__name__)

TITLE_PREFIXES: dict[ContentType, str] = {
    "movie": "movie:",
    "series": "series:",
}
SLIDER_KEY = "slider"
FAVORITES_PREFIX = "favorites:"


def title_key(content_type: ContentType, content_id: str) -> str:
    return f"{TITLE_PREFIXES[content_type]}{content_id}"


def favorites_key(user_id: str) -> str:
    return f"{FAVORITES_PREFIX}{user_id}"


class CatalogRepository:
    """Reads and writes titles, the slider list and favorites lists."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    async def get_title(self, content_type: ContentType, content_id: str) -> Title | None:
        payload = await self._store.get(title_key(content_type, content_id))
        if payload is None:
            return None
        return self._parse_title(payload, content_type)

    async def list_titles(self, content_type: ContentType) -> list[Title]:
        """Return every stored title of a type in store enumeration order."""

        titles: list[Title] = []
        for payload in await self._store.get_by_prefix(TITLE_PREFIXES[content_type]):
            title = self._parse_title(payload, content_type)
            if title is not None:
                titles.append(title)
        return titles

    async def put_title(self, content_type: ContentType, title: Title) -> None:
        if not title.id:
            raise ValueError("Titles must have an id before they are stored")
        await self._store.set(title_key(content_type, title.id), title.to_record())

    async def delete_title(self, content_type: ContentType, content_id: str) -> None:
        await self._store.delete(title_key(content_type, content_id))

    async def get_slider(self) -> list[SliderEntry]:
        payload = await self._store.get(SLIDER_KEY)
        return self._parse_entries(payload, SliderEntry, SLIDER_KEY)

    async def put_slider(self, entries: list[SliderEntry]) -> None:
        await self._store.set(SLIDER_KEY, [entry.to_record() for entry in entries])

    async def get_favorites(self, user_id: str) -> list[FavoriteEntry]:
        key = favorites_key(user_id)
        return self._parse_entries(await self._store.get(key), FavoriteEntry, key)

    async def put_favorites(self, user_id: str, entries: list[FavoriteEntry]) -> None:
        await self._store.set(
            favorites_key(user_id), [entry.to_record() for entry in entries]
        )

    async def favorite_user_ids(self) -> list[str]:
        """Return the ids of every user that has a favorites list."""

        return [
            key[len(FAVORITES_PREFIX):]
            for key in await self._store.get_all_keys()
            if key.startswith(FAVORITES_PREFIX)
        ]

    @staticmethod
    def _parse_entries(payload: Any, model: type[EntryT], key: str) -> list[EntryT]:
        """Validate list entries, skipping the ones that cannot be read.

        Skipped entries are dropped the next time the list is written.
        """

        if not isinstance(payload, list):
            return []
        entries: list[EntryT] = []
        for raw in payload:
            if not isinstance(raw, dict):
                logger.warning("Skipping non-object entry in %s: %r", key, raw)
                continue
            try:
                entries.append(model.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping unreadable entry in %s: %s", key, exc)
        return entries

    @staticmethod
    def _parse_title(payload: Any, content_type: ContentType) -> Title | None:
        if not isinstance(payload, dict):
            return None
        try:
            return Title.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "Skipping unreadable %s record %s: %s",
                content_type,
                payload.get("id"),
                exc,
            )
            return None
