"""Title lifecycle, home-feed curation and slider management."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from ..categories import (
    classify_genres,
    display_genre,
    home_categories,
    sync_release_category,
)
from ..config import Settings
from ..errors import NotFoundError, UpstreamServiceError
from ..models import CONTENT_TYPES, ContentType, SliderEntry, Title
from ..repository import CatalogRepository
from ..utils import epoch_millis, new_content_id, utcnow
from .storage import StorageClient

logger = logging.getLogger(__name__)

CONTENT_LABELS: dict[ContentType, str] = {"movie": "Movie", "series": "Series"}


@dataclass(slots=True)
class DeleteOutcome:
    """What a delete cascade actually changed."""

    content_id: str
    content_type: ContentType
    removed: bool
    slider_entries_removed: int = 0
    favorite_lists_updated: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": True,
            "removed": self.removed,
            "sliderEntriesRemoved": self.slider_entries_removed,
            "favoriteListsUpdated": self.favorite_lists_updated,
        }


@dataclass(slots=True)
class HomeSection:
    category: str
    content_type: ContentType
    items: list[Title] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "genre": display_genre(self.category),
            "type": self.content_type,
            "items": [item.to_record() for item in self.items],
        }


@dataclass(slots=True)
class HomeFeed:
    slider: list[SliderEntry]
    sections: list[HomeSection]

    def to_payload(self) -> dict[str, Any]:
        return {
            "slider": [entry.to_record() for entry in self.slider],
            "sections": [section.to_payload() for section in self.sections],
        }


class CatalogService:
    """Keeps title records, the slider and favorites lists consistent.

    Every operation is a sequence of independent read-modify-write calls on
    the key-value store. Nothing is rolled back when a later step fails; each
    step is idempotent, so callers recover by retrying the whole operation.
    """

    def __init__(
        self,
        settings: Settings,
        repository: CatalogRepository,
        storage: StorageClient | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._settings = settings
        self._repository = repository
        self._storage = storage
        self._clock = clock

    @property
    def home_limit(self) -> int:
        return self._settings.home_category_limit

    async def list_titles(self, content_type: ContentType) -> list[Title]:
        return await self._repository.list_titles(content_type)

    async def get_title(self, content_type: ContentType, content_id: str) -> Title:
        title = await self._repository.get_title(content_type, content_id)
        if title is None:
            raise NotFoundError(f"{CONTENT_LABELS[content_type]} not found")
        return title

    async def create_title(self, content_type: ContentType, payload: Title) -> Title:
        """Store a new title, categorise it and curate the affected feeds."""

        now = self._clock()
        content_id = payload.id or new_content_id()

        categories = list(payload.categories)
        if not categories:
            categories.append(classify_genres(payload.tmdb_genres, content_type))
        categories = sync_release_category(
            categories, content_type, payload.release_date, now
        )

        # Re-creating an existing id must not move it in the feeds.
        existing = await self._repository.get_title(content_type, content_id)
        if existing is not None and existing.added_at is not None:
            added_at = existing.added_at
        else:
            added_at = epoch_millis(now)

        title = payload.model_copy(
            update={
                "id": content_id,
                "categories": categories,
                "added_at": added_at,
                "show_in_home": True,
            }
        )
        await self._repository.put_title(content_type, title)
        logger.info("Created %s %s in %s", content_type, content_id, categories)

        for category in dict.fromkeys(categories):
            await self.apply_home_cap(category, content_type)

        if title.in_slider and title.banner_url:
            entries = await self._repository.get_slider()
            if not any(entry.references(content_id, content_type) for entry in entries):
                entries.append(
                    SliderEntry(
                        url=title.banner_url,
                        content_id=content_id,
                        type=content_type,
                        created_at=epoch_millis(now),
                    )
                )
                await self._repository.put_slider(entries)

        return title

    async def update_title(
        self, content_type: ContentType, content_id: str, payload: Title
    ) -> Title:
        """Replace a stored title and reconcile its slider entry.

        The stored record is overwritten as a whole; only ``id`` and an
        already assigned ``addedAt`` are taken from the existing record.
        """

        existing = await self._repository.get_title(content_type, content_id)
        if existing is None:
            raise NotFoundError(f"{CONTENT_LABELS[content_type]} not found")

        now = self._clock()
        added_at = existing.added_at if existing.added_at is not None else payload.added_at
        title = payload.model_copy(
            update={
                "id": content_id,
                "added_at": added_at,
                "categories": sync_release_category(
                    payload.categories, content_type, payload.release_date, now
                ),
            }
        )
        await self._repository.put_title(content_type, title)
        logger.info("Updated %s %s", content_type, content_id)

        await self._reconcile_slider(title, content_type, now)

        for category in dict.fromkeys(title.categories):
            await self.apply_home_cap(category, content_type)

        return title

    async def _reconcile_slider(
        self, title: Title, content_type: ContentType, now: datetime
    ) -> None:
        content_id = title.id or ""
        entries = await self._repository.get_slider()
        matches = [
            index
            for index, entry in enumerate(entries)
            if entry.references(content_id, content_type)
        ]

        if title.in_slider and title.banner_url:
            if not matches:
                entries.append(
                    SliderEntry(
                        url=title.banner_url,
                        content_id=content_id,
                        type=content_type,
                        created_at=epoch_millis(now),
                    )
                )
            else:
                index = matches[0]
                entries[index] = entries[index].model_copy(update={"url": title.banner_url})
            await self._repository.put_slider(entries)
        elif not title.in_slider and matches:
            kept = [entry for index, entry in enumerate(entries) if index not in matches]
            await self._repository.put_slider(kept)

    async def delete_title(self, content_type: ContentType, content_id: str) -> DeleteOutcome:
        """Remove a title and every slider entry and favorite pointing at it.

        Safe to repeat: each step only writes when something referenced the
        title, so a second run for the same id changes nothing.
        """

        existing = await self._repository.get_title(content_type, content_id)
        await self._repository.delete_title(content_type, content_id)
        outcome = DeleteOutcome(
            content_id=content_id,
            content_type=content_type,
            removed=existing is not None,
        )

        entries = await self._repository.get_slider()
        kept_entries = [
            entry for entry in entries if not entry.references(content_id, content_type)
        ]
        if len(kept_entries) != len(entries):
            await self._repository.put_slider(kept_entries)
            outcome.slider_entries_removed = len(entries) - len(kept_entries)

        for user_id in await self._repository.favorite_user_ids():
            favorites = await self._repository.get_favorites(user_id)
            kept = [entry for entry in favorites if entry.content_id != content_id]
            if len(kept) != len(favorites):
                await self._repository.put_favorites(user_id, kept)
                outcome.favorite_lists_updated += 1

        logger.info(
            "Deleted %s %s (slider entries: %s, favorite lists: %s)",
            content_type,
            content_id,
            outcome.slider_entries_removed,
            outcome.favorite_lists_updated,
        )
        return outcome

    async def apply_home_cap(self, category: str, content_type: ContentType) -> list[str]:
        """Hide everything but the newest titles of a category from the home feed.

        Titles with equal ``addedAt`` keep store enumeration order. Returns
        the ids that were hidden by this call.
        """

        titles = await self._repository.list_titles(content_type)
        visible = [
            title
            for title in titles
            if category in title.categories and title.is_visible_on_home()
        ]
        visible.sort(key=lambda title: title.added_at_or_zero, reverse=True)

        hidden: list[str] = []
        for title in visible[self.home_limit:]:
            await self._repository.put_title(
                content_type, title.model_copy(update={"show_in_home": False})
            )
            hidden.append(title.id or "")
        if hidden:
            logger.info(
                "Hid %d %s titles from home category %s", len(hidden), content_type, category
            )
        return hidden

    async def refresh_release_categories(self) -> int:
        """Re-evaluate the release category of every title against today."""

        now = self._clock()
        updated = 0
        for content_type in CONTENT_TYPES:
            for title in await self._repository.list_titles(content_type):
                categories = sync_release_category(
                    title.categories, content_type, title.release_date, now
                )
                if categories == title.categories:
                    continue
                await self._repository.put_title(
                    content_type, title.model_copy(update={"categories": categories})
                )
                updated += 1
        if updated:
            logger.info("Refreshed release categories on %d titles", updated)
        return updated

    async def home_feed(self) -> HomeFeed:
        """Return the slider plus the newest visible titles per home category."""

        sections: list[HomeSection] = []
        for content_type in CONTENT_TYPES:
            titles = await self._repository.list_titles(content_type)
            for category in home_categories(content_type):
                items = [
                    title
                    for title in titles
                    if category in title.categories and title.is_visible_on_home()
                ]
                if not items:
                    continue
                items.sort(key=lambda title: title.added_at_or_zero, reverse=True)
                sections.append(
                    HomeSection(
                        category=category,
                        content_type=content_type,
                        items=items[: self.home_limit],
                    )
                )
        return HomeFeed(slider=await self._repository.get_slider(), sections=sections)

    async def search_titles(self, query: str) -> dict[ContentType, list[Title]]:
        needle = (query or "").strip().lower()
        results: dict[ContentType, list[Title]] = {"movie": [], "series": []}
        if not needle:
            return results
        for content_type in CONTENT_TYPES:
            results[content_type] = [
                title
                for title in await self._repository.list_titles(content_type)
                if needle in title.title.lower()
            ]
        return results

    async def list_slider(self) -> list[SliderEntry]:
        return await self._repository.get_slider()

    async def upload_slider_image(
        self,
        filename: str,
        data: bytes,
        media_type: str | None,
        *,
        content_id: str | None = None,
        content_type: ContentType | None = None,
    ) -> SliderEntry:
        """Store an uploaded banner and append it to the slider."""

        storage = self._require_storage()
        now = self._clock()
        file_name = f"{epoch_millis(now)}-{filename}"
        bucket = self._settings.slider_bucket

        await storage.upload(bucket, file_name, data, media_type)
        url = await storage.create_signed_url(
            bucket, file_name, self._settings.signed_url_ttl_seconds
        )

        entry = SliderEntry(
            url=url,
            content_id=content_id,
            type=content_type,
            created_at=epoch_millis(now),
            file_name=file_name,
        )
        entries = await self._repository.get_slider()
        entries.append(entry)
        await self._repository.put_slider(entries)
        logger.info("Uploaded slider image %s", file_name)
        return entry

    async def remove_slider_entry(self, index: int) -> SliderEntry | None:
        """Remove the slider entry at ``index``; out-of-range indexes are ignored."""

        entries = await self._repository.get_slider()
        if not 0 <= index < len(entries):
            return None
        entry = entries.pop(index)
        if entry.file_name:
            await self._require_storage().remove(self._settings.slider_bucket, [entry.file_name])
        await self._repository.put_slider(entries)
        return entry

    def _require_storage(self) -> StorageClient:
        if self._storage is None:
            raise UpstreamServiceError("Object storage is not configured")
        return self._storage
