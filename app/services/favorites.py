"""Per-user favorites lists."""

from __future__ import annotations

import logging

from ..models import ContentType, FavoriteEntry
from ..repository import CatalogRepository

logger = logging.getLogger(__name__)


class FavoritesService:
    """Add and remove titles from a user's favorites list."""

    def __init__(self, repository: CatalogRepository):
        self._repository = repository

    async def list_favorites(self, user_id: str) -> list[FavoriteEntry]:
        return await self._repository.get_favorites(user_id)

    async def add_favorite(
        self, user_id: str, content_id: str, content_type: ContentType | None
    ) -> bool:
        """Append a favorite unless the content id is already listed."""

        favorites = await self._repository.get_favorites(user_id)
        if any(entry.content_id == content_id for entry in favorites):
            return False
        favorites.append(FavoriteEntry(content_id=content_id, type=content_type))
        await self._repository.put_favorites(user_id, favorites)
        logger.debug("User %s favorited %s %s", user_id, content_type, content_id)
        return True

    async def remove_favorite(self, user_id: str, content_id: str) -> bool:
        favorites = await self._repository.get_favorites(user_id)
        kept = [entry for entry in favorites if entry.content_id != content_id]
        await self._repository.put_favorites(user_id, kept)
        return len(kept) != len(favorites)
