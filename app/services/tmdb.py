"""Proxy and draft builder for The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from ..categories import classify_genres, sync_release_category
from ..config import Settings
from ..errors import NotFoundError, UpstreamServiceError
from ..models import ContentType, Episode, Season, Title
from ..utils import describe_error_response, parse_release_date, utcnow

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BANNER_BASE_URL = "https://image.tmdb.org/t/p/original"


class TMDBClient:
    """Read-only TMDB access that keeps the API key on the server."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client

    async def search_movie(self, query: str) -> dict[str, Any]:
        return await self._get("/search/movie", query=query or "")

    async def search_tv(self, query: str) -> dict[str, Any]:
        return await self._get("/search/tv", query=query or "")

    async def get_movie(self, tmdb_id: int | str) -> dict[str, Any]:
        return await self._get(f"/movie/{tmdb_id}")

    async def get_tv(self, tmdb_id: int | str) -> dict[str, Any]:
        return await self._get(f"/tv/{tmdb_id}")

    async def get_season(self, tv_id: int | str, season_number: int | str) -> dict[str, Any]:
        return await self._get(f"/tv/{tv_id}/season/{season_number}")

    async def movie_draft(self, tmdb_id: int | str, *, now: datetime | None = None) -> Title:
        """Return an unsaved movie prefilled from TMDB details."""

        details = await self.get_movie(tmdb_id)
        return build_title_draft(details, "movie", now=now)

    async def tv_draft(self, tmdb_id: int | str, *, now: datetime | None = None) -> Title:
        details = await self.get_tv(tmdb_id)
        return build_title_draft(details, "series", now=now)

    async def season_draft(self, tv_id: int | str, season_number: int | str) -> Season:
        """Return a season with its episode list and empty video URLs."""

        details = await self.get_season(tv_id, season_number)
        episodes = [
            Episode(
                episode_number=episode.get("episode_number"),
                name=episode.get("name"),
                overview=episode.get("overview"),
                video_url="",
            )
            for episode in details.get("episodes") or []
            if isinstance(episode, dict)
        ]
        return Season(
            season_number=details.get("season_number", season_number),
            name=details.get("name"),
            episodes=episodes,
        )

    async def _get(self, path: str, **params: Any) -> dict[str, Any]:
        query = {
            "api_key": self._settings.tmdb_api_key,
            "language": self._settings.tmdb_language,
            **params,
        }
        try:
            response = await self._client.get(path, params=query)
        except httpx.HTTPError as exc:
            logger.warning("TMDB request %s failed: %s", path, exc)
            raise UpstreamServiceError(f"TMDB request failed: {exc}") from exc

        if response.status_code == 404:
            raise NotFoundError(describe_error_response(response))
        if response.status_code >= 400:
            message = describe_error_response(response)
            logger.warning("TMDB request %s rejected (%s): %s", path, response.status_code, message)
            raise UpstreamServiceError(message)

        data = response.json()
        if not isinstance(data, dict):
            raise UpstreamServiceError("Unexpected TMDB payload")
        return data


def build_title_draft(
    details: dict[str, Any], content_type: ContentType, *, now: datetime | None = None
) -> Title:
    """Translate TMDB movie or TV details into an unsaved catalog title."""

    moment = now or utcnow()
    genres = [genre for genre in details.get("genres") or [] if isinstance(genre, dict)]
    if content_type == "movie":
        name = details.get("title")
        release = details.get("release_date")
    else:
        name = details.get("name")
        release = details.get("first_air_date")
    release_date = parse_release_date(release)

    categories = sync_release_category(
        [classify_genres(genres, content_type)], content_type, release_date, moment
    )

    vote_average = details.get("vote_average")
    rating = round(float(vote_average), 1) if isinstance(vote_average, (int, float)) else None

    draft: dict[str, Any] = {
        "tmdb_id": details.get("id"),
        "title": name or "",
        "description": details.get("overview"),
        "poster_url": _image_url(details.get("poster_path"), POSTER_BASE_URL),
        "banner_url": _image_url(details.get("backdrop_path"), BANNER_BASE_URL),
        "year": release_date.year if release_date else None,
        "rating": rating,
        "genre": ", ".join(str(genre.get("name", "")) for genre in genres),
        "release_date": release_date,
        "tmdb_genres": genres,
        "categories": categories,
        "in_slider": False,
    }
    if content_type == "movie":
        draft["duration"] = details.get("runtime")
        draft["video_url"] = ""
    else:
        draft["seasons"] = [
            {
                "season_number": season.get("season_number"),
                "name": season.get("name"),
                "enabled": False,
                "episodes": [],
            }
            for season in details.get("seasons") or []
            if isinstance(season, dict) and (season.get("season_number") or 0) > 0
        ]
    return Title.model_validate(draft)


def _image_url(path: object, base_url: str) -> str | None:
    if not isinstance(path, str) or not path:
        return None
    if path.startswith("http"):
        return path
    return f"{base_url}{path}"
