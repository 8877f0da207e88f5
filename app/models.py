"""Pydantic models describing catalog records."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import parse_release_date

ContentType = Literal["movie", "series"]

CONTENT_TYPES: tuple[ContentType, ...] = ("movie", "series")


class _Record(BaseModel):
    """Base for JSON records stored with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-compatible payload persisted in the store."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Genre(_Record):
    id: int | None = None
    name: str = ""


class Episode(_Record):
    episode_number: int | None = Field(default=None, alias="episodeNumber")
    name: str | None = None
    overview: str | None = None
    video_url: str | None = Field(default=None, alias="videoUrl")


class Season(_Record):
    season_number: int | None = Field(default=None, alias="seasonNumber")
    name: str | None = None
    episodes: list[Episode] = Field(default_factory=list)


class Title(_Record):
    """A movie or series as stored under ``movie:<id>`` or ``series:<id>``.

    Fields the client sends that are not modelled here are kept as extras so
    that an update round-trips the whole record.
    """

    id: str | None = None
    title: str = ""
    description: str | None = None
    poster_url: str | None = Field(default=None, alias="posterUrl")
    banner_url: str | None = Field(default=None, alias="bannerUrl")
    year: int | None = None
    rating: float | None = None
    genre: str | None = None
    categories: list[str] = Field(default_factory=list)
    added_at: int | None = Field(default=None, alias="addedAt")
    show_in_home: bool = Field(default=True, alias="showInHome")
    in_slider: bool = Field(default=False, alias="inSlider")
    release_date: date | None = Field(default=None, alias="releaseDate")
    tmdb_id: int | None = Field(default=None, alias="tmdbId")
    tmdb_genres: list[Genre] = Field(default_factory=list, alias="tmdbGenres")
    duration: int | None = None
    video_url: str | None = Field(default=None, alias="videoUrl")
    seasons: list[Season] | None = None

    @field_validator("year", "rating", "duration", "tmdb_id", "added_at", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("release_date", mode="before")
    @classmethod
    def _parse_release_date(cls, value: object) -> date | None:
        return parse_release_date(value)

    @field_validator("categories", mode="before")
    @classmethod
    def _default_categories(cls, value: object) -> object:
        if value is None:
            return []
        return value

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, (int, str)):
            text = str(value).strip()
            return text or None
        return value

    @property
    def added_at_or_zero(self) -> int:
        return self.added_at or 0

    def is_visible_on_home(self) -> bool:
        return self.show_in_home is not False


class SliderEntry(_Record):
    """Banner shown in the home slider, optionally linked to a title."""

    url: str | None = None
    content_id: str | None = Field(default=None, alias="contentId")
    type: ContentType | None = None
    created_at: int | None = Field(default=None, alias="createdAt")
    file_name: str | None = Field(default=None, alias="fileName")

    def references(self, content_id: str, content_type: ContentType) -> bool:
        return self.content_id == content_id and self.type == content_type


class FavoriteEntry(_Record):
    content_id: str = Field(alias="contentId")
    type: ContentType | None = None

    @field_validator("content_id", mode="before")
    @classmethod
    def _stringify_content_id(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value


class AuthUser(BaseModel):
    """The subset of an auth-provider user the catalog relies on."""

    model_config = ConfigDict(extra="allow")

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("user_metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value: object) -> object:
        if value is None:
            return {}
        return value

    @property
    def admin_flag(self) -> bool:
        return self.user_metadata.get("isAdmin") is True
