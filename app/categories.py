"""Genre classification and the rolling release-window category."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Sequence

from .models import ContentType
from .utils import parse_release_date, utcnow

CATEGORY_PREFIXES: dict[ContentType, str] = {
    "movie": "Filme ~ ",
    "series": "Séries ~ ",
}

UNCATEGORIZED = "Sem categoria"
RELEASES = "Lançamentos"

# Matched in order against the lower-cased first genre.
GENRE_SYNONYMS: tuple[tuple[str, str], ...] = (
    ("ação", "Ação"),
    ("action", "Ação"),
    ("terror", "Terror"),
    ("horror", "Terror"),
    ("crime", "Crime"),
    ("drama", "Drama"),
    ("thriller", "Crime"),
    ("mistério", "Crime"),
    ("mystery", "Crime"),
)

HOME_GENRES: tuple[str, ...] = (RELEASES, "Ação", "Terror", "Crime", "Drama")


def category_prefix(content_type: ContentType) -> str:
    return CATEGORY_PREFIXES[content_type]


def release_category(content_type: ContentType) -> str:
    """Return the synthetic "new releases" category for the content type."""

    return f"{category_prefix(content_type)}{RELEASES}"


def home_categories(content_type: ContentType) -> list[str]:
    """Return the categories rendered as rows on the home screen."""

    prefix = category_prefix(content_type)
    return [f"{prefix}{genre}" for genre in HOME_GENRES]


def display_genre(category: str) -> str:
    """Return the human label for a category (the part after ``~``)."""

    _, _, genre = category.partition("~")
    genre = genre.strip()
    return "Lançamento" if genre == RELEASES else genre


def _genre_name(genre: Any) -> str:
    if isinstance(genre, str):
        return genre
    if isinstance(genre, dict):
        name = genre.get("name")
    else:
        name = getattr(genre, "name", None)
    return name if isinstance(name, str) else ""


def classify_genres(genres: Sequence[Any] | None, content_type: ContentType) -> str:
    """Map the first genre of a title onto one of the catalog categories.

    Only ``genres[0]`` is considered. Its lower-cased name is substring-matched
    against :data:`GENRE_SYNONYMS`; an empty list or an unrecognised genre
    falls back to ``"<prefix>Sem categoria"``.
    """

    prefix = category_prefix(content_type)
    if not genres:
        return f"{prefix}{UNCATEGORIZED}"

    name = _genre_name(genres[0]).lower()
    if name:
        for synonym, label in GENRE_SYNONYMS:
            if synonym in name:
                return f"{prefix}{label}"
    return f"{prefix}{UNCATEGORIZED}"


def subtract_month(day: date) -> date:
    """Move ``day`` back by one calendar month.

    When the day does not exist in the previous month the surplus days spill
    over into the following month, so March 31 becomes March 3 (or March 2 in
    a leap year) rather than being clamped to the end of February.
    """

    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    last_day = calendar.monthrange(year, month)[1]
    if day.day <= last_day:
        return day.replace(year=year, month=month)
    return date(year, month, last_day) + timedelta(days=day.day - last_day)


def _today(now: datetime | date | None) -> date:
    if now is None:
        return utcnow().date()
    if isinstance(now, datetime):
        return now.date()
    return now


def is_recent_release(release_date: object, now: datetime | date | None = None) -> bool:
    """Return whether the release date lies within the last calendar month.

    The window is ``[today minus one calendar month, today]``, inclusive on
    both ends. Missing or unparseable dates are never recent.
    """

    released = parse_release_date(release_date)
    if released is None:
        return False
    today = _today(now)
    return subtract_month(today) <= released <= today


def sync_release_category(
    categories: Iterable[str],
    content_type: ContentType,
    release_date: object,
    now: datetime | date | None = None,
) -> list[str]:
    """Return ``categories`` with the release category kept in sync.

    A recent title carries the release category exactly once, prepended when
    it was absent; any other title carries none.
    """

    label = release_category(content_type)
    recent = is_recent_release(release_date, now)
    synced: list[str] = []
    seen = False
    for category in categories:
        if category == label:
            if recent and not seen:
                synced.append(category)
                seen = True
            continue
        synced.append(category)
    if recent and not seen:
        synced.insert(0, label)
    return synced
