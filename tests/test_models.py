from datetime import date

from app.models import AuthUser, FavoriteEntry, SliderEntry, Title


def test_title_reads_camel_case_payload_and_keeps_extras():
    title = Title.model_validate(
        {
            "id": 42,
            "title": "Arrival",
            "posterUrl": "https://example.com/poster.jpg",
            "releaseDate": "2016-11-11",
            "tmdbGenres": [{"id": 18, "name": "Drama"}],
            "categories": None,
            "year": "",
            "trailerUrl": "https://example.com/trailer",
        }
    )

    assert title.id == "42"
    assert title.poster_url == "https://example.com/poster.jpg"
    assert title.release_date == date(2016, 11, 11)
    assert title.tmdb_genres[0].name == "Drama"
    assert title.categories == []
    assert title.year is None
    assert title.show_in_home is True
    assert title.in_slider is False

    record = title.to_record()
    assert record["trailerUrl"] == "https://example.com/trailer"
    assert record["releaseDate"] == "2016-11-11"
    assert record["posterUrl"] == "https://example.com/poster.jpg"
    assert "year" not in record
    assert "poster_url" not in record


def test_title_treats_malformed_release_date_as_missing():
    title = Title.model_validate({"title": "Untitled", "releaseDate": "coming soon"})

    assert title.release_date is None
    assert "releaseDate" not in title.to_record()


def test_title_visibility_defaults_to_shown():
    assert Title(title="Shown").is_visible_on_home()
    assert not Title(title="Hidden", show_in_home=False).is_visible_on_home()
    assert Title(title="New").added_at_or_zero == 0


def test_slider_entry_references_match_id_and_type():
    entry = SliderEntry.model_validate(
        {"url": "https://example.com/banner.jpg", "contentId": "abc", "type": "series"}
    )

    assert entry.references("abc", "series")
    assert not entry.references("abc", "movie")
    assert not entry.references("other", "series")


def test_favorite_entry_accepts_numeric_content_ids():
    entry = FavoriteEntry.model_validate({"contentId": 7, "type": "movie"})

    assert entry.content_id == "7"
    assert entry.to_record() == {"contentId": "7", "type": "movie"}


def test_auth_user_admin_flag_requires_literal_true():
    assert AuthUser(id="1", user_metadata={"isAdmin": True}).admin_flag
    assert not AuthUser(id="2", user_metadata={"isAdmin": "true"}).admin_flag
    assert not AuthUser.model_validate({"id": "3", "user_metadata": None}).admin_flag
