"""
tests/test_profile_service.py — Profiles, clubs, config and paging helpers
============================================================================
"""

from __future__ import annotations

import pytest

from leoconnect.config import load_config
from leoconnect.services import club_service, graph_service, profile_service
from leoconnect.services.errors import InvalidInput, NotFound, clean_text
from leoconnect.services.pagination import Page, clamp_window


class TestProfiles:
    def test_get_or_create_is_idempotent(self, db_session):
        first = profile_service.get_or_create_user(db_session, "sub-1", email="a@b.c", name=None)
        again = profile_service.get_or_create_user(db_session, "sub-1", name="Other")
        assert first.uid == again.uid
        assert again.display_name == "a@b.c"

    def test_profile_counts_and_viewer_flags(self, db_session, make_user):
        make_user("ann")
        make_user("ben")
        graph_service.follow_user(db_session, "ann", "ben")
        graph_service.follow_user(db_session, "ben", "ann")

        own = profile_service.get_profile(db_session, "ben")
        assert "isFollowing" not in own
        assert own["followersCount"] == 1

        seen = profile_service.get_profile(db_session, "ben", viewer_id="ann")
        assert seen["isFollowing"] is True
        assert seen["isMutualFollow"] is True

    def test_unknown_profile(self, db_session):
        with pytest.raises(NotFound):
            profile_service.get_profile(db_session, "nobody")

    def test_bio_ceiling(self, db_session, make_user):
        make_user("ann")
        with pytest.raises(InvalidInput, match="Bio exceeds"):
            profile_service.update_profile(db_session, "ann", {"bio": "b" * 501})
        data = profile_service.update_profile(db_session, "ann", {"bio": "  Leo since 2019  "})
        assert data["bio"] == "Leo since 2019"

    def test_search_is_substring_and_case_insensitive(self, db_session, make_user):
        make_user("u1", "Dilani")
        make_user("u2", "Nadil")
        make_user("u3", "Aruni")
        found = profile_service.search_users(db_session, "DIL")
        assert [u.uid for u in found] == ["u1", "u2"]

    @pytest.mark.parametrize("query", ["", "  ", "d", " d "])
    def test_search_needs_two_characters(self, db_session, make_user, query):
        make_user("u1", "Dilani")
        assert profile_service.search_users(db_session, query) == []

    def test_search_caps_results_at_ten(self, db_session, make_user):
        for i in range(12):
            make_user(f"u{i:02d}", f"Leo {i:02d}")
        assert len(profile_service.search_users(db_session, "leo")) == 10

    def test_search_wildcards_match_literally(self, db_session, make_user):
        make_user("u1", "Dilani")
        make_user("u2", "100% Leo")
        make_user("u3", "snake_case")
        assert [u.uid for u in profile_service.search_users(db_session, "%%")] == []
        assert [u.uid for u in profile_service.search_users(db_session, "0%")] == ["u2"]
        assert [u.uid for u in profile_service.search_users(db_session, "e_")] == ["u3"]
        assert profile_service.search_users(db_session, "__") == []

    def test_admin_flag_follows_token_claim(self, db_session, make_user):
        created = profile_service.get_or_create_user(db_session, "chief", is_admin=True)
        assert created.is_admin is True

        make_user("former", is_admin=True)
        demoted = profile_service.get_or_create_user(db_session, "former", is_admin=False)
        assert demoted.is_admin is False

        # No claim supplied leaves the stored flag alone
        kept = profile_service.get_or_create_user(db_session, "chief")
        assert kept.is_admin is True


class TestClubs:
    def test_list_filters_by_district(self, db_session, make_club):
        make_club("Leo Club B", district="306 A1")
        make_club("Leo Club A", district="306 B2")
        names = [c["name"] for c in club_service.list_clubs(db_session)]
        assert names == ["Leo Club A", "Leo Club B"]
        only = club_service.list_clubs(db_session, "306 A1")
        assert [c["name"] for c in only] == ["Leo Club B"]
        assert only[0]["followersCount"] == 0

    def test_get_club_missing(self, db_session):
        with pytest.raises(NotFound, match="Club not found"):
            club_service.get_club(db_session, "viewer", "missing")

    def test_districts_are_distinct_and_sorted(self, db_session, make_club):
        make_club("Leo Club C", district="306 B2")
        make_club("Leo Club B", district="306 A1")
        make_club("Leo Club A", district="306 B2")
        make_club("Leo Club D", district=None)
        assert club_service.list_districts(db_session) == ["306 A1", "306 B2"]


class TestHelpers:
    @pytest.mark.parametrize("limit, offset, expected", [
        (None, None, (20, 0)),
        (0, -5, (20, 0)),
        (10, 30, (10, 30)),
        (500, 0, (100, 0)),
    ])
    def test_clamp_window(self, limit, offset, expected):
        assert clamp_window(limit, offset, 20) == expected

    def test_page_envelope(self):
        page = Page([1, 2], total=5, limit=2, offset=2)
        assert page.to_dict(str) == {"items": ["1", "2"], "total": 5, "hasMore": True}
        assert Page([5], total=5, limit=2, offset=4).has_more is False

    def test_clean_text(self):
        assert clean_text("  hi ", "Field", 10) == "hi"
        with pytest.raises(InvalidInput, match="Field is required"):
            clean_text(None, "Field", 10)
        with pytest.raises(InvalidInput, match="cannot be empty"):
            clean_text(" \n ", "Field", 10)
        with pytest.raises(InvalidInput, match="exceeds maximum length of 3"):
            clean_text("abcd", "Field", 3)


class TestConfig:
    def test_load_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("app_name: LeoConnect\nfeed_limit: 15\nfanout_queue_size: 50\n")
        cfg = load_config(path)
        assert cfg.app_name == "LeoConnect"
        assert cfg.feed_limit == 15
        assert cfg.page_limit == 50
        assert cfg.fanout_queue_size == 50

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")
