"""
tests/test_feed_service.py — Feed Assembler & Counter Resolver
================================================================
Home feed candidate set, ordering, per-viewer enrichment, and the
read-time counters behind every profile, club and post.
"""

from __future__ import annotations

import pytest

from leoconnect.database.models import PostLike
from leoconnect.services import engagement_service, feed_service, graph_service, post_service
from leoconnect.services.counter_service import (
    PostCounts,
    UserCounts,
    club_counts,
    post_counts,
    post_counts_bulk,
    user_counts,
)


@pytest.fixture
def world(make_user, make_club):
    club_a = make_club("Leo Club Alpha")
    club_b = make_club("Leo Club Beta")
    for uid in ("viewer", "friend", "stranger"):
        make_user(uid)
    return club_a, club_b


class TestHomeFeed:
    def test_empty_graph_returns_only_own_posts(self, db_session, world, make_post):
        club_a, _ = world
        mine = make_post("viewer", club_a.id, "mine", minutes=1)
        make_post("friend", club_a.id, "not followed", minutes=2)

        page = feed_service.get_feed(db_session, "viewer")
        assert [p.post_id for p in page.items] == [mine.id]
        assert page.total == 1

    def test_union_of_own_followed_users_and_clubs(self, db_session, world, make_post):
        club_a, club_b = world
        own = make_post("viewer", club_b.id, "own", minutes=1)
        by_friend = make_post("friend", club_b.id, "friend", minutes=2)
        in_club = make_post("stranger", club_a.id, "club", minutes=3)
        make_post("stranger", club_b.id, "hidden", minutes=4)

        graph_service.follow_user(db_session, "viewer", "friend")
        graph_service.follow_club(db_session, "viewer", club_a.id)

        page = feed_service.get_feed(db_session, "viewer")
        assert [p.post_id for p in page.items] == [in_club.id, by_friend.id, own.id]

    def test_post_matching_two_branches_appears_once(self, db_session, world, make_post):
        club_a, _ = world
        post = make_post("friend", club_a.id, minutes=1)
        graph_service.follow_user(db_session, "viewer", "friend")
        graph_service.follow_club(db_session, "viewer", club_a.id)

        page = feed_service.get_feed(db_session, "viewer")
        assert [p.post_id for p in page.items] == [post.id]
        assert page.total == 1

    def test_pagination_window(self, db_session, world, make_post):
        club_a, _ = world
        posts = [make_post("viewer", club_a.id, f"p{i}", minutes=i) for i in range(5)]
        page = feed_service.get_feed(db_session, "viewer", limit=2, offset=2)
        assert [p.post_id for p in page.items] == [posts[2].id, posts[1].id]
        assert page.to_dict(lambda p: p.to_dict())["hasMore"] is True

    def test_items_carry_viewer_like_state_and_counts(self, db_session, world, make_post):
        club_a, _ = world
        post = make_post("viewer", club_a.id)
        engagement_service.toggle_post_like(db_session, "friend", post.id)

        item = feed_service.get_feed(db_session, "viewer").items[0].to_dict()
        assert item["likesCount"] == 1
        assert item["isLikedByUser"] is False
        assert item["clubName"] == "Leo Club Alpha"
        assert item["authorName"] == "Viewer"

        engagement_service.toggle_post_like(db_session, "viewer", post.id)
        item = feed_service.get_feed(db_session, "viewer").items[0].to_dict()
        assert item["likesCount"] == 2
        assert item["isLikedByUser"] is True


class TestExploreAndListings:
    def test_explore_ignores_graph(self, db_session, world, make_post):
        club_a, club_b = world
        make_post("friend", club_a.id, minutes=1)
        make_post("stranger", club_b.id, minutes=2)
        assert feed_service.get_explore(db_session, "viewer").total == 2

    def test_club_and_user_posts(self, db_session, world, make_post):
        club_a, club_b = world
        make_post("friend", club_a.id, minutes=1)
        make_post("friend", club_b.id, minutes=2)
        make_post("stranger", club_a.id, minutes=3)
        assert feed_service.get_club_posts(db_session, club_a.id).total == 2
        assert feed_service.get_user_posts(db_session, "friend").total == 2


class TestCounters:
    def test_user_counts(self, db_session, world, make_post):
        club_a, _ = world
        make_post("viewer", club_a.id)
        graph_service.follow_user(db_session, "friend", "viewer")
        graph_service.follow_club(db_session, "viewer", club_a.id)

        counts = user_counts(db_session, "viewer")
        assert counts == UserCounts(followers=1, following=0, posts=1, clubs_following=1)
        assert counts.to_dict()["followersCount"] == 1

    def test_missing_entities_count_zero(self, db_session):
        assert user_counts(db_session, "ghost") == UserCounts()
        assert post_counts(db_session, "ghost") == PostCounts()
        assert club_counts(db_session, "ghost").followers == 0

    def test_post_counts_bulk_matches_single(self, db_session, world, make_post):
        club_a, _ = world
        p1 = make_post("viewer", club_a.id, minutes=1)
        p2 = make_post("viewer", club_a.id, minutes=2)
        engagement_service.toggle_post_like(db_session, "friend", p1.id)
        post_service.add_comment(db_session, "friend", p1.id, "nice")
        engagement_service.share_post(db_session, "friend", p2.id)

        bulk = post_counts_bulk(db_session, [p1.id, p2.id])
        assert bulk[p1.id] == post_counts(db_session, p1.id) == PostCounts(1, 1, 0)
        assert bulk[p2.id] == post_counts(db_session, p2.id) == PostCounts(0, 0, 1)

    def test_counts_reflect_writes_immediately(self, db_session, world, make_post):
        club_a, _ = world
        post = make_post("viewer", club_a.id)
        db_session.add(PostLike(post_id=post.id, user_id="friend"))
        db_session.commit()
        assert post_counts(db_session, post.id).likes == 1
