"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
End-to-end checks through the FastAPI TestClient against the in-memory
database:

- Auth guards (missing / invalid / non-admin tokens)
- Error mapping (service errors → 400/403/404 with ``detail``)
- The main user journeys: follow, feed, post + fan-out, like, comment,
  share, messaging, notifications and events
"""

from __future__ import annotations

import base64

import httpx
import pytest
from conftest import MEDIA_URL, auth, run_async

from leoconnect.api.main import app


@pytest.fixture
def club(make_club):
    return make_club("Leo Club Kandy")


def _drain():
    return run_async(app.state.fanout.drain_once())


# ===========================================================================
# Health & auth guards
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAuthGuards:
    PROTECTED = ["/api/feed", "/api/users/me", "/api/conversations", "/api/notifications"]

    @pytest.mark.parametrize("endpoint", PROTECTED)
    def test_rejects_no_auth(self, client, endpoint):
        resp = client.get(endpoint)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Missing token"

    @pytest.mark.parametrize("endpoint", PROTECTED)
    def test_rejects_invalid_token(self, client, endpoint):
        resp = client.get(endpoint, headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token"

    def test_admin_status_requires_admin_claim(self, client):
        resp = client.get("/api/admin/fanout", headers=auth("regular"))
        assert resp.status_code == 403

    def test_admin_status(self, client):
        resp = client.get("/api/admin/fanout", headers=auth("root", is_admin=True))
        assert resp.status_code == 200
        body = resp.json()
        assert body["dropped"] == 0
        assert body["recentFailures"] == []


# ===========================================================================
# Session & profile
# ===========================================================================
class TestProfile:
    def test_session_creates_profile_once(self, client):
        first = client.post("/api/auth/session", headers=auth("newbie", "New Leo"))
        assert first.status_code == 200
        assert first.json()["displayName"] == "New Leo"
        assert first.json()["followersCount"] == 0

        again = client.post("/api/auth/session", headers=auth("newbie", "Renamed"))
        assert again.json()["displayName"] == "New Leo"

    def test_quick_start_follows_assigned_club(self, client, club):
        resp = client.post(
            "/api/users/me/quick-start", headers=auth("leo"),
            json={"leoId": "LEO-77", "assignedClubId": club.id},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["onboardingCompleted"] is True
        assert body["leoId"] == "LEO-77"
        assert body["followingClubs"] == [club.id]

    def test_update_rejects_unknown_club(self, client):
        resp = client.patch("/api/users/me", headers=auth("leo"),
                            json={"assignedClubId": "nope"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid club ID"

    def test_update_requires_a_field(self, client):
        resp = client.patch("/api/users/me", headers=auth("leo"), json={})
        assert resp.status_code == 400

    def test_search(self, client, make_user):
        make_user("u1", "Nimal Perera")
        make_user("u2", "Kamal Silva")
        resp = client.get("/api/users/search", params={"q": "nim"}, headers=auth("leo"))
        assert [u["uid"] for u in resp.json()["users"]] == ["u1"]


# ===========================================================================
# Follow graph
# ===========================================================================
class TestFollow:
    def test_follow_unfollow_and_notification(self, client, make_user):
        make_user("star", "Star")
        resp = client.post("/api/users/star/follow", headers=auth("fan", "Fan"))
        assert resp.status_code == 200
        assert resp.json() == {"isFollowing": True, "followersCount": 1}

        dup = client.post("/api/users/star/follow", headers=auth("fan", "Fan"))
        assert dup.status_code == 400

        inbox = client.get("/api/notifications", headers=auth("star")).json()
        assert inbox["unreadCount"] == 1
        assert inbox["items"][0]["title"] == "New Follower"
        assert inbox["items"][0]["body"] == "Fan started following you"

        profile = client.get("/api/users/star", headers=auth("fan")).json()
        assert profile["isFollowing"] is True
        assert profile["isMutualFollow"] is False

        resp = client.delete("/api/users/star/follow", headers=auth("fan"))
        assert resp.json() == {"isFollowing": False, "followersCount": 0}
        assert client.delete("/api/users/star/follow", headers=auth("fan")).status_code == 404

    def test_self_follow_rejected(self, client):
        client.post("/api/auth/session", headers=auth("me"))
        resp = client.post("/api/users/me/follow", headers=auth("me"))
        assert resp.status_code == 400

    def test_follow_unknown_user(self, client):
        resp = client.post("/api/users/ghost/follow", headers=auth("me"))
        assert resp.status_code == 404
        assert resp.json()["detail"] == "User not found"

    def test_club_follow_and_listing(self, client, club):
        resp = client.post(f"/api/clubs/{club.id}/follow", headers=auth("leo"))
        assert resp.json() == {"isFollowing": True, "followersCount": 1}

        detail = client.get(f"/api/clubs/{club.id}", headers=auth("leo")).json()
        assert detail["isFollowing"] is True
        assert detail["followersCount"] == 1

        followers = client.get(f"/api/clubs/{club.id}/followers", headers=auth("other")).json()
        assert followers["total"] == 1
        assert followers["items"][0]["uid"] == "leo"

        clubs = client.get("/api/clubs", headers=auth("leo")).json()["clubs"]
        assert [c["name"] for c in clubs] == ["Leo Club Kandy"]


# ===========================================================================
# Posts, feed, engagement
# ===========================================================================
class TestPosts:
    def test_create_post_fans_out_to_followers(self, client, club, make_user):
        make_user("follower")
        client.post("/api/auth/session", headers=auth("writer", "Writer"))
        client.post("/api/users/writer/follow", headers=auth("follower"))

        resp = client.post("/api/posts", headers=auth("writer", "Writer"),
                           json={"content": "  Blood drive this Sunday  ", "clubId": club.id})
        assert resp.status_code == 200
        post = resp.json()
        assert post["content"] == "Blood drive this Sunday"
        assert post["likesCount"] == 0
        assert post["images"] == []

        assert _drain() == 1
        inbox = client.get("/api/notifications", headers=auth("follower")).json()
        titles = [n["title"] for n in inbox["items"]]
        assert "New post from Writer" in titles

    def test_create_post_with_image(self, client, club):
        image = base64.b64encode(b"jpeg bytes").decode()
        resp = client.post("/api/posts", headers=auth("writer"),
                           json={"content": "pic", "clubId": club.id, "imageBytes": image})
        assert resp.json()["imageUrl"] == MEDIA_URL
        assert resp.json()["images"] == [MEDIA_URL]

    def test_invalid_base64_still_creates_post(self, client, club):
        resp = client.post("/api/posts", headers=auth("writer"),
                           json={"content": "pic", "clubId": club.id, "imageBytes": "%%%"})
        assert resp.status_code == 200
        assert resp.json()["imageUrl"] is None

    def test_oversized_image_rejected(self, client, club):
        resp = client.post("/api/posts", headers=auth("writer"),
                           json={"content": "pic", "imageBytes": "A" * 13_333_334})
        assert resp.status_code == 400

    def test_empty_content_rejected(self, client, club):
        resp = client.post("/api/posts", headers=auth("writer"), json={"content": "   "})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Post content cannot be empty"

    def test_bad_content_never_reaches_media_relay(self, client, club):
        from leoconnect.api import deps
        from leoconnect.services.media_relay import MediaRelay

        uploads = []

        def record(request: httpx.Request) -> httpx.Response:
            uploads.append(request)
            return httpx.Response(200, json={"attachments": [{"url": MEDIA_URL}]})

        relay = MediaRelay("https://media.example.test/webhook",
                           transport=httpx.MockTransport(record))
        app.dependency_overrides[deps.get_media_relay] = lambda: relay
        image = base64.b64encode(b"jpeg bytes").decode()

        resp = client.post("/api/posts", headers=auth("writer"),
                           json={"content": "x" * 5001, "clubId": club.id, "imageBytes": image})
        assert resp.status_code == 400
        assert uploads == []

        resp = client.post("/api/posts", headers=auth("writer"),
                           json={"content": "  tidy  ", "clubId": club.id, "imageBytes": image})
        assert resp.json()["content"] == "tidy"
        assert len(uploads) == 1

    def test_feed_with_no_follows_shows_own_posts(self, client, club, make_user, make_post):
        make_user("other")
        make_post("other", club.id, "not mine", minutes=1)
        client.post("/api/posts", headers=auth("me"), json={"content": "mine", "clubId": club.id})

        feed = client.get("/api/feed", headers=auth("me")).json()
        assert [p["content"] for p in feed["items"]] == ["mine"]
        assert feed["hasMore"] is False
        explore = client.get("/api/explore", headers=auth("me")).json()
        assert explore["total"] == 2

    def test_like_round_trip_and_owner_notified(self, client, club, make_user, make_post):
        make_user("owner")
        post = make_post("owner", club.id)
        url = f"/api/posts/{post.id}/like"

        liked = client.post(url, headers=auth("liker", "Liker")).json()
        assert liked == {"likesCount": 1, "isLikedByUser": True}
        unliked = client.post(url, headers=auth("liker", "Liker")).json()
        assert unliked == {"likesCount": 0, "isLikedByUser": False}

        inbox = client.get("/api/notifications", headers=auth("owner")).json()
        assert [n["body"] for n in inbox["items"]] == ["Liker liked your post"]

    def test_share_idempotent(self, client, club, make_user, make_post):
        make_user("owner")
        post = make_post("owner", club.id)
        first = client.post(f"/api/posts/{post.id}/share", headers=auth("sharer")).json()
        again = client.post(f"/api/posts/{post.id}/share", headers=auth("sharer")).json()
        assert first["alreadyShared"] is False
        assert again == {**first, "alreadyShared": True}
        assert again["sharesCount"] == 1

    def test_comment_flow(self, client, club, make_user, make_post):
        make_user("owner")
        post = make_post("owner", club.id)
        resp = client.post(f"/api/posts/{post.id}/comments", headers=auth("fan", "Fan"),
                           json={"content": "Count me in"})
        comment = resp.json()["comment"]
        assert comment["authorName"] == "Fan"

        liked = client.post(f"/api/comments/{comment['commentId']}/like", headers=auth("owner"))
        assert liked.json() == {"likesCount": 1, "isLikedByUser": True}

        listing = client.get(f"/api/posts/{post.id}/comments", headers=auth("owner")).json()
        assert listing["items"][0]["isLikedByUser"] is True

        detail = client.get(f"/api/posts/{post.id}", headers=auth("fan")).json()
        assert detail["post"]["commentsCount"] == 1
        assert detail["club"]["name"] == "Leo Club Kandy"

        inbox = client.get("/api/notifications", headers=auth("owner")).json()
        assert inbox["items"][0]["title"] == "New Comment"

    def test_delete_post_permissions(self, client, club, make_user, make_post):
        make_user("owner")
        post = make_post("owner", club.id)
        assert client.delete(f"/api/posts/{post.id}", headers=auth("intruder")).status_code == 403
        assert client.delete(f"/api/posts/{post.id}", headers=auth("owner")).status_code == 200
        assert client.get(f"/api/posts/{post.id}", headers=auth("owner")).status_code == 404

    def test_admin_claim_grants_delete(self, client, club, make_user, make_post):
        make_user("owner")
        post = make_post("owner", club.id)
        post_id = post.id
        # A stale stored flag is overridden by the token on the next request
        make_user("ex-admin", is_admin=True)
        assert client.delete(f"/api/posts/{post_id}", headers=auth("ex-admin")).status_code == 403
        resp = client.delete(f"/api/posts/{post_id}", headers=auth("mod", is_admin=True))
        assert resp.status_code == 200


# ===========================================================================
# Search
# ===========================================================================
class TestSearch:
    def test_search_results(self, client, club, make_user, make_post):
        make_user("writer")
        make_post("writer", club.id, "Kandy blood drive")
        body = client.get("/api/search", params={"q": "kandy"}, headers=auth("leo")).json()
        assert [c["name"] for c in body["clubs"]] == ["Leo Club Kandy"]
        assert body["districts"] == []
        assert [p["content"] for p in body["posts"]] == ["Kandy blood drive"]
        assert body["posts"][0]["isLikedByUser"] is False

    def test_search_requires_query(self, client):
        resp = client.get("/api/search", headers=auth("leo"))
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Missing query parameter"

    def test_autocomplete(self, client, club):
        resp = client.get("/api/search/autocomplete", params={"q": "306"}, headers=auth("leo"))
        assert resp.json()["districts"] == ["306 A1"]
        short = client.get("/api/search/autocomplete", params={"q": "k"}, headers=auth("leo"))
        assert short.json() == {"clubs": [], "districts": [], "posts": []}

    def test_user_search(self, client, make_user):
        make_user("u1", "Nimal Perera")
        resp = client.get("/api/search/users", params={"q": "pere"}, headers=auth("leo"))
        assert resp.json() == [{"userId": "u1", "displayName": "Nimal Perera", "photoUrl": None}]

    def test_districts_are_public(self, client, club, make_club):
        make_club("Leo Club Galle", district="306 B1")
        resp = client.get("/api/districts")
        assert resp.status_code == 200
        assert resp.json() == ["306 A1", "306 B1"]


# ===========================================================================
# Messaging
# ===========================================================================
class TestMessaging:
    def test_send_list_and_read(self, client, make_user):
        make_user("bob", "Bob")
        sent = client.post("/api/messages", headers=auth("amy", "Amy"),
                           json={"receiverId": "bob", "content": "Hi Bob"})
        assert sent.status_code == 200

        convs = client.get("/api/conversations", headers=auth("bob")).json()
        assert convs["items"][0]["lastMessage"] == "Hi Bob"
        assert convs["items"][0]["unreadCount"] == 1

        thread = client.get("/api/messages/amy", headers=auth("bob")).json()
        assert [m["content"] for m in thread["items"]] == ["Hi Bob"]

        convs = client.get("/api/conversations", headers=auth("bob")).json()
        assert convs["items"][0]["unreadCount"] == 0

        inbox = client.get("/api/notifications", headers=auth("bob")).json()
        assert inbox["items"][0]["title"] == "New message from Amy"

    def test_message_validation(self, client, make_user):
        make_user("bob")
        resp = client.post("/api/messages", headers=auth("amy"), json={"content": "hi"})
        assert resp.status_code == 400
        resp = client.post("/api/messages", headers=auth("amy"),
                           json={"receiverId": "ghost", "content": "hi"})
        assert resp.status_code == 404

    def test_delete_conversation(self, client, make_user):
        make_user("bob")
        client.post("/api/messages", headers=auth("amy"), json={"receiverId": "bob", "content": "1"})
        resp = client.delete("/api/conversations/bob", headers=auth("amy"))
        assert resp.json() == {"success": True, "deleted": 1}
        assert client.get("/api/conversations", headers=auth("bob")).json()["total"] == 0


# ===========================================================================
# Notifications & preferences
# ===========================================================================
class TestNotifications:
    def test_muted_follows_produce_nothing(self, client, make_user):
        client.post("/api/auth/session", headers=auth("quiet"))
        resp = client.patch("/api/notifications/preferences", headers=auth("quiet"),
                            json={"followsEnabled": False})
        assert resp.json()["followsEnabled"] is False

        client.post("/api/users/quiet/follow", headers=auth("fan"))
        inbox = client.get("/api/notifications", headers=auth("quiet")).json()
        assert inbox["total"] == 0

    def test_mark_read_and_read_all(self, client, make_user):
        make_user("star")
        client.post("/api/users/star/follow", headers=auth("a"))
        client.post("/api/users/star/follow", headers=auth("b"))
        items = client.get("/api/notifications", headers=auth("star")).json()["items"]

        assert client.patch(f"/api/notifications/{items[0]['id']}/read",
                            headers=auth("a")).status_code == 403
        client.patch(f"/api/notifications/{items[0]['id']}/read", headers=auth("star"))
        unread = client.get("/api/notifications", params={"unreadOnly": True},
                            headers=auth("star")).json()
        assert unread["total"] == 1

        resp = client.post("/api/notifications/read-all", headers=auth("star"))
        assert resp.json()["updated"] == 1

    def test_push_token_registration(self, client):
        resp = client.post("/api/notifications/token", headers=auth("dev"),
                           json={"token": "abc", "deviceType": "ios"})
        assert resp.json()["success"] is True
        resp = client.request("DELETE", "/api/notifications/token", headers=auth("dev"),
                              json={"token": "abc"})
        assert resp.status_code == 200


# ===========================================================================
# Events
# ===========================================================================
class TestEvents:
    def test_create_rsvp_and_list(self, client, club):
        resp = client.post("/api/events", headers=auth("host"), json={
            "name": "Tree planting", "description": "Bring gloves",
            "eventDate": "2026-11-01T09:00:00Z", "clubId": club.id,
        })
        assert resp.status_code == 200
        event_id = resp.json()["eventId"]

        rsvp = client.post(f"/api/events/{event_id}/rsvp", headers=auth("guest")).json()
        assert rsvp == {"rsvpCount": 1, "hasRSVPd": True}

        listing = client.get("/api/events", headers=auth("guest")).json()
        assert listing["items"][0]["hasRSVPd"] is True

        updated = client.put(f"/api/events/{event_id}", headers=auth("host"),
                             json={"name": "Tree planting II"})
        assert updated.json()["name"] == "Tree planting II"
        assert client.put(f"/api/events/{event_id}", headers=auth("guest"),
                          json={"name": "x"}).status_code == 403

        assert client.delete(f"/api/events/{event_id}", headers=auth("host")).status_code == 200
        assert client.get(f"/api/events/{event_id}", headers=auth("host")).status_code == 404

    def test_event_requires_date(self, client, club):
        resp = client.post("/api/events", headers=auth("host"),
                           json={"name": "x", "description": "y", "clubId": club.id})
        assert resp.status_code == 400
