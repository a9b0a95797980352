"""
leoconnect.services.feed_service — Feed Assembler
==================================================

Builds the viewer's home feed and the unfiltered Explore listing.

Home feed candidate set::

    posts authored by the viewer
  ∪ posts authored by users the viewer follows
  ∪ posts owned by clubs the viewer follows

The union is expressed as a single ``WHERE … OR …`` over ``posts`` so a post
matching more than one branch appears once.  Ordering is ``created_at``
descending with ``id`` descending as the tie-break; every item is enriched
with the viewer's like state and the post counters from
:mod:`leoconnect.services.counter_service`.

Read-only; an empty follow graph yields the viewer's own posts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from leoconnect.database.models import ClubFollow, Post, PostLike, UserFollow
from leoconnect.services.counter_service import PostCounts, post_counts_bulk
from leoconnect.services.pagination import Page


@dataclass(slots=True)
class PostView:
    """A post as returned to a viewer."""

    post_id: str
    club_id: str
    club_name: str | None
    author_id: str
    author_name: str | None
    author_logo: str | None
    content: str
    image_url: str | None
    created_at: datetime
    updated_at: datetime
    is_pinned: bool = False
    counts: PostCounts = field(default_factory=PostCounts)
    is_liked_by_user: bool = False

    def to_dict(self) -> dict:
        return {
            "postId": self.post_id,
            "clubId": self.club_id,
            "clubName": self.club_name,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "authorLogo": self.author_logo,
            "content": self.content,
            "imageUrl": self.image_url,
            "images": [self.image_url] if self.image_url else [],
            **self.counts.to_dict(),
            "isLikedByUser": self.is_liked_by_user,
            "isPinned": self.is_pinned,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


def enrich_posts(session: Session, viewer_id: str | None, posts: list[Post]) -> list[PostView]:
    """Attach counters and the viewer's like state, preserving order."""
    ids = [p.id for p in posts]
    counts = post_counts_bulk(session, ids)
    liked: set[str] = set()
    if viewer_id and ids:
        liked = set(session.scalars(
            select(PostLike.post_id).where(
                PostLike.user_id == viewer_id, PostLike.post_id.in_(ids)
            )
        ).all())
    return [
        PostView(
            post_id=p.id,
            club_id=p.club_id,
            club_name=p.club.name if p.club else None,
            author_id=p.author_id,
            author_name=p.author.display_name if p.author else None,
            author_logo=p.author.photo_url if p.author else None,
            content=p.content,
            image_url=p.image_url,
            created_at=p.created_at,
            updated_at=p.updated_at,
            is_pinned=p.is_pinned,
            counts=counts.get(p.id, PostCounts()),
            is_liked_by_user=p.id in liked,
        )
        for p in posts
    ]


def _page(session: Session, viewer_id: str | None, where, *, limit: int, offset: int) -> Page[PostView]:
    count_stmt = select(func.count()).select_from(Post)
    stmt = select(Post)
    if where is not None:
        count_stmt = count_stmt.where(where)
        stmt = stmt.where(where)
    total = session.scalar(count_stmt) or 0
    posts = session.scalars(
        stmt.order_by(Post.created_at.desc(), Post.id.desc()).limit(limit).offset(offset)
    ).unique().all()
    return Page(enrich_posts(session, viewer_id, list(posts)), total, limit, offset)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def get_feed(session: Session, viewer_id: str, *, limit: int = 20, offset: int = 0) -> Page[PostView]:
    """Home feed: own posts plus followed users and followed clubs."""
    followed_users = select(UserFollow.following_id).where(UserFollow.follower_id == viewer_id)
    followed_clubs = select(ClubFollow.club_id).where(ClubFollow.user_id == viewer_id)
    where = or_(
        Post.author_id == viewer_id,
        Post.author_id.in_(followed_users),
        Post.club_id.in_(followed_clubs),
    )
    return _page(session, viewer_id, where, limit=limit, offset=offset)


def get_explore(session: Session, viewer_id: str, *, limit: int = 20, offset: int = 0) -> Page[PostView]:
    """Every post, newest first, ignoring the follow graph."""
    return _page(session, viewer_id, None, limit=limit, offset=offset)


def get_club_posts(
    session: Session, club_id: str, viewer_id: str | None = None, *, limit: int = 50, offset: int = 0
) -> Page[PostView]:
    return _page(session, viewer_id, Post.club_id == club_id, limit=limit, offset=offset)


def get_user_posts(
    session: Session, author_id: str, viewer_id: str | None = None, *, limit: int = 50, offset: int = 0
) -> Page[PostView]:
    return _page(session, viewer_id, Post.author_id == author_id, limit=limit, offset=offset)
