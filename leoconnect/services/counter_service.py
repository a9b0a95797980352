"""
leoconnect.services.counter_service — Derived counts on read
=============================================================

Every count here is aggregated from the relation tables at call time, with
one exception per entity where a column is maintained on the write path:

=========  ==========================  ===============================
Entity     Read-aggregated             Write-maintained column
=========  ==========================  ===============================
user       followers, following,       —
           posts, clubsFollowing
club       followers, members, posts   —
post       likes, comments             ``posts.shares_count``
comment    —                           ``comments.likes_count``
event      —                           ``events.rsvp_count``
=========  ==========================  ===============================

There is no caching layer: a call issued right after a toggle observes the
post-toggle state.  A missing entity yields zero-valued counts.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from leoconnect.database.models import (
    ClubFollow,
    Comment,
    Post,
    PostLike,
    User,
    UserFollow,
)


@dataclass(slots=True)
class UserCounts:
    followers: int = 0
    following: int = 0
    posts: int = 0
    clubs_following: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "followersCount": self.followers,
            "followingCount": self.following,
            "postsCount": self.posts,
            "clubsFollowingCount": self.clubs_following,
        }


@dataclass(slots=True)
class ClubCounts:
    followers: int = 0
    members: int = 0
    posts: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "followersCount": self.followers,
            "membersCount": self.members,
            "postsCount": self.posts,
        }


@dataclass(slots=True)
class PostCounts:
    likes: int = 0
    comments: int = 0
    shares: int = 0

    def to_dict(self) -> dict[str, int]:
        return {f"{k}Count": v for k, v in asdict(self).items()}


def _count(session: Session, stmt) -> int:
    return session.scalar(stmt) or 0


def user_counts(session: Session, uid: str) -> UserCounts:
    """Followers / following / posts / clubs-following for *uid*."""
    if session.get(User, uid) is None:
        return UserCounts()
    return UserCounts(
        followers=_count(session, select(func.count()).select_from(UserFollow)
                         .where(UserFollow.following_id == uid)),
        following=_count(session, select(func.count()).select_from(UserFollow)
                         .where(UserFollow.follower_id == uid)),
        posts=_count(session, select(func.count()).select_from(Post)
                     .where(Post.author_id == uid)),
        clubs_following=_count(session, select(func.count()).select_from(ClubFollow)
                               .where(ClubFollow.user_id == uid)),
    )


def club_counts(session: Session, club_id: str) -> ClubCounts:
    """Followers / assigned members / posts for a club."""
    return ClubCounts(
        followers=_count(session, select(func.count()).select_from(ClubFollow)
                         .where(ClubFollow.club_id == club_id)),
        members=_count(session, select(func.count()).select_from(User)
                       .where(User.assigned_club_id == club_id)),
        posts=_count(session, select(func.count()).select_from(Post)
                     .where(Post.club_id == club_id)),
    )


def post_counts(session: Session, post_id: str) -> PostCounts:
    """Likes and comments counted on read; shares from the maintained column."""
    shares = session.scalar(select(Post.shares_count).where(Post.id == post_id))
    if shares is None:
        return PostCounts()
    return PostCounts(
        likes=_count(session, select(func.count()).select_from(PostLike)
                     .where(PostLike.post_id == post_id)),
        comments=_count(session, select(func.count()).select_from(Comment)
                        .where(Comment.post_id == post_id)),
        shares=max(shares, 0),
    )


def post_counts_bulk(session: Session, post_ids: list[str]) -> dict[str, PostCounts]:
    """Same as :func:`post_counts` for many posts in three queries."""
    if not post_ids:
        return {}
    likes = dict(session.execute(
        select(PostLike.post_id, func.count())
        .where(PostLike.post_id.in_(post_ids))
        .group_by(PostLike.post_id)
    ).all())
    comments = dict(session.execute(
        select(Comment.post_id, func.count())
        .where(Comment.post_id.in_(post_ids))
        .group_by(Comment.post_id)
    ).all())
    shares = dict(session.execute(
        select(Post.id, Post.shares_count).where(Post.id.in_(post_ids))
    ).all())
    return {
        pid: PostCounts(
            likes=likes.get(pid, 0),
            comments=comments.get(pid, 0),
            shares=max(shares.get(pid) or 0, 0),
        )
        for pid in post_ids
    }
