"""
leoconnect.services.graph_service — Relationship Store
=======================================================

Directed follow edges (user→user and user→club) plus club membership
(``users.assigned_club_id``).  The composite primary key on each edge table
is the only concurrency guard: a racing duplicate insert is rejected by the
store and reported as "already following", never stored twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leoconnect.database.models import Club, ClubFollow, User, UserFollow
from leoconnect.services.counter_service import club_counts, user_counts
from leoconnect.services.errors import Conflict, InvalidInput, NotFound
from leoconnect.services.pagination import Page

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FollowResult:
    is_following: bool
    followers_count: int

    def to_dict(self) -> dict:
        return {"isFollowing": self.is_following, "followersCount": self.followers_count}


@dataclass(slots=True)
class UserSummary:
    """A user as seen by a viewer in follower / following / member lists."""
    uid: str
    display_name: str
    photo_url: str | None
    leo_id: str | None
    is_following: bool = False
    is_mutual_follow: bool = False

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "displayName": self.display_name,
            "photoURL": self.photo_url,
            "leoId": self.leo_id,
            "isFollowing": self.is_following,
            "isMutualFollow": self.is_mutual_follow,
        }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def is_following_user(session: Session, follower_id: str, following_id: str) -> bool:
    return session.get(UserFollow, (follower_id, following_id)) is not None


def is_following_club(session: Session, user_id: str, club_id: str) -> bool:
    return session.get(ClubFollow, (user_id, club_id)) is not None


def is_mutual_follow(session: Session, a: str, b: str) -> bool:
    """True when *a* follows *b* and *b* follows *a*."""
    return is_following_user(session, a, b) and is_following_user(session, b, a)


def follower_ids(session: Session, uid: str) -> list[str]:
    """Every user following *uid* (the recipient set for a new-post fan-out)."""
    return list(session.scalars(
        select(UserFollow.follower_id).where(UserFollow.following_id == uid)
    ).all())


def followed_club_ids(session: Session, uid: str) -> list[str]:
    return list(session.scalars(
        select(ClubFollow.club_id).where(ClubFollow.user_id == uid)
    ).all())


def _require_user(session: Session, uid: str) -> User:
    user = session.get(User, uid)
    if user is None:
        raise NotFound("User not found")
    return user


def _require_club(session: Session, club_id: str) -> Club:
    club = session.get(Club, club_id)
    if club is None:
        raise NotFound("Club not found")
    return club


# ---------------------------------------------------------------------------
# User → user edges
# ---------------------------------------------------------------------------
def follow_user(session: Session, follower_id: str, target_id: str) -> FollowResult:
    """Create the edge *follower_id* → *target_id*."""
    if follower_id == target_id:
        raise InvalidInput("Cannot follow yourself")
    _require_user(session, target_id)
    if is_following_user(session, follower_id, target_id):
        raise Conflict("Already following this user")

    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(UserFollow(follower_id=follower_id, following_id=target_id))
            session.flush()
    except IntegrityError:
        # Lost a race against an identical request; the edge exists once.
        raise Conflict("Already following this user") from None
    session.commit()

    logger.info("User %s followed %s", follower_id, target_id)
    return FollowResult(True, user_counts(session, target_id).followers)


def unfollow_user(session: Session, follower_id: str, target_id: str) -> FollowResult:
    """Remove the edge; NotFound when it didn't exist."""
    result = session.execute(
        delete(UserFollow).where(
            UserFollow.follower_id == follower_id,
            UserFollow.following_id == target_id,
        )
    )
    if result.rowcount == 0:
        session.rollback()
        raise NotFound("Not following this user")
    session.commit()
    return FollowResult(False, user_counts(session, target_id).followers)


# ---------------------------------------------------------------------------
# User → club edges
# ---------------------------------------------------------------------------
def follow_club(session: Session, user_id: str, club_id: str) -> FollowResult:
    _require_club(session, club_id)
    if is_following_club(session, user_id, club_id):
        raise Conflict("Already following this club")
    try:
        with session.begin_nested():
            session.add(ClubFollow(user_id=user_id, club_id=club_id))
            session.flush()
    except IntegrityError:
        raise Conflict("Already following this club") from None
    session.commit()
    return FollowResult(True, club_counts(session, club_id).followers)


def unfollow_club(session: Session, user_id: str, club_id: str) -> FollowResult:
    result = session.execute(
        delete(ClubFollow).where(
            ClubFollow.user_id == user_id, ClubFollow.club_id == club_id
        )
    )
    if result.rowcount == 0:
        session.rollback()
        raise NotFound("Not following this club")
    session.commit()
    return FollowResult(False, club_counts(session, club_id).followers)


def ensure_club_follow(session: Session, user_id: str, club_id: str) -> None:
    """Idempotent follow used when a user is assigned to a club."""
    if is_following_club(session, user_id, club_id):
        return
    try:
        with session.begin_nested():
            session.add(ClubFollow(user_id=user_id, club_id=club_id))
            session.flush()
    except IntegrityError:
        pass


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
def _summaries(session: Session, viewer_id: str, users: list[User]) -> list[UserSummary]:
    """Attach the viewer's follow / mutual state to each user in two queries."""
    ids = [u.uid for u in users]
    if not ids:
        return []
    viewer_follows = set(session.scalars(
        select(UserFollow.following_id).where(
            UserFollow.follower_id == viewer_id, UserFollow.following_id.in_(ids)
        )
    ).all())
    follows_viewer = set(session.scalars(
        select(UserFollow.follower_id).where(
            UserFollow.following_id == viewer_id, UserFollow.follower_id.in_(ids)
        )
    ).all())
    return [
        UserSummary(
            uid=u.uid,
            display_name=u.display_name,
            photo_url=u.photo_url,
            leo_id=u.leo_id,
            is_following=u.uid in viewer_follows,
            is_mutual_follow=u.uid in viewer_follows and u.uid in follows_viewer,
        )
        for u in users
    ]


def list_followers(
    session: Session, viewer_id: str, uid: str, *, limit: int, offset: int
) -> Page[UserSummary]:
    _require_user(session, uid)
    total = session.scalar(
        select(func.count()).select_from(UserFollow).where(UserFollow.following_id == uid)
    ) or 0
    users = session.scalars(
        select(User)
        .join(UserFollow, UserFollow.follower_id == User.uid)
        .where(UserFollow.following_id == uid)
        .order_by(UserFollow.created_at.desc())
        .limit(limit).offset(offset)
    ).all()
    return Page(_summaries(session, viewer_id, list(users)), total, limit, offset)


def list_following(
    session: Session, viewer_id: str, uid: str, *, limit: int, offset: int
) -> Page[UserSummary]:
    _require_user(session, uid)
    total = session.scalar(
        select(func.count()).select_from(UserFollow).where(UserFollow.follower_id == uid)
    ) or 0
    users = session.scalars(
        select(User)
        .join(UserFollow, UserFollow.following_id == User.uid)
        .where(UserFollow.follower_id == uid)
        .order_by(UserFollow.created_at.desc())
        .limit(limit).offset(offset)
    ).all()
    return Page(_summaries(session, viewer_id, list(users)), total, limit, offset)


def list_club_followers(
    session: Session, viewer_id: str, club_id: str, *, limit: int, offset: int
) -> Page[UserSummary]:
    _require_club(session, club_id)
    total = session.scalar(
        select(func.count()).select_from(ClubFollow).where(ClubFollow.club_id == club_id)
    ) or 0
    users = session.scalars(
        select(User)
        .join(ClubFollow, ClubFollow.user_id == User.uid)
        .where(ClubFollow.club_id == club_id)
        .order_by(ClubFollow.created_at.desc())
        .limit(limit).offset(offset)
    ).all()
    return Page(_summaries(session, viewer_id, list(users)), total, limit, offset)


def list_club_members(
    session: Session, viewer_id: str, club_id: str, *, limit: int, offset: int
) -> Page[UserSummary]:
    """Users whose assigned club is *club_id*, alphabetical."""
    _require_club(session, club_id)
    total = session.scalar(
        select(func.count()).select_from(User).where(User.assigned_club_id == club_id)
    ) or 0
    users = session.scalars(
        select(User)
        .where(User.assigned_club_id == club_id)
        .order_by(User.display_name.asc())
        .limit(limit).offset(offset)
    ).all()
    return Page(_summaries(session, viewer_id, list(users)), total, limit, offset)
