"""
leoconnect.services.profile_service — Member profiles
======================================================

A ``users`` row is created the first time an identity subject exchanges a
valid token (:func:`get_or_create_user`).  After that the profile is read
with live counters and patched through :func:`update_profile` or the
one-shot onboarding call :func:`quick_start`.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leoconnect.constants import MAX_BIO_LENGTH, MIN_SEARCH_LENGTH, USER_SEARCH_LIMIT
from leoconnect.database.models import Club, User, utcnow
from leoconnect.services.counter_service import user_counts
from leoconnect.services.errors import InvalidInput, NotFound
from leoconnect.services.graph_service import (
    ensure_club_follow,
    followed_club_ids,
    is_following_user,
)
from leoconnect.services.search_service import LIKE_ESCAPE, contains_pattern

logger = logging.getLogger(__name__)


def get_or_create_user(
    session: Session,
    uid: str,
    *,
    email: str | None = None,
    name: str | None = None,
    picture: str | None = None,
    is_admin: bool | None = None,
) -> User:
    """Return the user for *uid*, creating it on first sight.

    When *is_admin* is given (the verified token claim) the stored flag
    follows it.
    """
    user = session.get(User, uid)
    if user is not None:
        if is_admin is not None and user.is_admin != is_admin:
            user.is_admin = is_admin
            session.commit()
            logger.info("Admin flag for %s set to %s", uid, is_admin)
        return user
    try:
        with session.begin_nested():
            user = User(
                uid=uid,
                email=email or "",
                display_name=name or email or "Leo",
                photo_url=picture or None,
                is_admin=bool(is_admin),
            )
            session.add(user)
            session.flush()
    except IntegrityError:
        user = session.get(User, uid)
    else:
        logger.info("Created user %s", uid)
    session.commit()
    return user


def require_user(session: Session, uid: str) -> User:
    user = session.get(User, uid)
    if user is None:
        raise NotFound("User not found")
    return user


def profile_dict(session: Session, user: User, viewer_id: str | None = None) -> dict:
    data = {
        "uid": user.uid,
        "email": user.email,
        "displayName": user.display_name,
        "photoURL": user.photo_url,
        "leoId": user.leo_id,
        "bio": user.bio,
        "isAdmin": user.is_admin,
        "assignedClubId": user.assigned_club_id,
        "followingClubs": followed_club_ids(session, user.uid),
        "onboardingCompleted": user.onboarding_completed,
        **user_counts(session, user.uid).to_dict(),
    }
    if viewer_id is not None and viewer_id != user.uid:
        following = is_following_user(session, viewer_id, user.uid)
        data["isFollowing"] = following
        data["isMutualFollow"] = following and is_following_user(session, user.uid, viewer_id)
    return data


def get_profile(session: Session, uid: str, viewer_id: str | None = None) -> dict:
    return profile_dict(session, require_user(session, uid), viewer_id)


def _check_club(session: Session, club_id: str | None) -> None:
    if club_id and session.get(Club, club_id) is None:
        raise InvalidInput("Invalid club ID")


def update_profile(session: Session, uid: str, changes: dict) -> dict:
    """Patch ``leoId`` / ``assignedClubId`` / ``bio``.

    Only keys present in *changes* are applied; ``None`` clears a field.
    """
    user = require_user(session, uid)
    applied = False
    if "leoId" in changes:
        user.leo_id = changes["leoId"] or None
        applied = True
    if "assignedClubId" in changes:
        _check_club(session, changes["assignedClubId"])
        user.assigned_club_id = changes["assignedClubId"] or None
        applied = True
    if "bio" in changes:
        bio = (changes["bio"] or "").strip()
        if len(bio) > MAX_BIO_LENGTH:
            raise InvalidInput(f"Bio exceeds maximum length of {MAX_BIO_LENGTH} characters")
        user.bio = bio or None
        applied = True
    if not applied:
        raise InvalidInput("No valid fields to update")

    user.updated_at = utcnow()
    session.commit()
    return profile_dict(session, user)


def quick_start(session: Session, uid: str, changes: dict) -> dict:
    """First-run onboarding: mark complete, set leoId / club, follow the club."""
    user = require_user(session, uid)
    club_id = changes.get("assignedClubId")
    _check_club(session, club_id)

    user.onboarding_completed = True
    if "leoId" in changes:
        user.leo_id = changes["leoId"] or None
    if "assignedClubId" in changes:
        user.assigned_club_id = club_id or None
    if club_id:
        ensure_club_follow(session, uid, club_id)
    user.updated_at = utcnow()
    session.commit()
    return profile_dict(session, user)


def search_users(session: Session, query: str, *, limit: int = USER_SEARCH_LIMIT) -> list[User]:
    """Case-insensitive display-name substring search; under two characters finds nothing."""
    q = (query or "").strip()
    if len(q) < MIN_SEARCH_LENGTH:
        return []
    return list(session.scalars(
        select(User)
        .where(User.display_name.ilike(contains_pattern(q), escape=LIKE_ESCAPE))
        .order_by(User.display_name.asc()).limit(limit)
    ).all())
