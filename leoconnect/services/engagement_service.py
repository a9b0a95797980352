"""
leoconnect.services.engagement_service — Engagement Toggler
============================================================

Like / unlike posts and comments, RSVP / un-RSVP events, one-way shares.

Every toggle follows the same sequence inside one transaction:

    1. Validate the subject exists              → NotFound
    2. Check whether the (subject, user) row exists
    3. Insert it (under a SAVEPOINT) or delete it
    4. For write-maintained counters, adjust the column with a single
       ``UPDATE … SET n = n + 1`` / ``CASE WHEN n > 0 THEN n - 1 ELSE 0``
    5. Commit and return the post-toggle state with the refreshed count

Race rules:

* An insert rejected by the uniqueness constraint means another request got
  there first; the state is "engaged" and the counter is **not** touched.
* A delete that removed no row never decrements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leoconnect.database.models import (
    Comment,
    CommentLike,
    Event,
    EventRsvp,
    Post,
    PostLike,
    PostShare,
)
from leoconnect.services.errors import NotFound

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToggleResult:
    """Outcome of a toggle.

    ``changed`` is False when a race resolved the call to the state that
    already existed; ``owner_id`` is the author of the subject (used to
    decide who gets notified).
    """
    active: bool
    count: int
    owner_id: str | None = None
    changed: bool = True

    def to_dict(self, count_key: str, flag_key: str) -> dict:
        return {count_key: self.count, flag_key: self.active}


@dataclass(slots=True)
class ShareResult:
    share_id: str
    shares_count: int
    already_shared: bool

    def to_dict(self) -> dict:
        return {
            "shareId": self.share_id,
            "sharesCount": self.shares_count,
            "alreadyShared": self.already_shared,
        }


def _decrement(column):
    return case((column > 0, column - 1), else_=0)


def _insert_once(session: Session, row) -> bool:
    """Insert *row* under a SAVEPOINT; False when the unique key already exists."""
    try:
        with session.begin_nested():
            session.add(row)
            session.flush()
    except IntegrityError:
        return False
    return True


# ---------------------------------------------------------------------------
# Post likes (read-aggregated)
# ---------------------------------------------------------------------------
def toggle_post_like(session: Session, user_id: str, post_id: str) -> ToggleResult:
    post = session.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")
    owner_id = post.author_id

    existing = session.get(PostLike, (post_id, user_id))
    if existing is not None:
        session.execute(
            delete(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
        )
        active, changed = False, True
    else:
        changed = _insert_once(session, PostLike(post_id=post_id, user_id=user_id))
        active = True
    session.commit()

    count = session.scalar(
        select(func.count()).select_from(PostLike).where(PostLike.post_id == post_id)
    ) or 0
    return ToggleResult(active, count, owner_id, changed)


# ---------------------------------------------------------------------------
# Comment likes (write-maintained comments.likes_count)
# ---------------------------------------------------------------------------
def toggle_comment_like(session: Session, user_id: str, comment_id: str) -> ToggleResult:
    comment = session.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    owner_id = comment.user_id

    existing = session.get(CommentLike, (comment_id, user_id))
    if existing is not None:
        removed = session.execute(
            delete(CommentLike).where(
                CommentLike.comment_id == comment_id, CommentLike.user_id == user_id
            )
        ).rowcount
        if removed:
            session.execute(
                update(Comment).where(Comment.id == comment_id)
                .values(likes_count=_decrement(Comment.likes_count))
            )
        active, changed = False, bool(removed)
    else:
        changed = _insert_once(session, CommentLike(comment_id=comment_id, user_id=user_id))
        if changed:
            session.execute(
                update(Comment).where(Comment.id == comment_id)
                .values(likes_count=Comment.likes_count + 1)
            )
        active = True
    session.commit()

    count = session.scalar(select(Comment.likes_count).where(Comment.id == comment_id)) or 0
    return ToggleResult(active, max(count, 0), owner_id, changed)


# ---------------------------------------------------------------------------
# Shares (one-way, write-maintained posts.shares_count)
# ---------------------------------------------------------------------------
def share_post(session: Session, user_id: str, post_id: str) -> ShareResult:
    """Record a share once per user; repeat calls return the existing share."""
    if session.get(Post, post_id) is None:
        raise NotFound("Post not found")

    def _current() -> int:
        return max(session.scalar(select(Post.shares_count).where(Post.id == post_id)) or 0, 0)

    existing_id = session.scalar(
        select(PostShare.id).where(PostShare.post_id == post_id, PostShare.user_id == user_id)
    )
    if existing_id is not None:
        return ShareResult(existing_id, _current(), True)

    share = PostShare(post_id=post_id, user_id=user_id)
    if not _insert_once(session, share):
        session.commit()
        existing_id = session.scalar(
            select(PostShare.id).where(PostShare.post_id == post_id, PostShare.user_id == user_id)
        )
        return ShareResult(existing_id, _current(), True)

    session.execute(
        update(Post).where(Post.id == post_id).values(shares_count=Post.shares_count + 1)
    )
    session.commit()
    return ShareResult(share.id, _current(), False)


# ---------------------------------------------------------------------------
# Event RSVPs (write-maintained events.rsvp_count)
# ---------------------------------------------------------------------------
def toggle_rsvp(session: Session, user_id: str, event_id: str) -> ToggleResult:
    event = session.get(Event, event_id)
    if event is None:
        raise NotFound("Event not found")
    owner_id = event.author_id

    existing = session.get(EventRsvp, (event_id, user_id))
    if existing is not None:
        removed = session.execute(
            delete(EventRsvp).where(EventRsvp.event_id == event_id, EventRsvp.user_id == user_id)
        ).rowcount
        if removed:
            session.execute(
                update(Event).where(Event.id == event_id)
                .values(rsvp_count=_decrement(Event.rsvp_count))
            )
        active, changed = False, bool(removed)
    else:
        changed = _insert_once(session, EventRsvp(event_id=event_id, user_id=user_id))
        if changed:
            session.execute(
                update(Event).where(Event.id == event_id)
                .values(rsvp_count=Event.rsvp_count + 1)
            )
        active = True
    session.commit()

    count = session.scalar(select(Event.rsvp_count).where(Event.id == event_id)) or 0
    return ToggleResult(active, max(count, 0), owner_id, changed)
