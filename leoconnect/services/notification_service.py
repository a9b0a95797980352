"""
leoconnect.services.notification_service — Notification Fan-out
=================================================================

Turns a user action into per-recipient ``notifications`` rows and, where a
push gateway is configured, a best-effort push.

=================  =====================  ====================  ===================
Trigger            Recipients             Gate                  Payload
=================  =====================  ====================  ===================
new follow         followed user          ``follows_enabled``   follower name + id
new message        receiver               ``messages_enabled``  sender + preview
new post by U      every follower of U    ``posts_enabled``     author, post, preview
like post/comment  content owner          ``likes_enabled``     liker name
comment on post    post owner             ``comments_enabled``  commenter + preview
=================  =====================  ====================  ===================

Preference rows are created lazily with every gate enabled.  Acting on your
own content never notifies you.

The ``notify_*`` helpers open their own session and swallow every failure:
they run after the triggering write has committed and must never turn a
successful action into an error.  :func:`fan_out_new_post` is the job body
executed by :class:`leoconnect.services.fanout_queue.FanoutQueue`; each
follower is written in an independent session so one failure does not stop
the rest.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import Engine, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leoconnect.constants import PREFERENCE_FIELDS, NotificationType, preview
from leoconnect.database.engine import get_session
from leoconnect.database.models import Notification, NotificationPreferences, PushToken, utcnow
from leoconnect.services.errors import Forbidden, InvalidInput, NotFound
from leoconnect.services.graph_service import follower_ids
from leoconnect.services.pagination import Page

if TYPE_CHECKING:
    from leoconnect.services.fanout_queue import FanoutJob
    from leoconnect.services.push_dispatcher import PushDispatcher

logger = logging.getLogger(__name__)

# camelCase request key → preference column
PREFERENCE_KEYS: dict[str, str] = {
    "messagesEnabled": "messages_enabled",
    "followsEnabled": "follows_enabled",
    "postsEnabled": "posts_enabled",
    "likesEnabled": "likes_enabled",
    "commentsEnabled": "comments_enabled",
}


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------
def get_or_create_preferences(session: Session, user_id: str) -> NotificationPreferences:
    prefs = session.get(NotificationPreferences, user_id)
    if prefs is not None:
        return prefs
    try:
        with session.begin_nested():
            prefs = NotificationPreferences(user_id=user_id)
            session.add(prefs)
            session.flush()
    except IntegrityError:
        # Created concurrently
        prefs = session.get(NotificationPreferences, user_id)
    return prefs


def preferences_to_dict(prefs: NotificationPreferences) -> dict[str, bool]:
    return {key: bool(getattr(prefs, col)) for key, col in PREFERENCE_KEYS.items()}


def update_preferences(session: Session, user_id: str, changes: dict) -> NotificationPreferences:
    """Apply the recognised keys of *changes*; InvalidInput when none given."""
    updates = {
        PREFERENCE_KEYS[k]: bool(v)
        for k, v in changes.items()
        if k in PREFERENCE_KEYS and v is not None
    }
    if not updates:
        raise InvalidInput("No preferences to update")
    prefs = get_or_create_preferences(session, user_id)
    for col, value in updates.items():
        setattr(prefs, col, value)
    prefs.updated_at = utcnow()
    session.commit()
    return prefs


def is_enabled(session: Session, user_id: str, ntype: NotificationType) -> bool:
    prefs = get_or_create_preferences(session, user_id)
    return bool(getattr(prefs, PREFERENCE_FIELDS[ntype]))


# ---------------------------------------------------------------------------
# Push tokens
# ---------------------------------------------------------------------------
def register_push_token(
    session: Session,
    user_id: str,
    token: str | None,
    device_id: str | None = None,
    device_type: str | None = None,
) -> PushToken:
    """Insert or refresh a device token for *user_id*."""
    if not token:
        raise InvalidInput("Push token is required")
    row = session.scalar(
        select(PushToken).where(PushToken.user_id == user_id, PushToken.token == token)
    )
    if row is None:
        row = PushToken(user_id=user_id, token=token)
        session.add(row)
    row.device_id = device_id
    row.device_type = device_type or "unknown"
    row.updated_at = utcnow()
    session.commit()
    return row


def remove_push_token(session: Session, user_id: str, token: str | None) -> None:
    if not token:
        raise InvalidInput("Push token is required")
    row = session.scalar(
        select(PushToken).where(PushToken.user_id == user_id, PushToken.token == token)
    )
    if row is not None:
        session.delete(row)
    session.commit()


def push_tokens_for(session: Session, user_id: str) -> list[str]:
    return list(session.scalars(select(PushToken.token).where(PushToken.user_id == user_id)).all())


# ---------------------------------------------------------------------------
# Core write
# ---------------------------------------------------------------------------
def create_notification(
    session: Session,
    user_id: str,
    ntype: NotificationType,
    title: str,
    body: str,
    data: dict | None = None,
    push: PushDispatcher | None = None,
) -> Notification | None:
    """Store one notification if the recipient's gate allows it.

    Returns ``None`` when the category is disabled.  Push delivery happens
    after the row is committed and cannot fail the call.
    """
    if not is_enabled(session, user_id, ntype):
        logger.debug("%s notification to %s suppressed by preferences", ntype, user_id)
        session.commit()
        return None

    note = Notification(
        user_id=user_id, type=str(ntype), title=title, body=body,
        data={"type": str(ntype), **(data or {})},
    )
    session.add(note)
    session.commit()

    if push is not None and push.enabled:
        push.send(user_id, push_tokens_for(session, user_id), title, body, note.data)
    return note


def _best_effort(engine: Engine, label: str, recipient_id: str, fn, *args) -> None:
    try:
        with get_session(engine) as session:
            fn(session, *args)
    except Exception:
        logger.exception("Failed to send %s notification to %s", label, recipient_id)


# ---------------------------------------------------------------------------
# One-to-one triggers
# ---------------------------------------------------------------------------
def notify_follow(
    engine: Engine, push: PushDispatcher | None, target_id: str, follower_id: str, follower_name: str
) -> None:
    _best_effort(
        engine, "follow", target_id, create_notification,
        target_id, NotificationType.FOLLOW, "New Follower",
        f"{follower_name} started following you",
        {"followerId": follower_id, "followerName": follower_name}, push,
    )


def notify_message(
    engine: Engine, push: PushDispatcher | None, receiver_id: str, sender_id: str,
    sender_name: str, content: str,
) -> None:
    _best_effort(
        engine, "message", receiver_id, create_notification,
        receiver_id, NotificationType.MESSAGE, f"New message from {sender_name}",
        preview(content), {"senderId": sender_id, "senderName": sender_name}, push,
    )


def notify_like(
    engine: Engine, push: PushDispatcher | None, owner_id: str, liker_id: str, liker_name: str,
    *, post_id: str | None = None, comment_id: str | None = None,
) -> None:
    if owner_id == liker_id:
        return
    what = "comment" if comment_id else "post"
    data = {"likerId": liker_id, "likerName": liker_name}
    if post_id:
        data["postId"] = post_id
    if comment_id:
        data["commentId"] = comment_id
    _best_effort(
        engine, "like", owner_id, create_notification,
        owner_id, NotificationType.LIKE, "New Like",
        f"{liker_name} liked your {what}", data, push,
    )


def notify_comment(
    engine: Engine, push: PushDispatcher | None, owner_id: str, commenter_id: str,
    commenter_name: str, post_id: str, comment_id: str, content: str,
) -> None:
    if owner_id == commenter_id:
        return
    _best_effort(
        engine, "comment", owner_id, create_notification,
        owner_id, NotificationType.COMMENT, "New Comment",
        f"{commenter_name} commented: {preview(content)}",
        {"postId": post_id, "commentId": comment_id, "commenterId": commenter_id}, push,
    )


# ---------------------------------------------------------------------------
# One-to-many: new post
# ---------------------------------------------------------------------------
def fan_out_new_post(
    engine: Engine, push: PushDispatcher | None, job: FanoutJob
) -> list[tuple[str, str]]:
    """Notify every follower of the post's author.

    Returns ``(recipient_id, error)`` for each follower that could not be
    written; the rest are unaffected.
    """
    with get_session(engine) as session:
        recipients = follower_ids(session, job.author_id)

    failures: list[tuple[str, str]] = []
    for recipient in recipients:
        try:
            with get_session(engine) as session:
                create_notification(
                    session, recipient, NotificationType.POST,
                    f"New post from {job.author_name}", job.preview,
                    {"postId": job.post_id, "authorId": job.author_id,
                     "authorName": job.author_name},
                    push,
                )
        except Exception as exc:
            logger.exception("Post notification for %s → %s failed", job.post_id, recipient)
            failures.append((recipient, str(exc)))

    logger.info(
        "Fan-out for post %s: %d recipients, %d failed",
        job.post_id, len(recipients), len(failures),
    )
    return failures


# ---------------------------------------------------------------------------
# Reading & acknowledging
# ---------------------------------------------------------------------------
def notification_to_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "body": n.body,
        "data": n.data,
        "isRead": n.is_read,
        "createdAt": n.created_at.isoformat(),
    }


def list_notifications(
    session: Session, user_id: str, *, limit: int, offset: int, unread_only: bool = False
) -> Page[Notification]:
    where = [Notification.user_id == user_id]
    if unread_only:
        where.append(Notification.is_read.is_(False))
    total = session.scalar(select(func.count()).select_from(Notification).where(*where)) or 0
    rows = session.scalars(
        select(Notification).where(*where)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit).offset(offset)
    ).all()
    return Page(list(rows), total, limit, offset)


def unread_count(session: Session, user_id: str) -> int:
    return session.scalar(
        select(func.count()).select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    ) or 0


def mark_read(session: Session, user_id: str, notification_id: int) -> None:
    note = session.get(Notification, notification_id)
    if note is None:
        raise NotFound("Notification not found")
    if note.user_id != user_id:
        raise Forbidden("Not your notification")
    note.is_read = True
    session.commit()


def mark_all_read(session: Session, user_id: str) -> int:
    changed = session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    ).rowcount
    session.commit()
    return changed
