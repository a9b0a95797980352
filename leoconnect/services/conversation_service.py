"""
leoconnect.services.conversation_service — Conversation Threader
=================================================================

Direct messages are stored as flat rows; a *conversation* is derived on read
by grouping on the other party.

``get_conversations`` scans the user's messages newest-first and keeps the
first message seen per counterpart as that conversation's last message.
Unread counts are computed separately (counterpart → user, ``is_read`` false)
rather than from the scan, so they are exact.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leoconnect.constants import MAX_MESSAGE_LENGTH
from leoconnect.database.models import Message, User
from leoconnect.services.errors import Forbidden, InvalidInput, NotFound, clean_text
from leoconnect.services.pagination import Page

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConversationSummary:
    counterpart_id: str
    display_name: str
    photo_url: str | None
    last_message: str
    last_message_at: datetime
    unread_count: int = 0

    def to_dict(self) -> dict:
        return {
            "counterpartId": self.counterpart_id,
            "displayName": self.display_name,
            "photoUrl": self.photo_url,
            "lastMessage": self.last_message,
            "lastMessageAt": self.last_message_at.isoformat(),
            "unreadCount": self.unread_count,
        }


def message_to_dict(m: Message) -> dict:
    return {
        "id": m.id,
        "senderId": m.sender_id,
        "receiverId": m.receiver_id,
        "content": m.content,
        "isRead": m.is_read,
        "createdAt": m.created_at.isoformat(),
    }


def _between(a: str, b: str):
    return or_(
        and_(Message.sender_id == a, Message.receiver_id == b),
        and_(Message.sender_id == b, Message.receiver_id == a),
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def send_message(session: Session, sender_id: str, receiver_id: str | None, content: str | None) -> Message:
    if not receiver_id:
        raise InvalidInput("receiverId is required")
    text = clean_text(content, "Message content", MAX_MESSAGE_LENGTH)
    if receiver_id == sender_id:
        raise InvalidInput("Cannot send a message to yourself")
    if session.get(User, receiver_id) is None:
        raise NotFound("Receiver not found")

    message = Message(sender_id=sender_id, receiver_id=receiver_id, content=text)
    session.add(message)
    session.commit()
    session.refresh(message)
    return message


def delete_message(session: Session, user_id: str, message_id: str) -> None:
    message = session.get(Message, message_id)
    if message is None:
        raise NotFound("Message not found")
    if message.sender_id != user_id:
        raise Forbidden("You can only delete your own messages")
    session.execute(delete(Message).where(Message.id == message_id))
    session.commit()


def delete_conversation(session: Session, user_id: str, counterpart_id: str) -> int:
    """Delete every message between the two users, for both of them."""
    removed = session.execute(delete(Message).where(_between(user_id, counterpart_id))).rowcount
    session.commit()
    logger.info("Conversation %s ↔ %s deleted (%d messages)", user_id, counterpart_id, removed)
    return removed


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_conversations(
    session: Session, user_id: str, *, limit: int = 50, offset: int = 0
) -> Page[ConversationSummary]:
    rows = session.execute(
        select(Message.sender_id, Message.receiver_id, Message.content, Message.created_at)
        .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .order_by(Message.created_at.desc(), Message.id.desc())
    ).all()

    latest: dict[str, tuple[str, datetime]] = {}
    for sender, receiver, content, created_at in rows:
        other = receiver if sender == user_id else sender
        if other not in latest:
            latest[other] = (content, created_at)

    total = len(latest)
    window = list(latest)[offset:offset + limit]
    if not window:
        return Page([], total, limit, offset)

    users = {
        u.uid: u for u in session.scalars(select(User).where(User.uid.in_(window))).all()
    }
    unread = dict(session.execute(
        select(Message.sender_id, func.count())
        .where(
            Message.receiver_id == user_id,
            Message.sender_id.in_(window),
            Message.is_read.is_(False),
        )
        .group_by(Message.sender_id)
    ).all())

    items = []
    for other in window:
        content, created_at = latest[other]
        user = users.get(other)
        items.append(ConversationSummary(
            counterpart_id=other,
            display_name=user.display_name if user else "Unknown User",
            photo_url=user.photo_url if user else None,
            last_message=content,
            last_message_at=created_at,
            unread_count=unread.get(other, 0),
        ))
    return Page(items, total, limit, offset)


def get_messages(
    session: Session, user_id: str, counterpart_id: str, *, limit: int = 50, offset: int = 0
) -> Page[dict]:
    """Thread history, oldest first.

    The window is counted back from the newest message: ``offset=0`` is the
    latest *limit* messages and ``hasMore`` means older ones remain.  Only the
    counterpart's messages inside the returned window are marked read; a
    failure there is logged and the history is still returned.
    """
    where = _between(user_id, counterpart_id)
    total = session.scalar(select(func.count()).select_from(Message).where(where)) or 0
    messages = session.scalars(
        select(Message).where(where)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit).offset(offset)
    ).all()
    messages = list(reversed(messages))
    items = [message_to_dict(m) for m in messages]

    unread_ids = [
        m.id for m in messages
        if m.sender_id == counterpart_id and m.receiver_id == user_id and not m.is_read
    ]
    if unread_ids:
        try:
            session.execute(
                update(Message)
                .where(Message.id.in_(unread_ids), Message.is_read.is_(False))
                .values(is_read=True)
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.warning("Failed to mark %s → %s messages read", counterpart_id, user_id, exc_info=True)

    return Page(items, total, limit, offset)


def unread_message_count(session: Session, user_id: str) -> int:
    return session.scalar(
        select(func.count()).select_from(Message)
        .where(Message.receiver_id == user_id, Message.is_read.is_(False))
    ) or 0
