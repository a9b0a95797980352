"""
leoconnect.services.event_service — Club events
================================================

Events belong to a club and are ordered by ``event_date`` ascending.  Only
the author or an admin may update or delete one.  RSVPs are toggled through
:func:`leoconnect.services.engagement_service.toggle_rsvp`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from leoconnect.constants import MAX_EVENT_DESCRIPTION_LENGTH, MAX_EVENT_NAME_LENGTH
from leoconnect.database.models import Club, Event, EventRsvp, User, utcnow
from leoconnect.services.errors import Forbidden, InvalidInput, NotFound, clean_text
from leoconnect.services.pagination import Page

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EventView:
    event_id: str
    club_id: str
    club_name: str | None
    author_id: str
    author_name: str | None
    name: str
    description: str
    event_date: str
    image_url: str | None
    rsvp_count: int
    has_rsvpd: bool
    created_at: datetime
    updated_at: datetime
    participants: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "eventId": self.event_id,
            "clubId": self.club_id,
            "clubName": self.club_name,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "name": self.name,
            "description": self.description,
            "eventDate": self.event_date,
            "imageUrl": self.image_url,
            "rsvpCount": max(self.rsvp_count, 0),
            "hasRSVPd": self.has_rsvpd,
            "rsvpParticipants": self.participants,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


def _views(session: Session, viewer_id: str, events: list[Event]) -> list[EventView]:
    ids = [e.id for e in events]
    participants: dict[str, list[dict]] = {i: [] for i in ids}
    if ids:
        rows = session.execute(
            select(EventRsvp.event_id, User.uid, User.display_name, User.photo_url)
            .join(User, User.uid == EventRsvp.user_id)
            .where(EventRsvp.event_id.in_(ids))
            .order_by(EventRsvp.created_at.asc())
        ).all()
        for event_id, uid, name, photo in rows:
            participants[event_id].append({"uid": uid, "displayName": name, "photoUrl": photo})
    return [
        EventView(
            event_id=e.id,
            club_id=e.club_id,
            club_name=e.club.name if e.club else None,
            author_id=e.author_id,
            author_name=e.author.display_name if e.author else None,
            name=e.name,
            description=e.description,
            event_date=e.event_date,
            image_url=e.image_url,
            rsvp_count=e.rsvp_count,
            has_rsvpd=any(p["uid"] == viewer_id for p in participants[e.id]),
            created_at=e.created_at,
            updated_at=e.updated_at,
            participants=participants[e.id],
        )
        for e in events
    ]


def _require_event(session: Session, event_id: str) -> Event:
    event = session.get(Event, event_id)
    if event is None:
        raise NotFound("Event not found")
    return event


def _require_owner_or_admin(session: Session, event: Event, user_id: str, verb: str) -> None:
    if event.author_id == user_id:
        return
    actor = session.get(User, user_id)
    if actor is None or not actor.is_admin:
        raise Forbidden(f"You can only {verb} your own events")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_events(
    session: Session, viewer_id: str, *, club_id: str | None = None, limit: int, offset: int
) -> Page[EventView]:
    where = [Event.club_id == club_id] if club_id else []
    total = session.scalar(select(func.count()).select_from(Event).where(*where)) or 0
    events = session.scalars(
        select(Event).where(*where)
        .order_by(Event.event_date.asc(), Event.id.asc())
        .limit(limit).offset(offset)
    ).all()
    return Page(_views(session, viewer_id, list(events)), total, limit, offset)


def get_event(session: Session, viewer_id: str, event_id: str) -> EventView:
    return _views(session, viewer_id, [_require_event(session, event_id)])[0]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def create_event(
    session: Session,
    author_id: str,
    *,
    name: str | None,
    description: str | None,
    event_date: str | None,
    club_id: str | None = None,
    image_url: str | None = None,
) -> EventView:
    clean_name = clean_text(name, "Event name", MAX_EVENT_NAME_LENGTH)
    clean_desc = clean_text(description, "Event description", MAX_EVENT_DESCRIPTION_LENGTH)
    if not event_date:
        raise InvalidInput("Event date is required")

    if club_id:
        if session.get(Club, club_id) is None:
            raise NotFound("Club not found")
    else:
        club_id = session.scalar(select(Club.id).order_by(func.random()).limit(1))
        if club_id is None:
            raise InvalidInput("No clubs available to assign event to")

    event = Event(
        club_id=club_id, author_id=author_id, name=clean_name,
        description=clean_desc, event_date=str(event_date), image_url=image_url,
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    logger.info("Event %s created by %s", event.id, author_id)
    return _views(session, author_id, [event])[0]


def update_event(
    session: Session,
    user_id: str,
    event_id: str,
    *,
    name: str | None = None,
    description: str | None = None,
    event_date: str | None = None,
    image_url: str | None = None,
) -> EventView:
    """Patch the given fields (author or admin); InvalidInput when none given."""
    event = _require_event(session, event_id)
    _require_owner_or_admin(session, event, user_id, "update")

    changed = False
    if name is not None:
        event.name = clean_text(name, "Event name", MAX_EVENT_NAME_LENGTH)
        changed = True
    if description is not None:
        event.description = clean_text(description, "Event description", MAX_EVENT_DESCRIPTION_LENGTH)
        changed = True
    if event_date is not None:
        event.event_date = str(event_date)
        changed = True
    if image_url is not None:
        event.image_url = image_url
        changed = True
    if not changed:
        session.rollback()
        raise InvalidInput("No fields to update")

    event.updated_at = utcnow()
    session.commit()
    session.refresh(event)
    return _views(session, user_id, [event])[0]


def delete_event(session: Session, user_id: str, event_id: str) -> None:
    event = _require_event(session, event_id)
    _require_owner_or_admin(session, event, user_id, "delete")
    session.execute(delete(EventRsvp).where(EventRsvp.event_id == event_id))
    session.execute(delete(Event).where(Event.id == event_id))
    session.commit()
    logger.info("Event %s deleted by %s", event_id, user_id)
