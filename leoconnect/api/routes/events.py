"""
leoconnect.api.routes.events — Club events & RSVPs
===================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from leoconnect.api.deps import CurrentUser, get_engine, get_media_relay, get_session, page_window
from leoconnect.database.engine import get_session as db_session
from leoconnect.database.engine import run_db
from leoconnect.services import engagement_service, event_service
from leoconnect.services.media_relay import MediaRelay, check_image_size

router = APIRouter(prefix="/events", tags=["events"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class EventCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str | None = None
    description: str | None = None
    event_date: str | None = None
    club_id: str | None = None
    image_bytes: str | None = None
    image_mime_type: str | None = None


class EventUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str | None = None
    description: str | None = None
    event_date: str | None = None
    image_bytes: str | None = None
    image_mime_type: str | None = None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("")
def list_events(
    user: CurrentUser,
    club_id: str | None = None,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = event_service.list_events(
        session, user.subject_id, club_id=club_id, limit=limit, offset=offset
    )
    return page.to_dict(lambda e: e.to_dict())


@router.get("/{event_id}")
def get_event(event_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    return event_service.get_event(session, user.subject_id, event_id).to_dict()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def _create_event(engine: Engine, author_id: str, body: EventCreate, image_url: str | None):
    with db_session(engine) as session:
        return event_service.create_event(
            session, author_id,
            name=body.name, description=body.description, event_date=body.event_date,
            club_id=body.club_id, image_url=image_url,
        )


def _update_event(engine: Engine, user_id: str, event_id: str, body: EventUpdate,
                  image_url: str | None):
    with db_session(engine) as session:
        return event_service.update_event(
            session, user_id, event_id,
            name=body.name, description=body.description, event_date=body.event_date,
            image_url=image_url,
        )


@router.post("")
async def create_event(
    body: EventCreate,
    user: CurrentUser,
    engine: Engine = Depends(get_engine),
    relay: MediaRelay = Depends(get_media_relay),
):
    check_image_size(body.image_bytes)
    image_url = await relay.upload_base64(body.image_bytes, body.image_mime_type, prefix="event")
    view = await run_db(_create_event, engine, user.subject_id, body, image_url)
    return view.to_dict()


@router.put("/{event_id}")
async def update_event(
    event_id: str,
    body: EventUpdate,
    user: CurrentUser,
    engine: Engine = Depends(get_engine),
    relay: MediaRelay = Depends(get_media_relay),
):
    check_image_size(body.image_bytes)
    image_url = await relay.upload_base64(body.image_bytes, body.image_mime_type, prefix="event")
    view = await run_db(_update_event, engine, user.subject_id, event_id, body, image_url)
    return view.to_dict()


@router.delete("/{event_id}")
def delete_event(event_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    event_service.delete_event(session, user.subject_id, event_id)
    return {"success": True, "message": "Event deleted successfully"}


@router.post("/{event_id}/rsvp")
def rsvp(event_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    result = engagement_service.toggle_rsvp(session, user.subject_id, event_id)
    return result.to_dict("rsvpCount", "hasRSVPd")
