"""
leoconnect.api.routes.notifications — Inbox, preferences, push tokens
======================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from leoconnect.api.deps import CurrentUser, get_session, page_window
from leoconnect.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    messages_enabled: bool | None = None
    follows_enabled: bool | None = None
    posts_enabled: bool | None = None
    likes_enabled: bool | None = None
    comments_enabled: bool | None = None


class PushTokenBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str | None = None
    device_id: str | None = None
    device_type: str | None = None


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------
@router.get("")
def list_notifications(
    user: CurrentUser,
    unread_only: bool = Query(False, alias="unreadOnly"),
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = notification_service.list_notifications(
        session, user.subject_id, limit=limit, offset=offset,
        unread_only=unread_only,
    )
    body = page.to_dict(notification_service.notification_to_dict)
    body["unreadCount"] = notification_service.unread_count(session, user.subject_id)
    return body


@router.post("/read-all")
def mark_all_read(user: CurrentUser, session: Session = Depends(get_session)):
    changed = notification_service.mark_all_read(session, user.subject_id)
    return {"success": True, "updated": changed}


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------
@router.get("/preferences")
def get_preferences(user: CurrentUser, session: Session = Depends(get_session)):
    prefs = notification_service.get_or_create_preferences(session, user.subject_id)
    session.commit()
    return notification_service.preferences_to_dict(prefs)


@router.patch("/preferences")
def update_preferences(
    body: PreferencesUpdate, user: CurrentUser, session: Session = Depends(get_session)
):
    changes = body.model_dump(exclude_unset=True, by_alias=True)
    prefs = notification_service.update_preferences(session, user.subject_id, changes)
    return notification_service.preferences_to_dict(prefs)


# ---------------------------------------------------------------------------
# Push tokens
# ---------------------------------------------------------------------------
@router.post("/token")
def register_token(body: PushTokenBody, user: CurrentUser, session: Session = Depends(get_session)):
    notification_service.register_push_token(
        session, user.subject_id, body.token, body.device_id, body.device_type
    )
    return {"success": True, "message": "Push token registered"}


@router.delete("/token")
def remove_token(body: PushTokenBody, user: CurrentUser, session: Session = Depends(get_session)):
    notification_service.remove_push_token(session, user.subject_id, body.token)
    return {"success": True, "message": "Push token removed"}


@router.patch("/{notification_id}/read")
def mark_read(notification_id: int, user: CurrentUser, session: Session = Depends(get_session)):
    notification_service.mark_read(session, user.subject_id, notification_id)
    return {"success": True}
