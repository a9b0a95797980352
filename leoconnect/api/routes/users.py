"""
leoconnect.api.routes.users — Profiles & the follow graph
==========================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from leoconnect.api.deps import (
    CurrentUser,
    get_engine,
    get_push_dispatcher,
    get_session,
    page_window,
)
from leoconnect.services import feed_service, graph_service, profile_service
from leoconnect.services.notification_service import notify_follow
from leoconnect.services.push_dispatcher import PushDispatcher

router = APIRouter(tags=["users"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ProfileUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    leo_id: str | None = None
    assigned_club_id: str | None = None
    bio: str | None = None


class QuickStart(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    leo_id: str | None = None
    assigned_club_id: str | None = None


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------
@router.get("/users/me")
def get_me(user: CurrentUser, session: Session = Depends(get_session)):
    return profile_service.get_profile(session, user.subject_id)


@router.patch("/users/me")
def update_me(body: ProfileUpdate, user: CurrentUser, session: Session = Depends(get_session)):
    changes = body.model_dump(exclude_unset=True, by_alias=True)
    return profile_service.update_profile(session, user.subject_id, changes)


@router.post("/users/me/quick-start")
def quick_start(body: QuickStart, user: CurrentUser, session: Session = Depends(get_session)):
    changes = body.model_dump(exclude_unset=True, by_alias=True)
    return profile_service.quick_start(session, user.subject_id, changes)


@router.get("/users/search")
def search_users(q: str, user: CurrentUser, session: Session = Depends(get_session)):
    users = profile_service.search_users(session, q)
    return {
        "users": [
            {"uid": u.uid, "displayName": u.display_name, "photoURL": u.photo_url, "leoId": u.leo_id}
            for u in users
        ]
    }


# ---------------------------------------------------------------------------
# Other users
# ---------------------------------------------------------------------------
@router.get("/users/{uid}")
def get_user(uid: str, user: CurrentUser, session: Session = Depends(get_session)):
    return profile_service.get_profile(session, uid, viewer_id=user.subject_id)


@router.get("/users/{uid}/posts")
def user_posts(
    uid: str,
    user: CurrentUser,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = feed_service.get_user_posts(
        session, uid, user.subject_id, limit=limit, offset=offset
    )
    return page.to_dict(lambda p: p.to_dict())


@router.post("/users/{uid}/follow")
def follow_user(
    uid: str,
    user: CurrentUser,
    session: Session = Depends(get_session),
    engine: Engine = Depends(get_engine),
    push: PushDispatcher = Depends(get_push_dispatcher),
):
    result = graph_service.follow_user(session, user.subject_id, uid)
    notify_follow(engine, push, uid, user.subject_id, user.display_name)
    return result.to_dict()


@router.delete("/users/{uid}/follow")
def unfollow_user(uid: str, user: CurrentUser, session: Session = Depends(get_session)):
    return graph_service.unfollow_user(session, user.subject_id, uid).to_dict()


@router.get("/users/{uid}/followers")
def followers(
    uid: str,
    user: CurrentUser,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = graph_service.list_followers(session, user.subject_id, uid, limit=limit, offset=offset)
    return page.to_dict(lambda s: s.to_dict())


@router.get("/users/{uid}/following")
def following(
    uid: str,
    user: CurrentUser,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = graph_service.list_following(session, user.subject_id, uid, limit=limit, offset=offset)
    return page.to_dict(lambda s: s.to_dict())
