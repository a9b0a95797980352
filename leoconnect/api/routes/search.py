"""
leoconnect.api.routes.search — Search, autocomplete, districts
===============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leoconnect.api.deps import CurrentUser, get_session
from leoconnect.services import club_service, profile_service, search_service

router = APIRouter(tags=["search"])


@router.get("/search")
def search(user: CurrentUser, q: str | None = None, session: Session = Depends(get_session)):
    return search_service.search(session, user.subject_id, q).to_dict()


@router.get("/search/autocomplete")
def autocomplete(user: CurrentUser, q: str | None = None, session: Session = Depends(get_session)):
    return search_service.autocomplete(session, q)


@router.get("/search/users")
def search_users(user: CurrentUser, q: str | None = None, session: Session = Depends(get_session)):
    return [
        {"userId": u.uid, "displayName": u.display_name, "photoUrl": u.photo_url}
        for u in profile_service.search_users(session, q)
    ]


@router.get("/districts")
def list_districts(session: Session = Depends(get_session)):
    return club_service.list_districts(session)
