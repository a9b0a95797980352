"""
leoconnect.api.routes.clubs — Club directory, club follows, club listings
==========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leoconnect.api.deps import CurrentUser, get_session, page_window
from leoconnect.services import club_service, feed_service, graph_service

router = APIRouter(prefix="/clubs", tags=["clubs"])


@router.get("")
def list_clubs(
    user: CurrentUser,
    district: str | None = None,
    session: Session = Depends(get_session),
):
    return {"clubs": club_service.list_clubs(session, district)}


@router.get("/{club_id}")
def get_club(club_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    return club_service.get_club(session, user.subject_id, club_id)


@router.get("/{club_id}/posts")
def club_posts(
    club_id: str,
    user: CurrentUser,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = feed_service.get_club_posts(
        session, club_id, user.subject_id, limit=limit, offset=offset
    )
    return page.to_dict(lambda p: p.to_dict())


@router.post("/{club_id}/follow")
def follow_club(club_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    return graph_service.follow_club(session, user.subject_id, club_id).to_dict()


@router.delete("/{club_id}/follow")
def unfollow_club(club_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    return graph_service.unfollow_club(session, user.subject_id, club_id).to_dict()


@router.get("/{club_id}/followers")
def club_followers(
    club_id: str,
    user: CurrentUser,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = graph_service.list_club_followers(
        session, user.subject_id, club_id, limit=limit, offset=offset
    )
    return page.to_dict(lambda s: s.to_dict())


@router.get("/{club_id}/members")
def club_members(
    club_id: str,
    user: CurrentUser,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = graph_service.list_club_members(
        session, user.subject_id, club_id, limit=limit, offset=offset
    )
    return page.to_dict(lambda s: s.to_dict())
