"""
leoconnect.services.club_service — Club directory
==================================================
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from leoconnect.database.models import Club
from leoconnect.services.counter_service import club_counts
from leoconnect.services.errors import NotFound
from leoconnect.services.graph_service import is_following_club


def club_to_dict(club: Club) -> dict:
    return {
        "id": club.id,
        "name": club.name,
        "district": club.district,
        "description": club.description,
        "logoUrl": club.logo_url,
        "coverImageUrl": club.cover_image_url,
        "address": club.address,
        "email": club.email,
        "phone": club.phone,
        "socialLinks": club.social_links or {},
        "isOfficial": club.is_official,
    }


def list_clubs(session: Session, district: str | None = None) -> list[dict]:
    stmt = select(Club).order_by(Club.name.asc())
    if district:
        stmt = stmt.where(Club.district == district)
    return [
        {**club_to_dict(c), **club_counts(session, c.id).to_dict()}
        for c in session.scalars(stmt).all()
    ]


def get_club(session: Session, viewer_id: str, club_id: str) -> dict:
    club = session.get(Club, club_id)
    if club is None:
        raise NotFound("Club not found")
    return {
        **club_to_dict(club),
        **club_counts(session, club_id).to_dict(),
        "isFollowing": is_following_club(session, viewer_id, club_id),
    }


def list_districts(session: Session) -> list[str]:
    """Distinct district names carried by clubs, alphabetical."""
    return list(session.scalars(
        select(Club.district).distinct()
        .where(Club.district.is_not(None), Club.district != "")
        .order_by(Club.district.asc())
    ).all())
