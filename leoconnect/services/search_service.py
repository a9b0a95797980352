"""
leoconnect.services.search_service — Search & autocomplete
===========================================================

Substring search over clubs, districts and posts.

Every query term is matched as ``%term%`` with the LIKE wildcards in the
term escaped, so ``%`` or ``_`` typed by a user matches literally.
Districts have no table of their own; they are the distinct
``clubs.district`` values.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from leoconnect.constants import (
    AUTOCOMPLETE_LIMIT,
    AUTOCOMPLETE_TITLE_LENGTH,
    MIN_SEARCH_LENGTH,
    SEARCH_CLUB_LIMIT,
    SEARCH_DISTRICT_LIMIT,
    SEARCH_POST_LIMIT,
    preview,
)
from leoconnect.database.models import Club, Post, User
from leoconnect.services.club_service import club_to_dict
from leoconnect.services.counter_service import club_counts
from leoconnect.services.errors import InvalidInput
from leoconnect.services.feed_service import PostView, enrich_posts

LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """``%term%`` with ``\\``, ``%`` and ``_`` escaped for ``ESCAPE '\\'``."""
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def _contains(column, term: str):
    return column.ilike(contains_pattern(term), escape=LIKE_ESCAPE)


@dataclass(slots=True)
class SearchResults:
    clubs: list[dict] = field(default_factory=list)
    districts: list[dict] = field(default_factory=list)
    posts: list[PostView] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "clubs": self.clubs,
            "districts": self.districts,
            "posts": [p.to_dict() for p in self.posts],
        }


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def _matching_districts(session: Session, term: str, limit: int) -> list[str]:
    return list(session.scalars(
        select(Club.district).distinct()
        .where(Club.district.is_not(None), _contains(Club.district, term))
        .order_by(Club.district.asc())
        .limit(limit)
    ).all())


def district_stats(session: Session, names: list[str]) -> list[dict]:
    """``{name, totalClubs, totalMembers}`` per district, in *names* order."""
    if not names:
        return []
    clubs = dict(session.execute(
        select(Club.district, func.count(Club.id))
        .where(Club.district.in_(names))
        .group_by(Club.district)
    ).all())
    members = dict(session.execute(
        select(Club.district, func.count(User.uid))
        .join(User, User.assigned_club_id == Club.id)
        .where(Club.district.in_(names))
        .group_by(Club.district)
    ).all())
    return [
        {"name": n, "totalClubs": clubs.get(n, 0), "totalMembers": members.get(n, 0)}
        for n in names
    ]


def search(session: Session, viewer_id: str | None, query: str | None) -> SearchResults:
    """Clubs by name or description, districts by name, posts by content."""
    term = (query or "").strip()
    if not term:
        raise InvalidInput("Missing query parameter")

    clubs = session.scalars(
        select(Club)
        .where(or_(_contains(Club.name, term), _contains(Club.description, term)))
        .order_by(Club.name.asc())
        .limit(SEARCH_CLUB_LIMIT)
    ).all()
    posts = session.scalars(
        select(Post)
        .where(_contains(Post.content, term))
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(SEARCH_POST_LIMIT)
    ).all()

    return SearchResults(
        clubs=[{**club_to_dict(c), **club_counts(session, c.id).to_dict()} for c in clubs],
        districts=district_stats(session, _matching_districts(session, term, SEARCH_DISTRICT_LIMIT)),
        posts=enrich_posts(session, viewer_id, list(posts)),
    )


def autocomplete(session: Session, query: str | None) -> dict:
    """Short suggestion lists; terms under two characters suggest nothing."""
    term = (query or "").strip()
    if len(term) < MIN_SEARCH_LENGTH:
        return {"clubs": [], "districts": [], "posts": []}

    clubs = session.execute(
        select(Club.id, Club.name)
        .where(_contains(Club.name, term))
        .order_by(Club.name.asc())
        .limit(AUTOCOMPLETE_LIMIT)
    ).all()
    posts = session.execute(
        select(Post.id, Post.content)
        .where(_contains(Post.content, term))
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(AUTOCOMPLETE_LIMIT)
    ).all()

    def title(content: str) -> str:
        if len(content) <= AUTOCOMPLETE_TITLE_LENGTH:
            return content
        return preview(content, AUTOCOMPLETE_TITLE_LENGTH) + "..."

    return {
        "clubs": [{"id": cid, "name": name} for cid, name in clubs],
        "districts": _matching_districts(session, term, AUTOCOMPLETE_LIMIT),
        "posts": [{"id": pid, "title": title(content)} for pid, content in posts],
    }
