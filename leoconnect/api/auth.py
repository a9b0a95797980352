"""
leoconnect.api.auth — Session exchange
=======================================

Identity tokens are issued by the external identity provider and verified
in :func:`leoconnect.api.deps.get_principal`.  Exchanging one here creates
the caller's profile on first sight and returns it.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leoconnect.api.deps import CurrentUser, Principal, get_principal, get_session
from leoconnect.services.profile_service import get_or_create_user, get_profile, profile_dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/session")
def create_session(
    principal: Annotated[Principal, Depends(get_principal)],
    session: Session = Depends(get_session),
):
    """Exchange a verified identity token for the caller's profile."""
    user = get_or_create_user(
        session, principal.subject_id,
        email=principal.email, name=principal.name, picture=principal.picture,
        is_admin=principal.is_admin,
    )
    return profile_dict(session, user)


@router.get("/me")
def me(user: CurrentUser, session: Session = Depends(get_session)):
    return get_profile(session, user.subject_id)
