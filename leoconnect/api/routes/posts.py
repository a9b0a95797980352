"""
leoconnect.api.routes.posts — Feed, posts, comments, engagement
================================================================

Post creation is the one async handler here: it awaits the media relay,
runs the insert through :func:`run_db`, then hands the follower fan-out to
the background :class:`FanoutQueue` and returns without waiting for it.
Content is cleaned in the handler so bad input is rejected before the
relay upload; the cleaned text is what gets stored and announced.
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
    feed_window,
    get_engine,
    get_fanout,
    get_media_relay,
    get_push_dispatcher,
    get_session,
    page_window,
)
from leoconnect.constants import MAX_POST_LENGTH, preview
from leoconnect.database.engine import get_session as db_session
from leoconnect.database.engine import run_db
from leoconnect.services import engagement_service, feed_service, post_service
from leoconnect.services.errors import clean_text
from leoconnect.services.fanout_queue import FanoutJob, FanoutQueue
from leoconnect.services.media_relay import MediaRelay, check_image_size
from leoconnect.services.notification_service import notify_comment, notify_like
from leoconnect.services.push_dispatcher import PushDispatcher

router = APIRouter(tags=["posts"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PostCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: str | None = None
    club_id: str | None = None
    image_bytes: str | None = None
    image_mime_type: str | None = None


class CommentCreate(BaseModel):
    content: str | None = None


# ---------------------------------------------------------------------------
# Feeds
# ---------------------------------------------------------------------------
@router.get("/feed")
def feed(
    user: CurrentUser,
    window: tuple[int, int] = Depends(feed_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = feed_service.get_feed(session, user.subject_id, limit=limit, offset=offset)
    return page.to_dict(lambda p: p.to_dict())


@router.get("/explore")
def explore(
    user: CurrentUser,
    window: tuple[int, int] = Depends(feed_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = feed_service.get_explore(session, user.subject_id, limit=limit, offset=offset)
    return page.to_dict(lambda p: p.to_dict())


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
def _create_post(engine: Engine, author_id: str, content: str, club_id: str | None,
                 image_url: str | None):
    with db_session(engine) as session:
        return post_service.create_post(
            session, author_id, content, club_id=club_id, image_url=image_url
        )


@router.post("/posts")
async def create_post(
    body: PostCreate,
    user: CurrentUser,
    engine: Engine = Depends(get_engine),
    relay: MediaRelay = Depends(get_media_relay),
    fanout: FanoutQueue | None = Depends(get_fanout),
):
    content = clean_text(body.content, "Post content", MAX_POST_LENGTH)
    check_image_size(body.image_bytes)

    image_url = await relay.upload_base64(body.image_bytes, body.image_mime_type, prefix="post")
    view = await run_db(
        _create_post, engine, user.subject_id, content, body.club_id, image_url
    )

    job = FanoutJob(
        author_id=user.subject_id,
        author_name=user.display_name,
        post_id=view.post_id,
        preview=preview(content),
    )
    if fanout is None:
        logger.warning("Fan-out queue not running; post %s not announced", view.post_id)
    else:
        fanout.submit(job)
    return view.to_dict()


@router.get("/posts/{post_id}")
def get_post(post_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    return post_service.get_post(session, user.subject_id, post_id)


@router.delete("/posts/{post_id}")
def delete_post(post_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    post_service.delete_post(session, user.subject_id, post_id)
    return {"success": True, "message": "Post deleted successfully"}


@router.post("/posts/{post_id}/like")
def like_post(
    post_id: str,
    user: CurrentUser,
    session: Session = Depends(get_session),
    engine: Engine = Depends(get_engine),
    push: PushDispatcher = Depends(get_push_dispatcher),
):
    result = engagement_service.toggle_post_like(session, user.subject_id, post_id)
    if result.active and result.changed:
        notify_like(engine, push, result.owner_id, user.subject_id, user.display_name,
                    post_id=post_id)
    return result.to_dict("likesCount", "isLikedByUser")


@router.post("/posts/{post_id}/share")
def share_post(post_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    return engagement_service.share_post(session, user.subject_id, post_id).to_dict()


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
@router.get("/posts/{post_id}/comments")
def list_comments(
    post_id: str,
    user: CurrentUser,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = post_service.list_comments(session, user.subject_id, post_id, limit=limit, offset=offset)
    return page.to_dict(lambda c: c.to_dict())


@router.post("/posts/{post_id}/comments")
def add_comment(
    post_id: str,
    body: CommentCreate,
    user: CurrentUser,
    session: Session = Depends(get_session),
    engine: Engine = Depends(get_engine),
    push: PushDispatcher = Depends(get_push_dispatcher),
):
    comment = post_service.add_comment(session, user.subject_id, post_id, body.content)
    owner_id = post_service.require_post(session, post_id).author_id
    notify_comment(engine, push, owner_id, user.subject_id, user.display_name,
                   post_id, comment.comment_id, comment.content)
    return {"comment": comment.to_dict()}


@router.delete("/comments/{comment_id}")
def delete_comment(comment_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    post_service.delete_comment(session, user.subject_id, comment_id)
    return {"success": True}


@router.post("/comments/{comment_id}/like")
def like_comment(
    comment_id: str,
    user: CurrentUser,
    session: Session = Depends(get_session),
    engine: Engine = Depends(get_engine),
    push: PushDispatcher = Depends(get_push_dispatcher),
):
    result = engagement_service.toggle_comment_like(session, user.subject_id, comment_id)
    if result.active and result.changed:
        notify_like(engine, push, result.owner_id, user.subject_id, user.display_name,
                    comment_id=comment_id)
    return result.to_dict("likesCount", "isLikedByUser")
