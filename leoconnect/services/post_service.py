"""
leoconnect.services.post_service — Posts & Comments
====================================================

Create / fetch / delete posts and add / list / delete comments.

Deleting a post removes everything hanging off it (comment likes, comments,
post likes, shares, image references) before the post row itself, so the
read-aggregated counters of a deleted post resolve to zero on every backend,
including those that don't enforce ``ON DELETE CASCADE``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from leoconnect.constants import MAX_COMMENT_LENGTH, MAX_POST_LENGTH
from leoconnect.database.models import (
    Club,
    Comment,
    CommentLike,
    Post,
    PostImage,
    PostLike,
    PostShare,
    User,
)
from leoconnect.services.club_service import club_to_dict
from leoconnect.services.errors import Forbidden, InvalidInput, NotFound, clean_text
from leoconnect.services.feed_service import PostView, enrich_posts
from leoconnect.services.graph_service import is_following_club
from leoconnect.services.pagination import Page

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CommentView:
    comment_id: str
    post_id: str
    user_id: str
    author_name: str | None
    author_photo_url: str | None
    content: str
    created_at: datetime
    likes_count: int = 0
    is_liked_by_user: bool = False

    def to_dict(self) -> dict:
        return {
            "commentId": self.comment_id,
            "postId": self.post_id,
            "userId": self.user_id,
            "authorName": self.author_name,
            "authorPhotoUrl": self.author_photo_url or "",
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "likesCount": max(self.likes_count, 0),
            "isLikedByUser": self.is_liked_by_user,
        }


def require_post(session: Session, post_id: str) -> Post:
    post = session.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
def create_post(
    session: Session,
    author_id: str,
    content: str | None,
    *,
    club_id: str | None = None,
    image_url: str | None = None,
) -> PostView:
    """Validate and store a new post.

    When *club_id* is omitted a random club is picked; if no club exists at
    all the post is rejected.
    """
    text = clean_text(content, "Post content", MAX_POST_LENGTH)

    if club_id:
        if session.get(Club, club_id) is None:
            raise NotFound("Club not found")
    else:
        club_id = session.scalar(select(Club.id).order_by(func.random()).limit(1))
        if club_id is None:
            raise InvalidInput("No clubs available to assign post to")

    post = Post(author_id=author_id, club_id=club_id, content=text, image_url=image_url)
    session.add(post)
    session.flush()
    if image_url:
        session.add(PostImage(post_id=post.id, url=image_url))
    session.commit()
    session.refresh(post)

    logger.info("Post %s created by %s in club %s", post.id, author_id, club_id)
    return enrich_posts(session, author_id, [post])[0]


def get_post(session: Session, viewer_id: str, post_id: str) -> dict:
    """Single post with its club details and the viewer's club-follow state."""
    post = require_post(session, post_id)
    view = enrich_posts(session, viewer_id, [post])[0]
    return {
        "post": view.to_dict(),
        "club": club_to_dict(post.club) if post.club else None,
        "isFollowingClub": is_following_club(session, viewer_id, post.club_id),
    }


def delete_post(session: Session, user_id: str, post_id: str) -> None:
    """Delete a post (author or admin) together with all dependent rows."""
    post = require_post(session, post_id)
    if post.author_id != user_id:
        actor = session.get(User, user_id)
        if actor is None or not actor.is_admin:
            raise Forbidden("You can only delete your own posts")

    comment_ids = select(Comment.id).where(Comment.post_id == post_id)
    session.execute(delete(CommentLike).where(CommentLike.comment_id.in_(comment_ids)))
    session.execute(delete(Comment).where(Comment.post_id == post_id))
    session.execute(delete(PostLike).where(PostLike.post_id == post_id))
    session.execute(delete(PostShare).where(PostShare.post_id == post_id))
    session.execute(delete(PostImage).where(PostImage.post_id == post_id))
    session.execute(delete(Post).where(Post.id == post_id))
    session.commit()
    logger.info("Post %s deleted by %s", post_id, user_id)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
def _comment_view(comment: Comment, liked: bool) -> CommentView:
    return CommentView(
        comment_id=comment.id,
        post_id=comment.post_id,
        user_id=comment.user_id,
        author_name=comment.author.display_name if comment.author else None,
        author_photo_url=comment.author.photo_url if comment.author else None,
        content=comment.content,
        created_at=comment.created_at,
        likes_count=comment.likes_count,
        is_liked_by_user=liked,
    )


def add_comment(session: Session, user_id: str, post_id: str, content: str | None) -> CommentView:
    text = clean_text(content, "Comment content", MAX_COMMENT_LENGTH)
    require_post(session, post_id)
    comment = Comment(post_id=post_id, user_id=user_id, content=text)
    session.add(comment)
    session.commit()
    session.refresh(comment)
    return _comment_view(comment, False)


def list_comments(
    session: Session, viewer_id: str, post_id: str, *, limit: int, offset: int
) -> Page[CommentView]:
    """Comments on a post, newest first, with the viewer's like state."""
    require_post(session, post_id)
    total = session.scalar(
        select(func.count()).select_from(Comment).where(Comment.post_id == post_id)
    ) or 0
    comments = session.scalars(
        select(Comment)
        .where(Comment.post_id == post_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .limit(limit).offset(offset)
    ).all()
    ids = [c.id for c in comments]
    liked = set(session.scalars(
        select(CommentLike.comment_id).where(
            CommentLike.user_id == viewer_id, CommentLike.comment_id.in_(ids)
        )
    ).all()) if ids else set()
    return Page([_comment_view(c, c.id in liked) for c in comments], total, limit, offset)


def delete_comment(session: Session, user_id: str, comment_id: str) -> None:
    comment = session.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    if comment.user_id != user_id:
        raise Forbidden("You can only delete your own comments")
    session.execute(delete(CommentLike).where(CommentLike.comment_id == comment_id))
    session.execute(delete(Comment).where(Comment.id == comment_id))
    session.commit()
