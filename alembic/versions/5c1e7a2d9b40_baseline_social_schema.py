"""Baseline social schema

Revision ID: 5c1e7a2d9b40
Revises:
Create Date: 2026-10-18 09:12:03.114208

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c1e7a2d9b40'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _ts(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    """Create users, clubs, the follow graph, posts, engagement, messaging,
    notifications and events."""

    # --- clubs / users ---
    op.create_table(
        "clubs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("district", sa.String(100)),
        sa.Column("description", sa.Text),
        sa.Column("logo_url", sa.String(1000)),
        sa.Column("cover_image_url", sa.String(1000)),
        sa.Column("address", sa.String(500)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("social_links", sa.JSON),
        sa.Column("is_official", sa.Boolean, nullable=False, server_default=sa.false()),
        _ts("created_at"),
    )
    op.create_index("ix_clubs_district", "clubs", ["district"])

    op.create_table(
        "users",
        sa.Column("uid", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("photo_url", sa.String(1000)),
        sa.Column("leo_id", sa.String(64)),
        sa.Column("bio", sa.Text),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "assigned_club_id", sa.String(36),
            sa.ForeignKey("clubs.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("onboarding_completed", sa.Boolean, nullable=False, server_default=sa.false()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_users_assigned_club", "users", ["assigned_club_id"])

    # --- follow graph ---
    op.create_table(
        "user_follows",
        sa.Column("follower_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), primary_key=True),
        sa.Column("following_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), primary_key=True),
        _ts("created_at"),
        sa.CheckConstraint("follower_id <> following_id", name="ck_user_follows_no_self"),
    )
    op.create_index("ix_user_follows_following", "user_follows", ["following_id", "created_at"])

    op.create_table(
        "club_follows",
        sa.Column("user_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), primary_key=True),
        sa.Column("club_id", sa.String(36),
                  sa.ForeignKey("clubs.id", ondelete="CASCADE"), primary_key=True),
        _ts("created_at"),
    )
    op.create_index("ix_club_follows_club", "club_follows", ["club_id", "created_at"])

    # --- posts / comments ---
    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("author_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), nullable=False),
        sa.Column("club_id", sa.String(36),
                  sa.ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("image_url", sa.String(1000)),
        sa.Column("shares_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_pinned", sa.Boolean, nullable=False, server_default=sa.false()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_posts_created_at", "posts", ["created_at"])
    op.create_index("ix_posts_author_time", "posts", ["author_id", "created_at"])
    op.create_index("ix_posts_club_time", "posts", ["club_id", "created_at"])

    op.create_table(
        "post_images",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.String(36),
                  sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("url", sa.String(1000), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_post_images_post", "post_images", ["post_id"])

    op.create_table(
        "comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("post_id", sa.String(36),
                  sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("likes_count", sa.Integer, nullable=False, server_default="0"),
        _ts("created_at"),
    )
    op.create_index("ix_comments_post_time", "comments", ["post_id", "created_at"])

    # --- engagement relations ---
    op.create_table(
        "post_likes",
        sa.Column("post_id", sa.String(36),
                  sa.ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), primary_key=True),
        _ts("created_at"),
    )
    op.create_table(
        "comment_likes",
        sa.Column("comment_id", sa.String(36),
                  sa.ForeignKey("comments.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), primary_key=True),
        _ts("created_at"),
    )
    op.create_table(
        "post_shares",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("post_id", sa.String(36),
                  sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_shares_post_user"),
    )

    # --- messages ---
    op.create_table(
        "messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("sender_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), nullable=False),
        sa.Column("receiver_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        _ts("created_at"),
    )
    op.create_index("ix_messages_sender_time", "messages", ["sender_id", "created_at"])
    op.create_index("ix_messages_receiver_time", "messages", ["receiver_id", "created_at"])
    op.create_index("ix_messages_unread", "messages", ["receiver_id", "sender_id", "is_read"])

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("data", sa.JSON),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        _ts("created_at"),
    )
    op.create_index("ix_notifications_user_time", "notifications", ["user_id", "created_at"])
    op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "is_read"])

    op.create_table(
        "notification_preferences",
        sa.Column("user_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), primary_key=True),
        sa.Column("messages_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("follows_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("posts_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("likes_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("comments_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        _ts("created_at"),
        _ts("updated_at"),
    )

    op.create_table(
        "push_tokens",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(500), nullable=False),
        sa.Column("device_id", sa.String(200)),
        sa.Column("device_type", sa.String(30), nullable=False, server_default="unknown"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("user_id", "token", name="uq_push_tokens_user_token"),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("club_id", sa.String(36),
                  sa.ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("event_date", sa.String(64), nullable=False),
        sa.Column("image_url", sa.String(1000)),
        sa.Column("rsvp_count", sa.Integer, nullable=False, server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_events_club_date", "events", ["club_id", "event_date"])

    op.create_table(
        "event_rsvps",
        sa.Column("event_id", sa.String(36),
                  sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.String(128),
                  sa.ForeignKey("users.uid", ondelete="CASCADE"), primary_key=True),
        _ts("created_at"),
    )


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    for table in (
        "event_rsvps", "events", "push_tokens", "notification_preferences",
        "notifications", "messages", "post_shares", "comment_likes", "post_likes",
        "comments", "post_images", "posts", "club_follows", "user_follows",
        "users", "clubs",
    ):
        op.drop_table(table)
