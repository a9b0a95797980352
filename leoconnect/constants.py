"""
leoconnect.constants — Shared Constants
=========================================

Single source of truth for content ceilings, notification categories and
list defaults.  Import from here instead of duplicating in services and
routes.
"""

from __future__ import annotations

import enum

# ---------------------------------------------------------------------------
# Content ceilings (characters, measured after trimming)
# ---------------------------------------------------------------------------
MAX_POST_LENGTH = 5000
MAX_COMMENT_LENGTH = 2000
MAX_MESSAGE_LENGTH = 5000
MAX_EVENT_NAME_LENGTH = 200
MAX_EVENT_DESCRIPTION_LENGTH = 5000
MAX_BIO_LENGTH = 500

# Base64 text length for a 10 MB image
MAX_IMAGE_BASE64_LENGTH = 13_333_333

# ---------------------------------------------------------------------------
# Pagination defaults
# ---------------------------------------------------------------------------
DEFAULT_FEED_LIMIT = 20
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100

# Search
MIN_SEARCH_LENGTH = 2
USER_SEARCH_LIMIT = 10
SEARCH_CLUB_LIMIT = 10
SEARCH_DISTRICT_LIMIT = 10
SEARCH_POST_LIMIT = 20
AUTOCOMPLETE_LIMIT = 5
AUTOCOMPLETE_TITLE_LENGTH = 50

# Notification / preview text
PREVIEW_LENGTH = 100


class NotificationType(enum.StrEnum):
    """Type tag stored on every notification row."""
    FOLLOW = "follow"
    MESSAGE = "message"
    POST = "post"
    LIKE = "like"
    COMMENT = "comment"


# Notification type → preference column gating it
PREFERENCE_FIELDS: dict[NotificationType, str] = {
    NotificationType.FOLLOW: "follows_enabled",
    NotificationType.MESSAGE: "messages_enabled",
    NotificationType.POST: "posts_enabled",
    NotificationType.LIKE: "likes_enabled",
    NotificationType.COMMENT: "comments_enabled",
}


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Return the first *length* characters of *text*."""
    return text[:length]
