"""
leoconnect.services.media_relay — Image relay to an external webhook
=====================================================================

Post images arrive as base64 text.  They are decoded, posted as a multipart
file to ``MEDIA_WEBHOOK_URL`` and the first attachment URL of the JSON reply
is stored on the post.

Size is checked on the base64 text before decoding (13,333,333 characters
≈ 10 MB of image data) and an oversized payload rejects the request.  Every
other failure (bad base64, no webhook configured, HTTP error, missing
attachment) yields ``None`` and the post is created without an image.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import uuid

import httpx

from leoconnect.constants import MAX_IMAGE_BASE64_LENGTH
from leoconnect.services.errors import InvalidInput

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


def check_image_size(image_b64: str | None) -> None:
    if image_b64 and len(image_b64) > MAX_IMAGE_BASE64_LENGTH:
        raise InvalidInput("Image size exceeds maximum of 10MB")


def _filename(prefix: str, mime_type: str) -> str:
    ext = mime_type.split("/", 1)[1] if "/" in mime_type else "jpg"
    return f"{prefix}-{uuid.uuid4().hex}.{ext}"


class MediaRelay:
    def __init__(
        self,
        webhook_url: str | None = None,
        *,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(cls) -> MediaRelay:
        return cls(os.getenv("MEDIA_WEBHOOK_URL") or None)

    async def upload(self, data: bytes, mime_type: str | None = None, prefix: str = "post") -> str | None:
        """Relay raw bytes; return the hosted URL or ``None``."""
        if not self.webhook_url:
            logger.warning("MEDIA_WEBHOOK_URL not set; dropping image")
            return None

        mime = mime_type or DEFAULT_MIME_TYPE
        files = {"file": (_filename(prefix, mime), data, mime)}
        transport = self._transport or httpx.AsyncHTTPTransport(retries=1)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=transport) as client:
                resp = await client.post(self.webhook_url, files=files)
            resp.raise_for_status()
            body = resp.json()
            attachments = (body.get("attachments") if isinstance(body, dict) else None) or []
        except (httpx.HTTPError, ValueError):
            logger.warning("Image relay failed", exc_info=True)
            return None

        url = attachments[0].get("url") if attachments else None
        if not url:
            logger.warning("Image relay reply had no attachment URL")
            return None
        return url

    async def upload_base64(
        self, image_b64: str | None, mime_type: str | None = None, prefix: str = "post"
    ) -> str | None:
        """Size-check, decode and relay a base64 image.

        Raises :class:`InvalidInput` only for an oversized payload.
        """
        if not image_b64:
            return None
        check_image_size(image_b64)
        try:
            data = base64.b64decode(image_b64, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Image payload is not valid base64; continuing without image")
            return None
        return await self.upload(data, mime_type, prefix)
