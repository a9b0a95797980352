"""
leoconnect.services.push_dispatcher — Best-effort push delivery
================================================================

Posts a notification payload plus the recipient's registered device tokens
to ``PUSH_ENDPOINT_URL``.  Delivery is fire-and-forget: non-2xx responses
and transport errors are logged and swallowed, never raised to the caller.

Runs synchronously because it is called from service code that already
executes on a worker thread (see :func:`leoconnect.database.engine.run_db`).
"""

from __future__ import annotations

import logging
import os

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class PushDispatcher:
    """Thin HTTP client for the external push gateway.

    With no endpoint configured every :meth:`send` is a logged no-op.
    """

    def __init__(
        self,
        endpoint_url: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(cls) -> PushDispatcher:
        return cls(os.getenv("PUSH_ENDPOINT_URL") or None)

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint_url)

    def send(
        self,
        recipient_id: str,
        tokens: list[str],
        title: str,
        body: str,
        data: dict | None = None,
    ) -> bool:
        """Deliver one push.  Returns True only on a 2xx from the gateway."""
        if not self.enabled:
            logger.debug("Push disabled; skipping delivery to %s", recipient_id)
            return False
        if not tokens:
            return False

        payload = {
            "userId": recipient_id,
            "tokens": tokens,
            "title": title,
            "body": body,
            "data": data or {},
        }
        transport = self._transport or httpx.HTTPTransport(retries=1)
        try:
            with httpx.Client(timeout=self.timeout, transport=transport) as client:
                resp = client.post(self.endpoint_url, json=payload)
        except httpx.HTTPError:
            logger.warning("Push delivery to %s failed", recipient_id, exc_info=True)
            return False

        if resp.is_success:
            return True
        logger.warning(
            "Push gateway returned %d for %s", resp.status_code, recipient_id
        )
        return False
