"""
leoconnect.config — YAML Configuration Loader
===============================================

Reads ``config.yaml`` for **non-secret** service settings (naming, list
defaults, fan-out queue sizing).  Secrets and collaborator URLs
(``DATABASE_URL``, ``JWT_SECRET``, ``MEDIA_WEBHOOK_URL``,
``PUSH_ENDPOINT_URL``) stay in the environment / ``.env``.

Usage::

    from leoconnect.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.app_name)          # "LeoConnect"
    print(cfg.fanout_queue_size) # 1000
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from leoconnect.constants import DEFAULT_FEED_LIMIT, DEFAULT_PAGE_LIMIT


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LeoConnectConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    app_name: str

    # List defaults
    feed_limit: int = DEFAULT_FEED_LIMIT
    page_limit: int = DEFAULT_PAGE_LIMIT

    # Fan-out
    fanout_queue_size: int = 1000
    fanout_failure_capacity: int = 500


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> LeoConnectConfig:
    """Read *path* and return a :class:`LeoConnectConfig` instance.

    Only ``app_name`` is required; every other key falls back to the
    dataclass default.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = LeoConnectConfig(app_name=raw["app_name"])
    return LeoConnectConfig(
        app_name=raw["app_name"],
        feed_limit=int(raw.get("feed_limit", defaults.feed_limit)),
        page_limit=int(raw.get("page_limit", defaults.page_limit)),
        fanout_queue_size=int(raw.get("fanout_queue_size", defaults.fanout_queue_size)),
        fanout_failure_capacity=int(
            raw.get("fanout_failure_capacity", defaults.fanout_failure_capacity)
        ),
    )
