"""
LeoConnect — Social Graph, Feed & Notification Backend
=======================================================
Users, clubs, posts, comments, likes, shares, follows, direct messages,
events and notifications behind a stateless FastAPI surface.

Package layout::

    leoconnect/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Length ceilings, notification types, defaults
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # All ORM models
    ├── services/
    │   ├── errors.py               # NotFound / Forbidden / InvalidInput …
    │   ├── pagination.py           # {items, total, hasMore} envelope
    │   ├── graph_service.py        # Follow edges (user→user, user→club)
    │   ├── counter_service.py      # Read-time counters
    │   ├── feed_service.py         # Feed / Explore assembly
    │   ├── post_service.py         # Posts + comments
    │   ├── engagement_service.py   # Like / share / RSVP toggles
    │   ├── conversation_service.py # Direct messages → threads
    │   ├── notification_service.py # Per-recipient notification rows
    │   ├── fanout_queue.py         # Bounded background fan-out queue
    │   ├── event_service.py        # Club events
    │   ├── profile_service.py      # User profiles + onboarding
    │   ├── media_relay.py          # Image relay to an external webhook
    │   └── push_dispatcher.py      # Best-effort push delivery
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT principal, engine, session, collaborators
        ├── auth.py        # Identity exchange
        └── routes/        # Users, clubs, posts, messages, notifications, events
"""

__version__ = "0.1.0"
