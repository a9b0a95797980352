"""
leoconnect.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn leoconnect.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

from leoconnect.api.auth import router as auth_router  # noqa: E402
from leoconnect.api.deps import (  # noqa: E402
    build_fanout_queue,
    get_config,
    get_engine,
    get_push_dispatcher,
)
from leoconnect.api.routes.admin import router as admin_router  # noqa: E402
from leoconnect.api.routes.clubs import router as clubs_router  # noqa: E402
from leoconnect.api.routes.events import router as events_router  # noqa: E402
from leoconnect.api.routes.messages import router as messages_router  # noqa: E402
from leoconnect.api.routes.notifications import router as notifications_router  # noqa: E402
from leoconnect.api.routes.posts import router as posts_router  # noqa: E402
from leoconnect.api.routes.search import router as search_router  # noqa: E402
from leoconnect.api.routes.users import router as users_router  # noqa: E402
from leoconnect.services.errors import ServiceError  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: warm the DB engine, run the fan-out worker."""
    engine = get_engine()
    cfg = get_config()
    fanout = build_fanout_queue(engine, get_push_dispatcher(), cfg)
    fanout.start()
    app.state.fanout = fanout
    logger.info("%s API started — engine ready (%s)", cfg.app_name, engine.url.database)
    yield
    fanout.stop()
    app.state.fanout = None
    logger.info("%s API shutting down", cfg.app_name)


app = FastAPI(
    title="LeoConnect API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc.__cause__ or exc)})


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(clubs_router, prefix="/api")
app.include_router(posts_router, prefix="/api")
app.include_router(messages_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(search_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
