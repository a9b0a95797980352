"""
leoconnect.api.routes.admin — Operational status
=================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from leoconnect.api.deps import Principal, get_current_admin, get_fanout
from leoconnect.services.fanout_queue import FanoutQueue

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/fanout")
def fanout_status(
    admin: Principal = Depends(get_current_admin),
    fanout: FanoutQueue | None = Depends(get_fanout),
):
    """Queue depth, drop/failure totals and the most recent failures."""
    if fanout is None:
        return {"running": False, "queued": 0, "processed": 0, "dropped": 0,
                "failures": 0, "recentFailures": []}
    return fanout.status()
