"""
NoteShare Backend — Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks the database and reports the configured blob backend.
Who:   Called by Docker health checks, load balancers, and monitoring systems.

Status levels:
    - healthy:   database reachable (HTTP 200)
    - unhealthy: database unreachable (HTTP 200 with status field; the probe
                 decides what to do with it)

The blob store is reported by name only, not probed; store failures surface
as 502 on real requests.
"""

import logging
import time

from fastapi import APIRouter, Depends
from sqlalchemy import text

from noteshare import __version__
from noteshare.schemas.note import HealthResponse
from noteshare.services.blob_store import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Returns the health status of the backend service and its database, "
        "plus the configured blob backend."
    ),
)
async def health_check(blob_store: BlobStore = Depends(get_blob_store)) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        from noteshare.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        blob_store=blob_store.name,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
