"""
Spoken Admin API — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
Why:   A load balancer needs to know when to stop routing traffic here.
How:   Probes the database and the identity provider and reports an
       aggregate status.
Who:   Docker health checks, load balancers, uptime monitors.

Status levels:
    - healthy:   database and identity provider reachable (HTTP 200)
    - degraded:  identity provider unreachable (HTTP 200). Every admin route
                 will answer 401 until it is back, but the instance itself
                 is fine and restarting it would not help.
    - unhealthy: database unreachable (HTTP 503)

This route is not wrapped by the pipeline: no auth, no rate limit.
"""

import logging
import time

from fastapi import APIRouter, Request, Response
from sqlalchemy import text

from spoken_admin import __version__
from spoken_admin.config import settings
from spoken_admin.database import engine
from spoken_admin.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Initialized once when the module loads
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Check the database (SELECT 1) and the identity provider (its own
    health endpoint). Both checks are cheap enough to run every few seconds.
    """
    db_status = "connected"
    identity_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Identity Provider ───────────────────────────────────────────
    provider = getattr(request.app.state, "identity_provider", None)
    health_probe = getattr(provider, "health_check", None)
    if health_probe is not None:
        try:
            is_available = await health_probe()
        except Exception as e:
            logger.warning("Health check: identity provider unreachable: %s", str(e))
            is_available = False
        if not is_available:
            identity_status = "unavailable"
            overall = "degraded" if overall != "unhealthy" else overall

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        environment=settings.environment,
        database=db_status,
        identity_provider=identity_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
