"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the database is unreachable or the
      delivery queue is not running (readiness)

Design Decisions:
    - Separate liveness/readiness: liveness restarts the container,
      readiness removes it from the load balancer
    - Queue looked up on app.state: absent and stopped both count as not running
"""

import logging
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from leaveflow.infrastructure import database

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "leaveflow-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe — database connectivity and delivery workers."""
    manager = database.db_manager
    db_ok = await manager.health_check() if manager else False
    queue = getattr(request.app.state, "delivery_queue", None)
    queue_ok = queue is not None and queue.is_running()
    checks = {
        "database": "healthy" if db_ok else "unavailable",
        "delivery_queue": "running" if queue_ok else "stopped",
    }
    if not (db_ok and queue_ok):
        reason = "database_unavailable" if not db_ok else "delivery_queue_stopped"
        logger.warning(f"Readiness check failed: {reason}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": reason, "checks": checks},
        )
    return {"status": "ready", "checks": checks}
