"""
Users API - Health Check Route
===============================

What:  Readiness endpoint for Docker health checks and load balancers.
Why:   An API that cannot reach its database cannot serve /api/users; probes
       should route traffic away from it until the supervisor reconnects.
How:   Reads the supervisor's published snapshot. No store round-trip happens
       here: the supervisor's own heartbeat keeps the snapshot honest, and a
       probe storm must not turn into a ping storm against MongoDB.

Responses:
    200 {"status": "healthy",   "database": "connected"}
    503 {"status": "unhealthy", "database": "disconnected"}
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from users_api.connectivity import ConnectionSnapshot
from users_api.database import get_connection_state
from users_api.schemas.user import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database not connected", "model": HealthResponse}},
    summary="Service readiness",
)
async def health_check(snapshot: ConnectionSnapshot = Depends(get_connection_state)):
    if snapshot.is_connected:
        return HealthResponse(status="healthy", database="connected")
    return JSONResponse(
        status_code=503,
        content=HealthResponse(status="unhealthy", database="disconnected").model_dump(),
    )
