"""
Users API - Service Info and Diagnostics Routes
================================================

GET /            service banner with the endpoint map
GET /api         API liveness (never touches the store)
GET /api/test-db connection diagnostics from the supervisor snapshot, plus a
                 live user count when connected
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from users_api.connectivity import ConnectionSnapshot
from users_api.database import get_connection_state, get_supervisor
from users_api.exceptions import ConnectionLostError, DatabaseError, DatabaseUnavailableError
from users_api.models.user import USERS_COLLECTION
from users_api.schemas.user import ApiInfoResponse, DatabaseTestResponse, RootResponse
from users_api.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Info"])

ENDPOINTS = {
    "api": "/api",
    "health": "/health",
    "users": "/api/users",
    "testDb": "/api/test-db",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.get("/", response_model=RootResponse, summary="Service banner")
async def root(snapshot: ConnectionSnapshot = Depends(get_connection_state)) -> RootResponse:
    return RootResponse(
        message="Users API is running",
        status="online",
        timestamp=_now(),
        database="connected" if snapshot.is_connected else "disconnected",
        endpoints=ENDPOINTS,
    )


@router.get("/api", response_model=ApiInfoResponse, summary="API liveness")
async def api_info() -> ApiInfoResponse:
    return ApiInfoResponse(message="API is working", timestamp=_now())


@router.get(
    "/api/test-db",
    response_model=DatabaseTestResponse,
    response_model_exclude_none=True,
    summary="Database connection diagnostics",
)
async def database_diagnostics(
    request: Request,
    snapshot: ConnectionSnapshot = Depends(get_connection_state),
) -> DatabaseTestResponse:
    """
    Report what the supervisor currently knows about the connection.

    Always 200: this is a diagnostic, the `connected` flag carries the answer.
    A failing count query is reported as connected=false with its message.
    """
    if not snapshot.is_connected:
        return DatabaseTestResponse(
            connected=False,
            message=snapshot.error or "Database is not connected",
            state=snapshot.state.value,
        )

    try:
        count = await user_service.count_users(snapshot.handle.collection(USERS_COLLECTION))
    except (DatabaseUnavailableError, DatabaseError) as e:
        if isinstance(e, ConnectionLostError):
            get_supervisor(request).notify_disconnected(e.cause)
        logger.warning("test-db count failed: %s", e.message)
        return DatabaseTestResponse(
            connected=False,
            message=e.message,
            state=snapshot.state.value,
        )

    return DatabaseTestResponse(
        connected=True,
        message="Database is working",
        state=snapshot.state.value,
        user_count=count,
        database=snapshot.database,
        host=snapshot.host,
        port=snapshot.port,
    )
