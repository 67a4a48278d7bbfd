"""
Users API - Request Logging Middleware
=======================================

What:  One access-log line per request, tagged with the database state.
Why:   A burst of 503s is only readable next to the connection state that
       caused it; uvicorn's access log has neither that nor the request ID.
How:   Times the downstream call and reads the supervisor's snapshot once the
       response is ready.

Example:
    POST /api/users -> 503 in 0.4ms [1a2b3c4d] db=connecting client=172.18.0.1

Not logged: request bodies (user emails are personal data) and /health
probes, which arrive every few seconds from orchestrators.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from users_api.middleware.request_id import request_id_var

logger = logging.getLogger("users_api.access")

QUIET_PATHS = frozenset({"/health"})


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def _db_state(request: Request) -> str:
    supervisor = getattr(request.app.state, "supervisor", None)
    if supervisor is None:
        return "unknown"
    return supervisor.current_state().state.value


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """INFO for 2xx/3xx, WARNING for 4xx, ERROR for 5xx."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        rid = getattr(request.state, "request_id", "") or request_id_var.get("")
        client = request.client.host if request.client else "-"
        db_state = _db_state(request)

        logger.log(
            _level_for(response.status_code),
            "%s %s -> %d in %.1fms [%s] db=%s client=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            rid,
            db_state,
            client,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
                "db_state": db_state,
            },
        )
        return response
