"""
Users API - FastAPI Application Factory
========================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires settings → connectivity supervisor → shutdown
       coordinator, registers middleware, exception handlers and routes.
Who:   uvicorn (`uvicorn users_api.main:app` or `python -m users_api`).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware:  Request ID → Logging → CORS           │
    │                                                     │
    │  Routes:  /health  /  /api  /api/users  /api/test-db│
    │                                                     │
    │  app.state.supervisor ──publishes──▶ snapshot ◀──── │
    │        (background task)          read by routes    │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Start the connectivity supervisor (returns immediately; the HTTP
       listener comes up whether or not MongoDB is reachable yet)

    Shutdown (SIGTERM/SIGINT via uvicorn):
    1. Cancel the supervisor (in-flight attempt or retry delay)
    2. Close the store connection within SHUTDOWN_GRACE_PERIOD
"""

import logging
import math
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from users_api import __version__
from users_api.config import FAIL_FAST, Settings, settings
from users_api.connectivity import ConnectivitySupervisor, ShutdownCoordinator, redact_uri
from users_api.database import build_supervisor
from users_api.exceptions import (
    ConnectionLostError,
    DatabaseError,
    DatabaseUnavailableError,
    DuplicateEmailError,
    UsersApiError,
)
from users_api.middleware.logging import RequestLoggingMiddleware
from users_api.middleware.request_id import RequestIDMiddleware, request_id_var
from users_api.routes import health, info, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure process-wide logging to stdout (Docker captures it).

    Format: 2024-01-15T12:00:00 [INFO] users_api.connectivity.supervisor: ...
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # The driver logs every heartbeat and topology change at DEBUG/INFO
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("motor").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.settings
    supervisor: ConnectivitySupervisor = app.state.supervisor
    coordinator: ShutdownCoordinator = app.state.shutdown_coordinator

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("Users API %s starting (environment=%s)", __version__, config.environment)
    logger.info(
        "Database targets: %s",
        ", ".join(redact_uri(uri) for uri in supervisor.targets),
    )

    supervisor.start()

    logger.info("Server ready at http://%s:%d", config.host, config.port)
    logger.info("Health check: http://%s:%d/health", config.host, config.port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Users API shutting down...")
    await coordinator.shutdown()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "") or request_id_var.get("")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to structured JSON responses.

    Handler hierarchy:
        DatabaseUnavailableError → 503 {"error": "Database not available"}
        DuplicateEmailError      → 409 {"error": "duplicate_email"}
        DatabaseError            → 500 generic message, details logged
        UsersApiError (base)     → 500
        Exception (fallback)     → 500, stack trace logged server-side only
    """

    @app.exception_handler(DatabaseUnavailableError)
    async def handle_database_unavailable(request: Request, exc: DatabaseUnavailableError):
        rid = _request_id(request)
        if isinstance(exc, ConnectionLostError):
            request.app.state.supervisor.notify_disconnected(exc.cause)
        logger.warning("[%s] Database not available (state=%s)", rid, exc.state)
        retry_after = max(1, math.ceil(request.app.state.settings.db_retry_delay))
        return JSONResponse(
            status_code=503,
            content={
                "error": "Database not available",
                "message": exc.message,
                "request_id": rid,
            },
            headers={"Retry-After": str(retry_after)},
        )

    @app.exception_handler(DuplicateEmailError)
    async def handle_duplicate_email(request: Request, exc: DuplicateEmailError):
        rid = _request_id(request)
        return JSONResponse(
            status_code=409,
            content={
                "error": "duplicate_email",
                "message": exc.message,
                "details": {"field": "email"},
                "request_id": rid,
            },
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = _request_id(request)
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(UsersApiError)
    async def handle_app_error(request: Request, exc: UsersApiError):
        rid = _request_id(request)
        logger.error("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    config: Optional[Settings] = None,
    supervisor: Optional[ConnectivitySupervisor] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config:     settings to use (defaults to the module singleton)
        supervisor: pre-built supervisor; tests inject one with a fake connector
    """
    config = config or settings
    supervisor = supervisor or build_supervisor(config)
    coordinator = ShutdownCoordinator(supervisor, grace_period=config.shutdown_grace_period)
    if config.db_failure_policy == FAIL_FAST and supervisor.on_terminal_failure is None:
        supervisor.on_terminal_failure = coordinator.request_exit

    app = FastAPI(
        title="Users API",
        description="Users CRUD service backed by MongoDB, with supervised connectivity.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.supervisor = supervisor
    app.state.shutdown_coordinator = coordinator

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(info.router)
    app.include_router(users.router)

    return app


# uvicorn expects `users_api.main:app` to be importable
app = create_app()
