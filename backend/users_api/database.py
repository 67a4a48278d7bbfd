"""
Users API - Store Wiring and Request Dependencies
==================================================

What:  Builds the connectivity supervisor from settings and exposes the store
       to route handlers through FastAPI dependencies.
Why:   There is no module-level client. The supervisor is created by the app
       factory and lives on `app.state`; handlers reach the store only through
       the readiness snapshot it publishes.
How:   build_supervisor() wires resolver → policy → Motor connector → bootstrap.
       get_users_collection() is the gate every data route passes through:
       not CONNECTED → DatabaseUnavailableError (503) before any store call.

Example usage in a route:
    @router.get("/users")
    async def list_users(users=Depends(get_users_collection)):
        return await user_service.list_users(users)
"""

from typing import Callable, Optional

from fastapi import Request

from users_api.config import Settings
from users_api.connectivity import (
    ConnectionSnapshot,
    ConnectivitySupervisor,
    MotorConnector,
    RetryPolicy,
    resolve,
)
from users_api.exceptions import ConnectivityError, DatabaseUnavailableError
from users_api.models.user import USERS_COLLECTION, ensure_users_collection


async def bootstrap_store(handle) -> None:
    """First-connect hook: make sure the users collection is set up."""
    await ensure_users_collection(handle.database)


def build_supervisor(
    config: Settings,
    connector=None,
    on_terminal_failure: Optional[Callable[[ConnectivityError], None]] = None,
) -> ConnectivitySupervisor:
    """
    Assemble a (not yet started) supervisor from settings.

    No I/O happens here; the first connection attempt is made by start().
    """
    return ConnectivitySupervisor(
        targets=resolve(config),
        policy=RetryPolicy.from_settings(config),
        connector=connector
        or MotorConnector(
            default_db_name=config.mongo_db_name,
            socket_timeout_ms=config.db_socket_timeout_ms,
        ),
        heartbeat_interval=config.db_heartbeat_interval,
        auth_failure_terminal=config.db_auth_failure_terminal,
        on_first_connect=bootstrap_store,
        on_terminal_failure=on_terminal_failure,
    )


# ── Request Dependencies ──────────────────────────────────────────────────


def get_supervisor(request: Request) -> ConnectivitySupervisor:
    return request.app.state.supervisor


def get_connection_state(request: Request) -> ConnectionSnapshot:
    """Snapshot taken once per request; all checks in a handler see the same value."""
    return get_supervisor(request).current_state()


def get_users_collection(request: Request):
    """
    The `users` collection, or 503 if the store is not connected.

    Raises:
        DatabaseUnavailableError: supervisor is not CONNECTED
    """
    snapshot = get_connection_state(request)
    if not snapshot.is_connected:
        raise DatabaseUnavailableError(state=snapshot.state.value)
    return snapshot.handle.collection(USERS_COLLECTION)
