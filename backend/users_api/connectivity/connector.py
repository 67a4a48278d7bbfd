"""
Users API - Store Connector (Motor)
====================================

What:  Opens one verified MongoDB connection for a single target URI.
Why:   The supervisor decides *when* and *which* target to try; the connector
       knows *how* to talk to MongoDB. Keeping them apart lets the state
       machine be tested with a fake connector and no database.
How:   AsyncIOMotorClient + `admin.command("ping")`, bounded by the per-attempt
       timeout. Driver exceptions are translated into the connectivity
       taxonomy (TargetUnreachable / AuthenticationFailed).

Why ping instead of trusting the constructor:
    MongoClient construction is lazy and never fails for an unreachable
    server. The first real round-trip is what proves the target works.
"""

import asyncio
import logging
from typing import Any, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import InvalidOperation, OperationFailure, PyMongoError

from users_api.exceptions import AuthenticationFailed, TargetUnreachable

logger = logging.getLogger(__name__)

# Server error codes that mean "credentials rejected"
AUTH_ERROR_CODES = frozenset({13, 18})  # Unauthorized, AuthenticationFailed


def _server_address(client) -> Optional[Tuple[str, int]]:
    """
    (host, port) the client is talking to, or None.

    `client.address` raises InvalidOperation when the client load-balances
    across several mongos routers; the first known node is reported instead.
    Only called after a successful ping, so server selection has already run.
    """
    try:
        return client.address
    except InvalidOperation:
        nodes = sorted(client.nodes)
        return nodes[0] if nodes else None


class StoreHandle:
    """
    A connected client plus the database the service works against.

    Shared read-only by request handlers once the supervisor publishes it.
    """

    def __init__(self, client: Any, database: Any, address: Optional[Tuple[str, int]] = None):
        self.client = client
        self.database = database
        self.address = address

    @property
    def database_name(self) -> str:
        return self.database.name

    @property
    def host(self) -> Optional[str]:
        return self.address[0] if self.address else None

    @property
    def port(self) -> Optional[int]:
        return self.address[1] if self.address else None

    def collection(self, name: str):
        return self.database[name]

    async def ping(self, timeout: float) -> None:
        """Round-trip to the server; raises TargetUnreachable if it fails."""
        try:
            await asyncio.wait_for(self.client.admin.command("ping"), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TargetUnreachable(message=f"Ping timed out after {timeout:.1f}s") from e
        except (PyMongoError, OSError) as e:
            raise TargetUnreachable(message=str(e) or type(e).__name__) from e

    async def close(self) -> None:
        # Motor's close() is synchronous; pymongo's async client returns a coroutine.
        result = self.client.close()
        if asyncio.iscoroutine(result):
            await result


class MotorConnector:
    """
    Creates StoreHandles with the driver options the service runs with.

    Args:
        default_db_name:   database used when the URI has no path component
        socket_timeout_ms: per-operation socket timeout once connected
    """

    def __init__(self, default_db_name: str, socket_timeout_ms: int = 45_000):
        self.default_db_name = default_db_name
        self.socket_timeout_ms = socket_timeout_ms

    async def connect(self, uri: str, timeout: float) -> StoreHandle:
        """
        Open and verify a connection to `uri` within `timeout` seconds.

        Raises:
            AuthenticationFailed: the server rejected the credentials
            TargetUnreachable:    anything else (timeout, refused, bad URI)
        """
        timeout_ms = int(timeout * 1000)
        client = None
        try:
            client = AsyncIOMotorClient(
                uri,
                serverSelectionTimeoutMS=timeout_ms,
                connectTimeoutMS=timeout_ms,
                socketTimeoutMS=self.socket_timeout_ms,
            )
            await asyncio.wait_for(client.admin.command("ping"), timeout=timeout)
            database = client.get_default_database(default=self.default_db_name)
            return StoreHandle(client=client, database=database, address=_server_address(client))

        except OperationFailure as e:
            await self._discard(client)
            if e.code in AUTH_ERROR_CODES:
                raise AuthenticationFailed(message=str(e), context={"code": e.code}) from e
            raise TargetUnreachable(message=str(e), context={"code": e.code}) from e
        except asyncio.TimeoutError as e:
            await self._discard(client)
            raise TargetUnreachable(message=f"No response within {timeout:.1f}s") from e
        except (PyMongoError, OSError) as e:
            await self._discard(client)
            raise TargetUnreachable(message=str(e) or type(e).__name__) from e
        except (ValueError, TypeError) as e:
            # Malformed URI (bad port, unescaped credentials) rejected by the driver
            await self._discard(client)
            raise TargetUnreachable(message=f"Invalid connection string: {e}") from e
        except asyncio.CancelledError:
            await self._discard(client)
            raise

    @staticmethod
    async def _discard(client) -> None:
        if client is None:
            return
        try:
            result = client.close()
            if asyncio.iscoroutine(result):
                await result
        except PyMongoError as e:
            logger.debug("Ignoring error while discarding failed client: %s", e)
