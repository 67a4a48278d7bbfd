"""
Users API - Store Connectivity
===============================

Components (leaves first):
    resolver.py    → resolve(settings) -> ConnectionTarget   (pure, no I/O)
    readiness.py   → ConnectionState, ConnectionSnapshot, ReadinessPublisher
    connector.py   → MotorConnector / StoreHandle            (driver boundary)
    supervisor.py  → RetryPolicy, ConnectivitySupervisor     (state machine)
    shutdown.py    → ShutdownCoordinator                     (teardown)
"""

from users_api.connectivity.connector import MotorConnector, StoreHandle
from users_api.connectivity.readiness import (
    ConnectionSnapshot,
    ConnectionState,
    ReadinessPublisher,
)
from users_api.connectivity.resolver import ConnectionTarget, redact_uri, resolve
from users_api.connectivity.shutdown import ShutdownCoordinator
from users_api.connectivity.supervisor import ConnectivitySupervisor, RetryPolicy

__all__ = [
    "ConnectionSnapshot",
    "ConnectionState",
    "ConnectionTarget",
    "ConnectivitySupervisor",
    "MotorConnector",
    "ReadinessPublisher",
    "RetryPolicy",
    "ShutdownCoordinator",
    "StoreHandle",
    "redact_uri",
    "resolve",
]
