"""
Users API - Test Configuration (conftest.py)
=============================================

What:  Shared pytest fixtures for the entire test suite.
Why:   The state machine and the routes must be testable without MongoDB.
How:   Fakes from fakes.py replace the Motor connector; the HTTP client runs
       the app in-process through HTTPX's ASGITransport.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── users_collection:   mock `users` collection
    ├── fake_connector:     FakeConnector (attempts fail unless `available`)
    ├── make_supervisor:    builds supervisors, stops them after the test
    ├── test_settings:      Settings for the app under test
    └── test_client:        HTTPX AsyncClient for API endpoint testing
"""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings BEFORE any users_api import
# Why: the module-level app in users_api.main reads them at import time
os.environ["MONGO_URI"] = "mongodb://primary.test:27017/devopsTp2"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DB_RETRY_DELAY"] = "0"

from fakes import PRIMARY, SECONDARY, TERTIARY, FakeConnector, make_users_collection  # noqa: E402
from users_api.config import Settings  # noqa: E402
from users_api.connectivity import (  # noqa: E402
    ConnectionTarget,
    ConnectivitySupervisor,
    RetryPolicy,
)


@pytest.fixture
def users_collection():
    return make_users_collection()


@pytest.fixture
def fake_connector(users_collection):
    """Connector whose handles all share `users_collection`."""
    return FakeConnector(users=users_collection)


@pytest_asyncio.fixture
async def make_supervisor():
    """
    Factory for supervisors with fast defaults.

    No inter-pass delay, 1s attempt timeout, heartbeat effectively off.
    Every supervisor built here is stopped after the test.

    Usage:
        async def test_x(make_supervisor):
            supervisor = make_supervisor(FakeConnector(available=True))
    """
    created = []

    def _make(
        connector,
        targets=(PRIMARY, SECONDARY, TERTIARY),
        max_passes=3,
        delay=0.0,
        attempt_timeout=1.0,
        heartbeat_interval=3600.0,
        **kwargs,
    ) -> ConnectivitySupervisor:
        supervisor = ConnectivitySupervisor(
            targets=ConnectionTarget(uris=tuple(targets)),
            policy=RetryPolicy(max_passes=max_passes, delay=delay, attempt_timeout=attempt_timeout),
            connector=connector,
            heartbeat_interval=heartbeat_interval,
            **kwargs,
        )
        created.append(supervisor)
        return supervisor

    yield _make

    for supervisor in created:
        await supervisor.stop(grace=1.0)


@pytest.fixture
def test_settings():
    return Settings(
        mongo_uri=PRIMARY,
        environment="development",
        db_retry_delay=0,
        db_max_retries=None,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def test_client(make_supervisor, fake_connector, test_settings):
    """
    HTTPX client against a fresh app whose supervisor uses `fake_connector`.

    ASGITransport does not run the lifespan, so the supervisor is NOT started:
    tests call `client.app.state.supervisor.start()` when they want
    connection attempts to happen.
    """
    from users_api.main import create_app

    supervisor = make_supervisor(fake_connector, targets=(PRIMARY,), max_passes=None, delay=0.01)
    app = create_app(config=test_settings, supervisor=supervisor)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        client.app = app
        yield client
