"""
Users API - Custom Exception Hierarchy
=======================================

What:  Application-specific exceptions for request handling and store connectivity.
Why:   Targeted error handling with appropriate HTTP status codes and
       user-friendly messages, without leaking driver internals to clients.
How:   Each exception carries a message and optional context dict.
       Global exception handlers (registered in main.py) map the request-path
       exceptions to structured JSON responses.

Exception Hierarchy:
    UsersApiError (base)
    ├── ConfigurationError          → raised at startup (invalid settings)
    ├── DatabaseUnavailableError    → 503 Service Unavailable (store not connected)
    │   └── ConnectionLostError     → 503, and the supervisor is told to reconnect
    ├── DuplicateEmailError         → 409 Conflict (unique email index)
    ├── DatabaseError               → 500 Internal Server Error
    └── ConnectivityError           → never reaches HTTP; absorbed by the supervisor
        ├── TargetUnreachable       (network / timeout on one attempt)
        ├── AuthenticationFailed    (store rejected credentials)
        ├── RetryBudgetExhausted    (terminal: supervisor enters FAILED)
        └── ShutdownTimeout         (grace period elapsed while closing)
"""

from typing import Any, Dict, Optional


class UsersApiError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(UsersApiError):
    """Settings cannot produce a usable runtime value (e.g. no connection target)."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseUnavailableError(UsersApiError):
    """
    Raised when a request needs the store but the supervisor is not CONNECTED.

    HTTP:    503 Service Unavailable
    Body:    {"error": "Database not available", ...}

    Handlers raise this before issuing any store operation, so a request that
    hits a disconnected service never performs a partial write.
    """

    def __init__(
        self,
        state: str = "disconnected",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["state"] = state
        super().__init__(
            message="The database is not connected. Please try again shortly.",
            context=ctx,
        )
        self.state = state


class ConnectionLostError(DatabaseUnavailableError):
    """
    The published connection failed in the middle of a request.

    HTTP:    503, same body as DatabaseUnavailableError
    The exception handler also reports the drop to the supervisor so it can
    start reconnecting without waiting for the next heartbeat.
    """

    def __init__(
        self,
        cause: str = "connection lost",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["cause"] = cause
        super().__init__(state="connection_lost", context=ctx)
        self.cause = cause


class DuplicateEmailError(UsersApiError):
    """
    Raised when inserting a user whose email already exists.

    HTTP:    409 Conflict
    Why 409: the request is well-formed; it conflicts with current store state.
    """

    def __init__(
        self,
        email: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["email"] = email
        super().__init__(
            message=f"A user with email '{email}' already exists",
            context=ctx,
        )
        self.email = email


class DatabaseError(UsersApiError):
    """
    Raised when a store operation fails unexpectedly.

    HTTP:    500 Internal Server Error
    The client always receives a generic message; driver error details are
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


# ══════════════════════════════════════════════════════════════════════════
# Connectivity errors (supervisor-internal)
# ══════════════════════════════════════════════════════════════════════════


class ConnectivityError(UsersApiError):
    """Base for errors raised while establishing or closing the store connection."""

    def __init__(
        self,
        message: str = "Store connectivity error",
        target: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if target:
            ctx["target"] = target
        super().__init__(message=message, context=ctx)
        self.target = target


class TargetUnreachable(ConnectivityError):
    """A single connection attempt failed on network grounds or timed out."""


class AuthenticationFailed(ConnectivityError):
    """The store was reachable but rejected the supplied credentials."""


class RetryBudgetExhausted(ConnectivityError):
    """
    Every pass of the retry budget failed.

    Terminal: the supervisor publishes FAILED and makes no further attempts.
    """

    def __init__(
        self,
        passes: int,
        last_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["passes"] = passes
        if last_error is not None:
            ctx["last_error"] = str(last_error)
        super().__init__(
            message=f"Could not connect to the database after {passes} pass(es)",
            context=ctx,
        )
        self.passes = passes
        self.last_error = last_error


class ShutdownTimeout(ConnectivityError):
    """The grace period elapsed before the store connection finished closing."""

    def __init__(
        self,
        grace_period: float,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["grace_period"] = grace_period
        super().__init__(
            message=f"Store connection did not close within {grace_period:.1f}s",
            context=ctx,
        )
        self.grace_period = grace_period
