"""
Users API - Application Configuration
======================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the app factory, the endpoint resolver and the supervisor.
When:  Loaded once at module import time.

The connectivity settings map onto three immutable runtime values:
    MONGO_URI / ENVIRONMENT / MONGO_FALLBACK_URIS  → ConnectionTarget (resolver)
    DB_CONNECT_TIMEOUT / DB_RETRY_DELAY / DB_MAX_RETRIES → RetryPolicy
    DB_FAILURE_POLICY / SHUTDOWN_GRACE_PERIOD      → lifecycle behaviour
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

PRODUCTION = "production"
DEVELOPMENT = "development"

FAIL_FAST = "fail_fast"
DEGRADE = "degrade"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have defaults suitable for local development against a
    MongoDB container. Production deployments MUST set MONGO_URI and
    ENVIRONMENT=production so that no local fallback is ever attempted.
    """

    # ── Document Store ────────────────────────────────────────────────────
    # Format: mongodb://[user:password@]host:port/dbname
    mongo_uri: str = Field(
        default="mongodb://localhost:27017/devopsTp2",
        description="Primary MongoDB connection string",
    )

    # Used when the URI carries no database path and to build fallback URIs
    mongo_db_name: str = Field(default="devopsTp2", min_length=1)

    # Extra development-only fallbacks, comma separated
    mongo_fallback_uris: str = Field(default="")

    # production: primary only. development: primary + local fallbacks
    environment: str = Field(default=DEVELOPMENT)

    # ── Connection Retry Policy ───────────────────────────────────────────
    # Per-attempt timeout in seconds (maps to serverSelectionTimeoutMS)
    db_connect_timeout: float = Field(default=10.0, gt=0, le=300)

    # Fixed wait between full passes over the target list
    db_retry_delay: float = Field(default=5.0, ge=0, le=600)

    # Number of passes before giving up. None = retry forever.
    db_max_retries: Optional[int] = Field(default=10)

    db_socket_timeout_ms: int = Field(default=45_000, ge=1_000)

    # Liveness ping period while connected
    db_heartbeat_interval: float = Field(default=10.0, gt=0, le=3600)

    # What happens once the retry budget is exhausted
    db_failure_policy: str = Field(default=DEGRADE)

    # Treat authentication errors as terminal instead of retrying them
    db_auth_failure_terminal: bool = Field(default=False)

    # ── Shutdown ──────────────────────────────────────────────────────────
    shutdown_grace_period: float = Field(default=10.0, gt=0, le=120)

    # ── Server ────────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)

    log_level: str = Field(default="INFO")

    cors_origins: str = Field(default="*")

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def fallback_uris_list(self) -> List[str]:
        return [uri.strip() for uri in self.mongo_fallback_uris.split(",") if uri.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Accepts the common short forms (prod, dev) as well."""
        normalized = v.strip().lower()
        aliases = {"prod": PRODUCTION, "dev": DEVELOPMENT}
        normalized = aliases.get(normalized, normalized)
        if normalized not in {PRODUCTION, DEVELOPMENT}:
            raise ValueError(
                f"Invalid environment '{v}'. Must be one of: {PRODUCTION}, {DEVELOPMENT}"
            )
        return normalized

    @field_validator("db_max_retries", mode="before")
    @classmethod
    def validate_max_retries(cls, v):
        """
        Parses the pass budget.

        "unbounded", "none", "" and -1 all mean retry forever (None).
        0 is accepted and behaves like 1: a single pass with no retries.
        """
        if v is None:
            return None
        if isinstance(v, str):
            text = v.strip().lower()
            if text in {"", "none", "unbounded", "infinite", "-1"}:
                return None
            v = int(text)
        if v == -1:
            return None
        if v < 0:
            raise ValueError("db_max_retries must be >= 0, or -1/'unbounded' for no limit")
        return v

    @field_validator("db_failure_policy")
    @classmethod
    def validate_failure_policy(cls, v: str) -> str:
        normalized = v.strip().lower().replace("-", "_")
        if normalized not in {FAIL_FAST, DEGRADE}:
            raise ValueError(
                f"Invalid db_failure_policy '{v}'. Must be one of: {FAIL_FAST}, {DEGRADE}"
            )
        return normalized

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # MONGO_URI and mongo_uri both work
    }


# Singleton instance, read by the app factory
settings = Settings()
