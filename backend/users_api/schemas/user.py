"""
Users API - Pydantic Request/Response Schemas
==============================================

What:  Pydantic models defining the HTTP contract.
Why:   Input validation, serialization of Mongo documents, OpenAPI docs.
How:   FastAPI validates request bodies against these models (422 on failure)
       and serializes responses through them.

Field naming:
    The wire format keeps the existing clients' camelCase (`createdAt`,
    `userCount`) and Mongo's `_id`; Python attributes stay snake_case via
    aliases. Responses are serialized by alias (FastAPI's default).
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class UserCreate(BaseModel):
    """Body of POST /api/users."""

    name: str = Field(min_length=1, max_length=200, description="Display name")
    email: str = Field(min_length=3, max_length=320, description="Unique email address")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Trims whitespace and lowercases so the unique index sees one spelling."""
        normalized = v.strip().lower()
        if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
            raise ValueError("email must look like name@domain")
        return normalized


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    """A stored user as returned by GET/POST /api/users."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id", description="MongoDB ObjectId as a hex string")
    name: str
    email: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_object_id(cls, v: Any) -> str:
        return str(v)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "UserResponse":
        return cls.model_validate(document)


class HealthResponse(BaseModel):
    """GET /health body. Exactly two fields, for load balancer probes."""

    status: str = Field(description="healthy | unhealthy")
    database: str = Field(description="connected | disconnected")


class DatabaseTestResponse(BaseModel):
    """GET /api/test-db body; optional fields are omitted when unknown."""

    connected: bool
    message: str
    state: str = Field(description="Supervisor state: disconnected, connecting, connected, failed")
    user_count: Optional[int] = Field(default=None, alias="userCount")
    database: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class ApiInfoResponse(BaseModel):
    message: str
    timestamp: datetime


class RootResponse(BaseModel):
    """GET / body: service banner with an endpoint map."""

    message: str
    status: str
    timestamp: datetime
    database: str
    endpoints: Dict[str, str]


class ErrorResponse(BaseModel):
    """
    Standardized error body.

    Example:
        {"error": "Database not available",
         "message": "The database is not connected. Please try again shortly.",
         "request_id": "1a2b3c4d"}
    """

    error: str = Field(description="Error code or short description")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")
