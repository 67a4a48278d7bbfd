"""
Users API - Users Route Handlers
=================================

What:  GET /api/users (list) and POST /api/users (create).
How:   Both depend on get_users_collection, which raises
       DatabaseUnavailableError (503) while the supervisor is not CONNECTED.
       The dependency resolves before the handler body runs, so no store
       write is attempted on a disconnected service.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from users_api.database import get_users_collection
from users_api.schemas.user import ErrorResponse, UserCreate, UserResponse
from users_api.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])


@router.get(
    "/users",
    response_model=List[UserResponse],
    responses={503: {"description": "Database not available", "model": ErrorResponse}},
    summary="List users, newest first",
)
async def list_users(users=Depends(get_users_collection)) -> List[UserResponse]:
    return await user_service.list_users(users)


@router.post(
    "/users",
    status_code=201,
    response_model=UserResponse,
    responses={
        409: {"description": "Email already registered", "model": ErrorResponse},
        503: {"description": "Database not available", "model": ErrorResponse},
    },
    summary="Create a user",
)
async def create_user(
    payload: UserCreate,
    users=Depends(get_users_collection),
) -> UserResponse:
    """
    Insert a user record.

    Error responses (handled by global exception handlers):
        HTTP 409: email already exists (DuplicateEmailError)
        HTTP 422: missing or empty name/email (request validation)
        HTTP 503: database not connected (DatabaseUnavailableError)
    """
    return await user_service.create_user(users, payload)
