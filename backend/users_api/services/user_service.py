"""
Users API - User Service
=========================

What:  Create, list and count users in the `users` collection.
Why:   Keeps driver calls and driver-error translation out of route handlers.
How:   Stateless methods that receive the collection for each call (handed out
       by get_users_collection once the supervisor reports CONNECTED).

Error translation:
    DuplicateKeyError (E11000 on email_unique)        → DuplicateEmailError (409)
    AutoReconnect / ConnectionFailure / NetworkTimeout → ConnectionLostError (503)
    any other PyMongoError                             → DatabaseError (500)
"""

import logging
from typing import List

from pymongo import DESCENDING
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    PyMongoError,
)

from users_api.exceptions import ConnectionLostError, DatabaseError, DuplicateEmailError
from users_api.models.user import new_user_document
from users_api.schemas.user import UserCreate, UserResponse

logger = logging.getLogger(__name__)

# Upper bound on GET /api/users; the endpoint is unpaginated
MAX_LIST_SIZE = 1000


class UserService:
    """
    Business logic for the users resource.

    Responsibilities:
        - create_user(): insert one record, enforce email uniqueness
        - list_users():  newest-first listing
        - count_users(): document count for diagnostics
    """

    async def create_user(self, collection, payload: UserCreate) -> UserResponse:
        """
        Insert a new user.

        Raises:
            DuplicateEmailError: email already present (unique index)
            ConnectionLostError: connection dropped during the insert
            DatabaseError:       any other driver failure
        """
        document = new_user_document(name=payload.name, email=payload.email)
        try:
            result = await collection.insert_one(document)
        except DuplicateKeyError as e:
            logger.info("Rejected duplicate email on insert")
            raise DuplicateEmailError(email=payload.email, context={"code": e.code})
        except ConnectionFailure as e:
            logger.warning("Connection lost while inserting user: %s", e)
            raise ConnectionLostError(cause=str(e))
        except PyMongoError as e:
            logger.error("Database error inserting user: %s", e, exc_info=True)
            raise DatabaseError(
                message="Could not create the user. Please try again.",
                context={"error_type": type(e).__name__},
            )

        document["_id"] = result.inserted_id
        logger.info("User created: %s", result.inserted_id)
        return UserResponse.from_document(document)

    async def list_users(self, collection, limit: int = MAX_LIST_SIZE) -> List[UserResponse]:
        try:
            cursor = collection.find({}).sort("createdAt", DESCENDING).limit(limit)
            documents = await cursor.to_list(length=limit)
        except ConnectionFailure as e:
            logger.warning("Connection lost while listing users: %s", e)
            raise ConnectionLostError(cause=str(e))
        except PyMongoError as e:
            logger.error("Database error listing users: %s", e, exc_info=True)
            raise DatabaseError(
                message="Could not retrieve users. Please try again.",
                context={"error_type": type(e).__name__},
            )
        return [UserResponse.from_document(doc) for doc in documents]

    async def count_users(self, collection) -> int:
        try:
            return await collection.count_documents({})
        except ConnectionFailure as e:
            raise ConnectionLostError(cause=str(e))
        except PyMongoError as e:
            logger.error("Database error counting users: %s", e)
            raise DatabaseError(
                message="Could not count users.",
                context={"error_type": type(e).__name__},
            )


# Stateless; shared by all requests
user_service = UserService()
