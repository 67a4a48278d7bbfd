"""
Users API - User Collection Definition
=======================================

What:  Shape of the `users` collection in MongoDB: validator, indexes and the
       document layout written by the service.
Why:   MongoDB is schemaless by default. A server-side $jsonSchema validator
       and a unique index on email make the store itself reject bad records,
       so the guarantees hold even for writes that bypass this service.
How:   ensure_users_collection() is the supervisor's first-connect hook. It is
       idempotent: creating an existing collection falls back to collMod, and
       create_indexes() is a no-op for identical index specs.

Document layout:
    {
        "_id":       ObjectId,
        "name":      str   (required, non-empty)
        "email":     str   (required, non-empty, unique)
        "createdAt": date  (set by the service at insert time)
    }

Indexes:
    email_unique      { email: 1 }      unique → duplicate inserts raise E11000
    createdAt_desc    { createdAt: -1 } newest-first listing
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.errors import CollectionInvalid

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

USER_JSON_SCHEMA: Dict[str, Any] = {
    "bsonType": "object",
    "required": ["name", "email"],
    "properties": {
        "name": {
            "bsonType": "string",
            "minLength": 1,
            "description": "must be a non-empty string and is required",
        },
        "email": {
            "bsonType": "string",
            "minLength": 1,
            "description": "must be a non-empty string and is required",
        },
        "createdAt": {
            "bsonType": "date",
            "description": "must be a date",
        },
    },
}

USER_INDEXES = [
    IndexModel([("email", ASCENDING)], name="email_unique", unique=True),
    IndexModel([("createdAt", DESCENDING)], name="createdAt_desc"),
]


def new_user_document(name: str, email: str, created_at: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the document inserted for a new user."""
    return {
        "name": name,
        "email": email,
        "createdAt": created_at or datetime.now(timezone.utc),
    }


async def ensure_users_collection(database) -> None:
    """
    Create or update the `users` collection validator and indexes.

    Args:
        database: a Motor database (AsyncIOMotorDatabase)
    """
    validator = {"$jsonSchema": USER_JSON_SCHEMA}
    try:
        await database.create_collection(USERS_COLLECTION, validator=validator)
        logger.info("Created collection '%s' with schema validator", USERS_COLLECTION)
    except CollectionInvalid:
        await database.command("collMod", USERS_COLLECTION, validator=validator)
        logger.info("Collection '%s' exists; validator refreshed", USERS_COLLECTION)

    names = await database[USERS_COLLECTION].create_indexes(USER_INDEXES)
    logger.info("Indexes ensured on '%s': %s", USERS_COLLECTION, ", ".join(names))
