"""Database index management for MongoDB collections."""

import logging

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import OperationFailure

logger = logging.getLogger(__name__)


def ensure_indexes(db: Database) -> None:
    """
    Ensure all required indexes exist.

    Called on application startup. The unique email indexes are what make
    registration safe against two concurrent sign-ups with the same email.
    """
    _ensure_account_indexes(db.admins)
    _ensure_account_indexes(db.users)
    _ensure_courses_indexes(db)
    _ensure_orders_indexes(db)
    logger.info("Database indexes ensured successfully")


def _create_index(collection: Collection, keys: list, name: str, **kwargs) -> None:
    try:
        collection.create_index(keys, name=name, background=True, **kwargs)
        logger.debug("Created index: %s.%s", collection.name, name)
    except OperationFailure as e:
        # Index may already exist with different options
        if "already exists" not in str(e):
            logger.warning("Failed to create %s index on %s: %s", name, collection.name, e)


def _ensure_account_indexes(collection: Collection) -> None:
    """Create indexes for an account collection (admins or users)."""
    _create_index(collection, [("email", 1)], "email_unique", unique=True)


def _ensure_courses_indexes(db: Database) -> None:
    """Create indexes for courses collection."""
    collection = db.courses

    # Public listing: published courses, newest first
    _create_index(collection, [("published", 1), ("created_at", -1)], "published_created_at_idx")
    _create_index(collection, [("instructor", 1)], "instructor_idx")
    _create_index(collection, [("category", 1)], "category_idx")


def _ensure_orders_indexes(db: Database) -> None:
    """Create indexes for orders collection."""
    collection = db.orders

    _create_index(collection, [("session_id", 1)], "session_id_unique", unique=True)
    _create_index(collection, [("user_id", 1), ("created_at", -1)], "user_created_at_idx")
