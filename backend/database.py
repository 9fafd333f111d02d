"""
Database connection management for MongoDB.
"""

import logging
from functools import lru_cache
from typing import Callable, Optional, TypeVar

import certifi
from pymongo import ASCENDING, MongoClient
from pymongo.client_session import ClientSession
from pymongo.database import Database

from env import MONGODB_URI, MONGODB_DATABASE_NAME

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseManager:
    """
    Singleton database connection manager.
    Provides connection pooling and lifecycle management.
    """

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[MongoClient] = None
    _database: Optional[Database] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def connect(self, uri: Optional[str] = None, database_name: Optional[str] = None) -> None:
        """
        Establish connection to MongoDB.

        Args:
            uri: MongoDB connection URI. Uses MONGODB_URI from env if not provided.
            database_name: Database name. Uses MONGODB_DATABASE_NAME from env if not provided.
        """
        if self._client is None:
            connection_uri = uri or MONGODB_URI
            if not connection_uri:
                raise ValueError("MongoDB URI not provided and MONGODB_URI not set")

            db_name = database_name or MONGODB_DATABASE_NAME
            if not db_name:
                raise ValueError("Database name not provided and MONGODB_DATABASE_NAME not set")

            # Credential rotation needs multi-document transactions, which
            # require retryable writes and majority write concern on Atlas
            if "mongodb+srv://" in connection_uri:
                if "retryWrites" not in connection_uri:
                    separator = "&" if "?" in connection_uri else "?"
                    connection_uri = f"{connection_uri}{separator}retryWrites=true&w=majority"

            self._client = MongoClient(
                connection_uri,
                tlsCAFile=certifi.where(),
                tz_aware=True,
                serverSelectionTimeoutMS=30000,
                connectTimeoutMS=30000,
                socketTimeoutMS=30000,
            )
            self._database = self._client[db_name]
            logger.info("Connected to MongoDB database %s", db_name)

    def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client instance."""
        if self._client is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._client

    @property
    def database(self) -> Database:
        """Get database instance."""
        if self._database is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._database

    def ensure_indexes(self) -> None:
        """Create the indexes the identity and credential queries rely on."""
        ensure_indexes(self.database)


def ensure_indexes(database: Database) -> None:
    """
    Create collection indexes.

    The partial unique index on credentials enforces at most one active
    credential per identity inside the store itself.
    """
    identities = database["identities"]
    identities.create_index([("fingerprint", ASCENDING)])

    credentials = database["credentials"]
    credentials.create_index([("secret", ASCENDING)], unique=True)
    credentials.create_index([("owner_identity_id", ASCENDING), ("active", ASCENDING)])
    credentials.create_index(
        [("owner_identity_id", ASCENDING)],
        name="one_active_credential_per_identity",
        unique=True,
        partialFilterExpression={"active": True},
    )

    database["role_audit"].create_index([("target_identity_id", ASCENDING)])


def run_in_transaction(database: Database, callback: Callable[[ClientSession], T]) -> T:
    """
    Run callback inside a MongoDB multi-document transaction.

    Transient transaction errors are retried by pymongo's with_transaction;
    anything else propagates and the transaction is aborted.

    Args:
        database: Database whose client owns the session
        callback: Function receiving the session; all writes must pass it along

    Returns:
        Whatever callback returns
    """
    with database.client.start_session() as session:
        return session.with_transaction(callback)


@lru_cache
def get_database_manager() -> DatabaseManager:
    """
    Get singleton DatabaseManager instance.
    Cached for dependency injection.

    Returns:
        DatabaseManager instance
    """
    return DatabaseManager()


def get_database() -> Database:
    """
    Get database instance for dependency injection.

    Returns:
        MongoDB database instance
    """
    manager = get_database_manager()
    return manager.database
