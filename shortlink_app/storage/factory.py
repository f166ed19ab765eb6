"""
Factory for creating storage instances.
Simple, clean factory with singleton caching.
"""

import logging
from enum import Enum
from .strategies import StorageStrategy, MongoStorage, SQLAlchemyStorage
from shortlink_app.config import settings

logger = logging.getLogger(__name__)


class StorageBackend(Enum):
    """Available storage backends"""
    MONGODB = "mongodb"
    SQLALCHEMY = "sqlalchemy"


class StorageFactory:
    """
    Simple factory for creating storage instances.

    Gets configuration from settings (not passed as parameters).
    Creating a strategy does not connect; the connection is opened on
    the first storage call and shared from then on.
    """

    _instance: StorageStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: StorageBackend) -> StorageStrategy:
        """
        Create or return cached storage instance.

        Args:
            backend: Type of storage backend (from enum)

        Returns:
            Singleton storage instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == StorageBackend.MONGODB:
            cls._instance = MongoStorage(
                url=settings.mongodb_url,
                database=settings.mongodb_database,
                timeout_ms=settings.mongodb_timeout_ms
            )

        elif backend == StorageBackend.SQLALCHEMY:
            cls._instance = SQLAlchemyStorage(database_url=settings.database_url)

        else:
            raise ValueError(f"Unknown storage backend: {backend}")

        logger.info(f"Storage backend selected: {backend.value}")
        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Close and clear cached instance (for testing)"""
        if cls._instance is not None:
            cls._instance.close()
        cls._instance = None
