"""
Storage gateway for users and short URLs.

This module implements the Strategy Pattern for pluggable stores.
The service layer depends only on StorageStrategy and the records in
shortlink_app.storage.models.
"""

from .strategies import StorageStrategy, MongoStorage, SQLAlchemyStorage
from .factory import StorageFactory, StorageBackend
from .models import UrlRecord, UserRecord

__all__ = [
    "StorageStrategy",
    "MongoStorage",
    "SQLAlchemyStorage",
    "StorageFactory",
    "StorageBackend",
    "UrlRecord",
    "UserRecord",
]
