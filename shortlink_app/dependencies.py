"""
FastAPI dependencies for dependency injection.

This module provides the singleton storage instance and builds the
URLService that routes depend on.

Pattern: Dependency Injection
- Routes depend on the service, the service depends on storage
- Tests override get_storage with a SQLite-backed strategy
"""

from functools import lru_cache

from fastapi import Depends, Request

from shortlink_app.config import settings
from shortlink_app.storage.factory import StorageFactory, StorageBackend
from shortlink_app.storage.strategies import StorageStrategy


@lru_cache()
def get_storage() -> StorageStrategy:
    """
    Get storage instance (singleton).

    Factory gets config from settings internally.
    @lru_cache ensures this is called only once. The store connection
    itself is opened lazily on first use.
    """
    backend = StorageBackend(settings.storage_backend)
    return StorageFactory.create(backend)


def get_url_service(storage: StorageStrategy = Depends(get_storage)):
    """Get URLService with its storage injected"""
    from shortlink_app.services.url_service import URLService
    return URLService(storage=storage)


def get_base_url(request: Request) -> str:
    """Public base for short links: configured value or the request's scheme and host"""
    return settings.base_url or str(request.base_url)
