"""
ORM models for the relational storage backend.

The document backend (MongoDB) has no model classes; both backends return
the pydantic records from shortlink_app.storage.models.
"""

from .base import Base
from .url import URL
from .user import User

__all__ = ["Base", "URL", "User"]
