"""
Records returned by the storage gateway.

Store-native identifiers (ObjectId, ORM primary keys) are projected into the
integer `id` before a record leaves the gateway.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite and some drivers drop tzinfo)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UrlRecord(BaseModel):
    """A persisted short URL"""

    id: int = Field(..., description="Public numeric identifier")
    short_code: str = Field(..., description="Unique short code")
    long_url: str = Field(..., description="Destination URL")
    custom_alias: Optional[str] = Field(None, description="Alias chosen by the user, if any")
    created_at: datetime = Field(..., description="Creation time (UTC)")
    clicks: int = Field(0, ge=0, description="Number of recorded resolutions")

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class UserRecord(BaseModel):
    """A registered user"""

    id: int
    username: str
    password: str
