from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from fastapi.responses import JSONResponse
from shortlink_app.storage.models import UrlRecord

_http_url = TypeAdapter(HttpUrl)


def build_short_url(base_url: str, short_code: str) -> str:
    """Join the public base (scheme + host) and a short code"""
    return f"{base_url.rstrip('/')}/{short_code}"


class CamelModel(BaseModel):
    """Wire models use camelCase JSON names and accept snake_case in Python"""

    # Pydantic V2 style configuration
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShortenRequest(CamelModel):
    long_url: str = Field(..., description="The original URL to be shortened")
    custom_alias: Optional[str] = Field(None, description="Optional user-chosen short code")

    @field_validator("long_url")
    @classmethod
    def check_long_url(cls, value: str) -> str:
        """Must parse as an http(s) URL. The original string is kept as-is."""
        value = value.strip()
        try:
            _http_url.validate_python(value)
        except ValidationError:
            raise ValueError("Please enter a valid URL")
        return value

    @field_validator("custom_alias")
    @classmethod
    def blank_alias_is_absent(cls, value: Optional[str]) -> Optional[str]:
        """Forms submit "" for an empty alias field; treat it as not provided"""
        if value is None:
            return None
        value = value.strip()
        return value or None


class ShortenResponse(CamelModel):
    id: int
    short_code: str
    long_url: str
    short_url: str
    created_at: datetime
    clicks: int

    @classmethod
    def from_record(cls, url: UrlRecord, base_url: str) -> "ShortenResponse":
        return cls(
            **url.model_dump(exclude={"custom_alias"}),
            short_url=build_short_url(base_url, url.short_code)
        )


class RecentUrlResponse(CamelModel):
    """A stored URL plus its computed short link"""
    id: int
    short_code: str
    long_url: str
    custom_alias: Optional[str] = None
    created_at: datetime
    clicks: int
    short_url: str

    @classmethod
    def from_record(cls, url: UrlRecord, base_url: str) -> "RecentUrlResponse":
        return cls(**url.model_dump(), short_url=build_short_url(base_url, url.short_code))


class RedirectTarget(CamelModel):
    long_url: str


class ErrorResponse(BaseModel):
    message: str
    error: Optional[str] = None


def error_response(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    """JSON error body: {"message": ...} plus "error" when a cause is known"""
    body = ErrorResponse(message=message, error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))
