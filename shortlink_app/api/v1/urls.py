import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from shortlink_app.config import settings
from shortlink_app.exceptions import ConflictError, InvalidInputError, ShortlinkError
from shortlink_app.schemas.url import (
    ErrorResponse,
    RecentUrlResponse,
    ShortenRequest,
    ShortenResponse,
    error_response,
)
from shortlink_app.services.url_service import URLService
from shortlink_app.dependencies import get_base_url, get_url_service

router = APIRouter(prefix="/api", tags=["urls"])

logger = logging.getLogger(__name__)


@router.post(
    "/shorten",
    response_model=ShortenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def shorten_url(
    url_data: ShortenRequest,
    base_url: str = Depends(get_base_url),
    url_service: URLService = Depends(get_url_service)
):
    """
    Create a short URL, optionally under a custom alias.

    Responses:
    - 201: the created record with its shortUrl
    - 400: invalid longUrl or customAlias (bad characters, too long, reserved)
    - 409: customAlias is already in use. Earlier releases reported this
      case as a 500; clients matching on 500 for taken aliases must check 409.
    - 500: store failure, or no free generated code
    """
    try:
        url = await url_service.create_short_url(url_data.long_url, url_data.custom_alias)
    except InvalidInputError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except ConflictError as e:
        return error_response(status.HTTP_409_CONFLICT, str(e), error=str(e))
    except ShortlinkError as e:
        logger.error(f"Failed to create short URL for {url_data.long_url}: {e}")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Database error while creating short URL",
            error=str(e)
        )

    return ShortenResponse.from_record(url, base_url)


@router.get(
    "/urls/recent",
    response_model=List[RecentUrlResponse],
    responses={500: {"model": ErrorResponse}},
)
async def get_recent_urls(
    limit: int = Query(settings.recent_urls_limit, ge=0, le=100),
    base_url: str = Depends(get_base_url),
    url_service: URLService = Depends(get_url_service)
):
    """Most recently created short URLs, newest first"""
    try:
        urls = await url_service.get_recent_urls(limit)
    except ShortlinkError as e:
        logger.error(f"Failed to fetch recent URLs: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch recent URLs")

    return [RecentUrlResponse.from_record(url, base_url) for url in urls]
