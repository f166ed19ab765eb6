import logging
from typing import Any, Callable

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.responses import RedirectResponse
from shortlink_app.exceptions import ShortlinkError
from shortlink_app.schemas.url import ErrorResponse, RedirectTarget, error_response
from shortlink_app.services.url_service import URLService
from shortlink_app.dependencies import get_url_service

router = APIRouter(tags=["redirect"])

logger = logging.getLogger(__name__)


async def _resolve(
    short_code: str,
    url_service: URLService,
    background_tasks: BackgroundTasks,
    respond: Callable[[str], Any]
) -> Any:
    """
    Look up short_code and build the success response with `respond`.

    The click is counted in a background task after the response is sent,
    so a slow or failing counter update never delays or breaks the lookup.
    """
    try:
        url = await url_service.resolve_short_code(short_code)
    except ShortlinkError as e:
        logger.error(f"Failed to resolve {short_code}: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")

    if url is None:
        return error_response(status.HTTP_404_NOT_FOUND, "URL not found")

    background_tasks.add_task(url_service.record_click, short_code)
    return respond(url.long_url)


@router.get(
    "/api/redirect/{short_code}",
    response_model=RedirectTarget,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def resolve_short_code(
    short_code: str,
    background_tasks: BackgroundTasks,
    url_service: URLService = Depends(get_url_service)
):
    """Resolve a short code to its long URL: {"longUrl": ...}"""
    return await _resolve(
        short_code,
        url_service,
        background_tasks,
        lambda long_url: RedirectTarget(long_url=long_url)
    )


@router.get("/{short_code}", include_in_schema=False)
async def redirect_to_long_url(
    short_code: str,
    background_tasks: BackgroundTasks,
    url_service: URLService = Depends(get_url_service)
):
    """Browser-facing 302 redirect; counts the click the same way"""
    return await _resolve(
        short_code,
        url_service,
        background_tasks,
        lambda long_url: RedirectResponse(url=long_url, status_code=status.HTTP_302_FOUND)
    )
