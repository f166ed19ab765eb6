import logging
from datetime import datetime, timezone
from typing import List, Optional

from shortlink_app.config import settings
from shortlink_app.exceptions import (
    CapacityError,
    ConflictError,
    DuplicateShortCodeError,
    InvalidInputError,
)
from shortlink_app.services.short_code_strategies import (
    RandomShortCodeStrategy,
    ShortCodeStrategy,
    is_valid_alias,
)
from shortlink_app.storage.models import UrlRecord
from shortlink_app.storage.strategies import StorageStrategy

logger = logging.getLogger(__name__)

ALIAS_IN_USE_MESSAGE = "Custom alias is already in use. Please choose a different one."

# First path segments served by the app itself; a short code here would never redirect
RESERVED_SHORT_CODES = frozenset({"api", "docs", "redoc", "health"})


class URLService:
    """
    Short code allocation and resolution.

    Storage and the short code strategy are injected, so the same service
    runs against MongoDB in production and SQLite in tests.
    """

    def __init__(
        self,
        storage: StorageStrategy,
        short_code_strategy: Optional[ShortCodeStrategy] = None,
        max_attempts: Optional[int] = None
    ):
        """
        Initialize URL service with dependencies.

        Args:
            storage: Storage strategy (the persistence gateway)
            short_code_strategy: Generator for codes when no alias is given
            max_attempts: Generation attempts before CapacityError
        """
        self.storage = storage
        self.short_code_strategy = short_code_strategy or RandomShortCodeStrategy(
            length=settings.short_code_length
        )
        self.max_attempts = max_attempts if max_attempts is not None else settings.max_retries

    async def create_short_url(self, long_url: str, custom_alias: Optional[str] = None) -> UrlRecord:
        """Create a new short URL

        custom_alias=None means "not provided" and a code is generated.
        Any string, including "", is treated as a requested alias and
        validated.

        Raises:
            InvalidInputError: Empty long_url or malformed alias
            ConflictError: Alias already in use (nothing is written)
            CapacityError: No free code within max_attempts
            StoreError: Store failure
        """
        if not long_url:
            raise InvalidInputError("Long URL must not be empty")

        created_at = datetime.now(timezone.utc)

        if custom_alias is not None:
            return await self._create_with_alias(long_url, custom_alias, created_at)

        for attempt in range(1, self.max_attempts + 1):
            short_code = self.short_code_strategy.generate()

            if short_code in RESERVED_SHORT_CODES or not await self.is_short_code_available(short_code):
                logger.warning(f"Short code collision on attempt {attempt}: {short_code}")
                continue

            try:
                url = await self.storage.create_url(short_code, long_url, None, created_at)
            except DuplicateShortCodeError:
                # Another writer took the code between the check and the insert
                logger.warning(f"Lost race for short code on attempt {attempt}: {short_code}")
                continue

            logger.info(f"Created short URL: {url.short_code} -> {long_url}")
            return url

        raise CapacityError(
            f"Could not generate unique short code after {self.max_attempts} attempts"
        )

    async def _create_with_alias(self, long_url: str, alias: str, created_at: datetime) -> UrlRecord:
        if not is_valid_alias(alias, settings.custom_alias_max_length):
            raise InvalidInputError(
                "Custom alias may only contain letters, digits, '-' and '_' "
                f"and must be 1-{settings.custom_alias_max_length} characters long"
            )

        if alias in RESERVED_SHORT_CODES:
            raise InvalidInputError(f"Custom alias '{alias}' is reserved. Please choose a different one.")

        if not await self.is_short_code_available(alias):
            raise ConflictError(ALIAS_IN_USE_MESSAGE)

        try:
            url = await self.storage.create_url(alias, long_url, alias, created_at)
        except DuplicateShortCodeError as e:
            raise ConflictError(ALIAS_IN_USE_MESSAGE) from e

        logger.info(f"Created short URL with alias: {alias} -> {long_url}")
        return url

    async def get_url_by_short_code(self, short_code: str) -> Optional[UrlRecord]:
        """Get URL by short code, None if absent"""
        return await self.storage.get_url_by_short_code(short_code)

    async def resolve_short_code(self, short_code: str) -> Optional[UrlRecord]:
        """
        Look up the URL a visitor is being sent to.

        Does not count the click; callers schedule record_click() off the
        response path.
        """
        url = await self.storage.get_url_by_short_code(short_code)
        if url is None:
            logger.info(f"Short code not found: {short_code}")
        return url

    async def increment_url_clicks(self, short_code: str) -> None:
        """Add one click. Silent no-op for unknown codes; store errors propagate."""
        await self.storage.increment_url_clicks(short_code)

    async def record_click(self, short_code: str) -> None:
        """
        Fire-and-forget click tracking.

        Runs after the redirect response is sent. Failures are logged and
        dropped; they never reach the visitor.
        """
        try:
            await self.increment_url_clicks(short_code)
        except Exception as e:
            logger.error(f"Failed to record click for {short_code}: {e}")

    async def get_recent_urls(self, limit: int = 10) -> List[UrlRecord]:
        """Most recently created URLs, newest first"""
        if limit < 0:
            raise InvalidInputError("Limit must not be negative")
        if limit == 0:
            return []
        return await self.storage.get_recent_urls(limit)

    async def is_short_code_available(self, short_code: str) -> bool:
        """True iff no record uses this exact short code"""
        return not await self.storage.short_code_exists(short_code)
