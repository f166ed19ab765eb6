"""
Short code generation strategies for the URL shortener.
Uses Strategy Pattern so the allocation loop can be driven by any generator.
"""

import re
import secrets
import string
from abc import ABC, abstractmethod

# Same 64-character alphabet nanoid uses: safe in a URL path without escaping
URL_SAFE_ALPHABET = string.ascii_letters + string.digits + "_-"

_ALIAS_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self) -> str:
        """
        Generate a candidate short code.

        Uniqueness is not guaranteed here; the URL service checks the store
        and asks again on collision.
        """
        pass


class RandomShortCodeStrategy(ShortCodeStrategy):
    """
    Fixed-length random codes drawn with the `secrets` CSPRNG.

    64^6 (about 6.9e10) codes at the default length, so collisions are
    rare and handled by the caller's bounded retry.
    """

    def __init__(self, length: int = 6, alphabet: str = URL_SAFE_ALPHABET):
        if length < 1:
            raise ValueError("Short code length must be at least 1")
        self.length = length
        self.alphabet = alphabet

    def generate(self) -> str:
        return ''.join(secrets.choice(self.alphabet) for _ in range(self.length))


def is_valid_alias(alias: str, max_length: int = 64) -> bool:
    """Check that a custom alias is non-empty, short enough and URL-safe"""
    return 0 < len(alias) <= max_length and bool(_ALIAS_PATTERN.match(alias))
