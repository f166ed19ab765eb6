"""
Error taxonomy shared by the service layer and the storage gateway.

Lookups never raise for a missing record; they return None and the HTTP
layer turns that into a 404.
"""


class ShortlinkError(Exception):
    """Base class for every error raised by shortlink_app"""


class InvalidInputError(ShortlinkError):
    """Malformed input (empty long URL, bad alias, negative limit)"""


class ConflictError(ShortlinkError):
    """A unique value (short code, username) is already taken"""


class DuplicateShortCodeError(ConflictError):
    """The store rejected an insert because the short code exists"""

    def __init__(self, short_code: str):
        super().__init__(f"Short code '{short_code}' already exists")
        self.short_code = short_code


class CapacityError(ShortlinkError):
    """No free short code was found within the attempt budget"""


class StoreError(ShortlinkError):
    """Connection or query failure in the underlying store"""
