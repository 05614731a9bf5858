"""
Error types raised by the URL shortening service.

Each error carries the HTTP status the API layer reports for it, so route
handlers never have to translate service failures by hand.
"""


class ShortenerError(Exception):
    """Base class for all expected service failures."""

    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInputError(ShortenerError):
    """Missing or malformed URL, or a custom code that breaks the code policy."""

    status_code = 400


class ConflictError(ShortenerError):
    """The requested short code is already taken."""

    status_code = 409


class NotFoundError(ShortenerError):
    """No record exists for the given short code."""

    status_code = 404


class ResourceExhaustedError(ShortenerError):
    """Random code generation kept colliding. Transient, safe to retry."""

    status_code = 500


class StoreUnavailableError(ShortenerError):
    """The database could not be reached or a query failed."""

    status_code = 500
