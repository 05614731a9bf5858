"""
URL shortening service module.

This module provides the core flow for creating and managing shortened
URLs: validating the submitted URL, picking a unique short code (custom or
random), saving the record and resolving codes back for redirects while
counting clicks. Storage is injected so any UrlStore can back it.
"""

import logging
import math
import re

from app.services.code_service import DEFAULT_CODE_LENGTH, generate_code, is_valid_custom_code
from app.services.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    ResourceExhaustedError,
)
from app.utils.url_validator import is_valid_url, normalize_url

# Set up logging
logger = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 10

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 50

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def build_short_url(base_url, short_code):
    """Join a base URL like https://sho.rt/ and a code into the public short URL"""
    return f"{base_url.rstrip('/')}/{short_code}"


def parse_positive_int(value, default):
    """Leading integer of a query value, or default when missing, unparsable or not positive"""
    if value is None:
        return default
    match = _LEADING_INT.match(str(value))
    if not match:
        return default
    number = int(match.group(1))
    return number if number > 0 else default


def build_pagination(page, limit, total):
    """Pagination block returned alongside list results"""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "hasNext": page * limit < total,
        "hasPrev": page > 1,
    }


class UrlShortener:
    """Service for creating, resolving and managing short URLs.

    Args:
        store: The UrlStore that holds records
        code_length: Length of generated codes (default: 6)
        max_attempts: How many random codes to try before giving up (default: 10)
    """

    def __init__(self, store, code_length=DEFAULT_CODE_LENGTH, max_attempts=MAX_GENERATION_ATTEMPTS):
        self.store = store
        self.code_length = code_length
        self.max_attempts = max_attempts

    def shorten(self, url, custom_code=None):
        """Create a new short URL record.

        Args:
            url: The original URL to shorten
            custom_code: Optional user chosen short code

        Returns:
            UrlRecord: The stored record, click count starting at zero

        Raises:
            InvalidInputError: URL missing or invalid, or custom code malformed
            ConflictError: The custom code is already taken
            ResourceExhaustedError: No free random code after max_attempts
        """
        if not url:
            raise InvalidInputError("URL is required")

        if not is_valid_url(url):
            raise InvalidInputError("Invalid URL format. Please provide a valid HTTP/HTTPS URL")

        original_url = normalize_url(url)

        if custom_code:
            return self._create_with_custom_code(original_url, custom_code)
        return self._create_with_generated_code(original_url)

    def _create_with_custom_code(self, original_url, custom_code):
        if not is_valid_custom_code(custom_code):
            raise InvalidInputError(
                "Invalid custom code. Must be 3-20 alphanumeric characters and not a reserved word"
            )

        if self.store.get_by_code(custom_code) is not None:
            logger.info(f"Custom code already taken: {custom_code}")
            raise ConflictError("Custom code already exists. Please choose a different one")

        # The unique constraint still wins if another request got here first
        try:
            record = self.store.create(original_url, custom_code, click_count=0)
        except ConflictError:
            logger.info(f"Custom code taken concurrently: {custom_code}")
            raise ConflictError("Custom code already exists. Please choose a different one")

        logger.info(f"Created short URL {record.short_code} with custom code")
        return record

    def _create_with_generated_code(self, original_url):
        attempts = 0
        while attempts < self.max_attempts:
            attempts += 1
            short_code = generate_code(self.code_length)

            if self.store.get_by_code(short_code) is not None:
                logger.warning(f"Generated code collision on attempt {attempts}: {short_code}")
                continue

            try:
                record = self.store.create(original_url, short_code, click_count=0)
            except ConflictError:
                logger.warning(f"Generated code taken concurrently on attempt {attempts}: {short_code}")
                continue

            logger.info(f"Created short URL {record.short_code}")
            return record

        logger.error(f"Unable to generate a unique short code after {attempts} attempts")
        raise ResourceExhaustedError("Unable to generate unique short code. Please try again")

    def resolve(self, short_code):
        """Count a click and return the record to redirect to.

        Raises:
            NotFoundError: No record for the short code
        """
        record = self.store.increment_clicks(short_code)
        if record is None:
            logger.warning(f"Short code not found: {short_code}")
            raise NotFoundError("URL not found")
        logger.info(f"Redirecting {short_code} (clicks: {record.click_count})")
        return record

    def get_stats(self, short_code):
        record = self.store.get_by_code(short_code)
        if record is None:
            raise NotFoundError("URL not found")
        return record

    def list_urls(self, page=None, limit=None):
        """Return one page of records (newest first) and its pagination block.

        Missing, unparsable or non-positive page and limit fall back to 1 and 50.
        """
        page = parse_positive_int(page, DEFAULT_PAGE)
        limit = parse_positive_int(limit, DEFAULT_PAGE_SIZE)

        offset = (page - 1) * limit
        records, total = self.store.list(limit=limit, offset=offset)
        return records, build_pagination(page, limit, total)

    def delete(self, short_code):
        if not self.store.delete(short_code):
            raise NotFoundError("URL not found")
        logger.info(f"Deleted short URL {short_code}")

    def top_urls(self, limit=10):
        return self.store.get_top_by_clicks(limit)

    def urls_between(self, start, end):
        if start > end:
            raise InvalidInputError("start must not be after end")
        return self.store.get_by_date_range(start, end)

    def summary(self):
        return self.store.aggregate_stats()

    def health(self):
        return self.store.health_check()
