"""
Storage contract for short URL records.

The shortening service only talks to this interface, so the PostgreSQL
store and the in-memory store can be swapped without touching service code.
"""

from abc import ABC, abstractmethod


class UrlStore(ABC):
    """Abstract base class for URL record stores.

    Lookups return None when nothing matches. Failures to reach the
    backend raise StoreUnavailableError; a duplicate short code on create
    raises ConflictError.
    """

    @abstractmethod  # pragma: no cover
    def create(self, original_url, short_code, click_count=0):
        """Insert a record and return it with id and created_at assigned."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def get_by_code(self, short_code):
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def get_by_id(self, record_id):
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def list(self, limit=100, offset=0):
        """Return (records newest first, total count)."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def increment_clicks(self, short_code):
        """Atomically add one click and return the updated record, or None."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def delete(self, short_code):
        """Return True if a record was removed."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def get_by_date_range(self, start, end):
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def get_top_by_clicks(self, limit=10):
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def aggregate_stats(self):
        """Return totalUrls, totalClicks, avgClicksPerUrl and urlsCreatedToday."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def health_check(self):
        raise NotImplementedError

    def close(self):
        """Release backend resources. Nothing to do by default."""
