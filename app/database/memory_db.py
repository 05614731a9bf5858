import threading
from datetime import datetime, timezone

from app.database.base import UrlStore
from app.models.url_schemas import UrlRecord
from app.services.errors import ConflictError


def _utcnow():
    return datetime.now(timezone.utc)


class InMemoryUrlStore(UrlStore):
    """Process-local store with the same contract as PostgresUrlStore.

    Used by the test-suite and for running without a database
    (STORE_BACKEND=memory). All state sits behind one lock.
    """

    def __init__(self, clock=_utcnow):
        self._clock = clock
        self._lock = threading.Lock()
        self._records = {}
        self._next_id = 1

    def create(self, original_url, short_code, click_count=0):
        with self._lock:
            if short_code in self._records:
                raise ConflictError("Short code already exists")
            record = UrlRecord(
                id=self._next_id,
                original_url=original_url,
                short_code=short_code,
                created_at=self._clock(),
                click_count=click_count,
            )
            self._records[short_code] = record
            self._next_id += 1
            return record.model_copy()

    def get_by_code(self, short_code):
        with self._lock:
            record = self._records.get(short_code)
            return record.model_copy() if record else None

    def get_by_id(self, record_id):
        with self._lock:
            for record in self._records.values():
                if record.id == record_id:
                    return record.model_copy()
        return None

    def _newest_first(self):
        return sorted(self._records.values(), key=lambda r: (r.created_at, r.id), reverse=True)

    def list(self, limit=100, offset=0):
        with self._lock:
            ordered = self._newest_first()
            page = ordered[offset:offset + limit]
            return [r.model_copy() for r in page], len(ordered)

    def increment_clicks(self, short_code):
        with self._lock:
            record = self._records.get(short_code)
            if record is None:
                return None
            record.click_count += 1
            return record.model_copy()

    def delete(self, short_code):
        with self._lock:
            return self._records.pop(short_code, None) is not None

    def get_by_date_range(self, start, end):
        with self._lock:
            return [r.model_copy() for r in self._newest_first() if start <= r.created_at <= end]

    def get_top_by_clicks(self, limit=10):
        with self._lock:
            ordered = sorted(
                self._records.values(),
                key=lambda r: (r.click_count, r.created_at),
                reverse=True,
            )
            return [r.model_copy() for r in ordered[:limit]]

    def aggregate_stats(self):
        with self._lock:
            records = list(self._records.values())
            today = self._clock().date()

        total_urls = len(records)
        total_clicks = sum(r.click_count for r in records)
        return {
            "totalUrls": total_urls,
            "totalClicks": total_clicks,
            "avgClicksPerUrl": total_clicks / total_urls if total_urls else 0.0,
            "urlsCreatedToday": sum(1 for r in records if r.created_at.date() == today),
        }

    def health_check(self):
        return True
