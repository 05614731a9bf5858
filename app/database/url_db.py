import logging

from psycopg2.extras import RealDictCursor

from app.database.base import UrlStore
from app.database.db import ConnectionPool, init_db
from app.models.url_schemas import UrlRecord
from app.services.errors import StoreUnavailableError

# Setup logging
logger = logging.getLogger(__name__)

RECORD_COLUMNS = "id, original_url, short_code, created_at, click_count"


def _to_record(row):
    if row is None:
        return None
    return UrlRecord(
        id=row["id"],
        original_url=row["original_url"],
        short_code=row["short_code"],
        created_at=row["created_at"],
        click_count=row["click_count"],
    )


class PostgresUrlStore(UrlStore):
    """URL records kept in the PostgreSQL `urls` table.

    Every method borrows one pooled connection and gives it back before
    returning, whether or not the query succeeded.
    """

    def __init__(self, pool):
        self.pool = pool

    @classmethod
    def from_env(cls):
        return cls(ConnectionPool.from_env())

    def init_schema(self):
        init_db(self.pool)

    def _fetch_one(self, query, params=()):
        with self.pool.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                return cursor.fetchone()

    def _fetch_all(self, query, params=()):
        with self.pool.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                return cursor.fetchall()

    # Save a new URL in the database
    def create(self, original_url, short_code, click_count=0):
        row = self._fetch_one(
            f"""
            INSERT INTO urls (original_url, short_code, click_count)
            VALUES (%s, %s, %s)
            RETURNING {RECORD_COLUMNS}
            """,
            (original_url, short_code, click_count)
        )
        return _to_record(row)

    # Find a URL by its short code
    def get_by_code(self, short_code):
        row = self._fetch_one(
            f"SELECT {RECORD_COLUMNS} FROM urls WHERE short_code = %s",
            (short_code,)
        )
        return _to_record(row)

    def get_by_id(self, record_id):
        row = self._fetch_one(
            f"SELECT {RECORD_COLUMNS} FROM urls WHERE id = %s",
            (record_id,)
        )
        return _to_record(row)

    def list(self, limit=100, offset=0):
        # Count and page on the same connection so they see one snapshot
        with self.pool.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute("SELECT COUNT(*) AS total FROM urls")
                total = cursor.fetchone()["total"]

                cursor.execute(
                    f"""
                    SELECT {RECORD_COLUMNS} FROM urls
                    ORDER BY created_at DESC, id DESC
                    LIMIT %s OFFSET %s
                    """,
                    (limit, offset)
                )
                rows = cursor.fetchall()

        return [_to_record(row) for row in rows], int(total)

    # Increase the click counter when someone uses a short URL
    def increment_clicks(self, short_code):
        # Single UPDATE so concurrent redirects never lose a click
        row = self._fetch_one(
            f"""
            UPDATE urls
            SET click_count = click_count + 1, updated_at = CURRENT_TIMESTAMP
            WHERE short_code = %s
            RETURNING {RECORD_COLUMNS}
            """,
            (short_code,)
        )
        return _to_record(row)

    def delete(self, short_code):
        with self.pool.connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute("DELETE FROM urls WHERE short_code = %s", (short_code,))
                return cursor.rowcount > 0

    def get_by_date_range(self, start, end):
        rows = self._fetch_all(
            f"""
            SELECT {RECORD_COLUMNS} FROM urls
            WHERE created_at >= %s AND created_at <= %s
            ORDER BY created_at DESC, id DESC
            """,
            (start, end)
        )
        return [_to_record(row) for row in rows]

    def get_top_by_clicks(self, limit=10):
        rows = self._fetch_all(
            f"""
            SELECT {RECORD_COLUMNS} FROM urls
            ORDER BY click_count DESC, created_at DESC
            LIMIT %s
            """,
            (limit,)
        )
        return [_to_record(row) for row in rows]

    def aggregate_stats(self):
        row = self._fetch_one("""
            SELECT
              COUNT(*) AS total_urls,
              COALESCE(SUM(click_count), 0) AS total_clicks,
              COALESCE(AVG(click_count), 0) AS avg_clicks_per_url,
              COUNT(CASE WHEN DATE(created_at) = CURRENT_DATE THEN 1 END) AS urls_created_today
            FROM urls
        """)
        return {
            "totalUrls": int(row["total_urls"]),
            "totalClicks": int(row["total_clicks"]),
            "avgClicksPerUrl": float(row["avg_clicks_per_url"]),
            "urlsCreatedToday": int(row["urls_created_today"]),
        }

    def health_check(self):
        try:
            self._fetch_one("SELECT 1 AS ok")
            return True
        except StoreUnavailableError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self):
        self.pool.close()
