"""
PostgreSQL connection pooling.

psycopg2 connections are held in a SQLAlchemy QueuePool: a fixed number of
connections that are reused between queries. Callers wait (up to a timeout)
for a free connection when all of them are busy, connections left idle too
long are replaced on checkout, and every connection is handed back even
when a query fails.
"""

import logging
import math
import time
from contextlib import contextmanager

import psycopg2
import psycopg2.errors
from sqlalchemy import event, exc as sa_exc
from sqlalchemy.pool import QueuePool

from app.config import get_db_params, get_pool_settings
from app.services.errors import ConflictError, StoreUnavailableError

# Setup logging
logger = logging.getLogger(__name__)

LAST_USED_KEY = "last_used"


class ConnectionPool:
    """Bounded pool of psycopg2 connections.

    Args:
        db_params: Connection keyword arguments for psycopg2.connect
        max_connections: Most connections open at once (default: 20)
        idle_timeout_ms: Connections unused for longer are replaced on checkout
        connection_timeout_ms: How long to wait for a free connection or a new one
        statement_timeout_ms: Server-side limit for each query
    """

    def __init__(self, db_params=None, max_connections=20, idle_timeout_ms=30000,
                 connection_timeout_ms=2000, statement_timeout_ms=10000):
        params = dict(db_params or get_db_params())
        # psycopg2 only takes whole seconds here
        params["connect_timeout"] = max(1, math.ceil(connection_timeout_ms / 1000))
        params["options"] = f"-c statement_timeout={int(statement_timeout_ms)}"
        self._params = params

        self.max_connections = max_connections
        self.idle_timeout = idle_timeout_ms / 1000
        self.connection_timeout = connection_timeout_ms / 1000

        # Nothing connects until the first query
        self._pool = QueuePool(
            self._connect,
            pool_size=max_connections,
            max_overflow=0,
            timeout=self.connection_timeout,
        )
        event.listen(self._pool, "checkout", self._on_checkout)
        event.listen(self._pool, "checkin", self._on_checkin)
        self._closed = False

    @classmethod
    def from_env(cls):
        """Build a pool from the DB_* environment variables"""
        return cls(get_db_params(), **get_pool_settings())

    def _connect(self):
        return psycopg2.connect(**self._params)

    def _on_checkout(self, dbapi_connection, connection_record, connection_proxy):
        last_used = connection_record.info.pop(LAST_USED_KEY, None)
        if last_used is not None and time.monotonic() - last_used > self.idle_timeout:
            logger.debug("Replacing idle database connection")
            # The pool closes this connection and opens a fresh one
            raise sa_exc.DisconnectionError("Connection idle past DB_IDLE_TIMEOUT")

    def _on_checkin(self, dbapi_connection, connection_record):
        if dbapi_connection is not None:
            connection_record.info[LAST_USED_KEY] = time.monotonic()

    def size(self):
        """Connections currently open, busy or idle"""
        return self._pool.checkedin() + self._pool.checkedout()

    def in_use(self):
        return self._pool.checkedout()

    @contextmanager
    def connection(self):
        """Borrow a connection for the duration of a with block.

        Commits when the block finishes and rolls back when it raises.
        psycopg2 errors come out as ConflictError (unique violations) or
        StoreUnavailableError (everything else).
        """
        if self._closed:
            raise StoreUnavailableError("Database pool is closed")

        try:
            conn = self._pool.connect()
        except sa_exc.TimeoutError as e:
            logger.error(f"Timed out after {self.connection_timeout}s waiting for a database connection")
            raise StoreUnavailableError("Timed out waiting for a database connection") from e
        except psycopg2.Error as e:
            logger.error(f"Could not connect to the database: {e}")
            raise StoreUnavailableError("Database connection failed") from e

        try:
            yield conn
            conn.commit()
        except psycopg2.errors.UniqueViolation as e:
            self._rollback(conn)
            raise ConflictError("Short code already exists") from e
        except psycopg2.Error as e:
            self._rollback(conn)
            logger.error(f"Database query failed: {e}")
            raise StoreUnavailableError("Database query failed") from e
        except Exception:
            self._rollback(conn)
            raise
        finally:
            # Back to the pool, or discarded if invalidated above
            conn.close()

    def _rollback(self, conn):
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed, dropping connection: {e}")
            conn.invalidate(e)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._pool.dispose()
        logger.info("Database pool closed")

# Create our table when the app starts
def init_db(pool):
    with pool.connection() as conn:
        with conn.cursor() as cursor:
            # Create table if it doesn't exist
            cursor.execute("""
                           CREATE TABLE IF NOT EXISTS urls (
                    id SERIAL PRIMARY KEY,
                    original_url VARCHAR(2048) NOT NULL,
                    short_code VARCHAR(50) UNIQUE NOT NULL,
                    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                    click_count INTEGER NOT NULL DEFAULT 0,
                    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                )
                           """)

            # Add indexes for lookups and newest-first listing
            cursor.execute("""
                           CREATE INDEX IF NOT EXISTS idx_urls_short_code ON urls (short_code)
                           """)

            cursor.execute("""
                           CREATE INDEX IF NOT EXISTS idx_urls_created_at ON urls (created_at DESC)
                           """)

    logger.info("Database initialized successfully")
