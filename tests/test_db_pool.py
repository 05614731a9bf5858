from datetime import datetime, timezone
from unittest.mock import MagicMock

import psycopg2
import psycopg2.errors
import pytest

from app.database import db
from app.database.db import ConnectionPool
from app.database.url_db import PostgresUrlStore
from app.services.errors import ConflictError, StoreUnavailableError


class FakeConnect:
    """Replaces psycopg2.connect and remembers every connection it opened"""

    def __init__(self):
        self.created = []
        self.params = []

    def __call__(self, **params):
        conn = MagicMock(name=f"conn{len(self.created)}")
        self.created.append(conn)
        self.params.append(params)
        return conn

    def closed(self):
        return [c for c in self.created if c.close.called]


@pytest.fixture
def connect(monkeypatch):
    fake = FakeConnect()
    monkeypatch.setattr(psycopg2, "connect", fake)
    return fake


def make_pool(**kwargs):
    kwargs.setdefault("db_params", {"dbname": "test"})
    return ConnectionPool(**kwargs)


def test_nothing_connects_until_first_use(connect):
    make_pool()
    assert connect.created == []


def test_timeouts_passed_to_psycopg2(connect):
    pool = make_pool(connection_timeout_ms=2500, statement_timeout_ms=7000)

    with pool.connection():
        pass

    assert connect.params[0]["dbname"] == "test"
    assert connect.params[0]["connect_timeout"] == 3
    assert connect.params[0]["options"] == "-c statement_timeout=7000"


def test_sequential_borrows_reuse_one_connection(connect):
    pool = make_pool(max_connections=5)

    for _ in range(50):
        with pool.connection():
            pass

    assert len(connect.created) == 1
    assert connect.closed() == []
    assert connect.created[0].commit.call_count == 50
    assert pool.in_use() == 0


def test_concurrent_borrows_stay_within_pool_size(connect):
    pool = make_pool(max_connections=2, connection_timeout_ms=50)

    with pool.connection() as first:
        with pool.connection() as second:
            assert first is not second
            with pytest.raises(StoreUnavailableError, match="Timed out"):
                with pool.connection():
                    pass

    assert len(connect.created) == 2
    assert pool.size() == 2
    assert pool.in_use() == 0


def test_query_error_rolls_back_and_releases(connect):
    pool = make_pool(max_connections=1, connection_timeout_ms=50)

    with pytest.raises(StoreUnavailableError, match="query failed"):
        with pool.connection():
            raise psycopg2.OperationalError("server closed the connection")

    conn = connect.created[0]
    conn.rollback.assert_called()
    conn.commit.assert_not_called()
    assert pool.in_use() == 0

    # the only slot is free again
    with pool.connection():
        pass
    assert len(connect.created) == 1


def test_unique_violation_becomes_conflict(connect):
    pool = make_pool()

    with pytest.raises(ConflictError):
        with pool.connection():
            raise psycopg2.errors.UniqueViolation("duplicate key value")

    assert pool.in_use() == 0


def test_failed_rollback_discards_connection(connect):
    pool = make_pool()

    with pytest.raises(StoreUnavailableError):
        with pool.connection():
            connect.created[0].rollback.side_effect = psycopg2.InterfaceError("connection already closed")
            raise psycopg2.OperationalError("terminating connection")

    assert connect.created[0] in connect.closed()

    with pool.connection():
        pass
    assert len(connect.created) == 2


def test_connect_failure_is_store_unavailable(monkeypatch):
    def refuse(**params):
        raise psycopg2.OperationalError("could not connect to server")

    monkeypatch.setattr(psycopg2, "connect", refuse)
    pool = make_pool(max_connections=1)

    with pytest.raises(StoreUnavailableError, match="connection failed"):
        with pool.connection():
            pass

    assert pool.in_use() == 0


def test_idle_connections_are_replaced(connect, monkeypatch):
    clock = [100.0]
    monkeypatch.setattr(db.time, "monotonic", lambda: clock[0])
    pool = make_pool(idle_timeout_ms=1000)

    with pool.connection():
        pass
    clock[0] += 0.5
    with pool.connection():
        pass
    assert len(connect.created) == 1

    clock[0] += 5
    with pool.connection():
        pass

    assert len(connect.created) == 2
    assert connect.created[0] in connect.closed()

    # the replacement starts with a fresh idle timer
    with pool.connection():
        pass
    assert len(connect.created) == 2


def test_closed_pool_refuses(connect):
    pool = make_pool()
    with pool.connection():
        pass

    pool.close()

    assert connect.created[0] in connect.closed()
    with pytest.raises(StoreUnavailableError):
        with pool.connection():
            pass


def test_store_operations_share_pooled_connections(connect):
    pool = make_pool(max_connections=3, connection_timeout_ms=50)
    store = PostgresUrlStore(pool)
    row = {
        "id": 1,
        "original_url": "https://example.com",
        "short_code": "abc123",
        "created_at": datetime(2024, 5, 1, tzinfo=timezone.utc),
        "click_count": 0,
    }

    assert store.health_check() is True
    cursor = connect.created[0].cursor.return_value.__enter__.return_value
    cursor.fetchone.return_value = row

    assert store.create("https://example.com", "abc123").short_code == "abc123"
    assert store.get_by_code("abc123").id == 1

    cursor.execute.side_effect = psycopg2.OperationalError("canceling statement due to statement timeout")
    with pytest.raises(StoreUnavailableError):
        store.increment_clicks("abc123")
    assert store.health_check() is False

    cursor.execute.side_effect = None
    row["click_count"] = 1
    assert store.increment_clicks("abc123").click_count == 1
    assert store.health_check() is True

    assert len(connect.created) == 1
    assert pool.in_use() == 0
