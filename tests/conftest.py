import os

# Never reach for a real database or Redis from the test-suite
os.environ["STORE_BACKEND"] = "memory"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"

import pytest
from fastapi.testclient import TestClient

from app.cache.rate_limiter import RateLimiter
from app.database.memory_db import InMemoryUrlStore
from app.services.url_service import UrlShortener
from main import create_app


@pytest.fixture
def store():
    return InMemoryUrlStore()


@pytest.fixture
def shortener(store):
    return UrlShortener(store)


@pytest.fixture
def rate_limiter():
    return RateLimiter(max_requests=1000, window_seconds=60)


@pytest.fixture
def app(store, rate_limiter, monkeypatch):
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)
    return create_app(store=store, rate_limiter=rate_limiter)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
