from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from app.api.error_handlers import register_exception_handlers
from app.api.routes import router as system_router
from app.api.url_routes import router as url_router, redirect_router
from app.cache.rate_limiter import RateLimiter
from app.config import get_short_code_length, get_store_backend
from app.database.memory_db import InMemoryUrlStore
from app.database.url_db import PostgresUrlStore
from app.services.url_service import UrlShortener

# --- Logging ---
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger(__name__)


def build_store():
    """Pick the store named by STORE_BACKEND"""
    backend = get_store_backend()
    if backend == "memory":
        logger.warning("Using in-memory store, records are lost on restart")
        return InMemoryUrlStore()
    if backend == "postgres":
        return PostgresUrlStore.from_env()
    raise EnvironmentError(f"Unknown STORE_BACKEND: {backend}")


def create_app(store=None, rate_limiter=None):
    """Build the FastAPI application.

    Args:
        store: UrlStore to use; built from the environment when omitted
        rate_limiter: RateLimiter for /api routes; built from the environment when omitted

    Returns:
        FastAPI: The configured application
    """
    store = store if store is not None else build_store()
    rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter.from_env()

    @asynccontextmanager
    async def lifespan(app):
        # Create the table when the app starts
        if isinstance(store, PostgresUrlStore):
            store.init_schema()
        logger.info("URL Shortener API ready")
        yield
        store.close()
        logger.info("URL Shortener API shut down")

    # API docs live under /api so /docs and /redoc stay free for short codes
    app = FastAPI(
        title="URL Shortener",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url=None,
        openapi_url="/api/openapi.json",
    )
    app.state.store = store
    app.state.shortener = UrlShortener(store, code_length=get_short_code_length())
    app.state.limiter = rate_limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(system_router)
    app.include_router(url_router)
    # Redirect route must be last to avoid conflicts
    app.include_router(redirect_router)

    return app


app = create_app()


# Run the application
if __name__ == "__main__":

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.environ.get("PORT", 3000)))
