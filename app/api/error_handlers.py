"""
Turn service errors into the API's JSON envelope.

Every failure response has the shape {"success": false, "error": "..."}.
Unexpected exceptions become a generic 500; outside production the stack
trace is included to help debugging.
"""

import logging
import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.cache.rate_limiter import RateLimitExceeded
from app.config import is_production
from app.services.errors import ShortenerError

# Setup logging
logger = logging.getLogger(__name__)


def error_response(status_code, message, **extra):
    body = {"success": False, "error": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


async def shortener_error_handler(request: Request, exc: ShortenerError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return error_response(400, message)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.url.path} not found"
    return error_response(exc.status_code, message)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    response = error_response(
        429,
        "Too many requests. Please try again later.",
        retryAfter=exc.retry_after,
    )
    response.headers["Retry-After"] = str(exc.retry_after)
    return response


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    extra = {}
    if not is_production():
        extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return error_response(500, "Internal server error", **extra)


def register_exception_handlers(app):
    app.add_exception_handler(ShortenerError, shortener_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
