from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from app.models.url_schemas import ShortenRequest
from app.services.errors import NotFoundError
from app.services.url_service import build_short_url
from app.cache.rate_limiter import enforce_rate_limit
from app.config import get_public_base_url
import logging

# Setup logging
logger = logging.getLogger(__name__)

# JSON API, rate limited per client
router = APIRouter(prefix="/api", dependencies=[Depends(enforce_rate_limit)])

# Short code redirects, registered last so they never shadow other routes
redirect_router = APIRouter()

NOT_FOUND_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>404 - URL Not Found</title>
    <style>
        body { font-family: Arial, sans-serif; text-align: center; margin-top: 100px; }
        .error-container { max-width: 500px; margin: 0 auto; }
        h1 { color: #e74c3c; }
        p { color: #7f8c8d; margin: 20px 0; }
        .back-link { color: #3498db; text-decoration: none; }
    </style>
</head>
<body>
    <div class="error-container">
        <h1>404 - URL Not Found</h1>
        <p>The short URL you're looking for doesn't exist or has been removed.</p>
        <p><a href="/" class="back-link">&larr; Go back to home</a></p>
    </div>
</body>
</html>
"""


def get_shortener(request: Request):
    """The UrlShortener the app was built with"""
    return request.app.state.shortener


def get_base_url(request: Request):
    # PUBLIC_BASE_URL wins over whatever host the request came in on
    return get_public_base_url() or str(request.base_url)


def _as_utc(value):
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@router.get("")
def api_index():
    """List the available endpoints"""
    return {
        "name": "URL Shortener API",
        "version": "1.0.0",
        "endpoints": {
            "POST /api/shorten": "Create a short URL",
            "GET /api/urls": "Get all URLs",
            "GET /api/urls/range": "Get URLs created between two timestamps",
            "GET /api/top": "Get the most clicked URLs",
            "GET /api/stats": "Get overall statistics",
            "GET /api/stats/{shortCode}": "Get URL statistics",
            "DELETE /api/urls/{shortCode}": "Delete a URL",
            "GET /{shortCode}": "Redirect to original URL",
        },
    }


@router.post("/shorten", status_code=201)
def create_short_url(payload: ShortenRequest, request: Request, shortener=Depends(get_shortener)):
    """Create a short URL, optionally with a custom code"""
    record = shortener.shorten(payload.url, payload.custom_code)
    short_url = build_short_url(get_base_url(request), record.short_code)

    data = record.to_api(short_url)
    # Creation response does not repeat the click count
    data.pop("clickCount")
    return {"success": True, "data": data}


@router.get("/urls")
def list_urls(
        request: Request,
        page: Optional[str] = Query(None, description="Page number (default 1)"),
        limit: Optional[str] = Query(None, description="Items per page (default 50)"),
        shortener=Depends(get_shortener),
):
    """Get all URLs, newest first. Bad page or limit values fall back to the defaults"""
    records, pagination = shortener.list_urls(page=page, limit=limit)
    base_url = get_base_url(request)

    return {
        "success": True,
        "data": [r.to_api(build_short_url(base_url, r.short_code)) for r in records],
        "pagination": pagination,
        "message": f"Found {pagination['total']} URLs (showing page {pagination['page']})",
    }


@router.get("/urls/range")
def list_urls_in_range(
        request: Request,
        start: datetime = Query(..., description="Earliest creation time (ISO 8601)"),
        end: datetime = Query(..., description="Latest creation time (ISO 8601)"),
        shortener=Depends(get_shortener),
):
    """Get URLs created between start and end, newest first"""
    records = shortener.urls_between(_as_utc(start), _as_utc(end))
    base_url = get_base_url(request)
    return {
        "success": True,
        "data": [r.to_api(build_short_url(base_url, r.short_code)) for r in records],
    }


@router.delete("/urls/{short_code}")
def delete_url(short_code: str, shortener=Depends(get_shortener)):
    """Delete a URL by its short code"""
    shortener.delete(short_code)
    return {"success": True, "message": "URL deleted successfully"}


@router.get("/top")
def top_urls(
        request: Request,
        limit: int = Query(10, ge=1, le=100, description="Number of URLs"),
        shortener=Depends(get_shortener),
):
    """Get the most clicked URLs"""
    base_url = get_base_url(request)
    return {
        "success": True,
        "data": [r.to_api(build_short_url(base_url, r.short_code)) for r in shortener.top_urls(limit)],
    }


@router.get("/stats")
def overall_stats(shortener=Depends(get_shortener)):
    """Get totals across all URLs"""
    return {"success": True, "data": shortener.summary()}


@router.get("/stats/{short_code}")
def url_stats(short_code: str, request: Request, shortener=Depends(get_shortener)):
    """Get information about a short URL"""
    record = shortener.get_stats(short_code)
    return {
        "success": True,
        "data": record.to_api(build_short_url(get_base_url(request), record.short_code)),
    }


# Endpoint to redirect to the original URL
@redirect_router.get("/{short_code}", include_in_schema=False)
def redirect_to_url(short_code: str, shortener=Depends(get_shortener)):
    """Redirect from short code to original URL, counting the click"""
    try:
        record = shortener.resolve(short_code)
    except NotFoundError:
        return HTMLResponse(content=NOT_FOUND_PAGE, status_code=404)

    return RedirectResponse(url=record.original_url, status_code=301)
