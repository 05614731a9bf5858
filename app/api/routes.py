import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

# Service-level endpoints that are not rate limited
router = APIRouter(tags=["System"])

STARTED_AT = time.monotonic()


# Health check (useful for uptime monitors & load balancers)
@router.get("/health")
def health(request: Request):
    """Report liveness and whether the store is reachable"""
    database_ok = request.app.state.shortener.health()
    body = {
        "status": "healthy" if database_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "database": "ok" if database_ok else "unavailable",
    }
    return JSONResponse(content=body, status_code=200 if database_ok else 503)
