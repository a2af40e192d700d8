"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks. Readiness
verifies Redis (dedup store) and the document tree the pipeline writes to.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.meeting_sync.config import get_settings
from src.meeting_sync.core.redis import get_redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


async def _check_dependencies(request: Request) -> dict:
    """Check Redis connectivity and the document root. Returns check results dict."""
    checks: dict = {"redis": "ok", "document_tree": "ok", "llm": "ok"}

    try:
        redis = getattr(request.app.state, "redis", None) or get_redis_pool()
        pong = await redis.ping()
        if not pong:
            checks["redis"] = "error"
            checks["redis_error"] = "PING did not return PONG"
    except Exception as e:
        checks["redis"] = "error"
        checks["redis_error"] = str(e)

    settings = get_settings()
    root = getattr(request.app.state, "document_root", None) or settings.document_root
    if not Path(root).is_dir():
        checks["document_tree"] = "error"
        checks["document_tree_error"] = f"Not a directory: {root}"

    if not settings.ANTHROPIC_API_KEY:
        checks["llm"] = "no_keys"

    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: Redis and document tree must be available.

    Returns 200 if both pass, 503 otherwise.
    """
    checks = await _check_dependencies(request)
    all_healthy = (
        checks.get("redis") == "ok"
        and checks.get("document_tree") == "ok"
        and checks.get("llm") in ("ok", "no_keys")
    )

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
