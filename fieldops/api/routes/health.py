"""Health and metrics endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from fieldops.api.dependencies import get_database
from fieldops.core.database import DatabaseManager

router = APIRouter(tags=["health"])


@router.get("/health")
async def healthcheck(request: Request, database: DatabaseManager = Depends(get_database)) -> Dict[str, Any]:
    """Liveness probe with store reachability."""

    settings = request.app.state.settings
    stores = await database.health_check()
    return {
        "status": "ok" if all(stores.values()) else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
        "stores": stores,
        "policies": {
            "locks": settings.LOCK_FAILURE_POLICY.value,
            "rateLimit": settings.RATE_LIMIT_FAILURE_POLICY.value,
        },
    }


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
