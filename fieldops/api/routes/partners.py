"""Partner listing and location ingestion endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from fieldops.api.dependencies import get_services
from fieldops.api.schemas import ApiResponse, LocationUpdateRequest, Page
from fieldops.core.container import ServiceContainer
from fieldops.models.partner import Partner
from fieldops.models.results import LocationResult, RateLimitStatus
from fieldops.orchestration import keys
from fieldops.utils.validators import require_object_id

router = APIRouter(prefix="/partners", tags=["partners"])


@router.get("", response_model=ApiResponse[Page[Partner]], response_model_by_alias=True)
async def list_partners(
    status: Optional[str] = None,
    city: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    skip: int = Query(0, ge=0),
    services: ServiceContainer = Depends(get_services),
) -> ApiResponse[Page[Partner]]:
    items, total = await services.partners.list_partners(status=status, city=city, limit=limit, skip=skip)
    return ApiResponse(data=Page(items=items, total=total, limit=limit, skip=skip))


@router.post("/{partner_id}/gps", response_model=ApiResponse[LocationResult], response_model_by_alias=True)
async def record_location(
    partner_id: str,
    body: LocationUpdateRequest,
    response: Response,
    services: ServiceContainer = Depends(get_services),
) -> ApiResponse[LocationResult]:
    """Record a GPS ping; limited per partner over a sliding window."""

    result = await services.location.record_location(partner_id, body.coordinates, body.speed, body.accuracy)
    quota = result.rate_limit
    response.headers["X-RateLimit-Limit"] = str(quota.limit)
    response.headers["X-RateLimit-Remaining"] = str(quota.remaining)
    response.headers["X-RateLimit-Reset"] = str(quota.reset_in_seconds)
    return ApiResponse(data=result, message="GPS location updated successfully")


@router.get("/{partner_id}/gps/quota", response_model=ApiResponse[RateLimitStatus], response_model_by_alias=True)
async def location_quota(
    partner_id: str,
    services: ServiceContainer = Depends(get_services),
) -> ApiResponse[RateLimitStatus]:
    partner_id = require_object_id(partner_id, "partnerId")
    status = await services.limiter.status(
        keys.gps_rate_limit(partner_id),
        services.location.rate_limit,
        services.location.window_seconds,
    )
    return ApiResponse(data=status)
