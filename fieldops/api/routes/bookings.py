"""Booking workflow endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from fieldops.api.dependencies import get_services
from fieldops.api.schemas import (
    ApiResponse,
    AssignPartnerRequest,
    ConfirmBookingRequest,
    Page,
    ReviewDocumentRequest,
)
from fieldops.core.container import ServiceContainer
from fieldops.models.booking import Booking
from fieldops.models.results import AssignmentResult, ConfirmationResult, ReviewResult

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("", response_model=ApiResponse[Page[Booking]], response_model_by_alias=True)
async def list_bookings(
    status: Optional[str] = None,
    partner_id: Optional[str] = Query(None, alias="partnerId"),
    limit: int = Query(50, ge=1, le=500),
    skip: int = Query(0, ge=0),
    services: ServiceContainer = Depends(get_services),
) -> ApiResponse[Page[Booking]]:
    """List bookings, newest first."""

    items, total = await services.bookings.list_bookings(status=status, partner_id=partner_id, limit=limit, skip=skip)
    return ApiResponse(data=Page(items=items, total=total, limit=limit, skip=skip))


@router.post("/assign", response_model=ApiResponse[AssignmentResult], response_model_by_alias=True)
async def assign_partner(
    body: AssignPartnerRequest,
    services: ServiceContainer = Depends(get_services),
) -> ApiResponse[AssignmentResult]:
    """Assign the nearest available partner to a booking."""

    result = await services.assignment.assign_nearest_partner(body.booking_id, body.admin_id)
    return ApiResponse(data=result, message="Partner assigned successfully")


@router.post("/review", response_model=ApiResponse[ReviewResult], response_model_by_alias=True)
async def review_document(
    body: ReviewDocumentRequest,
    services: ServiceContainer = Depends(get_services),
) -> ApiResponse[ReviewResult]:
    result = await services.review.review_document(
        body.booking_id,
        body.document_type,
        body.status,
        body.reviewer_id,
        body.rejection_reason,
    )
    return ApiResponse(
        data=result,
        message=f"Document '{result.document_type.value}' {result.status.value} successfully",
    )


@router.post("/confirm", response_model=ApiResponse[ConfirmationResult], response_model_by_alias=True)
async def confirm_booking(
    body: ConfirmBookingRequest,
    services: ServiceContainer = Depends(get_services),
) -> ApiResponse[ConfirmationResult]:
    result = await services.review.confirm_booking(body.booking_id, body.admin_id)
    return ApiResponse(data=result, message="Booking confirmed successfully")
