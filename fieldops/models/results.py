from __future__ import annotations

from datetime import datetime
from typing import Optional

from fieldops.models.base import CamelModel
from fieldops.models.booking import BookingStatus, DocumentStatus, DocumentType
from fieldops.models.geo import GeoPoint


class RateLimitResult(CamelModel):
    allowed: bool
    limit: int
    remaining: int
    reset_in_seconds: int
    degraded: bool = False


class RateLimitStatus(CamelModel):
    count: int
    limit: int
    remaining: int
    reset_in_seconds: int


class AssignmentResult(CamelModel):
    booking_id: str
    partner_id: str
    partner_name: str
    distance_meters: int
    booking_status: BookingStatus
    assigned_at: datetime
    assigned_by: str


class ReviewResult(CamelModel):
    booking_id: str
    document_type: DocumentType
    status: DocumentStatus
    reviewed_by: str
    reviewed_at: datetime
    rejection_reason: Optional[str] = None


class ConfirmationResult(CamelModel):
    booking_id: str
    partner_id: str
    confirmed_at: datetime
    confirmed_by: str
    delivery_recorded: bool = True


class LocationResult(CamelModel):
    partner_id: str
    accepted: bool
    coordinates: GeoPoint
    timestamp: datetime
    rate_limit: RateLimitResult
