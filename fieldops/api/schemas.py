"""Request and response envelopes for the HTTP layer.

Request fields are loosely typed on purpose: the workflows validate them and
raise `ValidationError`, so malformed input produces the same error shape
whether it arrives over HTTP or from another caller.
"""

from __future__ import annotations

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from fieldops.models.base import CamelModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class Page(CamelModel, Generic[T]):
    items: List[T]
    total: int
    limit: int
    skip: int


class AssignPartnerRequest(CamelModel):
    booking_id: Optional[str] = None
    admin_id: Optional[str] = None


class ReviewDocumentRequest(CamelModel):
    booking_id: Optional[str] = None
    document_type: Optional[str] = None
    status: Optional[str] = None
    reviewer_id: Optional[str] = None
    rejection_reason: Optional[str] = None


class ConfirmBookingRequest(CamelModel):
    booking_id: Optional[str] = None
    admin_id: Optional[str] = None


class LocationUpdateRequest(CamelModel):
    coordinates: Any = None
    speed: Any = None
    accuracy: Any = None
