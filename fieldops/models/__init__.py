from .booking import (
    Address,
    Booking,
    BookingStatus,
    Document,
    DocumentStatus,
    DocumentType,
    UserInfo,
)
from .events import (
    BookingAssignedEvent,
    BookingConfirmedEvent,
    DocumentReviewedEvent,
    DomainEvent,
    PartnerLocationUpdatedEvent,
)
from .geo import GeoPoint
from .partner import LocationPing, Partner, PartnerCandidate, PartnerStatus
from .results import (
    AssignmentResult,
    ConfirmationResult,
    LocationResult,
    RateLimitResult,
    RateLimitStatus,
    ReviewResult,
)

__all__ = [
    "Address",
    "AssignmentResult",
    "Booking",
    "BookingAssignedEvent",
    "BookingConfirmedEvent",
    "BookingStatus",
    "ConfirmationResult",
    "Document",
    "DocumentReviewedEvent",
    "DocumentStatus",
    "DocumentType",
    "DomainEvent",
    "GeoPoint",
    "LocationPing",
    "LocationResult",
    "Partner",
    "PartnerCandidate",
    "PartnerLocationUpdatedEvent",
    "PartnerStatus",
    "RateLimitResult",
    "RateLimitStatus",
    "ReviewResult",
    "UserInfo",
]
