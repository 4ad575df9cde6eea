"""Domain events broadcast after successful state transitions."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from pydantic import ConfigDict

from fieldops.models.base import CamelModel
from fieldops.models.booking import DocumentStatus, DocumentType
from fieldops.models.geo import GeoPoint
from fieldops.orchestration import keys


class DomainEvent(CamelModel):
    model_config = ConfigDict(frozen=True)

    channel: ClassVar[str]

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class BookingAssignedEvent(DomainEvent):
    channel: ClassVar[str] = keys.BOOKING_ASSIGNED_CHANNEL

    booking_id: str
    partner_id: str
    assigned_at: datetime
    assigned_by: str


class DocumentReviewedEvent(DomainEvent):
    channel: ClassVar[str] = keys.DOCUMENT_REVIEWED_CHANNEL

    booking_id: str
    document_type: DocumentType
    status: DocumentStatus
    reviewed_by: str
    reviewed_at: datetime


class BookingConfirmedEvent(DomainEvent):
    channel: ClassVar[str] = keys.BOOKING_CONFIRMED_CHANNEL

    booking_id: str
    partner_id: str
    confirmed_at: datetime
    confirmed_by: str


class PartnerLocationUpdatedEvent(DomainEvent):
    channel: ClassVar[str] = keys.PARTNER_GPS_UPDATE_CHANNEL

    partner_id: str
    booking_id: Optional[str] = None
    coordinates: GeoPoint
    timestamp: datetime
    speed: Optional[float] = None
    accuracy: Optional[float] = None


EVENT_TYPES = {
    event_type.channel: event_type
    for event_type in (
        BookingAssignedEvent,
        DocumentReviewedEvent,
        BookingConfirmedEvent,
        PartnerLocationUpdatedEvent,
    )
}


def decode_event(channel: str, payload: str | bytes) -> DomainEvent:
    """Rebuild a typed event from a channel name and its JSON payload."""

    try:
        event_type = EVENT_TYPES[channel]
    except KeyError as exc:
        raise ValueError(f"Unknown event channel: {channel}") from exc
    return event_type.model_validate_json(payload)
