"""Collaborator protocols the coordination core depends on.

The durable store is the source of truth for bookings and partners; every
method that mutates a record is a single conditional update which reports
whether it matched. The coordination store is authoritative only for lock
existence, rate-limit windows and pub/sub.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from fieldops.models.booking import Booking, BookingStatus, DocumentStatus, DocumentType
from fieldops.models.geo import GeoPoint
from fieldops.models.partner import LocationPing, Partner, PartnerCandidate


class BookingStore(Protocol):
    async def get_booking(self, booking_id: str) -> Optional[Booking]: ...

    async def list_bookings(
        self,
        *,
        status: Optional[str] = None,
        partner_id: Optional[str] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> Tuple[List[Booking], int]: ...

    async def assign_partner(
        self,
        booking_id: str,
        *,
        partner_id: str,
        actor_id: str,
        assigned_at: datetime,
        status: BookingStatus,
    ) -> bool:
        """Attach a partner if the booking is still assignable."""

    async def review_document(
        self,
        booking_id: str,
        document_type: DocumentType,
        *,
        decision: DocumentStatus,
        reviewer_id: str,
        reviewed_at: datetime,
        rejection_reason: Optional[str] = None,
    ) -> bool:
        """Decide a pending document and move the booking under review."""

    async def confirm_booking(self, booking_id: str, *, actor_id: str, confirmed_at: datetime) -> bool:
        """Confirm a non-terminal booking with a partner and only approved documents."""


class PartnerStore(Protocol):
    async def get_partner(self, partner_id: str) -> Optional[Partner]: ...

    async def list_partners(
        self,
        *,
        status: Optional[str] = None,
        city: Optional[str] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> Tuple[List[Partner], int]: ...

    async def find_nearest_available(
        self,
        point: GeoPoint,
        *,
        city: str,
        max_distance_meters: float,
        limit: int,
    ) -> List[PartnerCandidate]:
        """Online, unassigned partners in ``city`` ordered by (distance, id)."""

    async def claim_partner(self, partner_id: str, booking_id: str, *, claimed_at: datetime) -> bool:
        """Mark an available partner busy with ``booking_id``."""

    async def release_partner(self, partner_id: str, booking_id: str, *, released_at: datetime) -> bool: ...

    async def increment_deliveries(self, partner_id: str, *, updated_at: datetime) -> bool: ...

    async def record_location(self, partner_id: str, ping: LocationPing, *, history_limit: int) -> bool:
        """Set the current position and append to the bounded history."""


@dataclass(frozen=True)
class WindowSnapshot:
    """Outcome of one atomic sliding-window step."""

    admitted: bool
    count: int
    oldest_ms: Optional[int]


class CoordinationStore(Protocol):
    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool: ...

    async def delete_if_equals(self, key: str, value: str) -> bool: ...

    async def exists(self, key: str) -> bool: ...

    async def sliding_window_admit(
        self,
        key: str,
        *,
        now_ms: int,
        window_ms: int,
        limit: int,
        member: str,
    ) -> WindowSnapshot:
        """Trim expired entries, count, and insert ``member`` if under ``limit``."""

    async def sliding_window_count(self, key: str, *, now_ms: int, window_ms: int) -> WindowSnapshot: ...

    async def publish(self, channel: str, message: str) -> int: ...

    async def ping(self) -> bool: ...
