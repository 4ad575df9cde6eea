"""In-process store implementations.

Used for local development (``STORE_BACKEND=memory`` /
``COORDINATION_BACKEND=memory``) and by the test suite. Each mutating method
runs without yielding to the event loop, which makes it atomic with respect
to other coroutines in the same process.
"""

from __future__ import annotations

import bisect
import logging
import time
from copy import deepcopy
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from fieldops.models.booking import (
    ASSIGNABLE_BOOKING_STATUSES,
    TERMINAL_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    DocumentStatus,
    DocumentType,
)
from fieldops.models.geo import GeoPoint
from fieldops.models.partner import LocationPing, Partner, PartnerCandidate, PartnerStatus
from fieldops.stores.base import WindowSnapshot
from fieldops.utils.geo import haversine_meters

logger = logging.getLogger(__name__)


def _page(items: list, limit: int, skip: int) -> list:
    return items[skip : skip + limit]


class MemoryBookingStore:
    def __init__(self) -> None:
        self._bookings: Dict[str, Booking] = {}

    def add(self, booking: Booking) -> Booking:
        self._bookings[booking.id] = booking.model_copy(deep=True)
        return booking

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    async def list_bookings(
        self,
        *,
        status: Optional[str] = None,
        partner_id: Optional[str] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> Tuple[List[Booking], int]:
        matches = [
            booking
            for booking in self._bookings.values()
            if (status is None or booking.status.value == status)
            and (partner_id is None or booking.partner_id == partner_id)
        ]
        matches.sort(key=lambda booking: booking.created_at, reverse=True)
        return [b.model_copy(deep=True) for b in _page(matches, limit, skip)], len(matches)

    async def assign_partner(
        self,
        booking_id: str,
        *,
        partner_id: str,
        actor_id: str,
        assigned_at: datetime,
        status: BookingStatus,
    ) -> bool:
        booking = self._bookings.get(booking_id)
        if booking is None or booking.partner_id is not None or booking.status not in ASSIGNABLE_BOOKING_STATUSES:
            return False
        booking.partner_id = partner_id
        booking.partner_assigned_by = actor_id
        booking.partner_assigned_at = assigned_at
        booking.status = status
        booking.updated_at = assigned_at
        return True

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
        booking = self._bookings.get(booking_id)
        if booking is None or booking.status in TERMINAL_BOOKING_STATUSES:
            return False
        document = booking.document(document_type)
        if document is None or document.status is not DocumentStatus.PENDING:
            return False
        document.status = decision
        document.reviewed_by = reviewer_id
        document.reviewed_at = reviewed_at
        if decision is DocumentStatus.REJECTED:
            document.rejection_reason = rejection_reason
        booking.status = BookingStatus.DOCUMENTS_UNDER_REVIEW
        booking.updated_at = reviewed_at
        return True

    async def confirm_booking(self, booking_id: str, *, actor_id: str, confirmed_at: datetime) -> bool:
        booking = self._bookings.get(booking_id)
        if booking is None or booking.status in TERMINAL_BOOKING_STATUSES or booking.partner_id is None:
            return False
        if booking.unapproved_document_types():
            return False
        booking.status = BookingStatus.CONFIRMED
        booking.confirmed_by = actor_id
        booking.confirmed_at = confirmed_at
        booking.updated_at = confirmed_at
        return True


class MemoryPartnerStore:
    def __init__(self) -> None:
        self._partners: Dict[str, Partner] = {}

    def add(self, partner: Partner) -> Partner:
        self._partners[partner.id] = partner.model_copy(deep=True)
        return partner

    async def get_partner(self, partner_id: str) -> Optional[Partner]:
        partner = self._partners.get(partner_id)
        return partner.model_copy(deep=True) if partner else None

    async def list_partners(
        self,
        *,
        status: Optional[str] = None,
        city: Optional[str] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> Tuple[List[Partner], int]:
        matches = [
            partner
            for partner in self._partners.values()
            if (status is None or partner.status.value == status) and (city is None or partner.city == city)
        ]
        matches.sort(key=lambda partner: partner.created_at, reverse=True)
        return [p.model_copy(deep=True) for p in _page(matches, limit, skip)], len(matches)

    async def find_nearest_available(
        self,
        point: GeoPoint,
        *,
        city: str,
        max_distance_meters: float,
        limit: int,
    ) -> List[PartnerCandidate]:
        candidates = []
        for partner in self._partners.values():
            if partner.city != city or not partner.is_available:
                continue
            distance = haversine_meters(point, partner.location)
            if distance <= max_distance_meters:
                candidates.append(PartnerCandidate(partner=partner.model_copy(deep=True), distance_meters=distance))
        candidates.sort(key=lambda candidate: (candidate.distance_meters, candidate.partner.id))
        return candidates[:limit]

    async def claim_partner(self, partner_id: str, booking_id: str, *, claimed_at: datetime) -> bool:
        partner = self._partners.get(partner_id)
        if partner is None or not partner.is_available:
            return False
        partner.status = PartnerStatus.BUSY
        partner.current_booking_id = booking_id
        partner.updated_at = claimed_at
        return True

    async def release_partner(self, partner_id: str, booking_id: str, *, released_at: datetime) -> bool:
        partner = self._partners.get(partner_id)
        if partner is None or partner.current_booking_id != booking_id:
            return False
        partner.status = PartnerStatus.ONLINE
        partner.current_booking_id = None
        partner.updated_at = released_at
        return True

    async def increment_deliveries(self, partner_id: str, *, updated_at: datetime) -> bool:
        partner = self._partners.get(partner_id)
        if partner is None:
            return False
        partner.total_deliveries += 1
        partner.updated_at = updated_at
        return True

    async def record_location(self, partner_id: str, ping: LocationPing, *, history_limit: int) -> bool:
        partner = self._partners.get(partner_id)
        if partner is None:
            return False
        partner.location = ping.coordinates
        partner.gps_history.append(deepcopy(ping))
        if len(partner.gps_history) > history_limit:
            del partner.gps_history[: len(partner.gps_history) - history_limit]
        partner.updated_at = ping.timestamp
        return True


class MemoryCoordinationStore:
    """Key-value, sorted-set and pub/sub semantics with lazy TTL expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._values: Dict[str, Tuple[str, Optional[float]]] = {}
        self._windows: Dict[str, Tuple[List[Tuple[int, str]], float]] = {}
        self.published: List[Tuple[str, str]] = []

    def _live_value(self, key: str) -> Optional[str]:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._values[key]
            return None
        return value

    def _live_window(self, key: str) -> List[Tuple[int, str]]:
        entry = self._windows.get(key)
        if entry is None:
            return []
        members, expires_at = entry
        if expires_at <= self._clock():
            del self._windows[key]
            return []
        return members

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        if self._live_value(key) is not None:
            return False
        self._values[key] = (value, self._clock() + ttl_seconds)
        return True

    async def delete_if_equals(self, key: str, value: str) -> bool:
        if self._live_value(key) != value:
            return False
        del self._values[key]
        return True

    async def exists(self, key: str) -> bool:
        return self._live_value(key) is not None or bool(self._live_window(key))

    async def sliding_window_admit(
        self,
        key: str,
        *,
        now_ms: int,
        window_ms: int,
        limit: int,
        member: str,
    ) -> WindowSnapshot:
        members = [entry for entry in self._live_window(key) if entry[0] > now_ms - window_ms]
        count = len(members)
        admitted = count < limit
        if admitted:
            bisect.insort(members, (now_ms, member))
        self._windows[key] = (members, self._clock() + window_ms / 1000)
        oldest = members[0][0] if members else None
        return WindowSnapshot(admitted=admitted, count=count, oldest_ms=oldest)

    async def sliding_window_count(self, key: str, *, now_ms: int, window_ms: int) -> WindowSnapshot:
        members = [entry for entry in self._live_window(key) if entry[0] > now_ms - window_ms]
        oldest = members[0][0] if members else None
        return WindowSnapshot(admitted=False, count=len(members), oldest_ms=oldest)

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        logger.debug("Published to %s (in-memory, no subscribers)", channel)
        return 0

    async def ping(self) -> bool:
        return True
