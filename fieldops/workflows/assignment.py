"""Nearest-partner assignment.

Runs inside a lock scoped to the booking id. Candidates come from the
eligibility query (online, same city, unassigned, within radius) ordered by
spherical distance with the partner id as a deterministic tie-break. The
partner claim is a conditional update, so two different bookings racing for
the same partner cannot both win it; the loser moves to the next candidate.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from fieldops.core.exceptions import InvalidStateError, NoPartnerAvailableError, NotFoundError
from fieldops.models.events import BookingAssignedEvent
from fieldops.models.results import AssignmentResult
from fieldops.orchestration import keys
from fieldops.orchestration.locks import LockManager
from fieldops.orchestration.publisher import EventPublisher
from fieldops.stores.base import BookingStore, PartnerStore
from fieldops.utils.audit import audit_logger
from fieldops.utils.clock import utcnow
from fieldops.utils.monitoring import observe_workflow
from fieldops.utils.validators import require_non_empty, require_object_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISTANCE_METERS = 50_000.0


class AssignmentEngine:
    def __init__(
        self,
        bookings: BookingStore,
        partners: PartnerStore,
        locks: LockManager,
        publisher: EventPublisher,
        *,
        max_distance_meters: float = DEFAULT_MAX_DISTANCE_METERS,
        candidate_pool: int = 5,
        lease_seconds: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._bookings = bookings
        self._partners = partners
        self._locks = locks
        self._publisher = publisher
        self._max_distance_meters = max_distance_meters
        self._candidate_pool = candidate_pool
        self._lease_seconds = lease_seconds
        self._clock = clock

    async def assign_nearest_partner(self, booking_id: str, actor_id: str) -> AssignmentResult:
        booking_id = require_object_id(booking_id, "bookingId")
        actor_id = require_non_empty(actor_id, "adminId")

        try:
            async with self._locks.hold(keys.assignment_lock(booking_id), self._lease_seconds):
                result = await self._assign(booking_id, actor_id)
        except Exception as exc:
            observe_workflow("assign", getattr(exc, "code", "error"))
            raise

        observe_workflow("assign", "success")
        return result

    async def _assign(self, booking_id: str, actor_id: str) -> AssignmentResult:
        booking = await self._bookings.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if not booking.is_assignable:
            raise InvalidStateError(
                f"Booking is already in {booking.status.value} state. Cannot assign partner.",
                details={"status": booking.status.value, "partner_id": booking.partner_id},
            )

        city = booking.address.city
        candidates = await self._partners.find_nearest_available(
            booking.address.coordinates,
            city=city,
            max_distance_meters=self._max_distance_meters,
            limit=self._candidate_pool,
        )

        assigned_at = self._clock()
        for candidate in candidates:
            partner = candidate.partner
            if not await self._partners.claim_partner(partner.id, booking_id, claimed_at=assigned_at):
                logger.info("Partner %s was claimed concurrently; trying next candidate", partner.id)
                continue

            target_status = booking.status_after_assignment()
            try:
                updated = await self._bookings.assign_partner(
                    booking_id,
                    partner_id=partner.id,
                    actor_id=actor_id,
                    assigned_at=assigned_at,
                    status=target_status,
                )
            except BaseException:
                await self._release_claim(partner.id, booking_id)
                raise
            if not updated:
                await self._release_claim(partner.id, booking_id)
                raise InvalidStateError("Booking changed while assigning a partner. Cannot assign partner.")

            await self._publisher.publish(
                BookingAssignedEvent(
                    booking_id=booking_id,
                    partner_id=partner.id,
                    assigned_at=assigned_at,
                    assigned_by=actor_id,
                )
            )
            audit_logger.record(
                "booking.partner_assigned",
                actor_id,
                {"booking_id": booking_id, "partner_id": partner.id, "distance_meters": candidate.distance_meters},
            )
            return AssignmentResult(
                booking_id=booking_id,
                partner_id=partner.id,
                partner_name=partner.name,
                distance_meters=round(candidate.distance_meters),
                booking_status=target_status,
                assigned_at=assigned_at,
                assigned_by=actor_id,
            )

        radius_km = self._max_distance_meters / 1000
        raise NoPartnerAvailableError(
            f"No available partners found in {city} within {radius_km:g}km radius",
            details={"city": city, "max_distance_meters": self._max_distance_meters},
        )

    async def _release_claim(self, partner_id: str, booking_id: str) -> None:
        """Undo a partner claim whose booking update did not land."""

        try:
            released = await self._partners.release_partner(partner_id, booking_id, released_at=self._clock())
        except Exception:
            logger.exception("Failed to release partner %s claimed for booking %s", partner_id, booking_id)
            return
        if not released:
            logger.warning("Partner %s no longer held booking %s when releasing the claim", partner_id, booking_id)
