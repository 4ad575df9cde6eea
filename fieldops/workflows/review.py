"""Document review and booking confirmation.

Booking lifecycle: ``pending -> partner_assigned -> documents_under_review ->
confirmed``, with ``cancelled`` terminal. Any successful document review
forces the booking into ``documents_under_review``, even when other documents
have not been looked at yet.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from fieldops.core.exceptions import (
    DependencyUnavailableError,
    DocumentsNotApprovedError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from fieldops.models.booking import Booking, BookingStatus, DocumentStatus, DocumentType
from fieldops.models.events import BookingConfirmedEvent, DocumentReviewedEvent
from fieldops.models.results import ConfirmationResult, ReviewResult
from fieldops.orchestration import keys
from fieldops.orchestration.locks import LockManager
from fieldops.orchestration.publisher import EventPublisher
from fieldops.stores.base import BookingStore, PartnerStore
from fieldops.utils.audit import audit_logger
from fieldops.utils.clock import utcnow
from fieldops.utils.monitoring import observe_workflow
from fieldops.utils.validators import (
    require_document_type,
    require_non_empty,
    require_object_id,
    require_review_decision,
)

logger = logging.getLogger(__name__)


class ReviewWorkflow:
    def __init__(
        self,
        bookings: BookingStore,
        partners: PartnerStore,
        locks: LockManager,
        publisher: EventPublisher,
        *,
        lease_seconds: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._bookings = bookings
        self._partners = partners
        self._locks = locks
        self._publisher = publisher
        self._lease_seconds = lease_seconds
        self._clock = clock

    async def _load(self, booking_id: str) -> Booking:
        booking = await self._bookings.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    async def review_document(
        self,
        booking_id: str,
        document_type: Any,
        decision: Any,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> ReviewResult:
        booking_id = require_object_id(booking_id, "bookingId")
        doc_type = require_document_type(document_type)
        verdict = require_review_decision(decision)
        actor_id = require_non_empty(actor_id, "reviewerId")
        if verdict is DocumentStatus.REJECTED:
            if reason is None or not str(reason).strip():
                raise ValidationError("Rejection reason is required when rejecting a document")
            reason = str(reason).strip()
        else:
            reason = None

        try:
            async with self._locks.hold(keys.review_lock(booking_id, doc_type.value), self._lease_seconds):
                result = await self._review(booking_id, doc_type, verdict, actor_id, reason)
        except Exception as exc:
            observe_workflow("review", getattr(exc, "code", "error"))
            raise

        observe_workflow("review", "success")
        return result

    async def _review(
        self,
        booking_id: str,
        document_type: DocumentType,
        decision: DocumentStatus,
        actor_id: str,
        reason: Optional[str],
    ) -> ReviewResult:
        booking = await self._load(booking_id)
        if booking.status.is_terminal:
            raise InvalidStateError(
                f"Booking is already {booking.status.value}. Cannot review documents.",
                details={"status": booking.status.value},
            )

        document = booking.document(document_type)
        if document is None:
            raise NotFoundError(f"Document type '{document_type.value}' not found in booking")
        if document.status is not DocumentStatus.PENDING:
            raise InvalidStateError(
                f"Document '{document_type.value}' is already {document.status.value}",
                details={"document_type": document_type.value, "status": document.status.value},
            )

        reviewed_at = self._clock()
        updated = await self._bookings.review_document(
            booking_id,
            document_type,
            decision=decision,
            reviewer_id=actor_id,
            reviewed_at=reviewed_at,
            rejection_reason=reason,
        )
        if not updated:
            raise InvalidStateError(f"Document '{document_type.value}' changed during review")

        await self._publisher.publish(
            DocumentReviewedEvent(
                booking_id=booking_id,
                document_type=document_type,
                status=decision,
                reviewed_by=actor_id,
                reviewed_at=reviewed_at,
            )
        )
        audit_logger.record(
            "booking.document_reviewed",
            actor_id,
            {"booking_id": booking_id, "document_type": document_type.value, "status": decision.value},
        )
        return ReviewResult(
            booking_id=booking_id,
            document_type=document_type,
            status=decision,
            reviewed_by=actor_id,
            reviewed_at=reviewed_at,
            rejection_reason=reason,
        )

    async def confirm_booking(self, booking_id: str, actor_id: str) -> ConfirmationResult:
        booking_id = require_object_id(booking_id, "bookingId")
        actor_id = require_non_empty(actor_id, "adminId")

        try:
            async with self._locks.hold(keys.confirmation_lock(booking_id), self._lease_seconds):
                result = await self._confirm(booking_id, actor_id)
        except Exception as exc:
            observe_workflow("confirm", getattr(exc, "code", "error"))
            raise

        observe_workflow("confirm", "success")
        return result

    async def _confirm(self, booking_id: str, actor_id: str) -> ConfirmationResult:
        booking = await self._load(booking_id)
        if booking.status is BookingStatus.CONFIRMED:
            raise InvalidStateError("Booking is already confirmed", details={"status": booking.status.value})
        if booking.status is BookingStatus.CANCELLED:
            raise InvalidStateError("Booking is cancelled", details={"status": booking.status.value})
        if booking.partner_id is None:
            raise InvalidStateError("Cannot confirm booking without assigned partner")

        unapproved = booking.unapproved_document_types()
        if unapproved:
            raise DocumentsNotApprovedError(unapproved)

        confirmed_at = self._clock()
        if not await self._bookings.confirm_booking(booking_id, actor_id=actor_id, confirmed_at=confirmed_at):
            # A review or cancellation landed between the read and the write.
            raise InvalidStateError("Booking changed during confirmation. Please retry.")

        # The booking is committed as confirmed from here on; later steps must not fail the call.
        delivery_recorded = await self._record_delivery(booking.partner_id, booking_id, confirmed_at)

        await self._publisher.publish(
            BookingConfirmedEvent(
                booking_id=booking_id,
                partner_id=booking.partner_id,
                confirmed_at=confirmed_at,
                confirmed_by=actor_id,
            )
        )
        audit_logger.record(
            "booking.confirmed",
            actor_id,
            {"booking_id": booking_id, "partner_id": booking.partner_id},
        )
        return ConfirmationResult(
            booking_id=booking_id,
            partner_id=booking.partner_id,
            confirmed_at=confirmed_at,
            confirmed_by=actor_id,
            delivery_recorded=delivery_recorded,
        )

    async def _record_delivery(self, partner_id: str, booking_id: str, confirmed_at: datetime) -> bool:
        try:
            recorded = await self._partners.increment_deliveries(partner_id, updated_at=confirmed_at)
        except DependencyUnavailableError as exc:
            logger.error("Booking %s confirmed but delivery for partner %s was not recorded: %s", booking_id, partner_id, exc)
            return False
        if not recorded:
            logger.warning("Partner %s not found while recording delivery for %s", partner_id, booking_id)
        return recorded
