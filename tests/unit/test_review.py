import asyncio
import json

import pytest

from fieldops.core.exceptions import (
    DocumentsNotApprovedError,
    InvalidStateError,
    LockContentionError,
    NotFoundError,
    ValidationError,
)
from fieldops.models.booking import BookingStatus, Document, DocumentStatus, DocumentType
from fieldops.orchestration import keys
from fieldops.workflows.review import ReviewWorkflow
from tests.factories import UnreachableCounterPartnerStore, approved, make_booking, make_partner, new_id


@pytest.fixture
def workflow(bookings, partners, locks, publisher):
    return ReviewWorkflow(bookings, partners, locks, publisher)


@pytest.fixture
def assigned(bookings, partners):
    partner = partners.add(make_partner())
    booking = bookings.add(make_booking(status=BookingStatus.PARTNER_ASSIGNED, partner_id=partner.id))
    return booking, partner


@pytest.mark.asyncio
async def test_approving_a_document_moves_booking_under_review(workflow, bookings, assigned, coordination):
    booking, _ = assigned

    result = await workflow.review_document(booking.id, "selfie", "approved", "reviewer-1")

    assert result.status is DocumentStatus.APPROVED
    stored = await bookings.get_booking(booking.id)
    assert stored.status is BookingStatus.DOCUMENTS_UNDER_REVIEW
    selfie = stored.document(DocumentType.SELFIE)
    assert selfie.status is DocumentStatus.APPROVED
    assert selfie.reviewed_by == "reviewer-1"
    assert selfie.reviewed_at is not None
    assert selfie.rejection_reason is None
    # Other documents are untouched.
    assert stored.document(DocumentType.SIGNATURE).status is DocumentStatus.PENDING

    channel, payload = coordination.published[-1]
    assert channel == keys.DOCUMENT_REVIEWED_CHANNEL
    assert json.loads(payload)["documentType"] == "selfie"


@pytest.mark.asyncio
async def test_rejection_requires_reason(workflow, bookings, assigned):
    booking, _ = assigned

    with pytest.raises(ValidationError):
        await workflow.review_document(booking.id, "id_proof", "rejected", "reviewer-1")
    with pytest.raises(ValidationError):
        await workflow.review_document(booking.id, "id_proof", "rejected", "reviewer-1", "   ")

    result = await workflow.review_document(booking.id, "id_proof", "rejected", "reviewer-1", "Blurry photo")

    assert result.rejection_reason == "Blurry photo"
    stored = await bookings.get_booking(booking.id)
    assert stored.document(DocumentType.ID_PROOF).rejection_reason == "Blurry photo"


@pytest.mark.asyncio
async def test_document_can_only_be_reviewed_once(workflow, assigned):
    booking, _ = assigned
    await workflow.review_document(booking.id, "signature", "approved", "reviewer-1")

    with pytest.raises(InvalidStateError):
        await workflow.review_document(booking.id, "signature", "rejected", "reviewer-2", "changed my mind")


@pytest.mark.asyncio
async def test_concurrent_duplicate_reviews_yield_one_success(workflow, bookings, assigned):
    booking, _ = assigned

    results = await asyncio.gather(
        workflow.review_document(booking.id, "selfie", "approved", "reviewer-1"),
        workflow.review_document(booking.id, "selfie", "rejected", "reviewer-2", "bad"),
        return_exceptions=True,
    )

    successes = [result for result in results if not isinstance(result, Exception)]
    failures = [result for result in results if isinstance(result, (LockContentionError, InvalidStateError))]
    assert len(successes) == 1
    assert len(failures) == 1
    stored = await bookings.get_booking(booking.id)
    assert stored.document(DocumentType.SELFIE).status is successes[0].status


@pytest.mark.asyncio
async def test_different_documents_review_in_parallel(workflow, bookings, assigned):
    booking, _ = assigned

    results = await asyncio.gather(
        workflow.review_document(booking.id, "selfie", "approved", "reviewer-1"),
        workflow.review_document(booking.id, "signature", "approved", "reviewer-2"),
    )

    assert {result.document_type for result in results} == {DocumentType.SELFIE, DocumentType.SIGNATURE}


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [BookingStatus.CONFIRMED, BookingStatus.CANCELLED])
async def test_terminal_bookings_cannot_be_reviewed(workflow, bookings, status):
    booking = bookings.add(make_booking(status=status, partner_id=new_id()))

    with pytest.raises(InvalidStateError):
        await workflow.review_document(booking.id, "selfie", "approved", "reviewer-1")


@pytest.mark.asyncio
async def test_review_input_validation(workflow, bookings):
    booking = bookings.add(make_booking(documents=[Document(type=DocumentType.SELFIE, url="u")]))

    with pytest.raises(ValidationError):
        await workflow.review_document(booking.id, "passport", "approved", "reviewer-1")
    with pytest.raises(ValidationError):
        await workflow.review_document(booking.id, "selfie", "pending", "reviewer-1")
    with pytest.raises(ValidationError):
        await workflow.review_document("xyz", "selfie", "approved", "reviewer-1")
    with pytest.raises(NotFoundError):
        await workflow.review_document(booking.id, "signature", "approved", "reviewer-1")


@pytest.mark.asyncio
async def test_confirm_requires_all_documents_approved(workflow, bookings, assigned):
    booking, _ = assigned
    await workflow.review_document(booking.id, "selfie", "approved", "reviewer-1")
    await workflow.review_document(booking.id, "signature", "rejected", "reviewer-1", "Mismatch")

    with pytest.raises(DocumentsNotApprovedError) as excinfo:
        await workflow.confirm_booking(booking.id, "admin-1")

    assert excinfo.value.document_types == ["signature", "id_proof", "address_proof"]
    assert (await bookings.get_booking(booking.id)).status is BookingStatus.DOCUMENTS_UNDER_REVIEW


@pytest.mark.asyncio
async def test_confirm_succeeds_when_all_approved(workflow, bookings, partners, coordination):
    partner = partners.add(make_partner())
    booking = bookings.add(
        make_booking(
            status=BookingStatus.DOCUMENTS_UNDER_REVIEW,
            partner_id=partner.id,
            documents=[approved(doc_type) for doc_type in DocumentType],
        )
    )

    result = await workflow.confirm_booking(booking.id, "admin-1")

    assert result.partner_id == partner.id
    assert result.delivery_recorded is True
    stored = await bookings.get_booking(booking.id)
    assert stored.status is BookingStatus.CONFIRMED
    assert stored.confirmed_by == "admin-1"
    assert (await partners.get_partner(partner.id)).total_deliveries == 1

    channel, payload = coordination.published[-1]
    assert channel == keys.BOOKING_CONFIRMED_CHANNEL
    assert json.loads(payload)["confirmedBy"] == "admin-1"

    with pytest.raises(InvalidStateError):
        await workflow.confirm_booking(booking.id, "admin-2")
    assert (await partners.get_partner(partner.id)).total_deliveries == 1


@pytest.mark.asyncio
async def test_confirm_survives_delivery_counter_outage(bookings, locks, publisher, coordination, caplog):
    partners = UnreachableCounterPartnerStore()
    workflow = ReviewWorkflow(bookings, partners, locks, publisher)
    partner = partners.add(make_partner())
    booking = bookings.add(
        make_booking(
            status=BookingStatus.DOCUMENTS_UNDER_REVIEW,
            partner_id=partner.id,
            documents=[approved(doc_type) for doc_type in DocumentType],
        )
    )

    with caplog.at_level("ERROR"):
        result = await workflow.confirm_booking(booking.id, "admin-1")

    assert result.delivery_recorded is False
    assert (await bookings.get_booking(booking.id)).status is BookingStatus.CONFIRMED
    assert "delivery for partner" in caplog.text
    channel, _ = coordination.published[-1]
    assert channel == keys.BOOKING_CONFIRMED_CHANNEL
    assert not await locks.is_locked(keys.confirmation_lock(booking.id))

@pytest.mark.asyncio
async def test_confirm_requires_assigned_partner(workflow, bookings):
    booking = bookings.add(make_booking(documents=[approved(DocumentType.SELFIE)]))

    with pytest.raises(InvalidStateError):
        await workflow.confirm_booking(booking.id, "admin-1")


@pytest.mark.asyncio
async def test_full_lifecycle_never_regresses(workflow, bookings, assigned):
    booking, _ = assigned
    seen = [(await bookings.get_booking(booking.id)).status]

    for doc_type in DocumentType:
        await workflow.review_document(booking.id, doc_type.value, "approved", "reviewer-1")
        seen.append((await bookings.get_booking(booking.id)).status)
    await workflow.confirm_booking(booking.id, "admin-1")
    seen.append((await bookings.get_booking(booking.id)).status)

    assert seen[0] is BookingStatus.PARTNER_ASSIGNED
    assert seen[-1] is BookingStatus.CONFIRMED
    assert all(earlier.can_advance_to(later) for earlier, later in zip(seen, seen[1:]) if not earlier.is_terminal)
