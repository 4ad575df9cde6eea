from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from fieldops.models.base import CamelModel
from fieldops.models.geo import GeoPoint


class DocumentType(str, Enum):
    SELFIE = "selfie"
    SIGNATURE = "signature"
    ID_PROOF = "id_proof"
    ADDRESS_PROOF = "address_proof"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookingStatus(str, Enum):
    PENDING = "pending"
    PARTNER_ASSIGNED = "partner_assigned"
    DOCUMENTS_UNDER_REVIEW = "documents_under_review"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_BOOKING_STATUSES

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def can_advance_to(self, target: "BookingStatus") -> bool:
        """Whether moving to ``target`` keeps the lifecycle monotonic."""

        if self.is_terminal:
            return False
        if target is BookingStatus.CANCELLED:
            return True
        return target.rank >= self.rank


_STATUS_RANK = {
    BookingStatus.PENDING: 0,
    BookingStatus.PARTNER_ASSIGNED: 1,
    BookingStatus.DOCUMENTS_UNDER_REVIEW: 2,
    BookingStatus.CONFIRMED: 3,
    BookingStatus.CANCELLED: 3,
}

TERMINAL_BOOKING_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED})

# A booking may receive a partner while it has none attached and has not gone
# past document review.
ASSIGNABLE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.DOCUMENTS_UNDER_REVIEW})


class Document(CamelModel):
    type: DocumentType
    url: str
    status: DocumentStatus = DocumentStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


class Address(CamelModel):
    street: str
    city: str
    state: str
    pincode: str
    coordinates: GeoPoint


class UserInfo(CamelModel):
    name: str
    email: str
    phone: str


class Booking(CamelModel):
    id: str = Field(alias="_id")
    user_id: str
    user_info: UserInfo
    address: Address
    documents: List[Document] = Field(default_factory=list)
    status: BookingStatus = BookingStatus.PENDING
    partner_id: Optional[str] = None
    partner_assigned_at: Optional[datetime] = None
    partner_assigned_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def document(self, document_type: DocumentType | str) -> Optional[Document]:
        wanted = DocumentType(document_type)
        for document in self.documents:
            if document.type is wanted:
                return document
        return None

    def unapproved_document_types(self) -> List[str]:
        return [doc.type.value for doc in self.documents if doc.status is not DocumentStatus.APPROVED]

    @property
    def is_assignable(self) -> bool:
        return self.partner_id is None and self.status in ASSIGNABLE_BOOKING_STATUSES

    def status_after_assignment(self) -> BookingStatus:
        # Never move a booking backwards if a review already started.
        if self.status.rank > BookingStatus.PARTNER_ASSIGNED.rank:
            return self.status
        return BookingStatus.PARTNER_ASSIGNED
