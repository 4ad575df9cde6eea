"""MongoDB (motor) implementations of the durable stores."""

from __future__ import annotations

import contextlib
import logging
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, GEOSPHERE
from pymongo.errors import ConnectionFailure

from fieldops.core.exceptions import DependencyUnavailableError
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

logger = logging.getLogger(__name__)

BOOKINGS_COLLECTION = "bookings"
PARTNERS_COLLECTION = "partners"


@contextlib.contextmanager
def _unavailable_on_connection_error() -> Iterator[None]:
    try:
        yield
    except ConnectionFailure as exc:
        raise DependencyUnavailableError("mongodb", f"MongoDB unavailable: {exc}") from exc


def _object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _normalize(document: Dict[str, Any]) -> Dict[str, Any]:
    document["_id"] = str(document["_id"])
    return document


def _status_values(statuses) -> List[str]:
    return [status.value for status in statuses]


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the geospatial and filter indexes the workflows rely on."""

    partners = db[PARTNERS_COLLECTION]
    bookings = db[BOOKINGS_COLLECTION]
    with _unavailable_on_connection_error():
        await partners.create_index([("location", GEOSPHERE)])
        await partners.create_index([("status", ASCENDING), ("city", ASCENDING)])
        await bookings.create_index([("status", ASCENDING)])
        await bookings.create_index([("partnerId", ASCENDING)])
        await bookings.create_index([("address.coordinates", GEOSPHERE)])
        await bookings.create_index([("createdAt", DESCENDING)])
    logger.info("Database indexes initialized")


class MongoBookingStore:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[BOOKINGS_COLLECTION]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        oid = _object_id(booking_id)
        if oid is None:
            return None
        with _unavailable_on_connection_error():
            document = await self._collection.find_one({"_id": oid})
        return Booking.model_validate(_normalize(document)) if document else None

    async def list_bookings(
        self,
        *,
        status: Optional[str] = None,
        partner_id: Optional[str] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> Tuple[List[Booking], int]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if partner_id:
            query["partnerId"] = partner_id

        with _unavailable_on_connection_error():
            cursor = self._collection.find(query).sort("createdAt", DESCENDING).skip(skip).limit(limit)
            documents = await cursor.to_list(length=limit)
            total = await self._collection.count_documents(query)
        return [Booking.model_validate(_normalize(doc)) for doc in documents], total

    async def assign_partner(
        self,
        booking_id: str,
        *,
        partner_id: str,
        actor_id: str,
        assigned_at: datetime,
        status: BookingStatus,
    ) -> bool:
        oid = _object_id(booking_id)
        if oid is None:
            return False
        with _unavailable_on_connection_error():
            result = await self._collection.update_one(
                {
                    "_id": oid,
                    "partnerId": None,
                    "status": {"$in": _status_values(ASSIGNABLE_BOOKING_STATUSES)},
                },
                {
                    "$set": {
                        "partnerId": partner_id,
                        "partnerAssignedAt": assigned_at,
                        "partnerAssignedBy": actor_id,
                        "status": status.value,
                        "updatedAt": assigned_at,
                    }
                },
            )
        return result.modified_count == 1

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
        oid = _object_id(booking_id)
        if oid is None:
            return False

        fields: Dict[str, Any] = {
            "documents.$.status": decision.value,
            "documents.$.reviewedBy": reviewer_id,
            "documents.$.reviewedAt": reviewed_at,
            "status": BookingStatus.DOCUMENTS_UNDER_REVIEW.value,
            "updatedAt": reviewed_at,
        }
        if decision is DocumentStatus.REJECTED:
            fields["documents.$.rejectionReason"] = rejection_reason

        with _unavailable_on_connection_error():
            result = await self._collection.update_one(
                {
                    "_id": oid,
                    "status": {"$nin": _status_values(TERMINAL_BOOKING_STATUSES)},
                    "documents": {
                        "$elemMatch": {"type": document_type.value, "status": DocumentStatus.PENDING.value}
                    },
                },
                {"$set": fields},
            )
        return result.modified_count == 1

    async def confirm_booking(self, booking_id: str, *, actor_id: str, confirmed_at: datetime) -> bool:
        oid = _object_id(booking_id)
        if oid is None:
            return False
        with _unavailable_on_connection_error():
            result = await self._collection.update_one(
                {
                    "_id": oid,
                    "status": {"$nin": _status_values(TERMINAL_BOOKING_STATUSES)},
                    "partnerId": {"$ne": None},
                    "documents": {
                        "$not": {"$elemMatch": {"status": {"$ne": DocumentStatus.APPROVED.value}}}
                    },
                },
                {
                    "$set": {
                        "status": BookingStatus.CONFIRMED.value,
                        "confirmedAt": confirmed_at,
                        "confirmedBy": actor_id,
                        "updatedAt": confirmed_at,
                    }
                },
            )
        return result.modified_count == 1


class MongoPartnerStore:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[PARTNERS_COLLECTION]

    async def get_partner(self, partner_id: str) -> Optional[Partner]:
        oid = _object_id(partner_id)
        if oid is None:
            return None
        with _unavailable_on_connection_error():
            document = await self._collection.find_one({"_id": oid})
        return Partner.model_validate(_normalize(document)) if document else None

    async def list_partners(
        self,
        *,
        status: Optional[str] = None,
        city: Optional[str] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> Tuple[List[Partner], int]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if city:
            query["city"] = city

        with _unavailable_on_connection_error():
            cursor = self._collection.find(query).sort("createdAt", DESCENDING).skip(skip).limit(limit)
            documents = await cursor.to_list(length=limit)
            total = await self._collection.count_documents(query)
        return [Partner.model_validate(_normalize(doc)) for doc in documents], total

    async def find_nearest_available(
        self,
        point: GeoPoint,
        *,
        city: str,
        max_distance_meters: float,
        limit: int,
    ) -> List[PartnerCandidate]:
        # $geoNear must be the first stage of the pipeline.
        pipeline = [
            {
                "$geoNear": {
                    "near": {"type": "Point", "coordinates": list(point.coordinates)},
                    "distanceField": "distance",
                    "maxDistance": max_distance_meters,
                    "query": {
                        "status": PartnerStatus.ONLINE.value,
                        "city": city,
                        "currentBookingId": None,
                    },
                    "spherical": True,
                }
            },
            {"$sort": {"distance": 1, "_id": 1}},
            {"$limit": limit},
        ]
        with _unavailable_on_connection_error():
            documents = await self._collection.aggregate(pipeline).to_list(length=limit)

        candidates = []
        for document in documents:
            distance = document.pop("distance")
            candidates.append(
                PartnerCandidate(partner=Partner.model_validate(_normalize(document)), distance_meters=distance)
            )
        return candidates

    async def claim_partner(self, partner_id: str, booking_id: str, *, claimed_at: datetime) -> bool:
        oid = _object_id(partner_id)
        if oid is None:
            return False
        with _unavailable_on_connection_error():
            result = await self._collection.update_one(
                {"_id": oid, "status": PartnerStatus.ONLINE.value, "currentBookingId": None},
                {
                    "$set": {
                        "status": PartnerStatus.BUSY.value,
                        "currentBookingId": booking_id,
                        "updatedAt": claimed_at,
                    }
                },
            )
        return result.modified_count == 1

    async def release_partner(self, partner_id: str, booking_id: str, *, released_at: datetime) -> bool:
        oid = _object_id(partner_id)
        if oid is None:
            return False
        with _unavailable_on_connection_error():
            result = await self._collection.update_one(
                {"_id": oid, "currentBookingId": booking_id},
                {
                    "$set": {"status": PartnerStatus.ONLINE.value, "updatedAt": released_at},
                    "$unset": {"currentBookingId": ""},
                },
            )
        return result.modified_count == 1

    async def increment_deliveries(self, partner_id: str, *, updated_at: datetime) -> bool:
        oid = _object_id(partner_id)
        if oid is None:
            return False
        with _unavailable_on_connection_error():
            result = await self._collection.update_one(
                {"_id": oid},
                {"$set": {"updatedAt": updated_at}, "$inc": {"totalDeliveries": 1}},
            )
        return result.modified_count == 1

    async def record_location(self, partner_id: str, ping: LocationPing, *, history_limit: int) -> bool:
        oid = _object_id(partner_id)
        if oid is None:
            return False
        with _unavailable_on_connection_error():
            result = await self._collection.update_one(
                {"_id": oid},
                {
                    "$set": {"location": ping.coordinates.to_document(), "updatedAt": ping.timestamp},
                    "$push": {"gpsHistory": {"$each": [ping.to_document()], "$slice": -history_limit}},
                },
            )
        return result.matched_count == 1
