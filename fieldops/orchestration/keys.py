"""Key and channel naming for the coordination store.

Locks are scoped narrowly: assignment and confirmation per booking, review
per (booking, document type) so distinct documents can be reviewed in
parallel while the same document cannot be reviewed twice.
"""

from __future__ import annotations

BOOKING_ASSIGNED_CHANNEL = "booking:assigned"
DOCUMENT_REVIEWED_CHANNEL = "document:reviewed"
BOOKING_CONFIRMED_CHANNEL = "booking:confirmed"
PARTNER_GPS_UPDATE_CHANNEL = "partner:gps:update"

ALL_CHANNELS = (
    BOOKING_ASSIGNED_CHANNEL,
    DOCUMENT_REVIEWED_CHANNEL,
    BOOKING_CONFIRMED_CHANNEL,
    PARTNER_GPS_UPDATE_CHANNEL,
)


def assignment_lock(booking_id: str) -> str:
    return f"lock:booking:assign:{booking_id}"


def confirmation_lock(booking_id: str) -> str:
    return f"lock:booking:confirm:{booking_id}"


def review_lock(booking_id: str, document_type: str) -> str:
    return f"lock:booking:review:{booking_id}:{document_type}"


def gps_rate_limit(partner_id: str) -> str:
    return f"ratelimit:gps:{partner_id}"
