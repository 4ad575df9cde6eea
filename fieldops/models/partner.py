from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from fieldops.models.base import CamelModel
from fieldops.models.geo import GeoPoint


class PartnerStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BUSY = "busy"


class LocationPing(CamelModel):
    coordinates: GeoPoint
    timestamp: datetime
    speed: Optional[float] = None
    accuracy: Optional[float] = None


class Partner(CamelModel):
    id: str = Field(alias="_id")
    name: str
    email: str
    phone: str
    city: str
    location: GeoPoint
    status: PartnerStatus = PartnerStatus.OFFLINE
    current_booking_id: Optional[str] = None
    gps_history: List[LocationPing] = Field(default_factory=list)
    rating: Optional[float] = None
    total_deliveries: int = 0
    created_at: datetime
    updated_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_available(self) -> bool:
        return self.status is PartnerStatus.ONLINE and self.current_booking_id is None


class PartnerCandidate(CamelModel):
    """A partner returned by the nearest-partner query with its distance."""

    partner: Partner
    distance_meters: float
