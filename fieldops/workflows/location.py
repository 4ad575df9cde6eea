"""Partner location ingestion.

Pings take no lock: the current position is last-write-wins and the history
is append-only. Admission is controlled per partner by the rate limiter.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from fieldops.core.exceptions import NotFoundError, RateLimitedError
from fieldops.models.events import PartnerLocationUpdatedEvent
from fieldops.models.partner import LocationPing
from fieldops.models.results import LocationResult
from fieldops.orchestration import keys
from fieldops.orchestration.publisher import EventPublisher
from fieldops.orchestration.rate_limit import RateLimiter
from fieldops.stores.base import PartnerStore
from fieldops.utils.clock import utcnow
from fieldops.utils.monitoring import observe_workflow
from fieldops.utils.validators import optional_non_negative, require_coordinates, require_object_id

logger = logging.getLogger(__name__)


class LocationIngestion:
    def __init__(
        self,
        partners: PartnerStore,
        limiter: RateLimiter,
        publisher: EventPublisher,
        *,
        rate_limit: int = 6,
        window_seconds: int = 60,
        history_limit: int = 100,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._partners = partners
        self._limiter = limiter
        self._publisher = publisher
        self._rate_limit = rate_limit
        self._window_seconds = window_seconds
        self._history_limit = history_limit
        self._clock = clock

    @property
    def rate_limit(self) -> int:
        return self._rate_limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    async def record_location(
        self,
        partner_id: str,
        coordinates: Any,
        speed: Optional[float] = None,
        accuracy: Optional[float] = None,
    ) -> LocationResult:
        # Rejected input must not consume quota.
        point = require_coordinates(coordinates)
        partner_id = require_object_id(partner_id, "partnerId")
        speed = optional_non_negative(speed, "speed")
        accuracy = optional_non_negative(accuracy, "accuracy")

        quota = await self._limiter.check(keys.gps_rate_limit(partner_id), self._rate_limit, self._window_seconds)
        if not quota.allowed:
            observe_workflow("record_location", RateLimitedError.code)
            raise RateLimitedError(
                limit=quota.limit,
                remaining=quota.remaining,
                reset_in_seconds=quota.reset_in_seconds,
                window_seconds=self._window_seconds,
            )

        partner = await self._partners.get_partner(partner_id)
        if partner is None:
            observe_workflow("record_location", NotFoundError.code)
            raise NotFoundError("Partner not found")

        ping = LocationPing(coordinates=point, timestamp=self._clock(), speed=speed, accuracy=accuracy)
        if not await self._partners.record_location(partner_id, ping, history_limit=self._history_limit):
            observe_workflow("record_location", NotFoundError.code)
            raise NotFoundError("Partner not found")

        await self._publisher.publish(
            PartnerLocationUpdatedEvent(
                partner_id=partner_id,
                booking_id=partner.current_booking_id,
                coordinates=point,
                timestamp=ping.timestamp,
                speed=speed,
                accuracy=accuracy,
            )
        )
        observe_workflow("record_location", "success")
        logger.debug("Recorded location for partner %s", partner_id)
        return LocationResult(
            partner_id=partner_id,
            accepted=True,
            coordinates=point,
            timestamp=ping.timestamp,
            rate_limit=quota,
        )
