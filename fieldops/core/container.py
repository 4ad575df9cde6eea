"""Wires stores, coordination primitives and workflows together."""

from __future__ import annotations

from dataclasses import dataclass

from fieldops.core.config import Settings
from fieldops.orchestration.locks import LockManager
from fieldops.orchestration.publisher import EventPublisher
from fieldops.orchestration.rate_limit import RateLimiter
from fieldops.stores.base import BookingStore, CoordinationStore, PartnerStore
from fieldops.workflows.assignment import AssignmentEngine
from fieldops.workflows.location import LocationIngestion
from fieldops.workflows.review import ReviewWorkflow


@dataclass
class ServiceContainer:
    bookings: BookingStore
    partners: PartnerStore
    locks: LockManager
    limiter: RateLimiter
    publisher: EventPublisher
    assignment: AssignmentEngine
    review: ReviewWorkflow
    location: LocationIngestion


def build_services(
    settings: Settings,
    *,
    bookings: BookingStore,
    partners: PartnerStore,
    coordination: CoordinationStore,
) -> ServiceContainer:
    """Build every component from explicit dependencies and settings."""

    locks = LockManager(
        coordination,
        failure_policy=settings.LOCK_FAILURE_POLICY,
        default_lease_seconds=settings.LOCK_LEASE_SECONDS,
    )
    limiter = RateLimiter(coordination, failure_policy=settings.RATE_LIMIT_FAILURE_POLICY)
    publisher = EventPublisher(coordination)

    return ServiceContainer(
        bookings=bookings,
        partners=partners,
        locks=locks,
        limiter=limiter,
        publisher=publisher,
        assignment=AssignmentEngine(
            bookings,
            partners,
            locks,
            publisher,
            max_distance_meters=settings.ASSIGNMENT_MAX_DISTANCE_METERS,
            candidate_pool=settings.ASSIGNMENT_CANDIDATE_POOL,
            lease_seconds=settings.LOCK_LEASE_SECONDS,
        ),
        review=ReviewWorkflow(
            bookings,
            partners,
            locks,
            publisher,
            lease_seconds=settings.LOCK_LEASE_SECONDS,
        ),
        location=LocationIngestion(
            partners,
            limiter,
            publisher,
            rate_limit=settings.GPS_RATE_LIMIT,
            window_seconds=settings.GPS_RATE_LIMIT_WINDOW,
            history_limit=settings.GPS_HISTORY_LIMIT,
        ),
    )
