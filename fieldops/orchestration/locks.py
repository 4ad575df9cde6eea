"""Distributed lease locks on top of the coordination store.

Acquisition is fail-fast: a contended key yields an immediate negative
result, never a wait. Locks carry a random token so a holder only ever
deletes its own lease; the lease expiry reclaims locks from crashed holders.
"""

from __future__ import annotations

import contextlib
import logging
import uuid
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from opentelemetry import trace

from fieldops.core.config import FailurePolicy
from fieldops.core.exceptions import DependencyUnavailableError, LockContentionError
from fieldops.stores.base import CoordinationStore
from fieldops.utils.monitoring import lock_acquisitions_total

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")

DEFAULT_LEASE_SECONDS = 10


@dataclass(frozen=True)
class Lease:
    """One successful acquisition of ``key``.

    ``token`` is ``None`` when a fail-open manager proceeded without the store.
    """

    key: str
    token: Optional[str]

    @property
    def degraded(self) -> bool:
        return self.token is None


class LockManager:
    def __init__(
        self,
        store: CoordinationStore,
        *,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_CLOSED,
        default_lease_seconds: int = DEFAULT_LEASE_SECONDS,
    ) -> None:
        self._store = store
        self._failure_policy = failure_policy
        self._default_lease_seconds = default_lease_seconds

    async def acquire(self, key: str, lease_seconds: Optional[int] = None) -> Optional[Lease]:
        """Try to take the lease for ``key``; ``None`` if it is already held."""

        lease = lease_seconds or self._default_lease_seconds
        token = uuid.uuid4().hex
        try:
            acquired = await self._store.set_if_absent(key, token, lease)
        except DependencyUnavailableError:
            if self._failure_policy is FailurePolicy.FAIL_CLOSED:
                lock_acquisitions_total.labels(outcome="unavailable").inc()
                logger.error("Coordination store unavailable; refusing to run without lock %s", key)
                raise
            lock_acquisitions_total.labels(outcome="degraded").inc()
            logger.warning("Coordination store unavailable; proceeding without distributed lock %s", key)
            return Lease(key=key, token=None)

        if not acquired:
            lock_acquisitions_total.labels(outcome="contended").inc()
            logger.info("Lock %s is held by another operation", key)
            return None
        lock_acquisitions_total.labels(outcome="acquired").inc()
        return Lease(key=key, token=token)

    async def release(self, lease: Lease) -> None:
        """Release ``lease`` if it still owns its key.

        Release failures are logged, not raised: the lease expiry is the backstop.
        """

        if lease.degraded:
            return
        try:
            released = await self._store.delete_if_equals(lease.key, lease.token)
        except DependencyUnavailableError as exc:
            logger.warning("Unable to release lock %s, leaving it to expire: %s", lease.key, exc)
            return
        if not released:
            logger.warning("Lock %s expired before release; the critical section outlived its lease", lease.key)

    async def is_locked(self, key: str) -> bool:
        try:
            return await self._store.exists(key)
        except DependencyUnavailableError:
            if self._failure_policy is FailurePolicy.FAIL_CLOSED:
                raise
            logger.warning("Coordination store unavailable; reporting %s as unlocked", key)
            return False

    @contextlib.asynccontextmanager
    async def hold(self, key: str, lease_seconds: Optional[int] = None) -> AsyncIterator[Lease]:
        """Hold the lease for ``key`` for the duration of the block.

        Raises `LockContentionError` when another operation holds it. The
        lease is released whether the block succeeds or fails.
        """

        lease = await self.acquire(key, lease_seconds)
        if lease is None:
            raise LockContentionError(key)
        try:
            with tracer.start_as_current_span("lock.critical_section") as span:
                span.set_attribute("lock.key", key)
                span.set_attribute("lock.degraded", lease.degraded)
                yield lease
        finally:
            await self.release(lease)

    async def with_lock(
        self,
        key: str,
        lease_seconds: Optional[int],
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        async with self.hold(key, lease_seconds):
            return await fn()
