"""Sliding-window rate limiting on top of the coordination store."""

from __future__ import annotations

import logging
import math
import time
import uuid
from typing import Callable

from fieldops.core.config import FailurePolicy
from fieldops.core.exceptions import DependencyUnavailableError
from fieldops.models.results import RateLimitResult, RateLimitStatus
from fieldops.stores.base import CoordinationStore, WindowSnapshot
from fieldops.utils.monitoring import rate_limit_decisions_total

logger = logging.getLogger(__name__)


class RateLimiter:
    """Per-subject admission control over a trailing time window.

    Trimming, counting and recording happen in one atomic store call, so
    concurrent requests from the same subject cannot be over-admitted. Only
    admitted requests are recorded.
    """

    def __init__(
        self,
        store: CoordinationStore,
        *,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._failure_policy = failure_policy
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @staticmethod
    def _reset_in(snapshot: WindowSnapshot, now_ms: int, window_ms: int) -> int:
        if snapshot.oldest_ms is None:
            return math.ceil(window_ms / 1000)
        return max(0, math.ceil((snapshot.oldest_ms + window_ms - now_ms) / 1000))

    async def check(self, subject_key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now_ms = self._now_ms()
        window_ms = window_seconds * 1000
        try:
            snapshot = await self._store.sliding_window_admit(
                subject_key,
                now_ms=now_ms,
                window_ms=window_ms,
                limit=limit,
                member=f"{now_ms}-{uuid.uuid4().hex[:12]}",
            )
        except DependencyUnavailableError:
            if self._failure_policy is FailurePolicy.FAIL_CLOSED:
                rate_limit_decisions_total.labels(outcome="unavailable").inc()
                logger.error("Coordination store unavailable; rejecting %s", subject_key)
                raise
            rate_limit_decisions_total.labels(outcome="degraded").inc()
            logger.warning("Coordination store unavailable; admitting %s without rate limiting", subject_key)
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=max(0, limit - 1),
                reset_in_seconds=window_seconds,
                degraded=True,
            )

        reset_in = self._reset_in(snapshot, now_ms, window_ms)
        if snapshot.admitted:
            rate_limit_decisions_total.labels(outcome="allowed").inc()
            remaining = max(0, limit - snapshot.count - 1)
        else:
            rate_limit_decisions_total.labels(outcome="rejected").inc()
            remaining = 0
        return RateLimitResult(
            allowed=snapshot.admitted,
            limit=limit,
            remaining=remaining,
            reset_in_seconds=reset_in,
        )

    async def status(self, subject_key: str, limit: int, window_seconds: int) -> RateLimitStatus:
        """Report current usage without recording a request."""

        now_ms = self._now_ms()
        window_ms = window_seconds * 1000
        snapshot = await self._store.sliding_window_count(subject_key, now_ms=now_ms, window_ms=window_ms)
        return RateLimitStatus(
            count=snapshot.count,
            limit=limit,
            remaining=max(0, limit - snapshot.count),
            reset_in_seconds=self._reset_in(snapshot, now_ms, window_ms),
        )
