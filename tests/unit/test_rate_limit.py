import pytest

from fieldops.core.config import FailurePolicy
from fieldops.core.exceptions import DependencyUnavailableError
from fieldops.orchestration.rate_limit import RateLimiter
from tests.factories import UnavailableCoordinationStore


@pytest.mark.asyncio
async def test_seven_rapid_calls_admit_exactly_six(limiter):
    results = [await limiter.check("ratelimit:gps:p1", 6, 60) for _ in range(7)]

    assert [result.allowed for result in results] == [True] * 6 + [False]
    assert [result.remaining for result in results] == [5, 4, 3, 2, 1, 0, 0]


@pytest.mark.asyncio
async def test_window_slides(limiter, clock):
    for _ in range(6):
        assert (await limiter.check("ratelimit:gps:p1", 6, 60)).allowed
        clock.advance(5)

    blocked = await limiter.check("ratelimit:gps:p1", 6, 60)
    assert not blocked.allowed
    # The oldest entry was recorded 30 seconds ago.
    assert blocked.reset_in_seconds == 30

    clock.advance(31)
    assert (await limiter.check("ratelimit:gps:p1", 6, 60)).allowed


@pytest.mark.asyncio
async def test_rejected_requests_are_not_recorded(limiter, clock):
    for _ in range(8):
        await limiter.check("ratelimit:gps:p1", 2, 60)

    status = await limiter.status("ratelimit:gps:p1", 2, 60)
    assert status.count == 2
    assert status.remaining == 0

    clock.advance(61)
    status = await limiter.status("ratelimit:gps:p1", 2, 60)
    assert status.count == 0
    assert status.remaining == 2


@pytest.mark.asyncio
async def test_subjects_are_independent(limiter):
    for _ in range(6):
        await limiter.check("ratelimit:gps:p1", 6, 60)

    assert not (await limiter.check("ratelimit:gps:p1", 6, 60)).allowed
    assert (await limiter.check("ratelimit:gps:p2", 6, 60)).allowed


@pytest.mark.asyncio
async def test_fail_open_admits_when_store_unavailable(caplog):
    limiter = RateLimiter(UnavailableCoordinationStore(), failure_policy=FailurePolicy.FAIL_OPEN)

    with caplog.at_level("WARNING"):
        result = await limiter.check("ratelimit:gps:p1", 6, 60)

    assert result.allowed
    assert result.degraded
    assert "without rate limiting" in caplog.text


@pytest.mark.asyncio
async def test_fail_closed_raises_when_store_unavailable():
    limiter = RateLimiter(UnavailableCoordinationStore(), failure_policy=FailurePolicy.FAIL_CLOSED)

    with pytest.raises(DependencyUnavailableError):
        await limiter.check("ratelimit:gps:p1", 6, 60)
