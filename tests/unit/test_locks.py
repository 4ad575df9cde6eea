import asyncio

import pytest

from fieldops.core.config import FailurePolicy
from fieldops.core.exceptions import DependencyUnavailableError, LockContentionError
from fieldops.orchestration import keys
from fieldops.orchestration.locks import LockManager
from tests.factories import UnavailableCoordinationStore


@pytest.mark.asyncio
async def test_acquire_is_fail_fast_while_held(locks):
    lease = await locks.acquire("lock:test", 10)
    assert lease is not None
    assert await locks.acquire("lock:test", 10) is None

    await locks.release(lease)
    assert await locks.acquire("lock:test", 10) is not None


@pytest.mark.asyncio
async def test_lease_expires_without_release(locks, clock):
    assert await locks.acquire("lock:test", 10)
    clock.advance(9)
    assert await locks.is_locked("lock:test")

    clock.advance(2)
    assert not await locks.is_locked("lock:test")
    assert await locks.acquire("lock:test", 10)


@pytest.mark.asyncio
async def test_stale_holder_does_not_release_new_lease(coordination, clock):
    first = LockManager(coordination)
    second = LockManager(coordination)

    stale = await first.acquire("lock:test", 5)
    clock.advance(6)
    assert await second.acquire("lock:test", 5)

    await first.release(stale)
    assert await second.is_locked("lock:test")


@pytest.mark.asyncio
async def test_stale_release_on_shared_manager_keeps_new_lease(locks, clock):
    stale = await locks.acquire("lock:test", 5)
    clock.advance(6)
    current = await locks.acquire("lock:test", 5)
    assert current is not None

    await locks.release(stale)
    assert await locks.is_locked("lock:test")

    await locks.release(current)
    assert not await locks.is_locked("lock:test")


@pytest.mark.asyncio
async def test_with_lock_releases_after_success_and_failure(locks):
    async def succeed():
        assert await locks.is_locked("lock:work")
        return "done"

    async def explode():
        raise RuntimeError("boom")

    assert await locks.with_lock("lock:work", 10, succeed) == "done"
    assert not await locks.is_locked("lock:work")

    with pytest.raises(RuntimeError):
        await locks.with_lock("lock:work", 10, explode)
    assert not await locks.is_locked("lock:work")


@pytest.mark.asyncio
async def test_with_lock_raises_contention_instead_of_running(locks):
    ran = []

    async def work():
        ran.append(True)

    assert await locks.acquire("lock:busy", 10)
    with pytest.raises(LockContentionError) as excinfo:
        await locks.with_lock("lock:busy", 10, work)

    assert not ran
    assert excinfo.value.key == "lock:busy"
    assert excinfo.value.status_code == 409


@pytest.mark.asyncio
async def test_concurrent_holders_serialize(locks):
    async def hold_briefly():
        async with locks.hold("lock:shared"):
            await asyncio.sleep(0)
            return True

    results = await asyncio.gather(hold_briefly(), hold_briefly(), return_exceptions=True)

    assert results.count(True) == 1
    assert sum(isinstance(result, LockContentionError) for result in results) == 1


@pytest.mark.asyncio
async def test_fail_closed_rejects_when_store_unavailable():
    manager = LockManager(UnavailableCoordinationStore(), failure_policy=FailurePolicy.FAIL_CLOSED)

    async def work():
        return "ran"

    with pytest.raises(DependencyUnavailableError):
        await manager.with_lock("lock:test", 10, work)


@pytest.mark.asyncio
async def test_fail_open_proceeds_and_logs(caplog):
    manager = LockManager(UnavailableCoordinationStore(), failure_policy=FailurePolicy.FAIL_OPEN)

    async def work():
        return "ran"

    with caplog.at_level("WARNING"):
        assert await manager.with_lock("lock:test", 10, work) == "ran"
    assert "proceeding without distributed lock" in caplog.text


def test_lock_keys_are_scoped_per_operation():
    assert keys.assignment_lock("b1") != keys.confirmation_lock("b1")
    assert keys.review_lock("b1", "selfie") != keys.review_lock("b1", "signature")
    assert keys.review_lock("b1", "selfie") == "lock:booking:review:b1:selfie"
