import pytest

from fieldops.core.config import FailurePolicy, Settings
from fieldops.orchestration.locks import LockManager
from fieldops.orchestration.publisher import EventPublisher
from fieldops.orchestration.rate_limit import RateLimiter
from fieldops.stores.memory import MemoryCoordinationStore, MemoryPartnerStore
from tests.factories import FakeClock, SuspendingBookingStore


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def coordination(clock):
    return MemoryCoordinationStore(clock=clock)


@pytest.fixture
def bookings():
    return SuspendingBookingStore()


@pytest.fixture
def partners():
    return MemoryPartnerStore()


@pytest.fixture
def locks(coordination):
    return LockManager(coordination, failure_policy=FailurePolicy.FAIL_CLOSED)


@pytest.fixture
def limiter(coordination, clock):
    return RateLimiter(coordination, clock=clock)


@pytest.fixture
def publisher(coordination):
    return EventPublisher(coordination)


@pytest.fixture
def memory_settings():
    return Settings(STORE_BACKEND="memory", COORDINATION_BACKEND="memory")
