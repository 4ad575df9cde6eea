"""Redis-backed coordination store."""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from fieldops.core.exceptions import DependencyUnavailableError
from fieldops.stores.base import WindowSnapshot

logger = logging.getLogger(__name__)

# Only delete the lock if it still carries our token, so a holder whose lease
# expired cannot release a lock that now belongs to someone else.
COMPARE_AND_DELETE = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

SLIDING_WINDOW_ADMIT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local member = ARGV[4]

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
local admitted = 0
if count < limit then
    redis.call('ZADD', key, now, member)
    admitted = 1
end
redis.call('PEXPIRE', key, window)

local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
local oldest_score = -1
if oldest[2] then
    oldest_score = tonumber(oldest[2])
end
return {admitted, count, oldest_score}
"""


@contextlib.contextmanager
def _unavailable_on_connection_error() -> Iterator[None]:
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
        raise DependencyUnavailableError("redis", f"Redis unavailable: {exc}") from exc


def _snapshot(admitted: int, count: int, oldest_score: float) -> WindowSnapshot:
    oldest: Optional[int] = int(oldest_score) if oldest_score >= 0 else None
    return WindowSnapshot(admitted=bool(admitted), count=int(count), oldest_ms=oldest)


class RedisCoordinationStore:
    def __init__(self, client: redis.Redis) -> None:
        self._redis = client
        self._compare_and_delete = client.register_script(COMPARE_AND_DELETE)
        self._sliding_window_admit = client.register_script(SLIDING_WINDOW_ADMIT)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        with _unavailable_on_connection_error():
            result = await self._redis.set(key, value, ex=ttl_seconds, nx=True)
        return bool(result)

    async def delete_if_equals(self, key: str, value: str) -> bool:
        with _unavailable_on_connection_error():
            deleted = await self._compare_and_delete(keys=[key], args=[value])
        return bool(deleted)

    async def exists(self, key: str) -> bool:
        with _unavailable_on_connection_error():
            return await self._redis.exists(key) == 1

    async def sliding_window_admit(
        self,
        key: str,
        *,
        now_ms: int,
        window_ms: int,
        limit: int,
        member: str,
    ) -> WindowSnapshot:
        with _unavailable_on_connection_error():
            admitted, count, oldest = await self._sliding_window_admit(
                keys=[key], args=[now_ms, window_ms, limit, member]
            )
        return _snapshot(admitted, count, float(oldest))

    async def sliding_window_count(self, key: str, *, now_ms: int, window_ms: int) -> WindowSnapshot:
        with _unavailable_on_connection_error():
            count = await self._redis.zcount(key, f"({now_ms - window_ms}", "+inf")
            oldest = await self._redis.zrangebyscore(
                key, f"({now_ms - window_ms}", "+inf", start=0, num=1, withscores=True
            )
        oldest_score = float(oldest[0][1]) if oldest else -1.0
        return _snapshot(0, count, oldest_score)

    async def publish(self, channel: str, message: str) -> int:
        with _unavailable_on_connection_error():
            return await self._redis.publish(channel, message)

    async def ping(self) -> bool:
        with _unavailable_on_connection_error():
            return bool(await self._redis.ping())
