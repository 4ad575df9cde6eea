"""Connection lifetime management for the durable and coordination stores."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorClient

from fieldops.core.config import Settings
from fieldops.core.exceptions import DependencyUnavailableError
from fieldops.stores.base import BookingStore, CoordinationStore, PartnerStore
from fieldops.stores.memory import MemoryBookingStore, MemoryCoordinationStore, MemoryPartnerStore
from fieldops.stores.mongo_store import MongoBookingStore, MongoPartnerStore, ensure_indexes
from fieldops.stores.redis_store import RedisCoordinationStore

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns store clients for the lifetime of the process.

    A single instance is created at startup and handed to the service
    container; components never open connections themselves.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self.redis: Optional[redis.Redis] = None
        self.mongodb: Optional[AsyncIOMotorClient] = None
        self.bookings: Optional[BookingStore] = None
        self.partners: Optional[PartnerStore] = None
        self.coordination: Optional[CoordinationStore] = None

    async def initialize(self) -> None:
        """Create store clients for the configured backends."""

        settings = self._settings
        logger.info(
            "Initializing database manager (store=%s, coordination=%s)",
            settings.STORE_BACKEND,
            settings.COORDINATION_BACKEND,
        )

        if settings.STORE_BACKEND == "mongo":
            self.mongodb = AsyncIOMotorClient(
                str(settings.MONGODB_URL),
                serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
                tz_aware=True,
            )
            db = self.mongodb[settings.MONGODB_DB]
            self.bookings = MongoBookingStore(db)
            self.partners = MongoPartnerStore(db)
        else:
            self.bookings = MemoryBookingStore()
            self.partners = MemoryPartnerStore()

        if settings.COORDINATION_BACKEND == "redis":
            self.redis = redis.from_url(
                str(settings.REDIS_URL),
                decode_responses=True,
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            )
            self.coordination = RedisCoordinationStore(self.redis)
        else:
            self.coordination = MemoryCoordinationStore()

        logger.info("Database manager initialized")

    async def ensure_indexes(self) -> None:
        if self.mongodb is None:
            logger.info("No MongoDB client configured; skipping index creation")
            return
        await ensure_indexes(self.mongodb[self._settings.MONGODB_DB])

    async def health_check(self) -> Dict[str, bool]:
        """Report reachability of each backing store."""

        result = {"redis": False, "mongo": False}

        if self.coordination is not None:
            try:
                result["redis"] = await self.coordination.ping()
            except DependencyUnavailableError as exc:
                logger.warning("Coordination store health check failed: %s", exc)

        if self.mongodb is not None:
            try:
                await self.mongodb.admin.command("ping")
                result["mongo"] = True
            except Exception as exc:
                logger.warning("MongoDB health check failed: %s", exc)
        elif self.bookings is not None:
            result["mongo"] = True

        return result

    async def close(self) -> None:
        """Tear down connections gracefully."""

        logger.info("Closing database connections")

        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

        if self.mongodb is not None:
            self.mongodb.close()
            self.mongodb = None

        self.bookings = None
        self.partners = None
        self.coordination = None
