#!/usr/bin/env python
"""
Database migration script for the coordination service.

Creates the MongoDB indexes the workflows depend on: the 2dsphere index on
partner locations used by nearest-partner assignment, and the status/city
filter indexes.

Usage:
    python scripts/migrate.py [migrate|check]
"""

from __future__ import annotations

import asyncio
import logging
import sys

from fieldops.core.config import settings
from fieldops.core.database import DatabaseManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run_migrations() -> None:
    database = DatabaseManager(settings)
    await database.initialize()
    try:
        await database.ensure_indexes()
    finally:
        await database.close()


async def check() -> int:
    database = DatabaseManager(settings)
    await database.initialize()
    try:
        health = await database.health_check()
    finally:
        await database.close()

    for store, healthy in health.items():
        logger.info("%s: %s", store, "reachable" if healthy else "UNREACHABLE")
    return 0 if all(health.values()) else 1


def main() -> int:
    command = sys.argv[1] if len(sys.argv) > 1 else "migrate"
    if command == "migrate":
        asyncio.run(run_migrations())
        return 0
    if command == "check":
        return asyncio.run(check())
    logger.error("Unknown command: %s", command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
