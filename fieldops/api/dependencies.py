from __future__ import annotations

from fastapi import Request

from fieldops.core.container import ServiceContainer
from fieldops.core.database import DatabaseManager


async def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


async def get_database(request: Request) -> DatabaseManager:
    return request.app.state.database
