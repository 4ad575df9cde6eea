"""Pub/sub consumer that hands decoded domain events to registered handlers.

The coordination core never subscribes to its own events; this consumer
exists for external real-time clients such as the ``watch`` CLI command.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError

from fieldops.models.events import DomainEvent, decode_event
from fieldops.orchestration.keys import ALL_CHANNELS

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], Union[None, Awaitable[None]]]


class EventSubscriber:
    def __init__(self, client: redis.Redis, channels: Iterable[str] = ALL_CHANNELS) -> None:
        self._redis = client
        self._channels = tuple(channels)
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._pubsub: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None

    def on(self, channel: str, handler: EventHandler) -> None:
        if channel not in self._channels:
            raise ValueError(f"Not subscribed to channel: {channel}")
        self._handlers.setdefault(channel, []).append(handler)

    def on_any(self, handler: EventHandler) -> None:
        for channel in self._channels:
            self.on(channel, handler)

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await self._pubsub.subscribe(*self._channels)
        self._task = asyncio.create_task(self._consume())
        logger.info("Event subscriber listening on %s", ", ".join(self._channels))

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        if self._pubsub is not None:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None

    async def wait(self) -> None:
        if self._task:
            await self._task

    async def _consume(self) -> None:
        assert self._pubsub is not None
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "message":
                    continue
                await self.dispatch(message["channel"], message["data"])
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pragma: no cover - network errors
            logger.exception("Event subscriber encountered an error: %s", exc)

    async def dispatch(self, channel: str | bytes, payload: str | bytes) -> Optional[DomainEvent]:
        """Decode one message and run the handlers registered for its channel."""

        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")
        try:
            event = decode_event(channel, payload)
        except (ValueError, PydanticValidationError) as exc:
            logger.error("Error parsing event message on %s: %s", channel, exc)
            return None

        for handler in self._handlers.get(channel, []):
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        return event
