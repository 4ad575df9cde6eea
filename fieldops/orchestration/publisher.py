"""Domain event broadcaster over coordination-store pub/sub."""

from __future__ import annotations

import logging

from opentelemetry import trace

from fieldops.core.exceptions import DependencyUnavailableError
from fieldops.models.events import DomainEvent
from fieldops.stores.base import CoordinationStore
from fieldops.utils.monitoring import events_published_total

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class EventPublisher:
    """Best-effort publisher: delivery is neither guaranteed nor retried."""

    def __init__(self, store: CoordinationStore) -> None:
        self._store = store

    async def publish(self, event: DomainEvent) -> bool:
        encoded = event.encode()
        with tracer.start_as_current_span("event.publish") as span:
            span.set_attribute("messaging.system", "redis")
            span.set_attribute("messaging.destination", event.channel)
            span.set_attribute("payload.bytes", len(encoded))
            try:
                receivers = await self._store.publish(event.channel, encoded)
            except DependencyUnavailableError as exc:
                span.record_exception(exc)
                events_published_total.labels(channel=event.channel, result="failed").inc()
                logger.warning("Failed to publish %s event: %s", event.channel, exc)
                return False

        events_published_total.labels(channel=event.channel, result="published").inc()
        logger.debug("Published %s event to %d subscriber(s)", event.channel, receivers)
        return True
