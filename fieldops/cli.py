"""Command line entry for the coordination service."""

from __future__ import annotations

import argparse
import asyncio
import logging

import redis.asyncio as redis
import uvicorn

from fieldops.core.config import get_settings
from fieldops.models.events import DomainEvent
from fieldops.orchestration.consumer import EventSubscriber

logger = logging.getLogger(__name__)


def run_server(host: str, port: int) -> None:
    uvicorn.run("fieldops.api.main:app", host=host, port=port)


def _print_event(event: DomainEvent) -> None:
    print(f"{event.channel} {event.encode()}", flush=True)


async def watch_events() -> None:
    """Print every domain event published on the coordination store."""

    settings = get_settings()
    client = redis.from_url(str(settings.REDIS_URL), decode_responses=True)
    subscriber = EventSubscriber(client)
    subscriber.on_any(_print_event)
    await subscriber.start()
    try:
        await subscriber.wait()
    finally:
        await subscriber.stop()
        await client.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(prog="fieldops")
    subcommands = parser.add_subparsers(dest="command")

    serve = subcommands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8080)

    subcommands.add_parser("watch", help="Stream domain events to stdout")

    args = parser.parse_args()
    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "watch":
        asyncio.run(watch_events())
    else:
        run_server(getattr(args, "host", "0.0.0.0"), getattr(args, "port", 8080))


if __name__ == "__main__":
    main()
