"""
Country consumer worker.

Run one process per supported country:
    python -m app.workers.country_worker --country PE
"""

import argparse
import asyncio
from collections.abc import Sequence

import structlog

from app.core.countries import CountryCode, get_route, verify_country_routes
from app.core.redis_client import close_redis_connection, get_redis_client
from app.database import LedgerPoolRegistry
from app.messaging.completion_bus import RedisCompletionBus
from app.messaging.work_queue import QueueMessage, RedisStreamQueue, RedrivePolicy
from app.middleware.logging import configure_logging
from app.repositories.ledger_repository import SqlLedgerRepository
from app.services.country_consumer import CountryConsumer
from app.workers.runner import QueueWorker, consumer_name, install_stop_signals

logger = structlog.get_logger(__name__)


def consumer_group(country: CountryCode) -> str:
    """Consumer group subscribed to a country's notification stream."""
    return f"ledger-{country.value.lower()}"


async def run_country_worker(country: CountryCode) -> None:
    """Drain the country's queue until stopped."""
    verify_country_routes()
    route = get_route(country)
    redis_client = get_redis_client()
    registry = LedgerPoolRegistry()

    consumer = CountryConsumer(
        country=country,
        ledger=SqlLedgerRepository(registry),
        bus=RedisCompletionBus(redis_client),
    )

    async def handle(messages: Sequence[QueueMessage]) -> list[str]:
        result = await consumer.handle_batch(messages)
        return result.acknowledged

    queue = RedisStreamQueue(
        redis_client,
        stream=route.topic,
        group=consumer_group(country),
        consumer=consumer_name(consumer_group(country)),
        policy=RedrivePolicy.for_stream(route.topic),
    )
    worker = QueueWorker(f"country-{country.value.lower()}", queue, handle)

    stop = asyncio.Event()
    install_stop_signals(stop)
    try:
        await worker.run(stop)
    finally:
        await registry.dispose()
        await close_redis_connection()


def main(argv: list[str] | None = None) -> None:
    """Command line entry point."""
    parser = argparse.ArgumentParser(description="Country ledger consumer")
    parser.add_argument(
        "--country",
        required=True,
        type=str.upper,
        choices=[country.value for country in CountryCode],
    )
    args = parser.parse_args(argv)

    configure_logging(f"country-{args.country.lower()}")
    logger.info("country_worker_starting", country=args.country)
    asyncio.run(run_country_worker(CountryCode(args.country)))


if __name__ == "__main__":
    main()
