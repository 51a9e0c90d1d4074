"""
Completion reconciler worker.

    python -m app.workers.reconciler_worker
"""

import asyncio

import structlog

from app.config import settings
from app.core.countries import verify_country_routes
from app.core.redis_client import close_redis_connection, get_redis_client
from app.database import LedgerPoolRegistry
from app.messaging.work_queue import RedisStreamQueue, RedrivePolicy
from app.middleware.logging import configure_logging
from app.repositories.appointment_repository import RedisAppointmentRepository
from app.repositories.ledger_repository import SqlLedgerRepository
from app.services.completion_reconciler import CompletionReconciler
from app.workers.runner import QueueWorker, consumer_name, install_stop_signals

logger = structlog.get_logger(__name__)

CONSUMER_GROUP = "completion-reconciler"


async def run_reconciler_worker() -> None:
    """Drain the completion queue until stopped."""
    verify_country_routes()
    redis_client = get_redis_client()
    registry = LedgerPoolRegistry()

    reconciler = CompletionReconciler(
        records=RedisAppointmentRepository(redis_client),
        ledger=SqlLedgerRepository(registry),
    )
    queue = RedisStreamQueue(
        redis_client,
        stream=settings.completion_bus_stream,
        group=CONSUMER_GROUP,
        consumer=consumer_name(CONSUMER_GROUP),
        policy=RedrivePolicy.for_stream(settings.completion_bus_stream),
    )
    worker = QueueWorker("completion-reconciler", queue, reconciler.handle_batch)

    stop = asyncio.Event()
    install_stop_signals(stop)
    try:
        await worker.run(stop)
    finally:
        await registry.dispose()
        await close_redis_connection()


def main() -> None:
    """Command line entry point."""
    configure_logging("completion-reconciler")
    logger.info("reconciler_worker_starting")
    asyncio.run(run_reconciler_worker())


if __name__ == "__main__":
    main()
