"""Queue polling loop shared by the saga workers."""

import asyncio
import os
import signal
import socket
from collections.abc import Awaitable, Callable, Sequence

import structlog
from redis.exceptions import RedisError

from app.config import settings
from app.messaging.work_queue import QueueMessage, RedisStreamQueue

logger = structlog.get_logger(__name__)

BatchHandler = Callable[[Sequence[QueueMessage]], Awaitable[Sequence[str]]]


def consumer_name(prefix: str) -> str:
    """Unique consumer name for this process."""
    return f"{prefix}-{socket.gethostname()}-{os.getpid()}"


class QueueWorker:
    """
    Receives batches, hands them to a handler and acknowledges what settled.

    The handler returns the ids it settled. Anything else stays pending and
    is redelivered by the queue after its visibility timeout; when the handler
    raises, the whole batch stays pending.
    """

    def __init__(
        self,
        name: str,
        queue: RedisStreamQueue,
        handler: BatchHandler,
        batch_size: int | None = None,
        block_ms: int | None = None,
        error_backoff: float = 1.0,
    ):
        """Initialize worker."""
        self.name = name
        self.queue = queue
        self.handler = handler
        self.batch_size = batch_size or settings.queue_batch_size
        self.block_ms = block_ms if block_ms is not None else settings.queue_block_ms
        self.error_backoff = error_backoff

    async def run_once(self) -> int:
        """
        Process one batch.

        Returns:
            Number of acknowledged deliveries
        """
        messages = await self.queue.receive(self.batch_size, block_ms=self.block_ms)
        if not messages:
            return 0

        try:
            settled = await self.handler(messages)
        except Exception as e:
            logger.warning(
                "batch_left_for_redelivery",
                worker=self.name,
                size=len(messages),
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

        if settled:
            await self.queue.ack(*settled)
        return len(settled)

    async def run(self, stop: asyncio.Event) -> None:
        """Poll until ``stop`` is set."""
        await self.queue.ensure_group()
        logger.info(
            "worker_started",
            worker=self.name,
            stream=self.queue.stream,
            group=self.queue.group,
            consumer=self.queue.consumer,
        )

        while not stop.is_set():
            try:
                await self.run_once()
            except RedisError as e:
                logger.error("worker_queue_unavailable", worker=self.name, error=str(e))
                await asyncio.sleep(self.error_backoff)

        logger.info("worker_stopped", worker=self.name)


def install_stop_signals(stop: asyncio.Event) -> None:
    """Set ``stop`` on SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Signal handlers are unavailable on some platforms
            pass
