"""Completion event bus."""

from typing import Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from app.config import settings
from app.core.exceptions import StoreUnavailableException
from app.messaging.work_queue import BODY_FIELD
from app.schemas.events import CompletionDetail, EventEnvelope

logger = structlog.get_logger(__name__)


class CompletionBus(Protocol):
    """Announces that an appointment reached its country ledger."""

    async def publish_completed(self, detail: CompletionDetail) -> str: ...


class RedisCompletionBus:
    """Publishes AppointmentCompleted envelopes onto the bus stream."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        stream: str | None = None,
        max_len: int | None = None,
    ):
        """Initialize bus with an async Redis client."""
        self.redis = redis_client
        self.stream = stream or settings.completion_bus_stream
        self.max_len = max_len or settings.stream_max_len

    async def publish_completed(self, detail: CompletionDetail) -> str:
        """Publish a completion event."""
        envelope = EventEnvelope.appointment_completed(detail)

        try:
            entry_id = await self.redis.xadd(
                self.stream,
                {BODY_FIELD: envelope.to_body()},
                maxlen=self.max_len,
                approximate=True,
            )
        except RedisError as e:
            raise StoreUnavailableException("completion_bus", str(e)) from e

        logger.info(
            "appointment_completion_published",
            stream=self.stream,
            entry_id=entry_id,
            appointment_id=detail.appointment_id,
        )
        return entry_id
