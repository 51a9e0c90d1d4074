"""Country-partitioned notification channel."""

from typing import Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from app.config import settings
from app.core.countries import get_route
from app.core.exceptions import StoreUnavailableException
from app.messaging.work_queue import BODY_FIELD
from app.schemas.appointments import Appointment
from app.schemas.events import EventEnvelope

logger = structlog.get_logger(__name__)


class NotificationChannel(Protocol):
    """Fan-out of booked appointments to their country consumers."""

    async def publish(self, appointment: Appointment) -> str: ...


class RedisNotificationChannel:
    """Publishes AppointmentCreated envelopes onto the country's stream."""

    def __init__(self, redis_client: aioredis.Redis, max_len: int | None = None):
        """Initialize channel with an async Redis client."""
        self.redis = redis_client
        self.max_len = max_len or settings.stream_max_len

    async def publish(self, appointment: Appointment) -> str:
        """
        Publish the full appointment to its country partition.

        Returns:
            Stream entry id
        """
        topic = get_route(appointment.country_code).topic
        envelope = EventEnvelope.appointment_created(appointment)

        try:
            entry_id = await self.redis.xadd(
                topic,
                {BODY_FIELD: envelope.to_body()},
                maxlen=self.max_len,
                approximate=True,
            )
        except RedisError as e:
            raise StoreUnavailableException("notification_channel", str(e)) from e

        logger.info(
            "appointment_notification_published",
            topic=topic,
            entry_id=entry_id,
            appointment_id=appointment.appointment_id,
        )
        return entry_id
