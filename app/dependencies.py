"""FastAPI dependencies."""

from typing import Annotated

import redis.asyncio as aioredis
from fastapi import Depends, Request

from app.core.redis_client import get_redis_client
from app.database import LedgerPoolRegistry
from app.messaging.notification_channel import RedisNotificationChannel
from app.repositories.appointment_repository import RedisAppointmentRepository
from app.services.booking_service import BookingOrchestrator


def get_ledger_registry(request: Request) -> LedgerPoolRegistry:
    """Ledger pool registry owned by the application lifespan."""
    return request.app.state.ledger_registry


def get_booking_orchestrator(
    redis_client: Annotated[aioredis.Redis, Depends(get_redis_client)],
) -> BookingOrchestrator:
    """
    Build the booking orchestrator over the Redis record store and channel.

    Args:
        redis_client: Shared async Redis client

    Returns:
        Booking orchestrator
    """
    return BookingOrchestrator(
        records=RedisAppointmentRepository(redis_client),
        channel=RedisNotificationChannel(redis_client),
    )


# Type aliases for dependency injection
RedisClient = Annotated[aioredis.Redis, Depends(get_redis_client)]
LedgerRegistry = Annotated[LedgerPoolRegistry, Depends(get_ledger_registry)]
Orchestrator = Annotated[BookingOrchestrator, Depends(get_booking_orchestrator)]
