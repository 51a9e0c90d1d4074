"""Appointment record store backed by Redis."""

from datetime import datetime
from typing import Protocol

import redis.asyncio as aioredis
import structlog
from pydantic import ValidationError
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError

from app.core.exceptions import StoreUnavailableException
from app.schemas.appointments import Appointment, AppointmentStatus

logger = structlog.get_logger(__name__)


class AppointmentRecordStore(Protocol):
    """Primary key-value record of appointments."""

    async def put(self, appointment: Appointment) -> Appointment: ...

    async def insert_if_absent(self, appointment: Appointment) -> bool: ...

    async def get(self, appointment_id: str) -> Appointment | None: ...

    async def mark_completed(self, appointment_id: str, updated_at: datetime) -> bool: ...

    async def list_by_insured(self, insured_id: str) -> list[Appointment]: ...


class RedisAppointmentRepository:
    """
    Appointments stored as JSON documents.

    Keys:
        appointment:{appointmentId} -> camelCase JSON document
        appointments:insured:{insuredId} -> set of appointment ids
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        key_prefix: str = "appointment",
        index_prefix: str = "appointments:insured",
    ):
        """Initialize repository with an async Redis client."""
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.index_prefix = index_prefix

    def _key(self, appointment_id: str) -> str:
        return f"{self.key_prefix}:{appointment_id}"

    def _index_key(self, insured_id: str) -> str:
        return f"{self.index_prefix}:{insured_id}"

    async def _write(self, appointment: Appointment, only_if_absent: bool) -> bool:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(
                    self._key(appointment.appointment_id),
                    appointment.model_dump_json(by_alias=True),
                    nx=only_if_absent,
                )
                # Same id always belongs to the same insured, re-adding is harmless
                pipe.sadd(self._index_key(appointment.insured_id), appointment.appointment_id)
                written, _ = await pipe.execute()
        except RedisError as e:
            raise StoreUnavailableException("appointment_store", str(e)) from e

        if written:
            logger.info(
                "appointment_record_saved",
                appointment_id=appointment.appointment_id,
                insured_id=appointment.insured_id,
            )
        return bool(written)

    async def put(self, appointment: Appointment) -> Appointment:
        """
        Upsert an appointment keyed by its id.

        Writing the same appointment twice leaves the same stored state.
        """
        await self._write(appointment, only_if_absent=False)
        return appointment

    async def insert_if_absent(self, appointment: Appointment) -> bool:
        """
        Store an appointment unless its id is already taken (``SET NX``).

        Returns:
            True if this call created the record, False if one already existed
        """
        return await self._write(appointment, only_if_absent=True)

    async def get(self, appointment_id: str) -> Appointment | None:
        """Get an appointment by id."""
        try:
            raw = await self.redis.get(self._key(appointment_id))
        except RedisError as e:
            raise StoreUnavailableException("appointment_store", str(e)) from e

        if raw is None:
            return None
        return Appointment.model_validate_json(raw)

    async def mark_completed(self, appointment_id: str, updated_at: datetime) -> bool:
        """
        Set status to completed without an existence pre-check.

        The document is rewritten under ``WATCH`` so a concurrent write makes
        the transaction retry instead of being overwritten. Only ``status`` and
        ``updatedAt`` change; every other field is written back as read.

        Returns:
            True if a record was updated, False if the key does not exist
        """
        key = self._key(appointment_id)

        async def complete(pipe: Pipeline) -> bool:
            raw = await pipe.get(key)
            if raw is None:
                return False
            appointment = Appointment.model_validate_json(raw)
            completed = appointment.model_copy(
                update={"status": AppointmentStatus.COMPLETED, "updated_at": updated_at}
            )
            pipe.multi()
            pipe.set(key, completed.model_dump_json(by_alias=True))
            return True

        try:
            return await self.redis.transaction(complete, key, value_from_callable=True)
        except RedisError as e:
            raise StoreUnavailableException("appointment_store", str(e)) from e

    async def list_by_insured(self, insured_id: str) -> list[Appointment]:
        """List all appointments of an insured, in no particular order."""
        try:
            appointment_ids = await self.redis.smembers(self._index_key(insured_id))
            if not appointment_ids:
                return []
            documents = await self.redis.mget([self._key(i) for i in sorted(appointment_ids)])
        except RedisError as e:
            raise StoreUnavailableException("appointment_store", str(e)) from e

        appointments = []
        for raw in documents:
            if raw is None:
                continue
            try:
                appointments.append(Appointment.model_validate_json(raw))
            except ValidationError as e:
                logger.warning("appointment_record_unreadable", insured_id=insured_id, error=str(e))
        return appointments
