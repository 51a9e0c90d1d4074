"""Booking orchestrator: first hop of the appointment saga."""

from collections.abc import Callable
from datetime import UTC, datetime
from uuid import NAMESPACE_URL, uuid4, uuid5

import structlog

from app.core.countries import parse_country_code
from app.core.exceptions import (
    ConflictException,
    NotificationFailureException,
    StoreUnavailableException,
)
from app.messaging.notification_channel import NotificationChannel
from app.repositories.appointment_repository import AppointmentRecordStore
from app.schemas.appointments import Appointment, AppointmentStatus, ScheduleSlot

logger = structlog.get_logger(__name__)

IDEMPOTENCY_NAMESPACE = uuid5(NAMESPACE_URL, "urn:appointments:idempotency-key")


def utcnow() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


def appointment_id_for_key(insured_id: str, idempotency_key: str) -> str:
    """Deterministic appointment id for a client idempotency key."""
    return str(uuid5(IDEMPOTENCY_NAMESPACE, f"{insured_id}:{idempotency_key}"))


class BookingOrchestrator:
    """Validates, stores and announces new appointments."""

    def __init__(
        self,
        records: AppointmentRecordStore,
        channel: NotificationChannel,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize orchestrator with its store and channel."""
        self.records = records
        self.channel = channel
        self.clock = clock

    async def book(
        self,
        insured_id: str,
        schedule_slot: ScheduleSlot,
        country_code: str,
        idempotency_key: str | None = None,
    ) -> Appointment:
        """
        Book an appointment.

        The record is written before it is published, so a consumer never
        sees an appointment missing from the store of record.

        Args:
            insured_id: Insured booking the appointment
            schedule_slot: Slot number or composite schedule key, passed through
            country_code: Country of the appointment
            idempotency_key: Optional client key making retries converge

        Returns:
            The pending appointment

        Raises:
            InvalidCountryException: Unsupported country, nothing written
            ConflictException: Idempotency key reused for a different booking
            StoreUnavailableException: Record could not be written, nothing published
            NotificationFailureException: Record written but not published
        """
        country = parse_country_code(country_code)

        if idempotency_key:
            appointment_id = appointment_id_for_key(insured_id, idempotency_key)
        else:
            appointment_id = str(uuid4())

        appointment = Appointment(
            appointment_id=appointment_id,
            insured_id=insured_id,
            schedule_slot=schedule_slot,
            country_code=country,
            status=AppointmentStatus.PENDING,
            created_at=self.clock(),
        )

        if idempotency_key:
            # Conditional write: of two concurrent requests only one creates the record
            if not await self.records.insert_if_absent(appointment):
                existing = await self.records.get(appointment_id)
                if existing is None:
                    raise StoreUnavailableException(
                        "appointment_store", f"{appointment_id} vanished after insert conflict"
                    )
                return await self._replay(existing, appointment)
        else:
            await self.records.put(appointment)

        logger.info(
            "appointment_stored",
            appointment_id=appointment.appointment_id,
            insured_id=insured_id,
            country=country.value,
        )

        await self._publish(appointment)
        return appointment

    async def list_by_insured(self, insured_id: str) -> list[Appointment]:
        """List the appointments of an insured."""
        appointments = await self.records.list_by_insured(insured_id)
        logger.info("appointments_listed", insured_id=insured_id, found=len(appointments))
        return appointments

    async def _replay(self, existing: Appointment, requested: Appointment) -> Appointment:
        if (
            existing.country_code != requested.country_code
            or existing.schedule_slot_payload() != requested.schedule_slot_payload()
        ):
            raise ConflictException("Idempotency key already used for a different appointment")

        logger.info(
            "appointment_booking_replayed",
            appointment_id=existing.appointment_id,
            status=existing.status.value,
        )
        # A pending record may never have reached its channel
        if existing.status == AppointmentStatus.PENDING:
            await self._publish(existing)
        return existing

    async def _publish(self, appointment: Appointment) -> None:
        try:
            await self.channel.publish(appointment)
        except Exception as e:
            logger.error(
                "appointment_publish_failed",
                appointment_id=appointment.appointment_id,
                country=appointment.country_code.value,
                error=str(e),
            )
            raise NotificationFailureException(appointment.appointment_id) from e

        logger.info(
            "appointment_published",
            appointment_id=appointment.appointment_id,
            country=appointment.country_code.value,
        )
