"""Envelopes carried by the notification channel and the completion bus."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import Field

from app.core.countries import get_route
from app.schemas.appointments import Appointment, CamelModel


class DetailType(str, Enum):
    """Event types."""

    APPOINTMENT_CREATED = "AppointmentCreated"
    APPOINTMENT_COMPLETED = "AppointmentCompleted"


class CompletionDetail(CamelModel):
    """Payload announcing that a ledger row was written."""

    appointment_id: str = Field(..., min_length=1)
    insured_id: str
    # Raw string: unsupported codes are tolerated by the reconciler
    country_code: str


class EventEnvelope(CamelModel):
    """Generic envelope around a business payload (``detail``)."""

    id: UUID = Field(default_factory=uuid4)
    source: str
    detail_type: DetailType
    time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    detail: dict[str, Any]

    @classmethod
    def appointment_created(cls, appointment: Appointment) -> "EventEnvelope":
        """Wrap a freshly booked appointment for its country channel."""
        return cls(
            source=get_route(appointment.country_code).source,
            detail_type=DetailType.APPOINTMENT_CREATED,
            detail=appointment.to_payload(),
        )

    @classmethod
    def appointment_completed(cls, detail: CompletionDetail) -> "EventEnvelope":
        """Wrap a completion payload for the completion bus."""
        return cls(
            source=f"appointments.{detail.country_code.lower()}",
            detail_type=DetailType.APPOINTMENT_COMPLETED,
            detail=detail.model_dump(mode="json", by_alias=True),
        )

    def to_body(self) -> str:
        """Serialize for a queue entry."""
        return self.model_dump_json(by_alias=True)
