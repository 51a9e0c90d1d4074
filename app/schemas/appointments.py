"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from app.core.countries import CountryCode


class CamelModel(BaseModel):
    """Base model exchanged in camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    COMPLETED = "completed"


class ScheduleKey(CamelModel):
    """
    Composite key identifying a schedule slot.

    Passed through verbatim, so values are never coerced and unknown keys
    are rejected rather than dropped.
    """

    model_config = ConfigDict(extra="forbid")

    schedule_id: StrictInt
    center_id: StrictInt
    specialty_id: StrictInt
    medic_id: StrictInt
    date: StrictStr


ScheduleSlot = StrictInt | ScheduleKey


class AppointmentCreate(CamelModel):
    """Schema for booking a new appointment."""

    insured_id: str = Field(..., min_length=1, max_length=64)
    schedule_slot: ScheduleSlot
    # Validated by the booking orchestrator so the rejection names the code
    country_code: str


class Appointment(CamelModel):
    """Appointment aggregate as stored, published and returned."""

    appointment_id: str
    insured_id: str
    schedule_slot: ScheduleSlot
    country_code: CountryCode
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: datetime
    updated_at: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-compatible camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)

    def schedule_slot_payload(self) -> Any:
        """Schedule slot exactly as it travels on the wire."""
        return self.to_payload()["scheduleSlot"]


class AppointmentListResponse(BaseModel):
    """Schema for the appointments of one insured."""

    total: int
    items: list[Appointment]
