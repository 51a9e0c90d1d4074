"""Appointment endpoints."""

from fastapi import APIRouter, Header, Path, status

from app.dependencies import Orchestrator
from app.schemas.appointments import (
    Appointment,
    AppointmentCreate,
    AppointmentListResponse,
)

router = APIRouter()


@router.post(
    "/",
    response_model=Appointment,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    orchestrator: Orchestrator,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key", max_length=128),
) -> Appointment:
    """
    Book an appointment for an insured.

    The appointment is returned as pending; it becomes completed once the
    country ledger has recorded it.

    Args:
        data: Booking request
        orchestrator: Booking orchestrator
        idempotency_key: Optional key making client retries converge

    Returns:
        Pending appointment
    """
    return await orchestrator.book(
        insured_id=data.insured_id,
        schedule_slot=data.schedule_slot,
        country_code=data.country_code,
        idempotency_key=idempotency_key,
    )


@router.get(
    "/{insured_id}",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments of an insured",
)
async def list_appointments(
    orchestrator: Orchestrator,
    insured_id: str = Path(..., min_length=1, max_length=64),
) -> AppointmentListResponse:
    """
    List every appointment of an insured with its current status.

    Args:
        orchestrator: Booking orchestrator
        insured_id: Insured identifier

    Returns:
        Appointments of the insured
    """
    items = await orchestrator.list_by_insured(insured_id)
    return AppointmentListResponse(total=len(items), items=items)
