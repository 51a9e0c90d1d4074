"""Country ledger store backed by one relational database per country."""

from datetime import datetime
from typing import Protocol

import structlog
from sqlalchemy import Table, insert, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.sql.dml import Insert, Update

from app.core.countries import CountryCode, get_route
from app.core.exceptions import StoreUnavailableException
from app.database import LedgerPoolRegistry
from app.models.ledger import ledger_tables
from app.schemas.appointments import Appointment, AppointmentStatus

logger = structlog.get_logger(__name__)


class LedgerStore(Protocol):
    """Per-country historical record of appointments."""

    async def insert(self, appointment: Appointment) -> None: ...

    async def mark_completed(
        self,
        country: CountryCode,
        appointment_id: str,
        updated_at: datetime,
    ) -> int: ...


def ledger_table_for(country: CountryCode) -> Table:
    """Get the ledger table routed to a country."""
    return ledger_tables[get_route(country).ledger_table]


def build_insert(appointment: Appointment) -> Insert:
    """Build the append statement for an appointment."""
    table = ledger_table_for(appointment.country_code)
    return insert(table).values(
        appointment_id=appointment.appointment_id,
        insured_id=appointment.insured_id,
        schedule_id=appointment.schedule_slot_payload(),
        country_iso=appointment.country_code.value,
        status=appointment.status.value,
        created_at=appointment.created_at,
    )


def build_mark_completed(
    country: CountryCode,
    appointment_id: str,
    updated_at: datetime,
) -> Update:
    """Build the status update for every ledger row of an appointment."""
    table = ledger_table_for(country)
    return (
        update(table)
        .where(table.c.appointment_id == appointment_id)
        .values(status=AppointmentStatus.COMPLETED.value, updated_at=updated_at)
    )


class SqlLedgerRepository:
    """Ledger operations routed through the per-country pool registry."""

    def __init__(self, registry: LedgerPoolRegistry):
        """Initialize repository with the process pool registry."""
        self.registry = registry

    async def insert(self, appointment: Appointment) -> None:
        """
        Append a ledger row.

        Duplicate rows for one appointment are tolerated.

        Raises:
            StoreUnavailableException: If the country database cannot be reached
        """
        stmt = build_insert(appointment)
        try:
            engine = await self.registry.get_engine(appointment.country_code)
            async with engine.begin() as conn:
                await conn.execute(stmt)
        except (DBAPIError, OSError) as e:
            store = f"ledger_{appointment.country_code.value.lower()}"
            raise StoreUnavailableException(store, str(e)) from e

        logger.info(
            "ledger_row_inserted",
            table=stmt.table.name,
            appointment_id=appointment.appointment_id,
        )

    async def mark_completed(
        self,
        country: CountryCode,
        appointment_id: str,
        updated_at: datetime,
    ) -> int:
        """
        Mark the ledger rows of an appointment as completed.

        Returns:
            Number of rows updated (0 when the appointment has no rows)
        """
        stmt = build_mark_completed(country, appointment_id, updated_at)
        try:
            engine = await self.registry.get_engine(country)
            async with engine.begin() as conn:
                result = await conn.execute(stmt)
        except (DBAPIError, OSError) as e:
            raise StoreUnavailableException(f"ledger_{country.value.lower()}", str(e)) from e

        logger.info(
            "ledger_status_updated",
            table=stmt.table.name,
            appointment_id=appointment_id,
            rows=result.rowcount,
        )
        return result.rowcount
