"""Country ledger tables using SQLAlchemy Core."""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    MetaData,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, VARCHAR

# Metadata for all ledger tables
metadata = MetaData()


def _ledger_table(name: str) -> Table:
    return Table(
        name,
        metadata,
        Column("id", BigInteger, primary_key=True, autoincrement=True),
        # Not unique: redelivered notifications may append duplicate rows
        Column("appointment_id", VARCHAR(36), nullable=False, index=True),
        Column("insured_id", VARCHAR(64), nullable=False),
        # Bare slot number or composite schedule key, stored as received
        Column("schedule_id", JSONB, nullable=False),
        Column("country_iso", VARCHAR(2), nullable=False),
        Column("status", Text, nullable=False, server_default="pending"),
        Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        Column("updated_at", TIMESTAMP(timezone=True), nullable=True),
        CheckConstraint(
            "status IN ('pending', 'completed')",
            name=f"{name}_status_check",
        ),
    )


appointments_pe = _ledger_table("appointments_pe")
appointments_cl = _ledger_table("appointments_cl")

ledger_tables: dict[str, Table] = {
    table.name: table for table in (appointments_pe, appointments_cl)
}
