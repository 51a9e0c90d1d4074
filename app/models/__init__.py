"""Database models."""

from app.models.ledger import appointments_cl, appointments_pe, ledger_tables, metadata

__all__ = [
    "appointments_cl",
    "appointments_pe",
    "ledger_tables",
    "metadata",
]
