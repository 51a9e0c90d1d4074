"""Script to create the ledger table in each country database."""

import asyncio

from app.core.countries import CountryCode, get_route, verify_country_routes
from app.database import LedgerPoolRegistry
from app.models.ledger import ledger_tables, metadata


async def init_db() -> None:
    """Create every country's ledger table in that country's database."""
    verify_country_routes()
    registry = LedgerPoolRegistry()

    try:
        for country in CountryCode:
            table = ledger_tables[get_route(country).ledger_table]
            engine = await registry.get_engine(country)
            async with engine.begin() as conn:
                await conn.run_sync(metadata.create_all, tables=[table])
            print(f"✓ {table.name} ready for {country.value}")
    finally:
        await registry.dispose()

    print("✓ Ledger databases initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
