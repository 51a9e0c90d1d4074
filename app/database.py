"""Ledger database connection management."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from app.config import Settings, settings
from app.core.countries import CountryCode, get_route

logger = structlog.get_logger(__name__)

UrlResolver = Callable[[CountryCode], Awaitable[str]]


def to_async_url(url: str) -> str:
    """Convert a sync PostgreSQL URL to its asyncpg form."""
    return url.replace("postgresql://", "postgresql+asyncpg://", 1)


async def resolve_ledger_url(country: CountryCode) -> str:
    """
    Resolve the connection URL, credentials included, for a country ledger.

    Called once per engine, never per query.
    """
    return to_async_url(get_route(country).database_url())


class LedgerPoolRegistry:
    """
    Process-owned registry of ledger connection pools.

    One async engine per country database, created on first use and reused
    for the lifetime of the owner (API lifespan or worker process).
    """

    def __init__(
        self,
        url_resolver: UrlResolver = resolve_ledger_url,
        engine_factory: Callable[..., AsyncEngine] = create_async_engine,
        config: Settings | None = None,
    ):
        """Initialize an empty registry."""
        config = config or settings
        self._url_resolver = url_resolver
        self._engine_factory = engine_factory
        self._engine_options: dict[str, Any] = {
            "echo": config.debug,
            "pool_pre_ping": True,
            "pool_size": config.ledger_pool_size,
            "max_overflow": config.ledger_max_overflow,
            "pool_recycle": config.ledger_pool_recycle,
        }
        self._engines: dict[CountryCode, AsyncEngine] = {}
        self._locks: dict[CountryCode, asyncio.Lock] = {
            country: asyncio.Lock() for country in CountryCode
        }

    async def get_engine(self, country: CountryCode) -> AsyncEngine:
        """Get the engine for a country, creating it on first call."""
        engine = self._engines.get(country)
        if engine is not None:
            return engine

        async with self._locks[country]:
            engine = self._engines.get(country)
            if engine is None:
                url = await self._url_resolver(country)
                engine = self._engine_factory(url, **self._engine_options)
                self._engines[country] = engine
                logger.info("ledger_pool_created", country=country.value)

        return engine

    async def check_connection(self, country: CountryCode) -> bool:
        """Check if a country ledger database is reachable."""
        try:
            engine = await self.get_engine(country)
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    async def dispose(self) -> None:
        """Close every pool created so far."""
        engines, self._engines = self._engines, {}
        for country, engine in engines.items():
            await engine.dispose()
            logger.info("ledger_pool_disposed", country=country.value)
