"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.router import api_router
from app.config import settings
from app.core.countries import CountryCode, verify_country_routes
from app.core.exceptions import AppException
from app.core.redis_client import close_redis_connection, get_redis_client
from app.database import LedgerPoolRegistry
from app.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.middleware.logging import LoggingMiddleware, configure_logging

configure_logging("api")
logger = structlog.get_logger()


async def _check_backends(registry: LedgerPoolRegistry) -> None:
    """Log the reachability of Redis and every country ledger."""
    try:
        await get_redis_client().ping()
        logger.info("redis_connected")
    except RedisError as e:
        logger.error("redis_connection_failed", error=str(e))

    for country in CountryCode:
        if await registry.check_connection(country):
            logger.info("ledger_connected", country=country.value)
        else:
            logger.warning("ledger_connection_failed", country=country.value)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Own the process-wide resources.

    The routing table is verified before serving; unreachable backends are
    logged but do not prevent startup, requests then fail with 503.
    """
    logger.info("application_startup", environment=settings.environment)
    verify_country_routes()

    registry = LedgerPoolRegistry()
    app.state.ledger_registry = registry
    await _check_backends(registry)

    yield

    logger.info("application_shutdown")
    await registry.dispose()
    await close_redis_connection()
    logger.info("connections_closed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Appointment booking for insured users, recorded per country",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Idempotency-Key", "X-Request-ID"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)
app.add_middleware(LoggingMiddleware)

app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(
    RequestValidationError,
    validation_exception_handler,  # type: ignore[arg-type]
)
app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]

app.include_router(api_router, prefix=settings.api_v1_prefix)

# Request metrics; booking outcomes are visible per status code
Instrumentator(
    should_group_status_codes=False,
    should_ignore_untemplated=True,
    excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics", ".*/ping"],
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/", tags=["Root"])
async def root() -> dict[str, object]:
    """
    Service summary.

    Returns:
        Name, version and supported countries
    """
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "countries": [country.value for country in CountryCode],
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
