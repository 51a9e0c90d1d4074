"""Health check endpoints."""

from typing import Literal

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from app.config import settings
from app.core.countries import CountryCode
from app.core.redis_client import check_redis_connection
from app.dependencies import LedgerRegistry

router = APIRouter()

ComponentState = Literal["healthy", "unhealthy"]


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health of the record store and of every country ledger."""

    redis: ComponentState
    ledgers: dict[str, ComponentState]


def _state(ok: bool) -> ComponentState:
    return "healthy" if ok else "unhealthy"


async def _dependencies_health(registry: LedgerRegistry) -> DetailedHealthResponse:
    redis_state = _state(await check_redis_connection())
    ledgers = {
        country.value: _state(await registry.check_connection(country)) for country in CountryCode
    }
    states = [redis_state, *ledgers.values()]

    return DetailedHealthResponse(
        status="healthy" if all(s == "healthy" for s in states) else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        redis=redis_state,
        ledgers=ledgers,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Liveness check",
)
async def health_check() -> HealthResponse:
    """Report that the process is serving requests."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check(registry: LedgerRegistry) -> DetailedHealthResponse:
    """
    Detailed health check with Redis and per-country ledger status.

    Always answers 200; a ``degraded`` status lists the failing components.
    """
    return await _dependencies_health(registry)


@router.get(
    "/health/ready",
    response_model=DetailedHealthResponse,
    tags=["Health"],
    summary="Readiness check",
)
async def readiness_check(registry: LedgerRegistry, response: Response) -> DetailedHealthResponse:
    """
    Readiness probe.

    Returns 503 while the record store or any country ledger is unreachable.
    """
    health = await _dependencies_health(registry)
    if health.status != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return health


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """
    Simple ping endpoint.

    Returns:
        Pong response
    """
    return {"message": "pong"}
