from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.countries import CountryCode
from app.dependencies import get_booking_orchestrator
from app.main import app
from app.services.booking_service import BookingOrchestrator
from app.services.completion_reconciler import CompletionReconciler
from app.services.country_consumer import CountryConsumer
from tests.doubles import (
    InMemoryAppointmentStore,
    InMemoryLedger,
    RecordingBus,
    RecordingChannel,
    TickingClock,
)


@pytest.fixture
def record_store() -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def bus() -> RecordingBus:
    return RecordingBus()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def orchestrator(record_store, channel, clock) -> BookingOrchestrator:
    return BookingOrchestrator(records=record_store, channel=channel, clock=clock)


@pytest.fixture
def pe_consumer(ledger, bus) -> CountryConsumer:
    return CountryConsumer(CountryCode.PE, ledger=ledger, bus=bus)


@pytest.fixture
def reconciler(record_store, ledger, clock) -> CompletionReconciler:
    return CompletionReconciler(records=record_store, ledger=ledger, clock=clock)


@pytest.fixture
def composite_slot() -> dict:
    """Composite schedule key as sent by clients."""
    return {
        "scheduleId": 100,
        "centerId": 4,
        "specialtyId": 3,
        "medicId": 7,
        "date": "2026-02-01T12:30:00Z",
    }


@pytest_asyncio.fixture
async def client(orchestrator: BookingOrchestrator) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    app.dependency_overrides[get_booking_orchestrator] = lambda: orchestrator

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
