"""Tests for appointment endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from app.api.v1.endpoints import health
from app.core.countries import CountryCode
from app.dependencies import get_ledger_registry
from app.main import app

BOOKING_URL = "/api/v1/appointments/"


@pytest.mark.asyncio
async def test_create_appointment(client: AsyncClient, channel):
    """Test booking returns the pending appointment in camelCase."""
    response = await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": 100, "countryCode": "PE"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["insuredId"] == "00001"
    assert data["scheduleSlot"] == 100
    assert data["countryCode"] == "PE"
    assert data["status"] == "pending"
    assert data["appointmentId"]
    assert data["createdAt"]
    assert data["updatedAt"] is None
    assert len(channel.bodies[CountryCode.PE]) == 1


@pytest.mark.asyncio
async def test_create_appointment_with_composite_slot(client: AsyncClient, composite_slot):
    """Test a composite schedule key is echoed unchanged."""
    response = await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": composite_slot, "countryCode": "CL"},
    )

    assert response.status_code == 201
    assert response.json()["scheduleSlot"] == composite_slot


@pytest.mark.asyncio
async def test_create_appointment_invalid_country(client: AsyncClient, record_store):
    """Test an unsupported country is rejected with 400 naming the code."""
    response = await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": 100, "countryCode": "XX"},
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "InvalidCountryException"
    assert "XX" in data["message"]
    assert record_store.items == {}


@pytest.mark.asyncio
async def test_create_appointment_missing_fields(client: AsyncClient):
    """Test a request without a schedule slot fails validation."""
    response = await client.post(BOOKING_URL, json={"insuredId": "00001", "countryCode": "PE"})

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "slot",
    [
        "100",
        {
            "scheduleId": 100,
            "centerId": "4",
            "specialtyId": 3,
            "medicId": 7,
            "date": "2026-02-01T12:30:00Z",
        },
        {
            "scheduleId": 100,
            "centerId": 4,
            "specialtyId": 3,
            "medicId": 7,
            "date": "2026-02-01T12:30:00Z",
            "room": "B2",
        },
    ],
)
async def test_create_appointment_rejects_slot_it_cannot_keep_verbatim(
    client: AsyncClient, record_store, channel, slot
):
    """Test a slot that would be coerced or trimmed is rejected instead of altered."""
    response = await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": slot, "countryCode": "PE"},
    )

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"
    assert record_store.items == {}
    assert channel.published == 0


@pytest.mark.asyncio
async def test_create_appointment_large_slot_echoed_exactly(client: AsyncClient):
    response = await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": 12345678901234567, "countryCode": "PE"},
    )

    assert response.status_code == 201
    assert response.json()["scheduleSlot"] == 12345678901234567


@pytest.mark.asyncio
async def test_create_appointment_long_country_code_named_in_error(client: AsyncClient):
    """Test a long unsupported country code gets the same 400 as a short one."""
    response = await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": 100, "countryCode": "PERUVIAN-REPUBLIC"},
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "InvalidCountryException"
    assert "PERUVIAN-REPUBLIC" in data["message"]


@pytest.mark.asyncio
async def test_create_appointment_publish_failure(client: AsyncClient, channel, record_store):
    """Test a failed publish answers a generic 500 and keeps the record."""
    channel.fail = True

    response = await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": 100, "countryCode": "PE"},
    )

    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "NotificationFailureException"
    assert "broken pipe" not in data["message"]
    assert len(record_store.items) == 1


@pytest.mark.asyncio
async def test_create_appointment_store_unavailable(client: AsyncClient, record_store):
    """Test a record store outage answers 503."""
    record_store.unavailable = True

    response = await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": 100, "countryCode": "PE"},
    )

    assert response.status_code == 503
    assert "connection refused" not in response.json()["message"]


@pytest.mark.asyncio
async def test_create_appointment_idempotency_key(client: AsyncClient, record_store):
    """Test repeated requests with the same Idempotency-Key book once."""
    payload = {"insuredId": "00001", "scheduleSlot": 100, "countryCode": "PE"}
    headers = {"Idempotency-Key": "booking-42"}

    first = await client.post(BOOKING_URL, json=payload, headers=headers)
    second = await client.post(BOOKING_URL, json=payload, headers=headers)

    assert first.status_code == second.status_code == 201
    assert first.json()["appointmentId"] == second.json()["appointmentId"]
    assert len(record_store.items) == 1


@pytest.mark.asyncio
async def test_create_appointment_idempotency_conflict(client: AsyncClient):
    """Test reusing an Idempotency-Key for another slot answers 409."""
    headers = {"Idempotency-Key": "booking-42"}
    await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": 100, "countryCode": "PE"},
        headers=headers,
    )

    response = await client.post(
        BOOKING_URL,
        json={"insuredId": "00001", "scheduleSlot": 101, "countryCode": "PE"},
        headers=headers,
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_list_appointments(client: AsyncClient, orchestrator):
    """Test listing the appointments of an insured."""
    await orchestrator.book("00001", 100, "PE")
    await orchestrator.book("00001", 101, "CL")
    await orchestrator.book("00002", 102, "PE")

    response = await client.get("/api/v1/appointments/00001")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {item["scheduleSlot"] for item in data["items"]} == {100, 101}
    assert all(item["insuredId"] == "00001" for item in data["items"])


@pytest.mark.asyncio
async def test_list_appointments_empty(client: AsyncClient):
    """Test an insured without appointments gets an empty list."""
    response = await client.get("/api/v1/appointments/99999")

    assert response.status_code == 200
    assert response.json() == {"total": 0, "items": []}


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test basic health check endpoint."""
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert "environment" in data


@pytest.mark.asyncio
async def test_ping(client: AsyncClient):
    """Test ping endpoint."""
    response = await client.get("/api/v1/ping")

    assert response.status_code == 200
    assert response.json() == {"message": "pong"}


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    """Test the request id is echoed back."""
    response = await client.get("/api/v1/ping", headers={"X-Request-ID": "req-abc"})

    assert response.headers["X-Request-ID"] == "req-abc"
    assert "X-Process-Time" in response.headers


class StubRegistry:
    def __init__(self, down: set[CountryCode] = frozenset()):
        self.down = down

    async def check_connection(self, country: CountryCode) -> bool:
        return country not in self.down


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("redis_ok", "down", "expected_status", "ready_code"),
    [
        (True, set(), "healthy", 200),
        (True, {CountryCode.CL}, "degraded", 503),
        (False, set(), "degraded", 503),
    ],
)
async def test_dependency_health(client: AsyncClient, redis_ok, down, expected_status, ready_code):
    """Test detailed and readiness checks report each ledger separately."""
    app.dependency_overrides[get_ledger_registry] = lambda: StubRegistry(down)

    with patch.object(health, "check_redis_connection", AsyncMock(return_value=redis_ok)):
        detailed = await client.get("/api/v1/health/detailed")
        ready = await client.get("/api/v1/health/ready")

    assert detailed.status_code == 200
    data = detailed.json()
    assert data["status"] == expected_status
    assert data["redis"] == ("healthy" if redis_ok else "unhealthy")
    assert data["ledgers"] == {
        country.value: "unhealthy" if country in down else "healthy" for country in CountryCode
    }
    assert ready.status_code == ready_code


@pytest.mark.asyncio
async def test_root_lists_supported_countries(client: AsyncClient):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["countries"] == ["PE", "CL"]
