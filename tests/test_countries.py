"""Tests for the country routing table."""

import pytest

from app.config import settings
from app.core.countries import (
    COUNTRY_ROUTES,
    CountryCode,
    get_route,
    parse_country_code,
    verify_country_routes,
)
from app.core.exceptions import InvalidCountryException
from app.models.ledger import ledger_tables


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("PE", CountryCode.PE), ("cl", CountryCode.CL), (" Pe ", CountryCode.PE)],
)
def test_parse_country_code(raw, expected):
    """Test supported codes are accepted case-insensitively."""
    assert parse_country_code(raw) is expected


@pytest.mark.parametrize("raw", ["XX", "", None, "PER", "P"])
def test_parse_country_code_rejects_unsupported(raw):
    """Test unsupported codes raise with the received value."""
    with pytest.raises(InvalidCountryException) as exc_info:
        parse_country_code(raw)

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == f"Invalid countryCode: {raw}"


def test_lookup_returns_none_for_unsupported():
    assert CountryCode.lookup("AR") is None
    assert CountryCode.lookup(None) is None
    assert CountryCode.lookup("cl") is CountryCode.CL


def test_every_country_has_a_route():
    """Test the routing table covers exactly the supported countries."""
    assert set(COUNTRY_ROUTES) == set(CountryCode)
    for country, route in COUNTRY_ROUTES.items():
        assert route.country is country
        assert route.ledger_table in ledger_tables


def test_routes_are_distinct():
    topics = {route.topic for route in COUNTRY_ROUTES.values()}
    tables = {route.ledger_table for route in COUNTRY_ROUTES.values()}
    assert len(topics) == len(tables) == len(CountryCode)


def test_get_route():
    route = get_route(CountryCode.CL)
    assert route.topic == "appointments.cl"
    assert route.ledger_table == "appointments_cl"
    assert route.source == "appointments.cl"
    assert route.database_url() == settings.ledger_database_url_cl


def test_verify_country_routes():
    """Test the default configuration passes the routing check."""
    verify_country_routes(settings)


def test_verify_country_routes_missing_database():
    """Test a country without a ledger database fails the routing check."""
    config = settings.model_copy(update={"ledger_database_url_cl": ""})

    with pytest.raises(RuntimeError, match="CL: ledger_database_url_cl is not configured"):
        verify_country_routes(config)
