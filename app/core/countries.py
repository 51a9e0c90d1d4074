"""Country routing table.

Every country-dependent decision (ledger table, channel stream, ledger
database) is looked up here. Supporting a new country means adding a
``CountryCode`` member, its ``CountryRoute`` and its ledger table together.
"""

from dataclasses import dataclass
from enum import Enum

from app.config import Settings, settings
from app.core.exceptions import InvalidCountryException


class CountryCode(str, Enum):
    """Supported countries (ISO 3166-1 alpha-2)."""

    PE = "PE"
    CL = "CL"

    @classmethod
    def lookup(cls, value: str | None) -> "CountryCode | None":
        """Return the member for ``value`` or None when unsupported."""
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class CountryRoute:
    """Resources dedicated to one country."""

    country: CountryCode
    ledger_table: str
    topic: str
    database_setting: str

    @property
    def source(self) -> str:
        """Envelope source for events originating in this country."""
        return self.topic

    def database_url(self, config: Settings | None = None) -> str:
        """Ledger database URL configured for this country."""
        return getattr(config or settings, self.database_setting)


COUNTRY_ROUTES: dict[CountryCode, CountryRoute] = {
    CountryCode.PE: CountryRoute(
        country=CountryCode.PE,
        ledger_table="appointments_pe",
        topic="appointments.pe",
        database_setting="ledger_database_url_pe",
    ),
    CountryCode.CL: CountryRoute(
        country=CountryCode.CL,
        ledger_table="appointments_cl",
        topic="appointments.cl",
        database_setting="ledger_database_url_cl",
    ),
}


def parse_country_code(raw: str | None) -> CountryCode:
    """
    Validate a client supplied country code.

    Args:
        raw: Country code as received (case-insensitive)

    Returns:
        Supported country

    Raises:
        InvalidCountryException: If the code is not supported
    """
    country = CountryCode.lookup(raw)
    if country is None:
        raise InvalidCountryException(str(raw))
    return country


def get_route(country: CountryCode) -> CountryRoute:
    """Get the route for a supported country."""
    return COUNTRY_ROUTES[country]


def verify_country_routes(config: Settings | None = None) -> None:
    """
    Check the routing table is exhaustive.

    Raises:
        RuntimeError: If a country lacks a route, a ledger table or a database URL
    """
    from app.models.ledger import ledger_tables

    config = config or settings
    problems: list[str] = []

    for country in CountryCode:
        route = COUNTRY_ROUTES.get(country)
        if route is None:
            problems.append(f"{country.value}: no route")
            continue
        if route.ledger_table not in ledger_tables:
            problems.append(f"{country.value}: unknown ledger table {route.ledger_table}")
        if not getattr(config, route.database_setting, None):
            problems.append(f"{country.value}: {route.database_setting} is not configured")

    topics = [route.topic for route in COUNTRY_ROUTES.values()]
    if len(set(topics)) != len(topics):
        problems.append("country topics must be distinct")

    if problems:
        raise RuntimeError("Invalid country routing table: " + "; ".join(problems))
