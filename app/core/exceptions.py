"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class InvalidCountryException(AppException):
    """Country code outside the supported set."""

    def __init__(self, country_code: str):
        """Initialize with 400 status code, naming the rejected code."""
        self.country_code = country_code
        super().__init__(f"Invalid countryCode: {country_code}", status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class NotificationFailureException(AppException):
    """Appointment was stored but could not be published to its channel."""

    def __init__(self, appointment_id: str):
        """Initialize with 500 status code and a generic message."""
        self.appointment_id = appointment_id
        super().__init__("Appointment could not be registered", status_code=500)


class StoreUnavailableException(AppException):
    """A backing store or transport could not be reached."""

    def __init__(self, store: str, detail: str = ""):
        """Initialize with 503 status code and a generic message."""
        self.store = store
        self.detail = detail
        super().__init__("Service temporarily unavailable", status_code=503)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.store} unavailable: {self.detail}"
        return f"{self.store} unavailable"


class MalformedMessageException(AppException):
    """Queue message that cannot be parsed; redelivery cannot fix it."""

    def __init__(self, message: str = "Malformed message"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)
