"""Error taxonomy for the booking core.

Routers translate these into HTTP responses; the stores and services raise
them and never build HTTP errors themselves.
"""


class BookingError(Exception):
    """Base class for every error raised by the booking core."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed input: bad date or time, empty service list, bad quantity."""


class NotFoundError(BookingError):
    """A referenced service, appointment or override does not exist or is inactive."""


class CapacityConflict(BookingError):
    """Business-rule rejection: one or more services have no room left at the slot."""

    def __init__(
        self,
        message: str,
        conflicting_service_names: list[str],
        suggestions: list[str] | None = None,
    ):
        super().__init__(message)
        self.conflicting_service_names = list(conflicting_service_names)
        self.suggestions = suggestions


class StorageError(BookingError):
    """The persistence layer failed. Not retried here; callers may retry the whole booking."""


class ExternalIntegrationError(BookingError):
    """A best-effort side integration (email, calendar sync) failed."""
