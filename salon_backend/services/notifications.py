"""
Best-effort side integrations that run after a booking commits.

Email confirmations and external calendar sync live outside this service and
plug in as notifiers. A failing notifier is logged and skipped; it never
changes the outcome of the booking.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from salon_backend.core.errors import ExternalIntegrationError

logger = logging.getLogger(__name__)


@dataclass
class BookingConfirmation:
    appointment_id: int
    customer_name: str
    customer_email: str
    customer_phone: str | None
    service_names: list[str]
    appointment_date: str
    appointment_time: str
    notes: str | None = None


Notifier = Callable[[BookingConfirmation], None]


def log_booking(confirmation: BookingConfirmation) -> None:
    logger.info(
        'Appointment %s booked for %s: %s on %s at %s',
        confirmation.appointment_id,
        confirmation.customer_email,
        ', '.join(confirmation.service_names),
        confirmation.appointment_date,
        confirmation.appointment_time,
    )


class NotificationDispatcher:
    def __init__(self, notifiers: list[Notifier] | None = None):
        self.notifiers: list[Notifier] = list(notifiers) if notifiers is not None else [log_booking]

    def dispatch(self, confirmation: BookingConfirmation) -> list[ExternalIntegrationError]:
        """Run every notifier and return the failures instead of raising them."""
        failures = []
        for notifier in self.notifiers:
            name = getattr(notifier, '__name__', type(notifier).__name__)
            try:
                notifier(confirmation)
            except ExternalIntegrationError as exc:
                logger.exception('Notifier %s failed for appointment %s', name, confirmation.appointment_id)
                failures.append(exc)
            except Exception as exc:
                logger.exception('Notifier %s failed for appointment %s', name, confirmation.appointment_id)
                failures.append(ExternalIntegrationError(f'{name} failed: {exc}'))
        return failures
