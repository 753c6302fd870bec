"""Change notifications for appointment data.

A channel is created by whoever owns the consumers (the application, a
CLI run, a test) and handed to the services that publish on it.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class ChangeKind(str, Enum):
    """Kind of appointment change."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class AppointmentChange:
    """One change to the appointments table."""

    kind: ChangeKind
    appointment_id: int
    patient_id: int | None = None


Subscriber = Callable[[AppointmentChange], None]


class AppointmentChanges:
    """Publish/subscribe channel for appointment changes."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """
        Register a subscriber.

        Returns:
            Callable that removes the subscriber again
        """
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, change: AppointmentChange) -> None:
        """Deliver ``change`` to every subscriber."""
        for subscriber in list(self._subscribers):
            try:
                subscriber(change)
            except Exception as e:
                # A failing consumer must not fail the write that already committed
                logger.warning(
                    "appointment_change_subscriber_failed",
                    kind=change.kind.value,
                    appointment_id=change.appointment_id,
                    error=str(e),
                )
