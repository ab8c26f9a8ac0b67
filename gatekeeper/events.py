"""Domain events and their post-commit delivery.

The credential service publishes an event only after its transaction has
committed. Delivery is best effort: a failing notifier is logged and never
reaches the caller, so it cannot undo or fail a credential operation.
"""

import logging
from dataclasses import dataclass, field

from gatekeeper.notifications.protocol import Notifier

logger = logging.getLogger("gatekeeper")


@dataclass(frozen=True)
class UserRegistered:
    email: str
    name: str


@dataclass(frozen=True)
class PasswordResetRequested:
    email: str
    name: str
    raw_secret: str = field(repr=False)


@dataclass(frozen=True)
class PasswordResetCompleted:
    email: str
    name: str


DomainEvent = UserRegistered | PasswordResetRequested | PasswordResetCompleted


class EventDispatcher:
    """Routes domain events to the notifier."""

    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier

    async def publish(self, event: DomainEvent) -> bool:
        """Deliver one event. Returns whether the notifier reported success."""
        kind = type(event).__name__
        try:
            if isinstance(event, UserRegistered):
                delivered = await self.notifier.notify_welcome(event.email, event.name)
            elif isinstance(event, PasswordResetRequested):
                delivered = await self.notifier.notify_password_reset_requested(
                    event.email, event.name, event.raw_secret
                )
            elif isinstance(event, PasswordResetCompleted):
                delivered = await self.notifier.notify_password_reset_completed(event.email, event.name)
            else:
                logger.warning("No handler for event %s", kind)
                return False
        except Exception as e:  # noqa: BLE001
            logger.error("Notification %s to %s raised %s", kind, event.email, type(e).__name__)
            return False

        if delivered:
            logger.info("Notification %s sent to %s", kind, event.email)
        else:
            logger.warning("Notification %s to %s was not delivered", kind, event.email)
        return delivered
