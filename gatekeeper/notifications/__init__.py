"""Email notifications for account lifecycle events."""

from gatekeeper.config import Settings
from gatekeeper.notifications.brevo import BrevoMailer
from gatekeeper.notifications.logging_notifier import LoggingNotifier
from gatekeeper.notifications.protocol import Notifier


def build_notifier(settings: Settings) -> Notifier:
    """Brevo when an API key is configured, log-only otherwise."""
    if settings.BREVO_API_KEY:
        return BrevoMailer(settings)
    return LoggingNotifier()


__all__ = ["BrevoMailer", "LoggingNotifier", "Notifier", "build_notifier"]
