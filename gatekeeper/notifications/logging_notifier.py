"""Notifier that only writes log lines. Used when no mail provider is configured."""

import logging

logger = logging.getLogger("gatekeeper")


class LoggingNotifier:
    async def notify_welcome(self, email: str, name: str) -> bool:
        logger.info("MAIL (not sent) welcome -> %s", email)
        return True

    async def notify_password_reset_requested(self, email: str, name: str, raw_secret: str) -> bool:
        # Never log the reset secret.
        logger.info("MAIL (not sent) password reset link -> %s", email)
        return True

    async def notify_password_reset_completed(self, email: str, name: str) -> bool:
        logger.info("MAIL (not sent) password reset confirmation -> %s", email)
        return True
