"""Notifier protocol: the credential service depends on this, not on a mail provider."""

from typing import Protocol


class Notifier(Protocol):
    async def notify_welcome(self, email: str, name: str) -> bool: ...

    async def notify_password_reset_requested(self, email: str, name: str, raw_secret: str) -> bool: ...

    async def notify_password_reset_completed(self, email: str, name: str) -> bool: ...
