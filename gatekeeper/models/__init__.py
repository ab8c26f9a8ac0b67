"""ORM models."""

from gatekeeper.models.password_reset import PasswordResetToken
from gatekeeper.models.user import User

__all__ = ["User", "PasswordResetToken"]
