"""Configuration settings for Gatekeeper."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        # Database
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./gatekeeper.db")

        # JWT
        self.JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "")
        self.JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_DAYS: int = int(os.getenv("JWT_EXPIRE_DAYS", "7"))

        # Passwords and reset tokens
        self.BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
        self.PASSWORD_MIN_LENGTH: int = int(os.getenv("PASSWORD_MIN_LENGTH", "6"))
        self.RESET_TOKEN_TTL_MINUTES: int = int(os.getenv("RESET_TOKEN_TTL_MINUTES", "60"))

        # Mail
        self.FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
        self.BREVO_API_KEY: str = os.getenv("BREVO_API_KEY", "")
        self.MAIL_FROM_EMAIL: str = os.getenv("MAIL_FROM_EMAIL", "no-reply@localhost")
        self.MAIL_FROM_NAME: str = os.getenv("MAIL_FROM_NAME", "Gatekeeper")
        self.MAIL_TIMEOUT_SECONDS: float = float(os.getenv("MAIL_TIMEOUT_SECONDS", "10"))

        # Admin / maintenance
        self.ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")
        self.CLEANUP_INTERVAL_HOURS: int = int(os.getenv("CLEANUP_INTERVAL_HOURS", "6"))

        # Application
        self.APP_ENV: str = os.getenv("APP_ENV", "development")
        self.DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        warnings = []
        if not self.JWT_SECRET_KEY:
            warnings.append("JWT_SECRET_KEY is not set - bearer tokens cannot be issued")
        elif len(self.JWT_SECRET_KEY) < 32:
            warnings.append("JWT_SECRET_KEY is shorter than 32 characters")
        if not self.BREVO_API_KEY:
            warnings.append("BREVO_API_KEY is not set - emails will only be logged")
        if self.PASSWORD_MIN_LENGTH < 8:
            warnings.append(f"PASSWORD_MIN_LENGTH is {self.PASSWORD_MIN_LENGTH}; consider 8 or more")
        return warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
