"""JWT bearer token service."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from gatekeeper.config import Settings, get_settings
from gatekeeper.exceptions import BearerTokenExpiredError, ConfigurationError, MalformedBearerTokenError

# Claim names used by tokens issued before "sub" became canonical.
LEGACY_ID_CLAIMS = ("id", "userId")


@dataclass(frozen=True)
class TokenClaims:
    """Canonical claims carried by a verified bearer token."""

    user_id: str
    email: str
    issued_at: datetime | None
    expires_at: datetime


class BearerTokenService:
    """Issues and verifies signed, self-contained bearer tokens."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        if not settings.JWT_SECRET_KEY:
            raise ConfigurationError("JWT_SECRET_KEY must be set before bearer tokens can be issued")
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.expires_in = timedelta(days=settings.JWT_EXPIRE_DAYS)

    def issue(self, user_id: str, email: str, expires_delta: timedelta | None = None) -> str:
        """Create a signed token for the given user."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "email": email,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.expires_in),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry and return the embedded claims.

        Raises BearerTokenExpiredError for an expired token and
        MalformedBearerTokenError for anything else that fails to verify.
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise BearerTokenExpiredError from e
        except JWTError as e:
            raise MalformedBearerTokenError from e

        user_id = payload.get("sub") or next((payload[c] for c in LEGACY_ID_CLAIMS if payload.get(c)), None)
        email = payload.get("email")
        exp = payload.get("exp")
        if not user_id or not email or not isinstance(exp, (int, float)):
            raise MalformedBearerTokenError

        iat = payload.get("iat")
        return TokenClaims(
            user_id=str(user_id),
            email=email,
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc) if isinstance(iat, (int, float)) else None,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )


_token_service: BearerTokenService | None = None


def get_token_service() -> BearerTokenService:
    """Get singleton bearer token service instance."""
    global _token_service
    if _token_service is None:
        _token_service = BearerTokenService()
    return _token_service
