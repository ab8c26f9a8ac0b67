"""Credential service: registration, login, password changes and password resets.

Domain failures are returned as ``AuthResult`` objects carrying an
``AuthErrorKind``; only infrastructure problems are raised. Passwords, reset
secrets and bearer tokens never appear in log lines.
"""

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial

from gatekeeper.config import Settings, get_settings
from gatekeeper.database import utc_now
from gatekeeper.events import (
    DomainEvent,
    EventDispatcher,
    PasswordResetCompleted,
    PasswordResetRequested,
    UserRegistered,
)
from gatekeeper.exceptions import AuthErrorKind, EmailAlreadyExistsError, ResetTokenConflictError
from gatekeeper.models.user import User
from gatekeeper.services.hashing import SecretHasher
from gatekeeper.services.jwt import BearerTokenService, TokenClaims, get_token_service
from gatekeeper.services.tokens import TokenCodec
from gatekeeper.store import CredentialStore

logger = logging.getLogger("gatekeeper")

NAME_MIN_LENGTH = 2
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
ACCOUNT_DEACTIVATED_MESSAGE = "Account is deactivated"
INVALID_RESET_TOKEN_MESSAGE = "Invalid reset token. Please request a new password reset."
EXPIRED_RESET_TOKEN_MESSAGE = "Reset token has expired. Please request a new password reset."

# Digests verified against when the email is unknown, keyed by bcrypt rounds.
_dummy_digests: dict[int, str] = {}


@dataclass(frozen=True)
class UserProfile:
    """Public view of a user. The password digest never leaves the service."""

    id: str
    email: str
    name: str
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None = None

    @classmethod
    def from_model(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            is_active=user.is_active,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
        )


@dataclass(frozen=True)
class ResetTicket:
    """What the caller needs to deliver a reset link out of band."""

    email: str
    name: str
    raw_secret: str = field(repr=False)


@dataclass
class AuthResult:
    """Result of a credential operation.

    A successful ``generate_reset_token`` for an unknown email has
    ``success=True`` and ``ticket=None``: the no-op outcome.
    """

    success: bool
    error: str | None = None
    error_kind: AuthErrorKind | None = None
    user: UserProfile | None = None
    token: str | None = None
    ticket: ResetTicket | None = None

    @classmethod
    def fail(cls, kind: AuthErrorKind, message: str) -> "AuthResult":
        return cls(success=False, error=message, error_kind=kind)


@dataclass(frozen=True)
class UserPage:
    users: list[UserProfile]
    page: int
    limit: int
    total: int
    total_pages: int


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class _TokenAlreadyConsumed(Exception):
    """A concurrent reset deleted the token first."""


class _UserGone(Exception):
    """The user row disappeared between lookup and update."""


class AuthService:
    """Handles the credential and reset-token lifecycle for one store."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: SecretHasher | None = None,
        codec: TokenCodec | None = None,
        token_service: BearerTokenService | None = None,
        dispatcher: EventDispatcher | None = None,
        settings: Settings | None = None,
        defer: Callable[..., object] | None = None,
    ) -> None:
        """``defer(func, *args)`` schedules event delivery to run later, e.g.
        FastAPI's ``BackgroundTasks.add_task``. Without it events are delivered
        before the operation returns.
        """
        settings = settings or get_settings()
        self.store = store
        self.hasher = hasher or SecretHasher(settings.BCRYPT_ROUNDS)
        self.codec = codec or TokenCodec()
        self.dispatcher = dispatcher
        self.defer = defer
        self.min_password_length = settings.PASSWORD_MIN_LENGTH
        self.reset_token_ttl = timedelta(minutes=settings.RESET_TOKEN_TTL_MINUTES)
        self._token_service = token_service

    @property
    def token_service(self) -> BearerTokenService:
        # Resolved lazily so that store-only jobs (the expiry sweep) run without a signing key.
        if self._token_service is None:
            self._token_service = get_token_service()
        return self._token_service

    # --- helpers ---

    def _password_error(self, password: str | None, label: str = "Password") -> str | None:
        if not password or len(password) < self.min_password_length:
            return f"{label} must be at least {self.min_password_length} characters long"
        return None

    async def _hash(self, password: str) -> str:
        # bcrypt is CPU bound; keep it off the event loop.
        return await asyncio.to_thread(self.hasher.hash, password)

    async def _verify(self, password: str, digest: str) -> bool:
        return await asyncio.to_thread(self.hasher.verify, password, digest)

    async def _dummy_digest(self) -> str:
        rounds = self.hasher.rounds
        if rounds not in _dummy_digests:
            _dummy_digests[rounds] = await self._hash("not-a-real-password")
        return _dummy_digests[rounds]

    async def _publish(self, event: DomainEvent) -> None:
        if self.dispatcher is None:
            return
        if self.defer is not None:
            self.defer(self.dispatcher.publish, event)
        else:
            await self.dispatcher.publish(event)

    async def _load_active_user(self, user_id: str) -> User | AuthResult:
        user = await self.store.find_user_by_id(user_id)
        if user is None:
            return AuthResult.fail(AuthErrorKind.NOT_FOUND, "User not found")
        if not user.is_active:
            return AuthResult.fail(AuthErrorKind.ACCOUNT_DEACTIVATED, ACCOUNT_DEACTIVATED_MESSAGE)
        return user

    # --- registration and login ---

    async def register(self, email: str, password: str, name: str) -> AuthResult:
        """Create an account and issue a bearer token for it."""
        email = normalize_email(email)
        name = (name or "").strip()
        if "@" not in email:
            return AuthResult.fail(AuthErrorKind.INVALID_INPUT, "A valid email is required")

        if await self.store.find_user_by_email(email):
            return AuthResult.fail(AuthErrorKind.CONFLICT, "User with this email already exists")

        password_error = self._password_error(password)
        if password_error:
            return AuthResult.fail(AuthErrorKind.INVALID_INPUT, password_error)
        if len(name) < NAME_MIN_LENGTH:
            return AuthResult.fail(
                AuthErrorKind.INVALID_INPUT, f"Name must be at least {NAME_MIN_LENGTH} characters long"
            )

        try:
            user = await self.store.create_user(email, await self._hash(password), name)
        except EmailAlreadyExistsError:
            return AuthResult.fail(AuthErrorKind.CONFLICT, "User with this email already exists")

        token = self.token_service.issue(user.id, user.email)
        await self._publish(UserRegistered(email=user.email, name=user.name))
        return AuthResult(success=True, user=UserProfile.from_model(user), token=token)

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate by email and password.

        Unknown email and wrong password produce the same result. An unknown
        email still pays for one bcrypt verification.
        """
        user = await self.store.find_user_by_email(normalize_email(email))
        if user is None:
            await self._verify(password or "", await self._dummy_digest())
            return AuthResult.fail(AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            return AuthResult.fail(AuthErrorKind.ACCOUNT_DEACTIVATED, ACCOUNT_DEACTIVATED_MESSAGE)

        if not await self._verify(password or "", user.password_hash):
            return AuthResult.fail(AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        fields = {"last_login_at": utc_now()}
        if self.hasher.needs_rehash(user.password_hash):
            fields["password_hash"] = await self._hash(password)
        user = await self.store.update_user(user.id, **fields)
        if user is None:
            return AuthResult.fail(AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        token = self.token_service.issue(user.id, user.email)
        return AuthResult(success=True, user=UserProfile.from_model(user), token=token)

    def verify_bearer_token(self, token: str) -> TokenClaims:
        """Verify a bearer token. Raises BearerTokenError subclasses."""
        return self.token_service.verify(token)

    # --- passwords ---

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> AuthResult:
        loaded = await self._load_active_user(user_id)
        if isinstance(loaded, AuthResult):
            return loaded
        user = loaded

        if not await self._verify(current_password or "", user.password_hash):
            return AuthResult.fail(AuthErrorKind.INVALID_CREDENTIALS, "Current password is incorrect")

        password_error = self._password_error(new_password, label="New password")
        if password_error:
            return AuthResult.fail(AuthErrorKind.INVALID_INPUT, password_error)

        user = await self.store.update_user(user.id, password_hash=await self._hash(new_password))
        if user is None:
            return AuthResult.fail(AuthErrorKind.NOT_FOUND, "User not found")
        logger.info("Password changed for user %s", user_id)
        return AuthResult(success=True, user=UserProfile.from_model(user))

    async def generate_reset_token(self, email: str) -> AuthResult:
        """Issue a reset secret, superseding any earlier one for the same user."""
        user = await self.store.find_user_by_email(normalize_email(email))
        if user is None:
            logger.debug("Password reset requested for unknown email")
            return AuthResult(success=True)

        if not user.is_active:
            return AuthResult.fail(AuthErrorKind.ACCOUNT_DEACTIVATED, ACCOUNT_DEACTIVATED_MESSAGE)

        # A rollback expires loaded rows, so read everything needed up front.
        profile = UserProfile.from_model(user)
        raw_secret, digest = self.codec.generate_secret()
        expires_at = utc_now() + self.reset_token_ttl
        steps = [
            partial(self.store.delete_reset_tokens_for_user, profile.id),
            partial(self.store.create_reset_token, profile.id, digest, expires_at),
        ]
        try:
            await self.store.run_atomic(steps)
        except ResetTokenConflictError:
            # A concurrent request inserted its token between our delete and insert; supersede it.
            logger.info("Retrying password reset token for user %s after a concurrent request", profile.id)
            await self.store.run_atomic(steps)
        logger.info("Password reset token issued for user %s", profile.id)

        return AuthResult(
            success=True,
            user=profile,
            ticket=ResetTicket(email=profile.email, name=profile.name, raw_secret=raw_secret),
        )

    async def request_password_reset(self, email: str) -> ResetTicket | None:
        """Public "forgot password" entry point. Never fails for unknown or deactivated accounts."""
        result = await self.generate_reset_token(email)
        if not result.success or result.ticket is None:
            return None

        ticket = result.ticket
        await self._publish(PasswordResetRequested(email=ticket.email, name=ticket.name, raw_secret=ticket.raw_secret))
        return ticket

    async def reset_password(self, raw_token: str, new_password: str) -> AuthResult:
        """Consume a reset secret and set a new password."""
        password_error = self._password_error(new_password)
        if password_error:
            return AuthResult.fail(AuthErrorKind.INVALID_INPUT, password_error)

        token = await self.store.find_reset_token_by_digest(self.codec.digest(raw_token or ""))
        if token is None:
            return AuthResult.fail(AuthErrorKind.INVALID_TOKEN, INVALID_RESET_TOKEN_MESSAGE)

        if token.is_expired(utc_now()):
            await self.store.delete_reset_token(token.id)
            return AuthResult.fail(AuthErrorKind.TOKEN_EXPIRED, EXPIRED_RESET_TOKEN_MESSAGE)

        user = await self.store.find_user_by_id(token.user_id)
        if user is None:
            return AuthResult.fail(AuthErrorKind.INVALID_TOKEN, INVALID_RESET_TOKEN_MESSAGE)
        if not user.is_active:
            return AuthResult.fail(AuthErrorKind.ACCOUNT_DEACTIVATED, ACCOUNT_DEACTIVATED_MESSAGE)

        new_hash = await self._hash(new_password)
        token_id = token.id
        user_id = user.id

        async def consume_token() -> None:
            if not await self.store.delete_reset_token(token_id):
                raise _TokenAlreadyConsumed

        async def set_password() -> User:
            updated = await self.store.update_user(user_id, password_hash=new_hash)
            if updated is None:
                raise _UserGone
            return updated

        try:
            _, user = await self.store.run_atomic([consume_token, set_password])
        except (_TokenAlreadyConsumed, _UserGone):
            return AuthResult.fail(AuthErrorKind.INVALID_TOKEN, INVALID_RESET_TOKEN_MESSAGE)

        logger.info("Password reset completed for user %s", user_id)
        profile = UserProfile.from_model(user)
        await self._publish(PasswordResetCompleted(email=profile.email, name=profile.name))
        return AuthResult(success=True, user=profile)

    async def cleanup_expired_tokens(self) -> int:
        """Delete every expired reset token. Returns the number removed."""
        removed = await self.store.delete_expired_reset_tokens(utc_now())
        logger.info("Cleaned up %d expired password reset tokens", removed)
        return removed

    async def password_reset_stats(self) -> dict[str, int]:
        return await self.store.reset_token_stats(utc_now())

    # --- profile and account administration ---

    async def get_profile(self, user_id: str) -> AuthResult:
        user = await self.store.find_user_by_id(user_id)
        if user is None:
            return AuthResult.fail(AuthErrorKind.NOT_FOUND, "User not found")
        return AuthResult(success=True, user=UserProfile.from_model(user))

    async def update_profile(self, user_id: str, name: str | None = None, email: str | None = None) -> AuthResult:
        loaded = await self._load_active_user(user_id)
        if isinstance(loaded, AuthResult):
            return loaded
        user = loaded

        fields = {}
        if name is not None:
            name = name.strip()
            if len(name) < NAME_MIN_LENGTH:
                return AuthResult.fail(
                    AuthErrorKind.INVALID_INPUT, f"Name must be at least {NAME_MIN_LENGTH} characters long"
                )
            fields["name"] = name
        if email is not None:
            email = normalize_email(email)
            if "@" not in email:
                return AuthResult.fail(AuthErrorKind.INVALID_INPUT, "A valid email is required")
            if email != user.email:
                taken = await self.store.find_user_by_email(email)
                if taken is not None:
                    return AuthResult.fail(AuthErrorKind.CONFLICT, "Email is already taken")
                fields["email"] = email

        try:
            user = await self.store.update_user(user.id, **fields)
        except EmailAlreadyExistsError:
            return AuthResult.fail(AuthErrorKind.CONFLICT, "Email is already taken")
        if user is None:
            return AuthResult.fail(AuthErrorKind.NOT_FOUND, "User not found")
        return AuthResult(success=True, user=UserProfile.from_model(user))

    async def _set_active(self, user_id: str, active: bool) -> AuthResult:
        user = await self.store.update_user(user_id, is_active=active)
        if user is None:
            return AuthResult.fail(AuthErrorKind.NOT_FOUND, "User not found")
        logger.info("User %s %s", user_id, "reactivated" if active else "deactivated")
        return AuthResult(success=True, user=UserProfile.from_model(user))

    async def deactivate_account(self, user_id: str) -> AuthResult:
        return await self._set_active(user_id, False)

    async def reactivate_account(self, user_id: str) -> AuthResult:
        return await self._set_active(user_id, True)

    async def list_users(self, page: int = 1, limit: int = 10) -> UserPage:
        page = max(page, 1)
        limit = max(limit, 1)
        users = await self.store.list_users(offset=(page - 1) * limit, limit=limit)
        total = await self.store.count_users()
        return UserPage(
            users=[UserProfile.from_model(u) for u in users],
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        )

    async def user_exists(self, email: str) -> bool:
        return await self.store.find_user_by_email(normalize_email(email)) is not None
