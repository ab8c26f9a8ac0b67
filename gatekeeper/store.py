"""Credential store: the persistence contract the credential service depends on."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.exceptions import EmailAlreadyExistsError, InfrastructureError, ResetTokenConflictError
from gatekeeper.models.password_reset import PasswordResetToken
from gatekeeper.models.user import User

logger = logging.getLogger("gatekeeper")

AtomicStep = Callable[[], Awaitable[Any]]


class CredentialStore(ABC):
    """Durable storage for users and password reset tokens.

    Write methods take effect immediately, except when they run as steps of
    ``run_atomic``: then they either all commit together or all roll back.
    """

    @abstractmethod
    async def find_user_by_email(self, email: str) -> User | None:
        """Find a user by already-normalized email."""

    @abstractmethod
    async def find_user_by_id(self, user_id: str) -> User | None:
        """Find a user by id."""

    @abstractmethod
    async def create_user(self, email: str, password_hash: str, name: str) -> User:
        """Create a user. Raises EmailAlreadyExistsError on a duplicate email."""

    @abstractmethod
    async def update_user(self, user_id: str, **fields: Any) -> User | None:
        """Update the given columns. Returns None when the user does not exist."""

    @abstractmethod
    async def delete_reset_tokens_for_user(self, user_id: str) -> int:
        """Delete every reset token owned by a user. Returns the number removed."""

    @abstractmethod
    async def create_reset_token(self, user_id: str, token_hash: str, expires_at: datetime) -> PasswordResetToken:
        """Persist a reset token digest. Raises ResetTokenConflictError if the user already has one."""

    @abstractmethod
    async def find_reset_token_by_digest(self, token_hash: str) -> PasswordResetToken | None:
        """Find a reset token by the digest of its secret."""

    @abstractmethod
    async def delete_reset_token(self, token_id: str) -> bool:
        """Delete one reset token. Returns False if it was already gone."""

    @abstractmethod
    async def delete_expired_reset_tokens(self, now: datetime) -> int:
        """Delete tokens with ``expires_at < now``. Returns the number removed."""

    @abstractmethod
    async def run_atomic(self, steps: Sequence[AtomicStep]) -> list[Any]:
        """Run write steps in order inside a single transaction."""

    @abstractmethod
    async def list_users(self, offset: int, limit: int) -> list[User]:
        """List users, newest first."""

    @abstractmethod
    async def count_users(self) -> int:
        """Total number of users."""

    @abstractmethod
    async def reset_token_stats(self, now: datetime) -> dict[str, int]:
        """Counts of reset tokens: ``total``, ``expired`` and ``active``."""


class SQLAlchemyCredentialStore(CredentialStore):
    """CredentialStore backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._in_atomic = False

    async def _execute(self, stmt):
        try:
            return await self._session.execute(stmt)
        except (OperationalError, InterfaceError) as e:
            logger.error("Store query failed: %s", type(e).__name__)
            raise InfrastructureError from e

    async def _commit(self) -> None:
        """Commit, or only flush while inside run_atomic."""
        try:
            if self._in_atomic:
                await self._session.flush()
            else:
                await self._session.commit()
        except (OperationalError, InterfaceError) as e:
            if not self._in_atomic:
                await self._session.rollback()
            logger.error("Store commit failed: %s", type(e).__name__)
            raise InfrastructureError from e

    async def _discard(self) -> None:
        if not self._in_atomic:
            await self._session.rollback()

    async def find_user_by_email(self, email: str) -> User | None:
        result = await self._execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_user_by_id(self, user_id: str) -> User | None:
        result = await self._execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def create_user(self, email: str, password_hash: str, name: str) -> User:
        user = User(email=email, password_hash=password_hash, name=name, is_active=True)
        self._session.add(user)
        try:
            await self._commit()
        except IntegrityError as e:
            await self._discard()
            raise EmailAlreadyExistsError(email) from e
        logger.info("Created user: %s", user.id)
        return user

    async def update_user(self, user_id: str, **fields: Any) -> User | None:
        if not fields:
            return await self.find_user_by_id(user_id)
        try:
            result = await self._execute(update(User).where(User.id == user_id).values(**fields))
            await self._commit()
        except IntegrityError as e:
            await self._discard()
            raise EmailAlreadyExistsError(fields.get("email", "")) from e
        if result.rowcount == 0:
            return None
        return await self._session.get(User, user_id, populate_existing=True)

    async def delete_reset_tokens_for_user(self, user_id: str) -> int:
        result = await self._execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user_id))
        await self._commit()
        return result.rowcount

    async def create_reset_token(self, user_id: str, token_hash: str, expires_at: datetime) -> PasswordResetToken:
        token = PasswordResetToken(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        self._session.add(token)
        try:
            await self._commit()
        except IntegrityError as e:
            await self._discard()
            raise ResetTokenConflictError(user_id) from e
        return token

    async def find_reset_token_by_digest(self, token_hash: str) -> PasswordResetToken | None:
        result = await self._execute(select(PasswordResetToken).where(PasswordResetToken.token_hash == token_hash))
        return result.scalar_one_or_none()

    async def delete_reset_token(self, token_id: str) -> bool:
        result = await self._execute(delete(PasswordResetToken).where(PasswordResetToken.id == token_id))
        await self._commit()
        return result.rowcount > 0

    async def delete_expired_reset_tokens(self, now: datetime) -> int:
        result = await self._execute(delete(PasswordResetToken).where(PasswordResetToken.expires_at < now))
        await self._commit()
        return result.rowcount

    async def run_atomic(self, steps: Sequence[AtomicStep]) -> list[Any]:
        if self._in_atomic:
            raise RuntimeError("run_atomic cannot be nested")
        self._in_atomic = True
        try:
            results = [await step() for step in steps]
            await self._session.commit()
        except (OperationalError, InterfaceError) as e:
            await self._session.rollback()
            logger.error("Atomic commit failed: %s", type(e).__name__)
            raise InfrastructureError from e
        except Exception:
            await self._session.rollback()
            raise
        finally:
            self._in_atomic = False
        return results

    async def list_users(self, offset: int, limit: int) -> list[User]:
        stmt = select(User).order_by(User.created_at.desc()).offset(offset).limit(limit)
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def count_users(self) -> int:
        result = await self._execute(select(func.count()).select_from(User))
        return result.scalar_one()

    async def reset_token_stats(self, now: datetime) -> dict[str, int]:
        total = (await self._execute(select(func.count()).select_from(PasswordResetToken))).scalar_one()
        expired = (
            await self._execute(
                select(func.count()).select_from(PasswordResetToken).where(PasswordResetToken.expires_at < now)
            )
        ).scalar_one()
        return {"total": total, "expired": expired, "active": total - expired}
