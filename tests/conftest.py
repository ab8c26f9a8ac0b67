"""Pytest configuration and fixtures."""

import os

# Settings are cached on first import; pin them before anything from gatekeeper loads.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-gatekeeper-unit-tests-0123456789"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["BREVO_API_KEY"] = ""
os.environ["ADMIN_API_KEY"] = "test-admin-key"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from gatekeeper.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from gatekeeper.events import EventDispatcher  # noqa: E402
from gatekeeper.models import PasswordResetToken, User  # noqa: E402, F401
from gatekeeper.services.auth import AuthService  # noqa: E402
from gatekeeper.store import SQLAlchemyCredentialStore  # noqa: E402


class RecordingNotifier:
    """Notifier that remembers every call. Set ``fail`` to make it raise."""

    def __init__(self) -> None:
        self.sent: list[tuple] = []
        self.fail = False

    async def _record(self, *call) -> bool:
        if self.fail:
            raise RuntimeError("mail provider down")
        self.sent.append(call)
        return True

    async def notify_welcome(self, email: str, name: str) -> bool:
        return await self._record("welcome", email, name)

    async def notify_password_reset_requested(self, email: str, name: str, raw_secret: str) -> bool:
        return await self._record("reset_requested", email, name, raw_secret)

    async def notify_password_reset_completed(self, email: str, name: str) -> bool:
        return await self._record("reset_completed", email, name)

    def of_kind(self, kind: str) -> list[tuple]:
        return [call for call in self.sent if call[0] == kind]


@pytest_asyncio.fixture(name="db_session")
async def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    testing_session_local = async_sessionmaker(
        bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )
    async with testing_session_local() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(name="store")
def store_fixture(db_session: AsyncSession) -> SQLAlchemyCredentialStore:
    return SQLAlchemyCredentialStore(db_session)


@pytest.fixture(name="notifier")
def notifier_fixture() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(name="dispatcher")
def dispatcher_fixture(notifier: RecordingNotifier) -> EventDispatcher:
    return EventDispatcher(notifier)


@pytest.fixture(name="auth_service")
def auth_service_fixture(store: SQLAlchemyCredentialStore, dispatcher: EventDispatcher) -> AuthService:
    return AuthService(store, dispatcher=dispatcher)


@pytest_asyncio.fixture(name="client")
async def client_fixture(db_session: AsyncSession, dispatcher: EventDispatcher):
    """Create a test client with the DB session and event dispatcher overridden."""
    from gatekeeper.dependencies import get_event_dispatcher
    from main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_dispatcher] = lambda: dispatcher
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(name="test_user")
async def test_user_fixture(auth_service: AuthService) -> dict:
    """Register a test user and return its id, email, password and token."""
    result = await auth_service.register("test@example.com", "password123", "Test User")
    assert result.success
    return {
        "user_id": result.user.id,
        "email": result.user.email,
        "password": "password123",
        "name": result.user.name,
        "token": result.token,
    }


@pytest.fixture(name="admin_headers")
def admin_headers_fixture() -> dict:
    return {"X-Admin-Key": os.environ["ADMIN_API_KEY"]}


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(test_user: dict) -> dict:
    return {"Authorization": f"Bearer {test_user['token']}"}
