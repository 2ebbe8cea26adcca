"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time, so the environment is fixed first
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REQUIRE_EMAIL_VERIFICATION"] = "true"
os.environ["SENDGRID_API_KEY"] = ""

from datetime import timedelta
from typing import AsyncGenerator, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.clock import utc_now
from app.core.security import TokenService, hash_password
from app.database import Base, get_db
from app.dependencies import get_clock
from app.main import app
from app.models.user import UserRole
from app.services.auth_service import AuthService
from app.services.email_service import EmailService, get_email_service
from app.services.user_store import UserStore
from app.services.verification_throttle import VerificationThrottle, get_verification_throttle
from app.utils.redis_client import RedisClient


class FakeClock:
    """Controllable clock shared by token issuing and expiry checks"""

    def __init__(self):
        self.now = utc_now()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingEmailService(EmailService):
    """Email service that keeps messages instead of sending them"""

    def __init__(self):
        super().__init__(api_key="")
        self.sent: List[Tuple[str, str, Dict]] = []

    async def send(self, to_email, template_id, variables):
        self.sent.append((to_email, template_id, variables))

    def last_token_for(self, email: str) -> Optional[str]:
        for to_email, _, variables in reversed(self.sent):
            if to_email == email.lower():
                query = parse_qs(urlparse(variables["button_url"]).query)
                return query["token"][0]
        return None


class MemoryRedis(RedisClient):
    """Dict-backed stand-in for the Redis wrapper; TTLs never elapse"""

    def __init__(self):
        super().__init__("redis://memory")
        self.values: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    @property
    def is_connected(self) -> bool:
        return True

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, ex=None):
        self.values[key] = value
        self.ttls[key] = ex if ex is not None else -1

    async def exists(self, key):
        return key in self.values

    async def incr(self, key):
        self.values[key] = str(int(self.values.get(key, "0")) + 1)
        return int(self.values[key])

    async def ttl(self, key):
        return self.ttls.get(key, -2)


@pytest.fixture
async def db_engine(tmp_path):
    """Create a test database engine backed by a per-test SQLite file"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def outbox():
    return RecordingEmailService()


@pytest.fixture
def memory_redis():
    return MemoryRedis()


@pytest.fixture
def token_service(clock):
    return TokenService.from_settings(clock=clock)


@pytest.fixture
async def make_auth_service(session_factory, clock, outbox):
    """Build auth services, each on its own session"""
    sessions = []

    def _make(require_email_verification=True, throttle=None):
        session = session_factory()
        sessions.append(session)
        return AuthService(
            UserStore(session),
            TokenService.from_settings(clock=clock),
            outbox,
            throttle=throttle,
            clock=clock,
            require_email_verification=require_email_verification,
        )

    yield _make

    for session in sessions:
        await session.close()


@pytest.fixture
def auth_service(make_auth_service):
    return make_auth_service()


@pytest.fixture
async def client(session_factory, clock, outbox):
    """Create an async test client with the database, clock and mail overridden"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_throttle():
        # Never connected, so resends go unthrottled in endpoint tests
        return VerificationThrottle(RedisClient("redis://unused"))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_email_service] = lambda: outbox
    app.dependency_overrides[get_verification_throttle] = override_get_throttle

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def test_user_data():
    """Sample user data for testing"""
    return {
        "email": "a@x.com",
        "password": "secret1",
        "firstName": "A",
        "lastName": "B",
        "phone": "+201001234567",
        "role": "patient",
    }


@pytest.fixture
def signup(client, outbox, session_factory):
    """
    Register and verify an account over HTTP, then log it in

    Admins cannot sign themselves up, so they are written straight to the store.
    """

    async def _signup(email="a@x.com", password="secret1", role="patient", verify=True):
        if role == UserRole.ADMIN.value:
            async with session_factory() as session:
                await UserStore(session).create(
                    email=email,
                    password_hash=hash_password(password),
                    first_name="Test",
                    last_name="Admin",
                    role=UserRole.ADMIN,
                    is_active=True,
                    is_email_verified=verify,
                )
        else:
            response = await client.post("/api/v1/auth/register", json={
                "email": email,
                "password": password,
                "firstName": "Test",
                "lastName": role.capitalize(),
                "role": role,
            })
            assert response.status_code == 201, response.text

        if verify and role != UserRole.ADMIN.value:
            token = outbox.last_token_for(email)
            response = await client.post("/api/v1/auth/verify-email", json={"token": token})
            assert response.status_code == 200, response.text

        response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
        client.cookies.clear()
        return response

    return _signup
