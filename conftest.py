import json
import os
from typing import AsyncGenerator, Callable, Optional

import httpx
import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Optional overrides for local runs (e.g. TEST_DATABASE_URL pointing at Postgres)
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["PAYSTACK_SECRET_KEY"] = os.environ.get(
    "TEST_PAYSTACK_SECRET_KEY", "sk_test_webhook_secret"
)

from libs.common.config import get_settings  # noqa: E402

# Clear cached settings to reload with the test env vars
get_settings.cache_clear()

from libs.auth.dependencies import get_current_user  # noqa: E402
from libs.auth.models import AuthUser  # noqa: E402
from libs.db.base import Base  # noqa: E402
from libs.db.session import get_async_db  # noqa: E402
from services.payments_service.app.main import app  # noqa: E402
from services.payments_service.paystack_client import (  # noqa: E402
    PaystackClient,
    get_paystack_client,
)
from services.payments_service.signature import compute_paystack_signature  # noqa: E402

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

ADMIN_USER = AuthUser(sub="admin-user", email="admin@example.com", role="service_role")


@pytest_asyncio.fixture
async def test_engine():
    """
    A fresh database per test. The default in-memory SQLite database lives on
    a single shared connection and disappears when the engine is disposed.
    """
    kwargs = {}
    if TEST_DATABASE_URL.startswith("sqlite"):
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_async_engine(TEST_DATABASE_URL, **kwargs)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session shared by the test body and the app under test."""
    session_factory = async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


class PaystackStub:
    """
    Canned Paystack API responses served through ``httpx.MockTransport``.

    Register responses with ``stub.on("POST", "/transfer", {...})``; every
    request is recorded in ``stub.requests``.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple[int, dict]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, data=None, status_code: int = 200, message: str = "ok"):
        body = {"status": 200 <= status_code < 300, "message": message, "data": data}
        self.routes[(method.upper(), path)] = (status_code, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, body = self.routes.get(
            (request.method, request.url.path),
            (404, {"status": False, "message": "Not stubbed"}),
        )
        return httpx.Response(status_code, json=body)

    def last_json(self, method: str, path: str) -> Optional[dict]:
        for request in reversed(self.requests):
            if request.method == method and request.url.path == path:
                return json.loads(request.content or b"{}")
        return None


@pytest.fixture
def paystack_stub() -> PaystackStub:
    return PaystackStub()


@pytest.fixture
def paystack_client(paystack_stub) -> PaystackClient:
    return PaystackClient(
        secret_key="sk_test_api_key",
        base_url="https://api.paystack.test",
        transport=httpx.MockTransport(paystack_stub.handler),
    )


class AuthState:
    """The user the mocked auth dependency returns; None means unauthenticated."""

    def __init__(self):
        self.user: Optional[AuthUser] = ADMIN_USER


@pytest.fixture
def auth_state() -> AuthState:
    return AuthState()


@pytest_asyncio.fixture
async def client(db_session, paystack_client, auth_state) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient against the payments app with the DB session,
    Paystack client and current user overridden.
    """
    from fastapi import HTTPException, status

    async def _current_user() -> AuthUser:
        if auth_state.user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
            )
        return auth_state.user

    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_paystack_client] = lambda: paystack_client
    app.dependency_overrides[get_current_user] = _current_user

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sign() -> Callable[[bytes], str]:
    """Sign a raw body with the configured webhook secret."""

    def _sign(body: bytes) -> str:
        return compute_paystack_signature(body, get_settings().PAYSTACK_SECRET_KEY)

    return _sign
