"""Shared fixtures.

Provides:
- Environment for Settings (set before anything from saaskit is imported)
- A fresh SQLite database per test, opened through init_engine()
- A service-level AsyncSession
- The FastAPI app with the email sender and OAuth client replaced by fakes
- Async HTTP clients addressed to the root domain and to tenant subdomains
- Factories for tenants, users and platform admins
"""

import os

os.environ["SECRET_KEY"] = "test-secret-key-with-enough-entropy-0123456789"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./unused.db"
os.environ["APP_ENV"] = "test"
os.environ["ROOT_DOMAIN"] = "example.com"
os.environ["PROTOCOL"] = "http"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DEBUG"] = "false"
os.environ["SMTP_HOST"] = ""

from collections.abc import AsyncGenerator
from typing import Optional

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from main import create_application
from saaskit.core.security import hash_password
from saaskit.db.session import dispose_engine, get_session_factory, init_engine
from saaskit.models import Base
from saaskit.models.admin import AdminRole, SuperAdmin
from saaskit.models.tenant import Tenant
from saaskit.models.user import User, UserRole
from saaskit.services.admin_service import AdminService
from saaskit.services.email_service import EmailMessage, SendResult, get_email_sender
from saaskit.services.oauth_provider import OAuthProfile, get_oauth_client
from saaskit.services.user_service import UserService

PASSWORD = "Password1"


# ── Fakes ────────────────────────────────────────────────────────────────────

class RecordingEmailSender:
    """Keeps every message; reports failure so dev tokens are returned."""

    def __init__(self, success: bool = False) -> None:
        self.success = success
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> SendResult:
        self.sent.append(message)
        if self.success:
            return SendResult(success=True)
        return SendResult(success=False, error="recording sender")


class FakeOAuthClient:
    provider = "google"
    configured = True

    def __init__(self) -> None:
        self.profile = OAuthProfile(
            provider_account_id="google-sub-1",
            email="oauth.user@example.org",
            name="OAuth User",
            tokens={"access_token": "at", "expires_at": None},
        )

    def authorization_url(self, state: str, redirect_uri: str) -> str:
        return f"https://accounts.provider.test/authorize?state={state}"

    async def fetch_profile(self, code: str, redirect_uri: str) -> OAuthProfile:
        return self.profile


# ── Database ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine(tmp_path):
    """A fresh SQLite file per test, with every table created."""
    engine = init_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await dispose_engine()


@pytest_asyncio.fixture
async def db(engine) -> AsyncGenerator[AsyncSession, None]:
    async with get_session_factory()() as session:
        yield session


# ── App & clients ────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def outbox() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest_asyncio.fixture
async def oauth_client() -> FakeOAuthClient:
    return FakeOAuthClient()


@pytest_asyncio.fixture
async def app(engine, outbox, oauth_client):
    application = create_application()
    application.dependency_overrides[get_email_sender] = lambda: outbox
    application.dependency_overrides[get_oauth_client] = lambda: oauth_client
    yield application
    application.dependency_overrides.clear()


def _client(app, host: str) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url=f"http://{host}")


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Root-domain client (signup, OAuth callback, admin panel)."""
    async with _client(app, "example.com") as ac:
        yield ac


@pytest_asyncio.fixture
async def acme_client(app) -> AsyncGenerator[AsyncClient, None]:
    async with _client(app, "acme.example.com") as ac:
        yield ac


@pytest_asyncio.fixture
async def globex_client(app) -> AsyncGenerator[AsyncClient, None]:
    async with _client(app, "globex.example.com") as ac:
        yield ac


# ── Factories ────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def make_tenant(db):
    """Create a tenant and its owner, committed."""

    async def factory(
        slug: str,
        email: Optional[str] = None,
        password: Optional[str] = PASSWORD,
        name: Optional[str] = None,
    ) -> tuple[Tenant, User]:
        tenant = Tenant(slug=slug, name=name or slug.title())
        db.add(tenant)
        await db.flush()
        owner = await UserService.create_user(
            db,
            tenant_id=tenant.id,
            email=email or f"owner@{slug}.org",
            name=f"{slug.title()} Owner",
            role=UserRole.owner,
            password_hash=hash_password(password) if password else None,
        )
        await db.commit()
        return tenant, owner

    return factory


@pytest_asyncio.fixture
async def make_user(db):
    async def factory(
        tenant: Tenant,
        email: str,
        role: UserRole = UserRole.member,
        password: Optional[str] = PASSWORD,
    ) -> User:
        user = await UserService.create_user(
            db,
            tenant_id=tenant.id,
            email=email,
            name=email.split("@")[0].title(),
            role=role,
            password_hash=hash_password(password) if password else None,
        )
        await db.commit()
        return user

    return factory


@pytest_asyncio.fixture
async def make_admin(db):
    async def factory(
        email: str,
        role: AdminRole = AdminRole.admin,
        password: Optional[str] = PASSWORD,
    ) -> SuperAdmin:
        admin = await AdminService.create(db, email, email.split("@")[0].title(), role, password)
        await db.commit()
        return admin

    return factory


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> dict:
    """Sign in on the client's tenant host and return bearer headers."""
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
