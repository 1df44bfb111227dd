"""Shared fixtures: a throwaway SQLite database per test and an HTTP client
with the database, link signer, email sender and rate limiter overridden."""

import os

# Settings are read at import time; set them before anything from app/ loads.
os.environ["SECRET_KEY"] = "test-jwt-secret"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REVIEW_LINK_SECRET"] = "test-link-secret"
os.environ["FRONTEND_URL"] = "https://reviews.example.com"
os.environ["RESEND_API_KEY"] = ""

from typing import Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import func, select  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from app.core.roles import UserRole  # noqa: E402
from app.core.security import create_access_token, hash_password  # noqa: E402
from app.core.signing import LinkSigner, get_link_signer  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.models import Base, Review, ReviewRequest, Tenant, TenantStatus, User  # noqa: E402
from app.services.email_service import (  # noqa: E402
    EmailMessage,
    EmailResult,
    EmailSender,
    get_email_sender,
)
from app.services.rate_limit_service import RateLimiter, get_rate_limiter  # noqa: E402

LINK_SECRET = "test-link-secret"
TEST_PASSWORD = "correct-horse-battery"


class RecordingEmailSender(EmailSender):
    """Keeps sent messages in memory instead of calling the provider."""

    def __init__(self, succeed: bool = True) -> None:
        super().__init__(api_key="", api_url="", sender="reviews@example.com")
        self.succeed = succeed
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> EmailResult:
        self.sent.append(message)
        if self.succeed:
            return EmailResult(success=True, message_id=f"msg-{len(self.sent)}")
        return EmailResult(success=False, error="http_500")


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'reviews.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def signer() -> LinkSigner:
    return LinkSigner(secret=LINK_SECRET)


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def limiter(session_factory) -> RateLimiter:
    return RateLimiter(session_factory)


@pytest.fixture
async def client(session_factory, signer, email_sender, limiter):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_link_signer] = lambda: signer
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


# ── Data helpers ──────────────────────────────────────────────────────────────

async def make_tenant(
    db: AsyncSession,
    slug: str = "acme-cafe",
    name: str = "Acme Cafe",
    status: TenantStatus = TenantStatus.active,
    google_review_url: Optional[str] = "https://g.page/acme",
) -> Tenant:
    tenant = Tenant(
        name=name,
        slug=slug,
        status=status.value,
        branding={"primary_color": "#112233"},
        google_review_url=google_review_url,
    )
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return tenant


async def make_user(
    db: AsyncSession,
    email: str,
    role: UserRole,
    tenant_id: Optional[str] = None,
) -> User:
    user = User(
        email=email,
        hashed_password=hash_password(TEST_PASSWORD),
        role=role.value,
        tenant_id=tenant_id,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def issue_tracking_id(db: AsyncSession, tenant: Tenant, tracking_id: str) -> None:
    db.add(
        ReviewRequest(
            tenant_id=tenant.id,
            tracking_id=tracking_id,
            recipient_email="customer@example.com",
            customer_name="Jane",
            status="sent",
        )
    )
    await db.commit()


async def count_reviews(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(Review))
    return result.scalar_one()


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(subject=user.id, tenant_id=user.tenant_id, role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def tenant(db) -> Tenant:
    return await make_tenant(db)
