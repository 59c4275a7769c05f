"""
Electrical Supplier - Test Configuration and Fixtures
"""
import os
import asyncio
from datetime import datetime
from typing import AsyncGenerator, List, Optional
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from faker import Faker

# Set testing environment before the app reads settings
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test_supplier.db'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['REDIS_URL'] = ''
os.environ['SMTP_HOST'] = ''
os.environ['ADMIN_EMAIL'] = 'sales@supplier.test'

from app.main import app
from app.core.database import Base, get_db, create_engine_for_url
from app.core.rate_limiter import InMemoryRateLimitStore
from app.core.security import get_password_hash, create_access_token
from app.models.admin_user import AdminUser, AdminRole
from app.modules.quotes.dependencies import get_quote_service
from app.modules.quotes.gate import IntakeGate, QuoteGateConfig
from app.modules.quotes.notifier import QuoteNotifier, QuoteNotification
from app.modules.quotes.repository import QuoteRepository
from app.modules.quotes.results import QuoteSubmission, RequestMetadata
from app.modules.quotes.service import QuoteIntakeService

fake = Faker()

# Fixed "now" so day boundaries are deterministic
RECEIVED_AT = datetime(2026, 2, 3, 10, 0, 0)


class FakeMailer:
    """Records quote emails instead of sending them"""

    def __init__(self, succeed: bool = True, delay: float = 0, error: Optional[Exception] = None):
        self.succeed = succeed
        self.delay = delay
        self.error = error
        self.staff: List[QuoteNotification] = []
        self.customers: List[QuoteNotification] = []

    async def _deliver(self, box: List[QuoteNotification], notification: QuoteNotification) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        box.append(notification)
        return self.succeed

    async def send_quote_notification(self, notification: QuoteNotification) -> bool:
        return await self._deliver(self.staff, notification)

    async def send_quote_confirmation(self, notification: QuoteNotification) -> bool:
        return await self._deliver(self.customers, notification)


def make_service(
    rate_store=None,
    repository: Optional[QuoteRepository] = None,
    mailer: Optional[FakeMailer] = None,
    config: Optional[QuoteGateConfig] = None,
    notify_timeout: float = 0.5,
    captcha=None,
) -> QuoteIntakeService:
    repository = repository or QuoteRepository()
    gate = IntakeGate(
        rate_store or InMemoryRateLimitStore(), repository, config or QuoteGateConfig(), captcha=captcha
    )
    notifier = QuoteNotifier(mailer or FakeMailer(), timeout_seconds=notify_timeout)
    return QuoteIntakeService(gate, repository, notifier)


# ============== Database ==============

@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite per test so separate sessions really race"""
    eng = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'quotes.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============== Quote intake ==============

@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def rate_store() -> InMemoryRateLimitStore:
    return InMemoryRateLimitStore()


@pytest.fixture
async def quote_service(rate_store, mailer) -> AsyncGenerator[QuoteIntakeService, None]:
    service = make_service(rate_store=rate_store, mailer=mailer)
    yield service
    await service.notifier.drain(timeout=2)


@pytest.fixture
def submission_factory():
    """Build a valid submission; keyword overrides replace fields"""
    def factory(**overrides) -> QuoteSubmission:
        data = {
            "name": fake.name()[:100],
            "phone": "+1-234-567-8900",
            "email": "buyer@example.com",
            "company": fake.company()[:150],
            "product_name": "XLPE cable 4 core 16mm",
            "quantity": "500 m",
            "project_details": "Warehouse rewiring, delivery in March",
        }
        data.update(overrides)
        return QuoteSubmission(**data)
    return factory


@pytest.fixture
def metadata_factory():
    def factory(ip_address: str = "203.0.113.10", received_at: datetime = RECEIVED_AT,
                user_agent: str = "pytest") -> RequestMetadata:
        return RequestMetadata(ip_address=ip_address, user_agent=user_agent, received_at=received_at)
    return factory


# ============== HTTP ==============

@pytest.fixture
async def client(session_factory, quote_service) -> AsyncGenerator[AsyncClient, None]:
    """Test client with a fresh session per request and the test quote service"""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                if session.new or session.dirty or session.deleted:
                    await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_quote_service] = lambda: quote_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ============== Admins ==============

async def _create_admin(session_factory, role: AdminRole, password: str, is_active: bool = True) -> AdminUser:
    async with session_factory() as session:
        admin = AdminUser(
            email=fake.unique.email().lower(),
            hashed_password=get_password_hash(password),
            full_name=fake.name(),
            role=role,
            is_active=is_active,
        )
        session.add(admin)
        await session.commit()
        await session.refresh(admin)
        return admin


@pytest.fixture
async def admin_user(session_factory) -> AdminUser:
    return await _create_admin(session_factory, AdminRole.ADMIN, 'adminpassword123')


@pytest.fixture
async def viewer_user(session_factory) -> AdminUser:
    return await _create_admin(session_factory, AdminRole.VIEWER, 'viewerpassword123')


@pytest.fixture
async def inactive_admin(session_factory) -> AdminUser:
    return await _create_admin(session_factory, AdminRole.ADMIN, 'inactivepassword1', is_active=False)


def _headers_for(admin: AdminUser) -> dict:
    token = create_access_token({'sub': str(admin.id), 'email': admin.email, 'role': admin.role.value})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_auth_headers(admin_user: AdminUser) -> dict:
    return _headers_for(admin_user)


@pytest.fixture
def viewer_auth_headers(viewer_user: AdminUser) -> dict:
    return _headers_for(viewer_user)


@pytest.fixture
def mailer_factory():
    return FakeMailer


@pytest.fixture
def service_factory():
    """Build a QuoteIntakeService with substituted collaborators"""
    return make_service
